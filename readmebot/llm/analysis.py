"""README analysis against the model service."""

from __future__ import annotations

from typing import Protocol

from ..errors import AnalysisFailure
from ..logging import get_logger
from ..models import AnalysisResult
from ..prompting.builder import AnalysisContext, PromptBuilder
from .parser import parse_analysis
from .runner import ModelServiceError


class CompletionRunner(Protocol):
    def run(self, prompt: str, *, max_tokens: int | None = None) -> str: ...


class AnalysisClient:
    """Asks the model whether a pull request warrants README changes."""

    VALIDATION_MAX_TOKENS = 3000

    def __init__(
        self,
        runner: CompletionRunner,
        *,
        prompt_builder: PromptBuilder | None = None,
        validate_suggestions: bool = False,
    ) -> None:
        self.runner = runner
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.validate_suggestions = validate_suggestions
        self.logger = get_logger("analysis")

    def analyze(self, diff: str, current_readme: str, context: AnalysisContext) -> AnalysisResult:
        """Return a validated AnalysisResult; raises AnalysisFailure if the model call fails."""
        prompt = self.prompt_builder.build_analysis_prompt(diff, current_readme, context)
        self.logger.debug(
            "Analysis prompt for %s: %d chars (readme=%d, diff=%d)",
            context.repo_name,
            len(prompt),
            len(current_readme),
            len(diff),
        )
        try:
            raw = self.runner.run(prompt)
        except (ModelServiceError, OSError) as exc:
            raise AnalysisFailure(f"Failed to analyze changes: {exc}") from exc

        result = parse_analysis(raw)
        if result.parse_error:
            return result

        if self.validate_suggestions and result.needs_update and result.suggestions:
            result = self._validate(result, current_readme)
        return result

    def _validate(self, result: AnalysisResult, current_readme: str) -> AnalysisResult:
        prompt = self.prompt_builder.build_validation_prompt(result.suggestions, current_readme)
        try:
            raw = self.runner.run(prompt, max_tokens=self.VALIDATION_MAX_TOKENS)
        except (ModelServiceError, OSError) as exc:
            self.logger.warning("Suggestion validation failed, keeping original suggestions: %s", exc)
            return result

        validated = parse_analysis(raw)
        if validated.parse_error:
            self.logger.warning(
                "Suggestion validation reply unusable, keeping original suggestions: %s",
                validated.parse_error,
            )
            return result
        self.logger.info(
            "Suggestion validation kept %d of %d suggestions",
            len(validated.suggestions),
            len(result.suggestions),
        )
        return validated


__all__ = ["AnalysisClient", "CompletionRunner"]
