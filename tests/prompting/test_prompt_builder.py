from __future__ import annotations

from readmebot.models import Suggestion
from readmebot.prompting import AnalysisContext, PromptBuilder
from readmebot.prompting.constants import DOCUMENTATION_TRIGGERS


def _context() -> AnalysisContext:
    return AnalysisContext(
        repo_name="acme/widgets",
        pr_title="Add Redis cache",
        pr_description="Introduces REDIS_URL",
        changed_files=["src/cache.py", "requirements.txt"],
    )


def test_analysis_prompt_embeds_inputs() -> None:
    prompt = PromptBuilder().build_analysis_prompt("+REDIS_URL = 1", "# Widgets", _context())

    assert "**Repository:** acme/widgets" in prompt
    assert "**PR Title:** Add Redis cache" in prompt
    assert "**Changed Files:** src/cache.py, requirements.txt" in prompt
    assert "```markdown\n# Widgets\n```" in prompt
    assert "```diff\n+REDIS_URL = 1\n```" in prompt
    assert "Be conservative" in prompt
    assert '"needsUpdate"' in prompt


def test_analysis_prompt_lists_every_trigger() -> None:
    prompt = PromptBuilder().build_analysis_prompt("", "", AnalysisContext())
    for title, _ in DOCUMENTATION_TRIGGERS:
        assert f"**{title}:**" in prompt
    assert "**Repository:** Unknown Repository" in prompt
    assert "(none reported)" in prompt


def test_validation_prompt_serialises_suggestions() -> None:
    suggestion = Suggestion(
        kind="dependency",
        target_section="Installation",
        description="Mention redis",
        priority="low",
        body="pip install redis",
    )
    prompt = PromptBuilder().build_validation_prompt([suggestion], "# Widgets")

    assert '"type": "dependency"' in prompt
    assert '"section": "Installation"' in prompt
    assert '"content": "pip install redis"' in prompt
    assert "Not already covered in the current README" in prompt
