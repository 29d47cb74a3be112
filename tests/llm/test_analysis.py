from __future__ import annotations

import json

import pytest

from readmebot.errors import AnalysisFailure
from readmebot.llm.analysis import AnalysisClient
from readmebot.llm.runner import ModelServiceError
from readmebot.prompting import AnalysisContext
from tests._fixtures.fakes import ScriptedRunner

SUGGESTIONS = {
    "needsUpdate": True,
    "suggestions": [
        {"type": "env", "section": "Configuration", "description": "a", "priority": "high", "content": "x"},
        {"type": "feature", "section": "Features", "description": "b", "priority": "low", "content": "y"},
    ],
}


def test_analyze_returns_parsed_result() -> None:
    runner = ScriptedRunner(json.dumps(SUGGESTIONS))
    result = AnalysisClient(runner).analyze("diff", "# Widgets", AnalysisContext(repo_name="acme/widgets"))

    assert result.needs_update is True
    assert [item.target_section for item in result.suggestions] == ["Configuration", "Features"]
    assert len(runner.prompts) == 1
    assert "acme/widgets" in runner.prompts[0]


def test_analyze_wraps_service_errors() -> None:
    runner = ScriptedRunner(ModelServiceError("status 500"))

    with pytest.raises(AnalysisFailure, match="Failed to analyze changes: status 500") as info:
        AnalysisClient(runner).analyze("diff", "", AnalysisContext())
    assert info.value.state == "analyzing"


def test_parse_failures_are_returned_not_raised() -> None:
    runner = ScriptedRunner("I think the README is fine.")
    result = AnalysisClient(runner, validate_suggestions=True).analyze("diff", "", AnalysisContext())

    assert result.parse_error
    assert result.needs_update is False
    assert len(runner.prompts) == 1


def test_validation_pass_filters_suggestions() -> None:
    kept = {"needsUpdate": True, "suggestions": [SUGGESTIONS["suggestions"][1]]}
    runner = ScriptedRunner(json.dumps(SUGGESTIONS), json.dumps(kept))

    result = AnalysisClient(runner, validate_suggestions=True).analyze("diff", "", AnalysisContext())

    assert [item.target_section for item in result.suggestions] == ["Features"]
    assert runner.max_tokens == [None, 3000]


def test_validation_failure_keeps_original() -> None:
    runner = ScriptedRunner(json.dumps(SUGGESTIONS), ModelServiceError("timeout"))

    result = AnalysisClient(runner, validate_suggestions=True).analyze("diff", "", AnalysisContext())

    assert len(result.suggestions) == 2


def test_validation_unparseable_keeps_original() -> None:
    runner = ScriptedRunner(json.dumps(SUGGESTIONS), "nope")

    result = AnalysisClient(runner, validate_suggestions=True).analyze("diff", "", AnalysisContext())

    assert len(result.suggestions) == 2
