"""Extraction and validation of structured analysis results from model output."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterator, List, Mapping, Tuple

from ..logging import get_logger
from ..models import NEW_SECTION, PRIORITIES, SUGGESTION_KINDS, AnalysisResult, Suggestion

_KIND_ALIASES: Dict[str, str] = {
    "env": "environment-variable",
    "environment": "environment-variable",
    "env-var": "environment-variable",
    "environment variable": "environment-variable",
    "environment-variables": "environment-variable",
    "dependencies": "dependency",
    "features": "feature",
    "installation": "setup",
    "install": "setup",
    "endpoint": "api",
    "structure": "architecture",
}

_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "kind": ("type", "kind"),
    "target_section": ("section", "targetSection", "target_section"),
    "description": ("description",),
    "priority": ("priority",),
    "body": ("content", "body"),
}

logger = get_logger("llm.parser")


class _ShapeError(ValueError):
    pass


def parse_analysis(raw_text: str) -> AnalysisResult:
    """Parse raw model output into an AnalysisResult.

    Never raises: malformed output is reported through ``parse_error`` with
    ``needs_update`` forced to ``False`` and no suggestions.
    """
    try:
        payload = _extract_payload(raw_text if isinstance(raw_text, str) else "")
        return _validate(payload)
    except (_ShapeError, RecursionError) as exc:
        diagnostic = f"Failed to parse response: {exc}"
        logger.warning("%s", diagnostic)
        logger.debug("Raw model response: %r", raw_text)
        return AnalysisResult.failed(diagnostic)


def iter_json_spans(text: str) -> Iterator[str]:
    """Yield balanced ``{...}`` spans in document order, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        end = -1
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    end = index
                    break
        if end == -1:
            return
        yield text[start : end + 1]
        start = text.find("{", end + 1)


def _extract_payload(text: str) -> Dict[str, Any]:
    last_error = "No JSON found in response"
    for span in iter_json_spans(text):
        try:
            decoded = json.loads(span)
        except json.JSONDecodeError as exc:
            last_error = f"Invalid JSON: {exc.msg}"
            continue
        if isinstance(decoded, dict):
            return decoded
    raise _ShapeError(last_error)


def _validate(payload: Mapping[str, Any]) -> AnalysisResult:
    needs_update = payload.get("needsUpdate", payload.get("needs_update"))
    if not isinstance(needs_update, bool):
        raise _ShapeError("Invalid response: needsUpdate must be boolean")

    raw_suggestions = payload.get("suggestions")
    if not isinstance(raw_suggestions, list):
        raise _ShapeError("Invalid response: suggestions must be array")

    suggestions = [_build_suggestion(item, index) for index, item in enumerate(raw_suggestions)]
    if not needs_update:
        suggestions = []
    return AnalysisResult(needs_update=needs_update, suggestions=suggestions)


def _build_suggestion(item: Any, index: int) -> Suggestion:
    if not isinstance(item, dict):
        raise _ShapeError(f"Invalid response: suggestion {index} must be an object")
    values = {name: _field(item, name, index) for name in _FIELD_ALIASES}
    return Suggestion(
        kind=normalise_kind(values["kind"]),
        target_section=values["target_section"].strip() or NEW_SECTION,
        description=values["description"].strip(),
        priority=normalise_priority(values["priority"]),
        body=values["body"],
    )


def _field(item: Mapping[str, Any], name: str, index: int) -> str:
    for key in _FIELD_ALIASES[name]:
        if key not in item:
            continue
        value = item[key]
        if value is None:
            return ""
        if not isinstance(value, str):
            raise _ShapeError(f"Invalid response: suggestion {index} field '{key}' must be a string")
        return value
    return ""


def normalise_kind(value: str) -> str:
    lowered = value.strip().lower().replace("_", "-")
    if lowered in SUGGESTION_KINDS:
        return lowered
    return _KIND_ALIASES.get(lowered, "other")


def normalise_priority(value: str) -> str:
    lowered = value.strip().lower()
    return lowered if lowered in PRIORITIES else "medium"


def suggestions_to_payload(suggestions: List[Suggestion]) -> List[Dict[str, str]]:
    return [item.to_payload() for item in suggestions]


__all__ = ["iter_json_spans", "normalise_kind", "normalise_priority", "parse_analysis", "suggestions_to_payload"]
