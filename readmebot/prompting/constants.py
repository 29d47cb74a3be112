"""Shared constants for analysis prompts."""

from __future__ import annotations

DOCUMENTATION_TRIGGERS: tuple[tuple[str, str], ...] = (
    ("Environment Variables", "New or renamed environment variables read by the code"),
    ("Dependencies", "Package manifest changes, new libraries, notable version bumps"),
    ("Features", "New user-facing functionality that should be described"),
    ("Setup Instructions", "Changes that affect installation, configuration or first run"),
    ("API Changes", "New or modified endpoints, commands, or public interfaces"),
    ("Architecture", "Structural changes that alter the project description"),
    ("File Structure", "Moved, added or removed top-level directories and entry points"),
    ("Scripts", "New or changed build, test, or run scripts"),
    ("Breaking Changes", "Anything that requires existing users to change how they work"),
)

SUGGESTION_TYPE_TAGS: tuple[str, ...] = (
    "env",
    "dependency",
    "feature",
    "setup",
    "api",
    "architecture",
    "other",
)

NO_UPDATE_RESPONSE = '{"needsUpdate": false, "suggestions": []}'


__all__ = ["DOCUMENTATION_TRIGGERS", "NO_UPDATE_RESPONSE", "SUGGESTION_TYPE_TAGS"]
