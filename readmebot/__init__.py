"""readme-bot: keeps README files in sync with pull request changes."""

__version__ = "1.0.0"
