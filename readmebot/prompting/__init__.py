"""Prompt construction for README analysis."""

from .builder import AnalysisContext, PromptBuilder

__all__ = ["AnalysisContext", "PromptBuilder"]
