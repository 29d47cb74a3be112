"""Model service adapters and response handling."""

from .analysis import AnalysisClient
from .parser import parse_analysis
from .runner import LLMRunner, ModelServiceError

__all__ = ["AnalysisClient", "LLMRunner", "ModelServiceError", "parse_analysis"]
