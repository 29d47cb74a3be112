"""README merging and report rendering."""

from .report import ReportFormatter, format_analysis_comment
from .sections import MergeResult, SectionMerger

__all__ = ["MergeResult", "ReportFormatter", "SectionMerger", "format_analysis_comment"]
