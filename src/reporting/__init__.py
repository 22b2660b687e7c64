"""Report rendering module."""

from .report_builder import ReportBuilder

__all__ = ["ReportBuilder"]
