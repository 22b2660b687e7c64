"""Exploratory analysis module."""

from .explorer import ExploratoryReporter

__all__ = ["ExploratoryReporter"]
