"""Utility functions."""

from .helpers import setup_logging, get_timestamp, safe_divide, make_rng, slugify

__all__ = ["setup_logging", "get_timestamp", "safe_divide", "make_rng", "slugify"]
