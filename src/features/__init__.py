"""Features module for predictor screening."""

from .feature_selector import FeatureSelector

__all__ = ["FeatureSelector"]
