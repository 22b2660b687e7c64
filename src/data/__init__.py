"""Data module for loading, partitioning and preprocessing data."""

from .data_loader import DataLoader
from .preprocessor import DataPreprocessor, oversampling_target

__all__ = ["DataLoader", "DataPreprocessor", "oversampling_target"]
