"""Models module for training and evaluation."""

from .trainer import ModelTrainer, TrainedModel
from .evaluator import ModelEvaluator

__all__ = ["ModelTrainer", "TrainedModel", "ModelEvaluator"]
