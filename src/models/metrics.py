"""
Classification metrics with a fixed positive label.

Precision, recall and F1 fall back to 0 whenever their denominator is zero,
so a fold or threshold with no predicted positives scores 0 instead of NaN.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import confusion_matrix, f1_score, make_scorer

from src.utils import safe_divide


@dataclass(frozen=True)
class ConfusionCounts:
    """Confusion matrix counts against one positive label."""

    tp: int
    fp: int
    fn: int
    tn: int

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.fn + self.tn

    @property
    def accuracy(self) -> float:
        return safe_divide(self.tp + self.tn, self.total)

    @property
    def precision(self) -> float:
        return safe_divide(self.tp, self.tp + self.fp)

    @property
    def recall(self) -> float:
        return safe_divide(self.tp, self.tp + self.fn)

    @property
    def f1(self) -> float:
        precision, recall = self.precision, self.recall
        return safe_divide(2 * precision * recall, precision + recall)

    def as_matrix(self) -> np.ndarray:
        """2x2 array, rows actual (negative, positive), columns predicted."""
        return np.array([[self.tn, self.fp], [self.fn, self.tp]])


def confusion_counts(
    y_true: Iterable,
    y_pred: Iterable,
    positive_label: str = "Yes",
    negative_label: str = "No"
) -> ConfusionCounts:
    """
    Count outcomes of binary predictions.

    Args:
        y_true: True labels
        y_pred: Predicted labels
        positive_label: Label treated as the positive class
        negative_label: Label treated as the negative class

    Returns:
        ConfusionCounts
    """
    y_true = np.asarray(y_true).astype(str)
    y_pred = np.asarray(y_pred).astype(str)
    tn, fp, fn, tp = confusion_matrix(
        y_true, y_pred, labels=[negative_label, positive_label]
    ).ravel()
    return ConfusionCounts(tp=int(tp), fp=int(fp), fn=int(fn), tn=int(tn))


def compute_metrics(counts: ConfusionCounts) -> Dict[str, float]:
    """Accuracy, precision, recall and F1 from confusion counts."""
    return {
        "accuracy": counts.accuracy,
        "precision": counts.precision,
        "recall": counts.recall,
        "f1": counts.f1,
    }


def make_f1_scorer(positive_label: str = "Yes"):
    """Cross-validation scorer: F1 of the positive label, 0 when undefined."""
    return make_scorer(f1_score, pos_label=positive_label, zero_division=0)


def threshold_grid(start: float = 0.05, stop: float = 0.95, step: float = 0.05) -> np.ndarray:
    """Evenly spaced probability thresholds, both ends included."""
    n_steps = int(round((stop - start) / step))
    return np.round(start + step * np.arange(n_steps + 1), 10)


def search_threshold(
    y_true: Iterable,
    y_prob: Iterable,
    thresholds: Iterable[float],
    positive_label: str = "Yes",
    negative_label: str = "No"
) -> Tuple[float, float, pd.DataFrame]:
    """
    Find the probability cut-off that maximises F1.

    A row is predicted positive when its probability is at least the
    threshold. Ties keep the first threshold in grid order.

    Args:
        y_true: True labels
        y_prob: Predicted probability of the positive label
        thresholds: Candidate thresholds
        positive_label: Label treated as the positive class
        negative_label: Label treated as the negative class

    Returns:
        Tuple of (best threshold, best F1, table of F1 per threshold)
    """
    y_prob = np.asarray(y_prob, dtype=float)
    rows = []
    for threshold in thresholds:
        y_pred = np.where(y_prob >= threshold, positive_label, negative_label)
        counts = confusion_counts(y_true, y_pred, positive_label, negative_label)
        rows.append({"threshold": float(threshold), **compute_metrics(counts)})

    table = pd.DataFrame(rows)
    best = int(np.argmax(table["f1"].to_numpy()))
    return float(table.loc[best, "threshold"]), float(table.loc[best, "f1"]), table
