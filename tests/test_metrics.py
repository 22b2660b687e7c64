"""Tests for confusion counts, zero-safe F1 and the threshold search."""

import numpy as np
import pytest
from sklearn.base import BaseEstimator, ClassifierMixin

from src.models.metrics import (
    ConfusionCounts,
    compute_metrics,
    confusion_counts,
    make_f1_scorer,
    search_threshold,
    threshold_grid,
)


def test_confusion_counts_against_positive_label():
    y_true = ["Yes", "Yes", "No", "No", "No"]
    y_pred = ["Yes", "No", "Yes", "No", "No"]

    counts = confusion_counts(y_true, y_pred)

    assert counts == ConfusionCounts(tp=1, fp=1, fn=1, tn=2)
    assert counts.as_matrix().tolist() == [[2, 1], [1, 1]]


def test_metrics_from_counts():
    metrics = compute_metrics(ConfusionCounts(tp=30, fp=10, fn=20, tn=40))

    assert metrics["accuracy"] == pytest.approx(0.7)
    assert metrics["precision"] == pytest.approx(0.75)
    assert metrics["recall"] == pytest.approx(0.6)
    assert metrics["f1"] == pytest.approx(2 * 0.75 * 0.6 / 1.35)


def test_f1_is_zero_without_predicted_positives():
    counts = ConfusionCounts(tp=0, fp=0, fn=5, tn=20)

    assert counts.precision == 0.0
    assert counts.recall == 0.0
    assert counts.f1 == 0.0


def test_f1_is_zero_with_empty_counts():
    assert ConfusionCounts(tp=0, fp=0, fn=0, tn=0).f1 == 0.0


def test_scorer_returns_zero_for_all_negative_predictions():
    class AlwaysNo(ClassifierMixin, BaseEstimator):
        def fit(self, X, y):
            self.classes_ = np.unique(y)
            return self

        def predict(self, X):
            return np.array(["No"] * len(X))

    X, y = np.zeros((4, 1)), np.array(["Yes", "No", "Yes", "No"])
    score = make_f1_scorer("Yes")(AlwaysNo().fit(X, y), X, y)

    assert score == 0.0


def test_threshold_grid_spans_five_to_ninety_five_percent():
    grid = threshold_grid(0.05, 0.95, 0.05)

    assert len(grid) == 19
    assert grid[0] == pytest.approx(0.05)
    assert grid[-1] == pytest.approx(0.95)
    assert 0.5 in grid


def test_search_threshold_finds_known_optimum():
    y_true = ["No", "No", "No", "Yes", "Yes", "No", "Yes"]
    y_prob = [0.10, 0.20, 0.30, 0.62, 0.70, 0.55, 0.90]

    best, best_f1, table = search_threshold(y_true, y_prob, threshold_grid())

    # 0.60 is the first cut-off that separates the classes perfectly
    assert best == pytest.approx(0.60)
    assert best_f1 == pytest.approx(1.0)
    assert len(table) == 19


def test_search_threshold_is_deterministic():
    rng = np.random.default_rng(7)
    y_true = np.where(rng.random(200) < 0.3, "Yes", "No")
    y_prob = np.clip(rng.normal(0.4, 0.2, 200) + (y_true == "Yes") * 0.2, 0, 1)

    results = [search_threshold(y_true, y_prob, threshold_grid())[:2] for _ in range(3)]

    assert results[0] == results[1] == results[2]


def test_search_threshold_ties_keep_first_threshold():
    y_true = ["No", "Yes"]
    y_prob = [0.0, 1.0]

    best, _, _ = search_threshold(y_true, y_prob, threshold_grid())

    assert best == pytest.approx(0.05)
