"""
Model Evaluator Module
======================

Test-set evaluation, comparison table and diagnostic plots.
"""

from pathlib import Path
from typing import Dict, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from loguru import logger

from config import get_config, FIGURES_DIR
from src.models.metrics import ConfusionCounts, compute_metrics, confusion_counts
from src.models.trainer import TrainedModel
from src.utils import slugify


class ModelEvaluator:
    """Evaluate and compare trained churn models on the held-out test set."""

    COMPARISON_COLUMNS = ["Model", "Accuracy", "Precision", "Recall", "F1-Score"]

    def __init__(self, config: Optional[dict] = None, figures_dir: Optional[Path] = None):
        """
        Initialize ModelEvaluator.

        Args:
            config: Configuration dictionary
            figures_dir: Where plots are written; defaults to reports/figures
        """
        self.config = config or get_config()
        self.eval_config = self.config.get("evaluation", {})
        self.rounding = self.eval_config.get("rounding", 4)
        feature_config = self.config.get("features", {})
        self.positive_label = feature_config.get("positive_label", "Yes")
        self.negative_label = feature_config.get("negative_label", "No")
        self.figures_dir = Path(figures_dir or FIGURES_DIR)
        self.figures_dir.mkdir(parents=True, exist_ok=True)

        self.evaluation_results: Dict[str, Dict] = {}

    def get_confusion_counts(
        self,
        trained: TrainedModel,
        X: pd.DataFrame,
        y_true: pd.Series
    ) -> ConfusionCounts:
        """Confusion counts of a model's predictions against the positive label."""
        y_pred = trained.predict(X)
        return confusion_counts(y_true, y_pred, self.positive_label, self.negative_label)

    def evaluate_model(
        self,
        trained: TrainedModel,
        X: pd.DataFrame,
        y_true: pd.Series
    ) -> Dict[str, float]:
        """
        Evaluate a single model.

        Args:
            trained: Fitted model
            X: Test predictors
            y_true: Test labels

        Returns:
            Dictionary of metrics
        """
        counts = self.get_confusion_counts(trained, X, y_true)
        metrics = compute_metrics(counts)

        self.evaluation_results[trained.name] = {
            "display_name": trained.display_name,
            "metrics": metrics,
            "confusion": counts,
        }

        logger.info(
            f"{trained.display_name} - Accuracy: {metrics['accuracy']:.4f}, "
            f"Precision: {metrics['precision']:.4f}, Recall: {metrics['recall']:.4f}, "
            f"F1: {metrics['f1']:.4f}"
        )
        return metrics

    def evaluate_all_models(
        self,
        models: Dict[str, TrainedModel],
        X: pd.DataFrame,
        y_true: pd.Series
    ) -> pd.DataFrame:
        """
        Evaluate multiple models and create comparison.

        Args:
            models: Dictionary of trained models
            X: Test predictors
            y_true: Test labels

        Returns:
            Comparison table
        """
        for trained in models.values():
            self.evaluate_model(trained, X, y_true)
        return self.comparison_table()

    def comparison_table(self) -> pd.DataFrame:
        """
        One row per evaluated model, sorted by F1.

        Returns:
            DataFrame with Model, Accuracy, Precision, Recall and F1-Score
        """
        rows = [
            {
                "Model": result["display_name"],
                "Accuracy": result["metrics"]["accuracy"],
                "Precision": result["metrics"]["precision"],
                "Recall": result["metrics"]["recall"],
                "F1-Score": result["metrics"]["f1"],
            }
            for result in self.evaluation_results.values()
        ]

        table = pd.DataFrame(rows, columns=self.COMPARISON_COLUMNS)
        metric_cols = self.COMPARISON_COLUMNS[1:]
        table[metric_cols] = table[metric_cols].astype(float).round(self.rounding)
        table = table.sort_values("F1-Score", ascending=False, kind="stable").reset_index(drop=True)
        return table

    def best_model(self) -> Tuple[str, float]:
        """Display name and F1 of the top model in the comparison."""
        table = self.comparison_table()
        if table.empty:
            raise ValueError("No models evaluated yet")
        return table.loc[0, "Model"], float(table.loc[0, "F1-Score"])

    def _save(self, fig: plt.Figure, name: str) -> Path:
        filepath = self.figures_dir / f"{name}.png"
        fig.savefig(filepath, dpi=150, bbox_inches="tight")
        logger.debug(f"Saved plot to {filepath}")
        return filepath

    def plot_confusion_matrix(
        self,
        model_name: str,
        save: bool = True,
        figsize: Tuple[int, int] = (6, 5)
    ) -> Tuple[plt.Figure, Optional[Path]]:
        """
        Plot confusion matrix heatmap for an evaluated model.

        Args:
            model_name: Model key used during evaluation
            save: Whether to save figure
            figsize: Figure size

        Returns:
            Matplotlib figure and saved path
        """
        result = self.evaluation_results[model_name]
        labels = [self.negative_label, self.positive_label]

        fig, ax = plt.subplots(figsize=figsize)
        sns.heatmap(
            result["confusion"].as_matrix(), annot=True, fmt="d", cmap="Blues",
            xticklabels=labels, yticklabels=labels, ax=ax
        )
        ax.set_title(f"{result['display_name']} - Confusion Matrix")
        ax.set_xlabel("Predicted")
        ax.set_ylabel("Actual")
        plt.tight_layout()

        path = self._save(fig, f"confusion_matrix_{slugify(model_name)}") if save else None
        return fig, path

    def plot_cv_summary(
        self,
        trained: TrainedModel,
        save: bool = True,
        figsize: Tuple[int, int] = (8, 5)
    ) -> Tuple[plt.Figure, Optional[Path]]:
        """
        Plot mean cross-validated F1 across the tuning grid.

        Models tuned on a probability threshold plot F1 per threshold instead.

        Args:
            trained: Fitted model
            save: Whether to save figure
            figsize: Figure size

        Returns:
            Matplotlib figure and saved path
        """
        fig, ax = plt.subplots(figsize=figsize)
        param_cols = [c for c in trained.cv_results.columns if c not in ("mean_f1", "std_f1", "rank")]

        if trained.threshold_table is not None:
            table = trained.threshold_table
            ax.plot(table["threshold"], table["f1"], marker="o")
            ax.axvline(trained.threshold, color="k", linestyle="--", label=f"Chosen ({trained.threshold:.2f})")
            ax.set_xlabel("Probability threshold")
            ax.set_ylabel(f"F1 ({trained.threshold_source})")
            ax.legend(loc="lower center")
        elif param_cols:
            results = trained.cv_results
            x = results[param_cols[0]].astype(str) if len(param_cols) > 1 else results[param_cols[0]]
            ax.errorbar(range(len(results)), results["mean_f1"], yerr=results["std_f1"], marker="o", capsize=3)
            ax.set_xticks(range(len(results)))
            ax.set_xticklabels(list(x), rotation=45, ha="right")
            ax.set_xlabel(param_cols[0])
            ax.set_ylabel("Mean CV F1")
        else:
            ax.bar(["CV F1"], trained.cv_results["mean_f1"], yerr=trained.cv_results["std_f1"])
            ax.set_ylabel("Mean CV F1")

        ax.set_title(f"{trained.display_name} - Tuning Summary")
        ax.grid(True, alpha=0.3)
        plt.tight_layout()

        path = self._save(fig, f"cv_summary_{slugify(trained.name)}") if save else None
        return fig, path

    def plot_variable_importance(
        self,
        trained: TrainedModel,
        top_n: int = 15,
        save: bool = True,
        figsize: Tuple[int, int] = (8, 6)
    ) -> Tuple[plt.Figure, Optional[Path]]:
        """
        Plot variable importance of a fitted model.

        Args:
            trained: Fitted model with importance computed
            top_n: Number of features to show
            save: Whether to save figure
            figsize: Figure size

        Returns:
            Matplotlib figure and saved path
        """
        if trained.importance is None:
            raise ValueError(f"No variable importance computed for {trained.name}")

        data = trained.importance.head(top_n)
        fig, ax = plt.subplots(figsize=figsize)
        sns.barplot(data=data, x="importance", y="feature", color="steelblue", ax=ax)
        ax.set_title(f"{trained.display_name} - Variable Importance")
        ax.set_xlabel("Importance (scaled 0-100)")
        ax.set_ylabel("")
        plt.tight_layout()

        path = self._save(fig, f"importance_{slugify(trained.name)}") if save else None
        return fig, path

    def plot_model_comparison(
        self,
        comparison_df: pd.DataFrame,
        save: bool = True,
        figsize: Tuple[int, int] = (12, 6)
    ) -> Tuple[plt.Figure, Optional[Path]]:
        """
        Plot model comparison bar chart.

        Args:
            comparison_df: Comparison table
            save: Whether to save figure
            figsize: Figure size

        Returns:
            Matplotlib figure and saved path
        """
        metrics = self.COMPARISON_COLUMNS[1:]

        fig, ax = plt.subplots(figsize=figsize)

        x = np.arange(len(comparison_df))
        width = 0.2

        for multiplier, metric in enumerate(metrics):
            ax.bar(x + width * multiplier, comparison_df[metric], width, label=metric)

        ax.set_xlabel("Model")
        ax.set_ylabel("Score")
        ax.set_title("Model Performance Comparison")
        ax.set_xticks(x + width * (len(metrics) - 1) / 2)
        ax.set_xticklabels(comparison_df["Model"], rotation=45, ha="right")
        ax.legend(loc="upper right")
        ax.set_ylim(0, 1.1)
        ax.grid(True, alpha=0.3, axis="y")

        plt.tight_layout()

        path = self._save(fig, "model_comparison") if save else None
        return fig, path

    def get_evaluation_summary(self) -> Dict:
        """
        Get summary of all evaluations.

        Returns:
            Dictionary with evaluation summary
        """
        summary = {}
        for model_name, results in self.evaluation_results.items():
            counts = results["confusion"]
            summary[model_name] = {
                **results["metrics"],
                "tp": counts.tp, "fp": counts.fp, "fn": counts.fn, "tn": counts.tn,
            }
        return summary
