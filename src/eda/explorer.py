"""
Exploratory Analysis Module
===========================

Descriptive statistics and churn breakdown charts for the customer table.
Nothing here modifies the data it is given.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
from loguru import logger

from config import get_config, FIGURES_DIR


class ExploratoryReporter:
    """Summaries and plots of the loaded customer table split by churn."""

    def __init__(self, config: Optional[dict] = None, figures_dir: Optional[Path] = None):
        """
        Initialize ExploratoryReporter.

        Args:
            config: Configuration dictionary
            figures_dir: Where plots are written; defaults to reports/figures
        """
        self.config = config or get_config()
        eda_config = self.config.get("eda", {})
        self.target_col = self.config.get("data", {}).get("target_column", "Exited")
        self.bar_features: List[str] = eda_config.get("bar_features", [])
        self.box_features: List[str] = eda_config.get("box_features", [])
        self.figures_dir = Path(figures_dir or FIGURES_DIR) / "eda"
        self.figures_dir.mkdir(parents=True, exist_ok=True)

    def _churn_labels(self, df: pd.DataFrame) -> pd.Series:
        # Display labels only; the caller's frame is left as loaded
        return df[self.target_col].map({0: "Retained", 1: "Churned"}).fillna(df[self.target_col].astype(str))

    def churn_proportions(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Counts and percentages of churned versus retained customers.

        Args:
            df: Loaded customer table

        Returns:
            DataFrame indexed by status with count and percent columns
        """
        counts = self._churn_labels(df).value_counts()
        return pd.DataFrame({
            "count": counts,
            "percent": (counts / counts.sum() * 100).round(2),
        })

    def summary_statistics(self, df: pd.DataFrame) -> pd.DataFrame:
        """Descriptive statistics for every column."""
        return df.describe(include="all").transpose()

    def correlation_matrix(self, df: pd.DataFrame) -> pd.DataFrame:
        """Pairwise Pearson correlation of the numeric columns."""
        return df.select_dtypes(include="number").corr(method="pearson")

    def plot_churn_pie(self, df: pd.DataFrame) -> Path:
        """
        Pie chart of churned versus retained customers.

        Args:
            df: Customer table with the 0/1 target

        Returns:
            Path to the saved figure
        """
        proportions = self.churn_proportions(df)
        fig, ax = plt.subplots(figsize=(6, 6))
        ax.pie(
            proportions["count"],
            labels=proportions.index,
            autopct="%1.1f%%",
            startangle=90,
            colors=sns.color_palette("Set2", len(proportions))
        )
        ax.set_title("Proportion of Customers Churned vs Retained")
        return self._save(fig, "churn_proportion")

    def plot_grouped_bar(self, df: pd.DataFrame, feature: str) -> Path:
        """
        Count of customers per level of ``feature``, split by churn.

        Args:
            df: Customer table with the 0/1 target
            feature: Categorical or discrete column to group by

        Returns:
            Path to the saved figure
        """
        data = pd.DataFrame({feature: df[feature], "Status": self._churn_labels(df)})
        fig, ax = plt.subplots(figsize=(8, 5))
        sns.countplot(data=data, x=feature, hue="Status", palette="Set2", ax=ax)
        ax.set_title(f"{feature} by Churn Status")
        ax.set_ylabel("Customers")
        return self._save(fig, f"bar_{feature.lower()}")

    def plot_box(self, df: pd.DataFrame, feature: str) -> Path:
        """
        Distribution of a numeric ``feature`` for churned and retained customers.

        Args:
            df: Customer table with the 0/1 target
            feature: Numeric column to plot

        Returns:
            Path to the saved figure
        """
        data = pd.DataFrame({feature: df[feature], "Status": self._churn_labels(df)})
        fig, ax = plt.subplots(figsize=(6, 5))
        sns.boxplot(data=data, x="Status", y=feature, hue="Status", palette="Set2", legend=False, ax=ax)
        ax.set_title(f"{feature} by Churn Status")
        return self._save(fig, f"box_{feature.lower()}")

    def plot_correlation_heatmap(self, df: pd.DataFrame) -> Path:
        """
        Annotated heatmap of pairwise Pearson correlations.

        Args:
            df: Customer table; only numeric columns are used

        Returns:
            Path to the saved figure
        """
        corr = self.correlation_matrix(df)
        fig, ax = plt.subplots(figsize=(10, 8))
        sns.heatmap(corr, annot=True, fmt=".2f", cmap="coolwarm", center=0, square=True, ax=ax)
        ax.set_title("Correlation Matrix")
        return self._save(fig, "correlation_heatmap")

    def _save(self, fig: plt.Figure, name: str) -> Path:
        filepath = self.figures_dir / f"{name}.png"
        fig.tight_layout()
        fig.savefig(filepath, dpi=150, bbox_inches="tight")
        plt.close(fig)
        logger.debug(f"Saved plot to {filepath}")
        return filepath

    def generate_report(self, df: pd.DataFrame, plots: bool = True) -> Dict:
        """
        Produce every summary and chart of the exploratory section.

        Args:
            df: Loaded customer table (identifiers dropped, label still 0/1)
            plots: Whether to render figures

        Returns:
            Dictionary with proportions, summary, correlation and figure paths
        """
        logger.info("Generating exploratory report...")
        report = {
            "proportions": self.churn_proportions(df),
            "summary": self.summary_statistics(df),
            "correlation": self.correlation_matrix(df),
            "figures": {},
        }

        if plots:
            figures: Dict[str, Path] = {"pie": self.plot_churn_pie(df)}
            for feature in self.bar_features:
                figures[f"bar_{feature}"] = self.plot_grouped_bar(df, feature)
            for feature in self.box_features:
                figures[f"box_{feature}"] = self.plot_box(df, feature)
            figures["correlation"] = self.plot_correlation_heatmap(df)
            report["figures"] = figures
            logger.info(f"Saved {len(figures)} exploratory plots to {self.figures_dir}")

        churned = report["proportions"]["percent"].get("Churned", 0.0)
        logger.info(f"Churn rate: {churned:.2f}%")
        return report
