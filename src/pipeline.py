"""
Churn Pipeline
==============

Runs the stages in order: load, explore, preprocess, split, oversample,
train, evaluate and report. Any stage failure aborts the run.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import matplotlib.pyplot as plt
import pandas as pd
from loguru import logger

from config import get_config, FIGURES_DIR, REPORTS_DIR
from src.data import DataLoader, DataPreprocessor
from src.eda import ExploratoryReporter
from src.features import FeatureSelector
from src.models import ModelEvaluator, ModelTrainer
from src.reporting import ReportBuilder


class ChurnPipeline:
    """End-to-end churn model comparison."""

    MODES = ("faithful", "corrected")

    def __init__(
        self,
        config: Optional[dict] = None,
        mode: Optional[str] = None,
        reports_dir: Optional[Path] = None,
        plots: bool = True
    ):
        """
        Initialize ChurnPipeline.

        Args:
            config: Configuration dictionary
            mode: 'faithful' scales before the split and tunes the logistic
                threshold on the test set; 'corrected' uses training data only
            reports_dir: Where the report, tables and figures go
            plots: Whether to render figures
        """
        self.config = config or get_config()
        self.mode = mode or self.config.get("pipeline", {}).get("mode", "faithful")
        if self.mode not in self.MODES:
            raise ValueError(f"Unknown pipeline mode: {self.mode}. Available: {self.MODES}")

        self.reports_dir = Path(reports_dir or REPORTS_DIR)
        self.figures_dir = self.reports_dir / "figures" if reports_dir else FIGURES_DIR
        self.plots = plots
        self.report_config = self.config.get("reports", {})

        self.loader = DataLoader(self.config)
        self.explorer = ExploratoryReporter(self.config, figures_dir=self.figures_dir)
        self.preprocessor = DataPreprocessor(self.config)
        self.selector = FeatureSelector(self.config)
        self.trainer = ModelTrainer(self.config, resample_in_folds=self.resample_in_folds)
        self.evaluator = ModelEvaluator(self.config, figures_dir=self.figures_dir)

    @property
    def scaling_scope(self) -> str:
        return "full_dataset" if self.mode == "faithful" else "train_only"

    @property
    def resample_in_folds(self) -> bool:
        return self.mode == "corrected"

    def run(self, data_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
        """
        Execute every stage.

        Args:
            data_path: CSV path; defaults to the configured file in data/raw/

        Returns:
            Dictionary with the partitions, trained models, comparison table
            and output paths
        """
        logger.info(f"Running churn pipeline in {self.mode} mode")

        df = self.loader.load_customers(data_path)
        validation = self.loader.validate_data(df)
        logger.debug(f"Validation: {validation}")

        eda = self.explorer.generate_report(df, plots=self.plots)

        prepared = self.preprocessor.prepare(df, scaling_scope=self.scaling_scope)
        train, test = self.loader.get_train_test_split(prepared)

        if self.scaling_scope == "train_only":
            self.preprocessor.fit_scaler(train)
            train = self.preprocessor.apply_scaler(train)
            test = self.preprocessor.apply_scaler(test)

        lrt = self.selector.likelihood_ratio_tests(train)

        # Corrected mode oversamples inside each CV fold instead
        if self.resample_in_folds:
            train_balanced = train
        else:
            train_balanced = self.preprocessor.oversample(train)
        X_train, y_train = self.preprocessor.split_features_target(train_balanced)
        X_test, y_test = self.preprocessor.split_features_target(test)

        models = self.trainer.train_all_models(X_train, y_train)

        for name, trained in models.items():
            if "threshold_grid" in self.config.get("models", {}).get(name, {}):
                if self.mode == "faithful":
                    self.trainer.tune_threshold(trained, X_test, y_test, source="test")
                else:
                    self.trainer.tune_threshold_cv(trained, X_train, y_train)
            self.trainer.get_variable_importance(trained, X_train, y_train)

        comparison = self.evaluator.evaluate_all_models(models, X_test, y_test)
        best_name, best_f1 = self.evaluator.best_model()
        logger.info(f"\nModel Comparison:\n{comparison.to_string(index=False)}")
        logger.info(f"Best model: {best_name} (F1={best_f1:.4f})")

        summary = self.evaluator.get_evaluation_summary()
        for name, trained in models.items():
            self.trainer.log_to_mlflow(trained, summary[name])
            if self.report_config.get("save_models", False):
                self.trainer.save_model(trained)

        self.reports_dir.mkdir(parents=True, exist_ok=True)
        comparison_path = self.reports_dir / self.report_config.get("comparison_filename", "model_comparison.csv")
        comparison.to_csv(comparison_path, index=False)
        logger.info(f"Comparison table written to {comparison_path}")

        report_path = self._build_report(eda, lrt, models, comparison, best_name)

        return {
            "mode": self.mode,
            "train": train,
            "train_balanced": train_balanced,
            "test": test,
            "likelihood_ratio_tests": lrt,
            "models": models,
            "comparison": comparison,
            "best_model": best_name,
            "comparison_path": comparison_path,
            "report_path": report_path,
        }

    def _figure(self, plotter, *args) -> Optional[Path]:
        if not self.plots:
            return None
        fig, path = plotter(*args)
        plt.close(fig)
        return path

    def _build_report(
        self,
        eda: Dict,
        lrt: pd.DataFrame,
        models: Dict,
        comparison: pd.DataFrame,
        best_name: str
    ) -> Path:
        report = ReportBuilder(self.config, output_dir=self.reports_dir)

        report.add_heading("Exploratory Analysis")
        report.add_table(eda["proportions"], caption="Churned vs Retained")
        report.add_table(eda["summary"], caption="Summary Statistics")
        report.add_table(eda["correlation"], caption="Pearson Correlation")
        report.add_figures(list(eda["figures"].values()))

        report.add_heading("Preprocessing")
        summary = self.preprocessor.get_preprocessing_summary()
        if self.resample_in_folds:
            oversampling = "within each cross-validation fold and the final refit"
        else:
            oversampling = f"before training, classes before/after {summary['class_counts']}"
        report.add_text(
            f"Mode: {self.mode}. Numeric scaling: {summary['scaling_scope']}. "
            f"Oversampling: {oversampling}."
        )
        report.add_table(lrt, caption="Likelihood Ratio Tests (logistic regression predictors)", index=False)

        for name, trained in models.items():
            report.add_heading(trained.display_name)
            report.add_text(f"Predictors: {', '.join(trained.features)}")
            report.add_text(f"Selected parameters: {trained.best_params or 'defaults'}; CV F1: {trained.cv_score:.4f}")
            if trained.threshold is not None:
                report.add_text(f"Probability threshold: {trained.threshold:.2f} (chosen on {trained.threshold_source})")
            report.add_table(trained.cv_results, caption="Cross-validation summary", index=False)
            report.add_figures([
                self._figure(self.evaluator.plot_cv_summary, trained),
                self._figure(self.evaluator.plot_variable_importance, trained),
                self._figure(self.evaluator.plot_confusion_matrix, name),
            ])

        report.add_heading("Model Comparison")
        report.add_table(comparison, index=False)
        report.add_figures([self._figure(self.evaluator.plot_model_comparison, comparison)])
        report.add_text(f"Best model by F1: {best_name}.")

        return report.save()
