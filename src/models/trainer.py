"""
Model Trainer Module
====================

Cross-validated hyperparameter search for the churn classifiers, with
optional MLflow experiment tracking.
"""

from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional

import joblib
import mlflow
import mlflow.sklearn
import numpy as np
import pandas as pd
from imblearn.over_sampling import RandomOverSampler
from imblearn.pipeline import Pipeline as ImbPipeline
from loguru import logger
from sklearn.base import clone
from sklearn.ensemble import RandomForestClassifier
from sklearn.inspection import permutation_importance
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import (
    GridSearchCV,
    RepeatedStratifiedKFold,
    StratifiedKFold,
    cross_val_predict,
    cross_val_score,
)
from sklearn.neighbors import KNeighborsClassifier
from sklearn.pipeline import Pipeline
from sklearn.svm import SVC

from config import get_config, MODELS_DIR, MLFLOW_DIR
from src.data.preprocessor import DataPreprocessor, oversampling_target
from src.features.feature_selector import FeatureSelector
from src.models.metrics import make_f1_scorer, search_threshold, threshold_grid
from src.utils import get_timestamp, make_rng


@dataclass
class TrainedModel:
    """A fitted model variant together with the choices made while tuning it."""

    name: str
    display_name: str
    estimator: Pipeline
    features: List[str]
    best_params: Dict[str, Any]
    cv_score: float
    cv_results: pd.DataFrame
    positive_label: str = "Yes"
    negative_label: str = "No"
    threshold: Optional[float] = None
    threshold_source: Optional[str] = None
    threshold_table: Optional[pd.DataFrame] = None
    importance: Optional[pd.DataFrame] = field(default=None, repr=False)

    def predict_proba_positive(self, X: pd.DataFrame) -> np.ndarray:
        """Probability of the positive label."""
        classes = list(self.estimator.classes_)
        return self.estimator.predict_proba(X[self.features])[:, classes.index(self.positive_label)]

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Predicted labels, using the tuned threshold when there is one."""
        if self.threshold is None:
            return np.asarray(self.estimator.predict(X[self.features])).astype(str)
        return np.where(
            self.predict_proba_positive(X) >= self.threshold,
            self.positive_label,
            self.negative_label
        )


class ModelTrainer:
    """Train and tune churn classifiers with F1-scored cross-validation."""

    MODELS = {
        "logistic_regression": LogisticRegression,
        "knn": KNeighborsClassifier,
        "random_forest": RandomForestClassifier,
        "svm_radial": SVC,
        "svm_linear": SVC,
    }

    # Estimators that take a random_state and are reseeded per fit
    SEEDED_MODELS = {"logistic_regression", "random_forest"}

    def __init__(self, config: Optional[dict] = None, resample_in_folds: bool = False):
        """
        Initialize ModelTrainer.

        Args:
            config: Configuration dictionary
            resample_in_folds: Oversample the minority class inside the
                pipeline, so each CV fold resamples only its own training rows
        """
        self.config = config or get_config()
        self.resample_in_folds = resample_in_folds
        self.models_config = self.config.get("models", {})
        self.training_config = self.config.get("training", {})
        self.mlflow_config = self.config.get("mlflow", {})
        self.eval_config = self.config.get("evaluation", {})
        self.random_state = self.config.get("data", {}).get("random_state", 1)
        self.n_jobs = self.training_config.get("n_jobs", 1)

        feature_config = self.config.get("features", {})
        self.positive_label = feature_config.get("positive_label", "Yes")
        self.negative_label = feature_config.get("negative_label", "No")
        self.scorer = make_f1_scorer(self.positive_label)

        self.preprocessor = DataPreprocessor(self.config)
        self.selector = FeatureSelector(self.config)

        self.trained_models: Dict[str, TrainedModel] = {}
        self.mlflow_enabled = self.mlflow_config.get("enabled", False)
        if self.mlflow_enabled:
            self._setup_mlflow()

    def _setup_mlflow(self):
        """Setup MLflow tracking."""
        tracking_uri = self.mlflow_config.get("tracking_uri", "mlflow_runs")
        mlflow_path = MLFLOW_DIR / tracking_uri

        mlflow.set_tracking_uri(mlflow_path.as_uri())
        experiment_name = self.mlflow_config.get("experiment_name", "bank_churn_comparison")

        # Create experiment if it doesn't exist
        experiment = mlflow.get_experiment_by_name(experiment_name)
        if experiment is None:
            mlflow.create_experiment(experiment_name)
        mlflow.set_experiment(experiment_name)

        logger.info(f"MLflow tracking URI: {mlflow_path}")
        logger.info(f"MLflow experiment: {experiment_name}")

    def _cv_settings(self, model_name: str):
        model_config = self.models_config.get(model_name, {})
        folds = model_config.get("cv_folds", self.training_config.get("cv_folds", 10))
        repeats = model_config.get("cv_repeats", self.training_config.get("cv_repeats", 1))
        return folds, repeats

    def _cv_splitter(self, model_name: str):
        """Fold generator for one model, freshly seeded."""
        folds, repeats = self._cv_settings(model_name)

        if repeats > 1:
            return RepeatedStratifiedKFold(
                n_splits=folds, n_repeats=repeats, random_state=self.random_state
            )
        return StratifiedKFold(n_splits=folds, shuffle=True, random_state=self.random_state)

    def build_pipeline(self, model_name: str, features: List[str]) -> Pipeline:
        """
        Encoder plus classifier for one model variant.

        With ``resample_in_folds`` a ``RandomOverSampler`` sits between the
        two; imbalanced-learn applies it during fit only, never at predict.

        Args:
            model_name: Model key
            features: Predictor columns

        Returns:
            Unfitted sklearn (or imbalanced-learn) Pipeline
        """
        if model_name not in self.MODELS:
            raise ValueError(f"Unknown model: {model_name}. Available: {list(self.MODELS.keys())}")

        params = dict(self.models_config.get(model_name, {}).get("params", {}))
        if model_name in self.SEEDED_MODELS:
            params["random_state"] = self.random_state
        if model_name == "random_forest":
            params.setdefault("n_jobs", self.n_jobs)

        encoder = ("encoder", self.preprocessor.create_encoder(features))
        classifier = ("classifier", self.MODELS[model_name](**params))

        if self.resample_in_folds:
            sampler = RandomOverSampler(
                sampling_strategy=partial(
                    oversampling_target, multiplier=self.preprocessor.oversampling_multiplier
                ),
                random_state=self.random_state
            )
            return ImbPipeline([encoder, ("sampler", sampler), classifier])

        return Pipeline([encoder, classifier])

    @staticmethod
    def _summarise_search(search: GridSearchCV) -> pd.DataFrame:
        results = pd.DataFrame(search.cv_results_)
        summary = pd.DataFrame({
            key.replace("param_classifier__", ""): results[key]
            for key in results.columns if key.startswith("param_classifier__")
        })
        summary["mean_f1"] = results["mean_test_score"]
        summary["std_f1"] = results["std_test_score"]
        summary["rank"] = results["rank_test_score"]
        return summary

    def train_model(
        self,
        X_train: pd.DataFrame,
        y_train: pd.Series,
        model_name: str
    ) -> TrainedModel:
        """
        Tune and fit a single model variant.

        Each grid candidate is scored by mean cross-validated F1 of the
        positive label; the first best candidate in grid order is refitted
        on the whole training set.

        Args:
            X_train: Training predictors
            y_train: Training labels
            model_name: Name of model to train

        Returns:
            TrainedModel
        """
        model_config = self.models_config.get(model_name, {})
        features = self.selector.get_model_features(model_name, list(X_train.columns))
        pipeline = self.build_pipeline(model_name, features)
        cv = self._cv_splitter(model_name)
        X = X_train[features]

        param_grid = {
            f"classifier__{key}": list(values)
            for key, values in model_config.get("param_grid", {}).items()
        }

        logger.info(f"Training {model_name} on {len(X)} rows, {len(features)} predictors...")

        if param_grid:
            search = GridSearchCV(
                pipeline,
                param_grid=param_grid,
                scoring=self.scorer,
                cv=cv,
                n_jobs=self.n_jobs,
                refit=True
            )
            search.fit(X, y_train)
            estimator = search.best_estimator_
            best_params = {
                key.replace("classifier__", ""): value
                for key, value in search.best_params_.items()
            }
            cv_score = float(search.best_score_)
            cv_results = self._summarise_search(search)
        else:
            scores = cross_val_score(pipeline, X, y_train, cv=cv, scoring=self.scorer, n_jobs=self.n_jobs)
            estimator = pipeline.fit(X, y_train)
            best_params = {}
            cv_score = float(scores.mean())
            cv_results = pd.DataFrame({
                "mean_f1": [cv_score],
                "std_f1": [float(scores.std())],
                "rank": [1],
            })

        trained = TrainedModel(
            name=model_name,
            display_name=model_config.get("display_name", model_name),
            estimator=estimator,
            features=features,
            best_params=best_params,
            cv_score=cv_score,
            cv_results=cv_results,
            positive_label=self.positive_label,
            negative_label=self.negative_label,
        )

        logger.info(f"{model_name} - best params: {best_params}, CV F1: {cv_score:.4f}")
        self.trained_models[model_name] = trained
        return trained

    def train_all_models(self, X_train: pd.DataFrame, y_train: pd.Series) -> Dict[str, TrainedModel]:
        """
        Train all enabled models.

        Args:
            X_train: Training predictors
            y_train: Training labels

        Returns:
            Dictionary of trained models
        """
        logger.info("Training all models...")

        for model_name, model_config in self.models_config.items():
            if model_name in self.MODELS and model_config.get("enabled", True):
                self.train_model(X_train, y_train, model_name)

        return self.trained_models

    def _threshold_candidates(self, model_name: str) -> np.ndarray:
        grid = self.models_config.get(model_name, {}).get("threshold_grid", {})
        return threshold_grid(
            grid.get("start", 0.05),
            grid.get("stop", 0.95),
            grid.get("step", 0.05)
        )

    def tune_threshold(
        self,
        trained: TrainedModel,
        X: pd.DataFrame,
        y: pd.Series,
        source: str = "test"
    ) -> float:
        """
        Pick the probability threshold that maximises F1 on ``X``/``y``.

        Args:
            trained: Fitted model exposing probabilities
            X: Predictors to score
            y: True labels
            source: Label recorded for where the threshold was chosen

        Returns:
            Selected threshold
        """
        probabilities = trained.predict_proba_positive(X)
        best, best_f1, table = search_threshold(
            y, probabilities, self._threshold_candidates(trained.name),
            self.positive_label, self.negative_label
        )

        trained.threshold = best
        trained.threshold_source = source
        trained.threshold_table = table
        logger.info(f"{trained.name} threshold {best:.2f} ({source}), F1={best_f1:.4f}")
        return best

    def tune_threshold_cv(
        self,
        trained: TrainedModel,
        X_train: pd.DataFrame,
        y_train: pd.Series
    ) -> float:
        """
        Pick the threshold from out-of-fold probabilities on the training set.

        Args:
            trained: Fitted model exposing probabilities
            X_train: Training predictors
            y_train: Training labels

        Returns:
            Selected threshold
        """
        # cross_val_predict needs each row in exactly one test fold, so no repeats
        folds, _ = self._cv_settings(trained.name)
        cv = StratifiedKFold(n_splits=folds, shuffle=True, random_state=self.random_state)

        probabilities = cross_val_predict(
            clone(trained.estimator),
            X_train[trained.features],
            y_train,
            cv=cv,
            method="predict_proba",
            n_jobs=self.n_jobs
        )
        classes = sorted(pd.unique(y_train.astype(str)))
        positive = probabilities[:, classes.index(self.positive_label)]

        best, best_f1, table = search_threshold(
            y_train, positive, self._threshold_candidates(trained.name),
            self.positive_label, self.negative_label
        )

        trained.threshold = best
        trained.threshold_source = "cross_validation"
        trained.threshold_table = table
        logger.info(f"{trained.name} threshold {best:.2f} (cross-validation), F1={best_f1:.4f}")
        return best

    def get_variable_importance(
        self,
        trained: TrainedModel,
        X: pd.DataFrame,
        y: pd.Series
    ) -> pd.DataFrame:
        """
        Per-feature importance scaled to 0-100.

        Forests report impurity importance and linear models the absolute
        coefficients of the encoded design. Models with neither fall back to
        permutation importance scored by F1 on a seeded subsample.

        Args:
            trained: Fitted model
            X: Predictors
            y: Labels

        Returns:
            DataFrame with feature and importance columns
        """
        classifier = trained.estimator.named_steps["classifier"]
        encoded_names = list(trained.estimator.named_steps["encoder"].get_feature_names_out())

        if hasattr(classifier, "feature_importances_"):
            names, values = encoded_names, np.asarray(classifier.feature_importances_)
        elif hasattr(classifier, "coef_"):
            names, values = encoded_names, np.abs(np.ravel(classifier.coef_))
        else:
            max_samples = self.eval_config.get("importance_max_samples", 2000)
            rows = np.arange(len(X))
            if len(rows) > max_samples:
                rows = np.sort(make_rng(self.random_state).choice(rows, size=max_samples, replace=False))

            result = permutation_importance(
                trained.estimator,
                X.iloc[rows][trained.features],
                y.iloc[rows],
                scoring=self.scorer,
                n_repeats=self.eval_config.get("importance_repeats", 5),
                random_state=self.random_state,
                n_jobs=self.n_jobs
            )
            names, values = trained.features, np.clip(result.importances_mean, 0, None)

        top = values.max() if len(values) else 0
        scaled = values / top * 100 if top > 0 else np.zeros_like(values, dtype=float)

        importance = pd.DataFrame({"feature": names, "importance": scaled})
        importance = importance.sort_values("importance", ascending=False).reset_index(drop=True)
        trained.importance = importance
        return importance

    def log_to_mlflow(self, trained: TrainedModel, metrics: Optional[Dict[str, float]] = None):
        """
        Record one model variant as an MLflow run.

        Args:
            trained: Fitted model
            metrics: Test metrics to record alongside the CV score
        """
        if not self.mlflow_enabled:
            return

        with mlflow.start_run(run_name=f"{trained.name}_{get_timestamp()}"):
            mlflow.set_tag("model_type", trained.name)
            mlflow.log_params(trained.best_params)
            if trained.threshold is not None:
                mlflow.log_param("threshold", trained.threshold)
                mlflow.set_tag("threshold_source", trained.threshold_source)
            mlflow.log_metric("cv_f1_mean", trained.cv_score)
            for key, value in (metrics or {}).items():
                mlflow.log_metric(f"test_{key}", value)
            mlflow.sklearn.log_model(trained.estimator, trained.name)

    def save_model(
        self,
        trained: TrainedModel,
        filepath: Optional[Path] = None
    ) -> Path:
        """
        Save a trained model to disk.

        Args:
            trained: Model to save
            filepath: Optional custom filepath

        Returns:
            Path to saved model
        """
        if filepath is None:
            filepath = MODELS_DIR / f"{trained.name}.joblib"

        filepath.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(trained, filepath)
        logger.info(f"Model saved to {filepath}")

        return filepath

    def load_model(self, model_name: str, filepath: Optional[Path] = None) -> TrainedModel:
        """
        Load a model from disk.

        Args:
            model_name: Name of the model
            filepath: Optional custom filepath

        Returns:
            Loaded model
        """
        if filepath is None:
            filepath = MODELS_DIR / f"{model_name}.joblib"

        if not filepath.exists():
            raise FileNotFoundError(f"Model not found: {filepath}")

        trained = joblib.load(filepath)
        self.trained_models[model_name] = trained
        logger.info(f"Model loaded from {filepath}")

        return trained

    def get_all_trained_models(self) -> Dict[str, TrainedModel]:
        """Get all trained models."""
        return self.trained_models
