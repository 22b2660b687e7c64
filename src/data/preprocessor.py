"""
Data Preprocessor Module
========================

Label recoding, categorical casting, z-score scaling and training-set
oversampling.
"""

from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from imblearn.over_sampling import RandomOverSampler
from loguru import logger
from sklearn.compose import ColumnTransformer
from sklearn.preprocessing import OneHotEncoder

from config import get_config


def oversampling_target(y, multiplier: float = 1.0) -> Dict[str, int]:
    """
    Sampling strategy that grows the minority class toward the majority.

    Usable directly as a ``RandomOverSampler`` sampling_strategy callable.

    Args:
        y: Class labels
        multiplier: Target minority size as a multiple of the majority size

    Returns:
        ``{minority_label: target_count}``, or an empty dict when there is
        nothing to add
    """
    counts = pd.Series(y).value_counts()
    counts = counts[counts > 0]
    if len(counts) < 2:
        return {}

    majority_label = counts.idxmax()
    minority_label = counts.idxmin()
    target = int(round(counts[majority_label] * multiplier))
    if majority_label == minority_label or counts[minority_label] >= target:
        return {}
    return {minority_label: target}


class DataPreprocessor:
    """Preprocess the customer table for churn models."""

    SCALING_SCOPES = ("full_dataset", "train_only")

    def __init__(self, config: Optional[dict] = None):
        """
        Initialize DataPreprocessor.

        Args:
            config: Configuration dictionary
        """
        self.config = config or get_config()
        self.feature_config = self.config.get("features", {})
        self.numerical_features = self.feature_config.get("numerical", [])
        self.categorical_features = self.feature_config.get("categorical", [])
        self.positive_label = self.feature_config.get("positive_label", "Yes")
        self.negative_label = self.feature_config.get("negative_label", "No")
        self.target_col = self.config.get("data", {}).get("target_column", "Exited")
        self.random_state = self.config.get("data", {}).get("random_state", 1)
        self.oversampling_multiplier = self.config.get("preprocessing", {}).get(
            "oversampling_multiplier", 1.0
        )

        self.scaling_params: Dict[str, Tuple[float, float]] = {}
        self.scaling_scope = None
        self.class_counts = {}

    def recode_target(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Recode the 0/1 label to No/Yes.

        Args:
            df: DataFrame with a numeric target column

        Returns:
            DataFrame with a string target column
        """
        df = df.copy()
        mapping = {0: self.negative_label, 1: self.positive_label}
        unknown = set(df[self.target_col].unique()) - set(mapping)
        if unknown:
            raise ValueError(f"Unexpected values in {self.target_col}: {sorted(unknown)}")

        df[self.target_col] = df[self.target_col].map(mapping)
        logger.info(f"Recoded {self.target_col}: 0 -> {self.negative_label}, 1 -> {self.positive_label}")
        return df

    def cast_categoricals(self, df: pd.DataFrame) -> pd.DataFrame:
        """Cast the categorical features and the label to the category dtype."""
        df = df.copy()
        for col in self.categorical_features:
            if col in df.columns:
                df[col] = df[col].astype("category")

        df[self.target_col] = pd.Categorical(
            df[self.target_col],
            categories=[self.negative_label, self.positive_label]
        )
        logger.debug(f"Categorical columns: {self.categorical_features + [self.target_col]}")
        return df

    def fit_scaler(self, df: pd.DataFrame) -> Dict[str, Tuple[float, float]]:
        """
        Compute mean and sample standard deviation of each numeric column.

        Args:
            df: DataFrame the statistics are estimated on

        Returns:
            Mapping of column to (mean, std)
        """
        self.scaling_params = {}
        for col in self.numerical_features:
            if col not in df.columns:
                continue
            mean = float(df[col].mean())
            std = float(df[col].std(ddof=1))
            if std == 0:
                logger.warning(f"{col} has zero variance; leaving it centred only")
                std = 1.0
            self.scaling_params[col] = (mean, std)

        logger.info(f"Fitted z-score parameters on {len(df)} rows")
        return self.scaling_params

    def apply_scaler(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply the fitted z-score parameters."""
        if not self.scaling_params:
            raise ValueError("Scaler not fitted. Call fit_scaler first.")

        df = df.copy()
        for col, (mean, std) in self.scaling_params.items():
            df[col] = (df[col].astype(float) - mean) / std
        return df

    def scale_numeric(self, df: pd.DataFrame) -> pd.DataFrame:
        """Z-score every numeric column using statistics of ``df`` itself."""
        self.fit_scaler(df)
        return self.apply_scaler(df)

    def prepare(self, df: pd.DataFrame, scaling_scope: str = "full_dataset") -> pd.DataFrame:
        """
        Run label recoding, categorical casting and (optionally) scaling.

        With ``full_dataset`` the numeric columns are scaled here, before the
        split. With ``train_only`` scaling is deferred to ``fit_scaler`` /
        ``apply_scaler`` once the training partition exists.

        Args:
            df: Customer table without identifier columns
            scaling_scope: 'full_dataset' or 'train_only'

        Returns:
            Prepared DataFrame
        """
        if scaling_scope not in self.SCALING_SCOPES:
            raise ValueError(f"Unknown scaling scope: {scaling_scope}. Available: {self.SCALING_SCOPES}")

        self.scaling_scope = scaling_scope
        df = self.recode_target(df)
        df = self.cast_categoricals(df)

        if scaling_scope == "full_dataset":
            df = self.scale_numeric(df)

        return df

    def oversample(self, train: pd.DataFrame) -> pd.DataFrame:
        """
        Duplicate minority-class training rows until the classes balance.

        Rows are drawn with replacement from the minority class until its
        count reaches ``majority * oversampling_multiplier``. Majority rows
        are left as they are. Only ever call this on the training partition.

        Args:
            train: Training partition

        Returns:
            Oversampled training partition
        """
        counts = train[self.target_col].value_counts()
        counts = counts[counts > 0]
        if len(counts) < 2:
            logger.warning("Training set holds a single class; skipping oversampling")
            return train.copy()

        self.class_counts = {"before": counts.to_dict()}
        strategy = oversampling_target(train[self.target_col].astype(str), self.oversampling_multiplier)
        if not strategy:
            logger.info("Minority class already at target size; no oversampling needed")
            self.class_counts["after"] = counts.to_dict()
            return train.copy()

        # Resample row positions so every column keeps its dtype
        positions = np.arange(len(train)).reshape(-1, 1)
        y = train[self.target_col].astype(str).to_numpy()

        sampler = RandomOverSampler(
            sampling_strategy=strategy,
            random_state=self.random_state
        )
        sampler.fit_resample(positions, y)

        resampled = train.iloc[sampler.sample_indices_].reset_index(drop=True)

        after = resampled[self.target_col].value_counts()
        self.class_counts["after"] = after[after > 0].to_dict()
        logger.info(f"Oversampled training set: {self.class_counts['before']} -> {self.class_counts['after']}")
        return resampled

    def split_features_target(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series]:
        """Separate predictors from the label."""
        return df.drop(columns=[self.target_col]), df[self.target_col].astype(str)

    def create_encoder(self, features: List[str]) -> ColumnTransformer:
        """
        Build the one-hot encoding step used in front of every model.

        Numeric columns are already scaled and pass through unchanged.

        Args:
            features: Predictor columns the model will see

        Returns:
            ColumnTransformer
        """
        categorical = [col for col in self.categorical_features if col in features]
        numerical = [col for col in features if col not in categorical]

        return ColumnTransformer(
            transformers=[
                ("numerical", "passthrough", numerical),
                ("categorical", OneHotEncoder(drop="first", sparse_output=False), categorical)
            ],
            remainder="drop",
            verbose_feature_names_out=False
        )

    def get_preprocessing_summary(self) -> Dict:
        """
        Get summary of preprocessing steps applied.

        Returns:
            Dictionary with preprocessing summary
        """
        return {
            "numerical_features": self.numerical_features,
            "categorical_features": self.categorical_features,
            "scaling_scope": self.scaling_scope,
            "scaling_params": self.scaling_params,
            "oversampling_multiplier": self.oversampling_multiplier,
            "class_counts": self.class_counts,
        }
