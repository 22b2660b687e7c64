"""
Data Loader Module
==================

Loads the customer table, validates its schema and partitions it into
train and test sets.
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import pandas as pd
from loguru import logger
from pandera.errors import SchemaError, SchemaErrors

from config import RAW_DATA_DIR, get_config
from src.data.schemas import RAW_SCHEMA
from src.utils import make_rng


class DataLoader:
    """Load and partition the customer churn dataset."""

    def __init__(self, config: Optional[dict] = None):
        """
        Initialize DataLoader.

        Args:
            config: Configuration dictionary. If None, loads from config.yaml
        """
        self.config = config or get_config()
        self.data_config = self.config.get("data", {})
        self.raw_data_path = RAW_DATA_DIR
        self.expected_columns = self.data_config.get("expected_columns", [])
        self.id_columns = self.data_config.get("id_columns", [])
        self.target_col = self.data_config.get("target_column", "Exited")

    def _resolve_path(self, filename: Union[str, Path]) -> Path:
        path = Path(filename)
        if path.is_absolute() or path.exists():
            return path
        return self.raw_data_path / path

    def load_raw_data(
        self,
        filename: Optional[Union[str, Path]] = None,
        **kwargs
    ) -> pd.DataFrame:
        """
        Load raw data from CSV file.

        Args:
            filename: Absolute path, or name of a file in data/raw/
            **kwargs: Additional arguments to pass to pd.read_csv

        Returns:
            DataFrame containing raw data

        Raises:
            IOError: If the file is missing, unreadable or has the wrong schema
        """
        file_path = self._resolve_path(filename or self.data_config.get("filename", "Churn_Modelling.csv"))

        if not file_path.exists():
            logger.error(f"Data file not found: {file_path}")
            raise FileNotFoundError(f"Data file not found: {file_path}")

        logger.info(f"Loading data from {file_path}")

        try:
            df = pd.read_csv(file_path, encoding="utf-8", **kwargs)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            logger.error(f"Could not parse {file_path}: {e}")
            raise IOError(f"Malformed data file {file_path}: {e}") from e

        self._check_schema(df, file_path)
        df = self._validate_rows(df, file_path)

        logger.info(f"Loaded {len(df)} rows and {len(df.columns)} columns")
        return df

    def _check_schema(self, df: pd.DataFrame, file_path: Path):
        if not self.expected_columns:
            return

        if len(df.columns) != len(self.expected_columns):
            logger.error(
                f"{file_path} has {len(df.columns)} columns, expected {len(self.expected_columns)}"
            )
            raise IOError(
                f"Malformed data file {file_path}: expected {len(self.expected_columns)} "
                f"columns, found {len(df.columns)}"
            )

        if list(df.columns) != list(self.expected_columns):
            mismatched = [
                (found, expected)
                for found, expected in zip(df.columns, self.expected_columns)
                if found != expected
            ]
            logger.error(f"Unexpected column layout in {file_path}: {mismatched}")
            raise IOError(f"Malformed data file {file_path}: unexpected columns {mismatched}")

    def _validate_rows(self, df: pd.DataFrame, file_path: Path) -> pd.DataFrame:
        """
        Check every row against the raw schema and coerce column types.

        Short rows surface as missing values and stray tokens as failed
        coercions; both are reported as a malformed file.

        Args:
            df: Raw DataFrame with the expected header
            file_path: Source file, for messages

        Returns:
            Validated, type-coerced DataFrame

        Raises:
            IOError: If any row violates the schema
        """
        try:
            return RAW_SCHEMA.validate(df, lazy=True)
        except (SchemaError, SchemaErrors) as e:
            failures = getattr(e, "failure_cases", None)
            detail = failures.head(10).to_dict("records") if isinstance(failures, pd.DataFrame) else str(e)
            logger.error(f"Schema validation failed for {file_path}: {detail}")
            raise IOError(f"Malformed data file {file_path}: {detail}") from e

    def drop_identifiers(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Remove the identifier columns that carry no predictive signal.

        Args:
            df: Raw DataFrame

        Returns:
            DataFrame without identifier columns
        """
        cols_to_drop = [col for col in self.id_columns if col in df.columns]
        df = df.drop(columns=cols_to_drop)
        logger.info(f"Dropped identifier columns: {cols_to_drop}")
        return df

    def load_customers(self, filename: Optional[Union[str, Path]] = None) -> pd.DataFrame:
        """Load the raw file and drop identifier columns."""
        return self.drop_identifiers(self.load_raw_data(filename))

    def get_train_test_split(
        self,
        df: pd.DataFrame,
        train_fraction: Optional[float] = None,
        random_state: Optional[int] = None
    ) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """
        Partition rows into train and test sets.

        Each row is independently assigned to the training set with
        probability ``train_fraction``, so partition sizes are only
        approximately 80/20. The draw uses its own seeded generator and is
        identical across runs with the same seed.

        Args:
            df: Input DataFrame
            train_fraction: Probability of a row landing in the training set
            random_state: Random seed

        Returns:
            Tuple of (train, test)
        """
        if train_fraction is None:
            train_fraction = self.data_config.get("train_fraction", 0.8)
        if random_state is None:
            random_state = self.data_config.get("random_state", 1)

        rng = make_rng(random_state)
        in_train = rng.random(len(df)) < train_fraction

        train = df.loc[in_train].copy()
        test = df.loc[~in_train].copy()

        logger.info(f"Train set: {len(train)} samples")
        logger.info(f"Test set: {len(test)} samples")

        return train, test

    def validate_data(self, df: pd.DataFrame) -> dict:
        """
        Validate data quality.

        Args:
            df: DataFrame to validate

        Returns:
            Dictionary with validation results
        """
        validation_results = {
            "total_rows": len(df),
            "total_columns": len(df.columns),
            "missing_values": df.isnull().sum().to_dict(),
            "missing_percentage": (df.isnull().sum() / len(df) * 100).to_dict(),
            "duplicates": int(df.duplicated().sum()),
            "dtypes": df.dtypes.astype(str).to_dict(),
        }

        if self.target_col in df.columns:
            validation_results["target_distribution"] = df[self.target_col].value_counts().to_dict()
            validation_results["target_balance"] = df[self.target_col].value_counts(normalize=True).to_dict()

        return validation_results
