"""
Feature Selection Module
========================

Likelihood ratio screening of predictors for the logistic regression model.
"""

from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm
from loguru import logger
from scipy import stats

from config import get_config


class FeatureSelector:
    """Screen categorical predictors with nested logit likelihood ratio tests."""

    def __init__(self, config: Optional[dict] = None):
        """
        Initialize FeatureSelector.

        Args:
            config: Configuration dictionary
        """
        self.config = config or get_config()
        self.feature_config = self.config.get("features", {})
        self.target_col = self.config.get("data", {}).get("target_column", "Exited")
        self.positive_label = self.feature_config.get("positive_label", "Yes")
        self.candidates = self.feature_config.get("screening_candidates", [])
        self.alpha = self.feature_config.get("significance_level", 0.05)

        self.lrt_results = None

    def _design_matrix(self, X: pd.DataFrame) -> pd.DataFrame:
        design = pd.get_dummies(X, drop_first=True, dtype=float)
        return sm.add_constant(design, has_constant="add")

    def _log_likelihood(self, X: pd.DataFrame, y: np.ndarray) -> float:
        result = sm.Logit(y, self._design_matrix(X)).fit(disp=0, maxiter=200)
        return float(result.llf)

    def likelihood_ratio_tests(
        self,
        df: pd.DataFrame,
        candidates: Optional[List[str]] = None
    ) -> pd.DataFrame:
        """
        Test each candidate predictor by dropping it from the full model.

        The statistic is ``2 * (llf_full - llf_reduced)``, compared against a
        chi-squared distribution whose degrees of freedom equal the number of
        design columns the candidate contributes.

        Args:
            df: Prepared table including the target column
            candidates: Predictors to test; defaults to the configured list

        Returns:
            DataFrame with one row per candidate, sorted by p-value
        """
        candidates = candidates or self.candidates
        X = df.drop(columns=[self.target_col])
        y = (df[self.target_col].astype(str) == self.positive_label).astype(int).to_numpy()

        missing = [c for c in candidates if c not in X.columns]
        if missing:
            raise ValueError(f"Screening candidates not in data: {missing}")

        logger.info(f"Running likelihood ratio tests for {candidates}")
        full_design_width = self._design_matrix(X).shape[1]
        llf_full = self._log_likelihood(X, y)

        rows = []
        for feature in candidates:
            reduced = X.drop(columns=[feature])
            llf_reduced = self._log_likelihood(reduced, y)
            dof = full_design_width - self._design_matrix(reduced).shape[1]
            statistic = max(2.0 * (llf_full - llf_reduced), 0.0)
            p_value = float(stats.chi2.sf(statistic, dof))

            rows.append({
                "feature": feature,
                "statistic": statistic,
                "df": dof,
                "p_value": p_value,
                "significant": p_value < self.alpha,
            })
            logger.debug(f"LRT {feature}: chi2={statistic:.3f}, df={dof}, p={p_value:.4g}")

        self.lrt_results = pd.DataFrame(rows).sort_values("p_value").reset_index(drop=True)
        logger.info(
            f"Non-significant at alpha={self.alpha}: "
            f"{self.lrt_results.loc[~self.lrt_results['significant'], 'feature'].tolist()}"
        )
        return self.lrt_results

    def get_model_features(self, model_name: str, available: List[str]) -> List[str]:
        """
        Predictor list for a model variant.

        Models with an explicit ``features`` entry in the configuration use it
        as is; every other model sees all available predictors.

        Args:
            model_name: Model key in the configuration
            available: Predictor columns present in the data

        Returns:
            List of predictor names
        """
        configured = self.config.get("models", {}).get(model_name, {}).get("features")
        if not configured:
            return list(available)

        missing = [f for f in configured if f not in available]
        if missing:
            raise ValueError(f"Configured features for {model_name} not in data: {missing}")
        return list(configured)

    def get_selection_summary(self) -> Dict:
        """Summary of the last screening run."""
        if self.lrt_results is None:
            return {}
        return {
            "tested": self.lrt_results["feature"].tolist(),
            "not_significant": self.lrt_results.loc[~self.lrt_results["significant"], "feature"].tolist(),
            "alpha": self.alpha,
        }
