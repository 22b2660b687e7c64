"""Shared fixtures: synthetic customer tables and a fast configuration."""

import copy

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from config import get_config

COLUMNS = [
    "RowNumber", "CustomerId", "Surname", "CreditScore", "Geography", "Gender",
    "Age", "Tenure", "Balance", "NumOfProducts", "HasCrCard", "IsActiveMember",
    "EstimatedSalary", "Exited",
]


def make_customers(n=400, seed=0, churn=None):
    """
    Synthetic bank customers in the raw 14-column layout.

    Churn depends on age and activity unless an explicit label vector is
    given.
    """
    rng = np.random.default_rng(seed)
    age = rng.integers(18, 80, n)
    active = rng.integers(0, 2, n)

    if churn is None:
        logit = -2.0 + 0.06 * (age - 40) - 1.2 * active
        churn = (rng.random(n) < 1 / (1 + np.exp(-logit))).astype(int)

    return pd.DataFrame({
        "RowNumber": np.arange(1, n + 1),
        "CustomerId": 15_000_000 + np.arange(n),
        "Surname": [f"Customer{i}" for i in range(n)],
        "CreditScore": rng.integers(350, 851, n),
        "Geography": rng.choice(["France", "Spain", "Germany"], n),
        "Gender": rng.choice(["Female", "Male"], n),
        "Age": age,
        "Tenure": rng.integers(0, 11, n),
        "Balance": np.round(rng.choice([0.0, 1.0], n) * rng.uniform(10_000, 250_000, n), 2),
        "NumOfProducts": rng.integers(1, 5, n),
        "HasCrCard": rng.integers(0, 2, n),
        "IsActiveMember": active,
        "EstimatedSalary": np.round(rng.uniform(100, 200_000, n), 2),
        "Exited": np.asarray(churn, dtype=int),
    }, columns=COLUMNS)


def imbalanced_labels(n=100, positives=10, seed=1):
    """Label vector with an exact number of positives in shuffled order."""
    labels = np.array([1] * positives + [0] * (n - positives))
    return np.random.default_rng(seed).permutation(labels)


@pytest.fixture
def raw_customers():
    return make_customers()


@pytest.fixture
def customers(raw_customers):
    return raw_customers.drop(columns=["RowNumber", "CustomerId", "Surname"])


@pytest.fixture
def customers_csv(tmp_path, raw_customers):
    path = tmp_path / "customers.csv"
    raw_customers.to_csv(path, index=False)
    return path


@pytest.fixture
def config():
    """Project configuration shrunk for quick tests, with tracking off."""
    cfg = copy.deepcopy(get_config())
    cfg["mlflow"]["enabled"] = False
    cfg["reports"]["save_models"] = False
    cfg["training"]["cv_folds"] = 3
    cfg["evaluation"]["importance_repeats"] = 2
    cfg["evaluation"]["importance_max_samples"] = 200

    models = cfg["models"]
    models["knn"]["cv_repeats"] = 2
    models["knn"]["param_grid"] = {"n_neighbors": [5, 15]}
    models["random_forest"]["params"] = {"n_estimators": 15}
    models["random_forest"]["param_grid"] = {"max_features": [1, 2, 3]}
    models["svm_radial"]["param_grid"] = {"C": [0.5, 1.0]}
    models["svm_linear"]["param_grid"] = {"C": [1.0]}
    return cfg


@pytest.fixture
def prepared(config, customers):
    from src.data import DataPreprocessor

    return DataPreprocessor(config).prepare(customers)


@pytest.fixture
def train_test(config, prepared):
    from src.data import DataLoader, DataPreprocessor

    train, test = DataLoader(config).get_train_test_split(prepared)
    preprocessor = DataPreprocessor(config)
    balanced = preprocessor.oversample(train)
    X_train, y_train = preprocessor.split_features_target(balanced)
    X_test, y_test = preprocessor.split_features_target(test)
    return X_train, y_train, X_test, y_test
