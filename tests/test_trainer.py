"""Tests for cross-validated model tuning and threshold selection."""

import numpy as np
import pytest

from src.models import ModelTrainer, TrainedModel


def test_unknown_model_raises(config):
    with pytest.raises(ValueError):
        ModelTrainer(config).build_pipeline("gradient_boosting", ["Age"])


def test_knn_selects_neighbour_count_from_grid(config, train_test):
    X_train, y_train, _, _ = train_test
    trained = ModelTrainer(config).train_model(X_train, y_train, "knn")

    assert isinstance(trained, TrainedModel)
    assert trained.best_params["n_neighbors"] in (5, 15)
    assert list(trained.cv_results["n_neighbors"]) == [5, 15]
    assert trained.cv_score == pytest.approx(trained.cv_results["mean_f1"].max())
    assert 0.0 <= trained.cv_score <= 1.0


def test_random_forest_search_is_reproducible(config, train_test):
    X_train, y_train, X_test, _ = train_test

    first = ModelTrainer(config).train_model(X_train, y_train, "random_forest")
    second = ModelTrainer(config).train_model(X_train, y_train, "random_forest")

    assert first.best_params == second.best_params
    assert first.cv_results["mean_f1"].tolist() == second.cv_results["mean_f1"].tolist()
    assert (first.predict(X_test) == second.predict(X_test)).all()


def test_grid_winner_has_best_rank(config, train_test):
    X_train, y_train, _, _ = train_test
    trained = ModelTrainer(config).train_model(X_train, y_train, "svm_radial")

    winner = trained.cv_results.loc[trained.cv_results["rank"] == 1].iloc[0]
    assert trained.best_params["C"] == winner["C"]


def test_logistic_regression_fits_configured_predictors(config, train_test):
    X_train, y_train, X_test, _ = train_test
    trained = ModelTrainer(config).train_model(X_train, y_train, "logistic_regression")

    assert trained.features == config["models"]["logistic_regression"]["features"]
    assert trained.best_params == {}
    assert len(trained.cv_results) == 1

    probabilities = trained.predict_proba_positive(X_test)
    assert ((probabilities >= 0) & (probabilities <= 1)).all()


def test_tune_threshold_on_holdout(config, train_test):
    X_train, y_train, X_test, y_test = train_test
    trainer = ModelTrainer(config)
    trained = trainer.train_model(X_train, y_train, "logistic_regression")

    threshold = trainer.tune_threshold(trained, X_test, y_test)

    assert 0.05 <= threshold <= 0.95
    assert trained.threshold_source == "test"
    assert len(trained.threshold_table) == 19
    assert trained.threshold_table["f1"].max() == pytest.approx(
        trained.threshold_table.loc[trained.threshold_table["threshold"] == threshold, "f1"].iloc[0]
    )


def test_tune_threshold_cv_uses_training_data_only(config, train_test):
    X_train, y_train, _, _ = train_test
    trainer = ModelTrainer(config)
    trained = trainer.train_model(X_train, y_train, "logistic_regression")

    first = trainer.tune_threshold_cv(trained, X_train, y_train)
    second = trainer.tune_threshold_cv(trained, X_train, y_train)

    assert first == second
    assert trained.threshold_source == "cross_validation"


def test_threshold_changes_predictions(config, train_test):
    X_train, y_train, X_test, _ = train_test
    trained = ModelTrainer(config).train_model(X_train, y_train, "logistic_regression")

    trained.threshold = 0.05
    low = (trained.predict(X_test) == "Yes").sum()
    trained.threshold = 0.95
    high = (trained.predict(X_test) == "Yes").sum()

    assert low >= high


@pytest.mark.parametrize("model_name", ["random_forest", "svm_linear", "knn"])
def test_variable_importance_scaled_to_hundred(config, train_test, model_name):
    X_train, y_train, _, _ = train_test
    trainer = ModelTrainer(config)
    trained = trainer.train_model(X_train, y_train, model_name)

    importance = trainer.get_variable_importance(trained, X_train, y_train)

    assert list(importance.columns) == ["feature", "importance"]
    assert importance["importance"].max() == pytest.approx(100.0) or importance["importance"].max() == 0
    assert (importance["importance"] >= 0).all()
    assert importance["importance"].is_monotonic_decreasing
    assert trained.importance is importance


def test_train_all_models_trains_five_variants(config, train_test):
    X_train, y_train, _, _ = train_test
    models = ModelTrainer(config).train_all_models(X_train, y_train)

    assert set(models) == {"logistic_regression", "knn", "random_forest", "svm_radial", "svm_linear"}


def test_disabled_model_is_skipped(config, train_test):
    config["models"]["svm_linear"]["enabled"] = False
    X_train, y_train, _, _ = train_test

    models = ModelTrainer(config).train_all_models(X_train, y_train)

    assert "svm_linear" not in models


def test_save_and_load_model(config, train_test, tmp_path):
    X_train, y_train, X_test, _ = train_test
    trainer = ModelTrainer(config)
    trained = trainer.train_model(X_train, y_train, "knn")

    path = trainer.save_model(trained, tmp_path / "knn.joblib")
    loaded = ModelTrainer(config).load_model("knn", path)

    assert loaded.best_params == trained.best_params
    assert np.array_equal(loaded.predict(X_test), trained.predict(X_test))


def test_load_missing_model_raises(config, tmp_path):
    with pytest.raises(FileNotFoundError):
        ModelTrainer(config).load_model("knn", tmp_path / "missing.joblib")


@pytest.fixture
def unbalanced_train(config, prepared):
    from src.data import DataLoader, DataPreprocessor

    train, _ = DataLoader(config).get_train_test_split(prepared)
    return DataPreprocessor(config).split_features_target(train)


def test_in_fold_resampling_adds_sampler_step(config):
    pipeline = ModelTrainer(config, resample_in_folds=True).build_pipeline("knn", ["Age", "Gender"])

    assert list(pipeline.named_steps) == ["encoder", "sampler", "classifier"]
    assert "sampler" not in ModelTrainer(config).build_pipeline("knn", ["Age", "Gender"]).named_steps


def test_in_fold_resampling_trains_on_unbalanced_rows(config, unbalanced_train):
    X_train, y_train = unbalanced_train
    trainer = ModelTrainer(config, resample_in_folds=True)

    trained = trainer.train_model(X_train, y_train, "knn")
    logistic = trainer.train_model(X_train, y_train, "logistic_regression")
    threshold = trainer.tune_threshold_cv(logistic, X_train, y_train)

    assert 0.0 <= trained.cv_score <= 1.0
    assert len(trained.predict(X_train)) == len(X_train)
    assert 0.05 <= threshold <= 0.95
    importance = trainer.get_variable_importance(logistic, X_train, y_train)
    assert importance["importance"].max() == pytest.approx(100.0)
