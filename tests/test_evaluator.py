"""Tests for test-set evaluation and the comparison table."""

import matplotlib.pyplot as plt
import pytest

from src.models import ModelEvaluator, ModelTrainer


@pytest.fixture
def trained_models(config, train_test):
    X_train, y_train, X_test, y_test = train_test
    trainer = ModelTrainer(config)
    models = trainer.train_all_models(X_train, y_train)
    trainer.tune_threshold(models["logistic_regression"], X_test, y_test)
    for trained in models.values():
        trainer.get_variable_importance(trained, X_train, y_train)
    return models


def test_evaluate_model_matches_confusion_counts(config, train_test, trained_models, tmp_path):
    _, _, X_test, y_test = train_test
    evaluator = ModelEvaluator(config, figures_dir=tmp_path)

    metrics = evaluator.evaluate_model(trained_models["knn"], X_test, y_test)
    counts = evaluator.evaluation_results["knn"]["confusion"]

    assert counts.total == len(y_test)
    assert counts.tp + counts.fn == (y_test == "Yes").sum()
    assert metrics["accuracy"] == pytest.approx((counts.tp + counts.tn) / counts.total)
    assert metrics["f1"] == pytest.approx(counts.f1)


def test_comparison_table_has_five_rounded_rows(config, train_test, trained_models, tmp_path):
    _, _, X_test, y_test = train_test
    table = ModelEvaluator(config, figures_dir=tmp_path).evaluate_all_models(trained_models, X_test, y_test)

    assert list(table.columns) == ["Model", "Accuracy", "Precision", "Recall", "F1-Score"]
    assert len(table) == 5
    assert set(table["Model"]) == {
        "Logistic Regression", "K-Nearest Neighbors", "Random Forest", "SVM (Radial)", "SVM (Linear)"
    }
    for col in ["Accuracy", "Precision", "Recall", "F1-Score"]:
        assert (table[col].round(4) == table[col]).all()
        assert table[col].between(0, 1).all()
    assert table["F1-Score"].is_monotonic_decreasing


def test_best_model_is_first_row(config, train_test, trained_models, tmp_path):
    _, _, X_test, y_test = train_test
    evaluator = ModelEvaluator(config, figures_dir=tmp_path)
    table = evaluator.evaluate_all_models(trained_models, X_test, y_test)

    name, f1 = evaluator.best_model()

    assert name == table.loc[0, "Model"]
    assert f1 == table["F1-Score"].max()


def test_best_model_requires_evaluation(config, tmp_path):
    with pytest.raises(ValueError):
        ModelEvaluator(config, figures_dir=tmp_path).best_model()


def test_plots_are_written(config, train_test, trained_models, tmp_path):
    _, _, X_test, y_test = train_test
    evaluator = ModelEvaluator(config, figures_dir=tmp_path)
    table = evaluator.evaluate_all_models(trained_models, X_test, y_test)

    outputs = [
        evaluator.plot_confusion_matrix("random_forest"),
        evaluator.plot_cv_summary(trained_models["random_forest"]),
        evaluator.plot_cv_summary(trained_models["logistic_regression"]),
        evaluator.plot_variable_importance(trained_models["svm_radial"]),
        evaluator.plot_model_comparison(table),
    ]

    for fig, path in outputs:
        assert path.exists()
        assert path.parent == tmp_path
        plt.close(fig)


def test_evaluation_summary_includes_counts(config, train_test, trained_models, tmp_path):
    _, _, X_test, y_test = train_test
    evaluator = ModelEvaluator(config, figures_dir=tmp_path)
    evaluator.evaluate_all_models(trained_models, X_test, y_test)

    summary = evaluator.get_evaluation_summary()

    assert set(summary) == set(trained_models)
    assert {"accuracy", "precision", "recall", "f1", "tp", "fp", "fn", "tn"} <= set(summary["knn"])
