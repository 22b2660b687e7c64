"""
Bank Churn Model Comparison
===========================

Exploratory analysis and model comparison for predicting bank customer
churn.

Modules:
    - data: Data loading, partitioning and preprocessing
    - eda: Exploratory summaries and charts
    - features: Likelihood ratio screening of predictors
    - models: Model tuning, training and evaluation
    - reporting: HTML report rendering
    - utils: Utility functions
"""

__version__ = "1.0.0"
