"""
Data Validation Schemas
=======================

Pandera schema for the raw customer file. Every row must carry a value of
the right type in every column.
"""

from pandera.pandas import Check, Column, DataFrameSchema

RAW_SCHEMA = DataFrameSchema(
    columns={
        "RowNumber": Column(int, nullable=False),
        "CustomerId": Column(int, nullable=False),
        "Surname": Column(str, nullable=False),
        "CreditScore": Column(int, checks=[Check.ge(300), Check.le(850)], nullable=False),
        "Geography": Column(str, checks=Check.isin(["France", "Spain", "Germany"]), nullable=False),
        "Gender": Column(str, checks=Check.isin(["Male", "Female"]), nullable=False),
        "Age": Column(int, checks=[Check.ge(18), Check.le(100)], nullable=False),
        "Tenure": Column(int, checks=[Check.ge(0), Check.le(10)], nullable=False),
        "Balance": Column(float, checks=Check.ge(0), nullable=False),
        "NumOfProducts": Column(int, checks=[Check.ge(1), Check.le(4)], nullable=False),
        "HasCrCard": Column(int, checks=Check.isin([0, 1]), nullable=False),
        "IsActiveMember": Column(int, checks=Check.isin([0, 1]), nullable=False),
        "EstimatedSalary": Column(float, checks=Check.ge(0), nullable=False),
        "Exited": Column(int, checks=Check.isin([0, 1]), nullable=False),
    },
    strict=True,
    ordered=True,
    coerce=True,
)
