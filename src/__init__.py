"""
Life Expectancy Analysis

Collinearity screening, stepwise OLS variable selection and hold-out
validation for the WHO life expectancy panel, split by development status.
"""

__version__ = "1.0.0"
__author__ = "Life Expectancy Analysis Team"
