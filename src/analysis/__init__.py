"""
Life Expectancy Analysis

Regression study of life expectancy determinants with:
- Complete-case cleaning into full / developing / developed strata
- Correlation and VIF screening against an analyst decision table
- Forward, backward and bidirectional stepwise OLS selection
- Cross-validated LASSO cross-check
- Seeded hold-out validation and Excel reporting
"""
