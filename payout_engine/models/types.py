"""
Standard type definitions for database models.

Provides consistent types for monetary and percentage fields across all models.
"""

from sqlalchemy import DECIMAL

# Standard money type for amounts, balances, incomes
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Percentage type for level income percents
# Precision: 5 digits total, 2 after decimal point
# Range: 0.00 to 999.99 (validated to 0-100)
PercentType = DECIMAL(5, 2)

# Fractional rate type for ROI (e.g. 0.01 = 1%/day)
# Precision: 18 digits total, 10 after decimal point
RateType = DECIMAL(18, 10)
