"""
ROI services.
"""

from payout_engine.services.roi.calculator import (
    ROIAccrual,
    calculate_roi,
    days_since_approval,
)

__all__ = ["ROIAccrual", "calculate_roi", "days_since_approval"]
