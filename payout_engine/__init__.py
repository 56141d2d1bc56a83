"""
MLM payout engine.

Daily ROI accrual, multi-level referral commission, rank rewards and the
approval workflow that feeds the ledger.
"""

__version__ = "1.0.0"
