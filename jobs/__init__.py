"""
Background jobs.

Dramatiq actors for on-demand work and the APScheduler process that
drives the daily payout.
"""
