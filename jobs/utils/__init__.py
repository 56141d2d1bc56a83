"""
Job utilities.
"""
