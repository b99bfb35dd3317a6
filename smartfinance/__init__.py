"""
SmartFinance API.

Authentication, multi-device session tracking and session security
analysis for the SmartFinance personal finance tracker.
"""

__version__ = "1.0.0"
