"""
SmartFinance Schemas.

Pydantic models for request/response validation.
"""

from smartfinance.schemas.auth import *
from smartfinance.schemas.devices import *
