"""
Reporting module for the Pricing Step Engine.
"""

from .worksheet import WorksheetFormatter

__all__ = ["WorksheetFormatter"]
