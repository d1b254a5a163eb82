"""
Utility modules for the clinic scheduling application.

This package contains shared helpers used across the application,
most importantly the timezone conversion utilities.
"""

from utils.datetime_utils import local_to_utc, utc_to_local

__all__ = ['local_to_utc', 'utc_to_local']
