"""
Shared type definitions for the clinic scheduling backend.

This module contains dataclasses and types that are used across multiple services.
"""

from shared_types.availability import SourceInterval, ResolvedInterval, BookableSlot, AvailabilityConfig

__all__ = ["SourceInterval", "ResolvedInterval", "BookableSlot", "AvailabilityConfig"]
