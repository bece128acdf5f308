"""
Utility functions and helpers

Numeric helpers shared across the engine and logging configuration.
"""

from .log_setup import setup_logging
from .numeric import clamp, round_half_up, round_int

__all__ = ['setup_logging', 'clamp', 'round_half_up', 'round_int']
