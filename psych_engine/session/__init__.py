"""
Session lifecycle management
"""

from .lifecycle import SessionLifecycle

__all__ = ['SessionLifecycle']
