"""
Record storage

This module provides the repository contract and an in-memory implementation.
"""

from .repository import SessionRepository, InMemoryRepository

__all__ = ['SessionRepository', 'InMemoryRepository']
