"""
Transport-facing serialization

This module converts engine records into JSON documents for an HTTP layer
or the command line.
"""

from .records import to_record, to_json

__all__ = ['to_record', 'to_json']
