"""
Time-windowed analytics over stored history
"""

from .aggregator import AnalyticsAggregator, AggregateReport, resolve_window

__all__ = ['AnalyticsAggregator', 'AggregateReport', 'resolve_window']
