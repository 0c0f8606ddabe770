#
# src/testfork/reporting/__init__.py
#
"""
Result collectors: the log sink and the coverage aggregator.
"""
from .coverage import CoverageAggregator
from .log_sink import CATEGORIES, LogSink, RunStats

__all__ = [
    "CATEGORIES",
    "CoverageAggregator",
    "LogSink",
    "RunStats",
]

# 🔼⚙️
