"""Concurrent project/repository/file/line scan."""

from application.services.scan.engine import ScanEngine
from application.services.scan.limiter import ConcurrencyLimiter
from application.services.scan.matcher import PatternMatcher, compile_criteria, matches

__all__ = [
    "ConcurrencyLimiter",
    "PatternMatcher",
    "ScanEngine",
    "compile_criteria",
    "matches",
]
