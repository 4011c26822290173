"""TTLVault core utilities."""

from .statistics import CacheMetrics, StatisticsCollector

__all__ = ["CacheMetrics", "StatisticsCollector"]
