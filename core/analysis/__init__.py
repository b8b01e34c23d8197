"""Cross-asset analysis over stored candles."""

from core.analysis.correlation import calculate_correlation_matrix

__all__ = ["calculate_correlation_matrix"]
