"""
indicators.py - Technical indicators over a window of closes

Inputs are float arrays (PriceSeries.closes_array()). Both indicators look
only at the most recent `period` (+1 for RSI) closes.
"""

import numpy as np

from ..core import InvalidParameter


RSI_NEUTRAL = 50.0


def sma(closes: np.ndarray, period: int) -> float:
    """
    Simple moving average of the last `period` closes.

    With fewer closes than the period, returns the last close.
    """
    if period < 1:
        raise InvalidParameter(f"period must be at least 1, got {period}")
    values = np.asarray(closes, dtype=float)
    if values.size == 0:
        raise InvalidParameter("no closes to average")
    if values.size < period:
        return float(values[-1])
    return float(values[-period:].mean())


def rsi(closes: np.ndarray, period: int) -> float:
    """
    Relative strength index with simple (not Wilder-smoothed) averages.

        avg_gain = sum(positive changes) / period
        avg_loss = sum(|negative changes|) / period
        RSI      = 100 - 100 / (1 + avg_gain / avg_loss)

    Returns 100 when there were no losses and 50 when there is not enough
    history (fewer than period + 1 closes).
    """
    if period < 1:
        raise InvalidParameter(f"period must be at least 1, got {period}")
    values = np.asarray(closes, dtype=float)
    if values.size < period + 1:
        return RSI_NEUTRAL
    changes = np.diff(values[-(period + 1):])
    gains = changes[changes > 0].sum() / period
    losses = -changes[changes < 0].sum() / period
    if losses == 0:
        return 100.0
    return float(100.0 - 100.0 / (1.0 + gains / losses))
