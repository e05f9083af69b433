"""Unit tests for the moving-average and RSI indicators."""

import numpy as np
import pytest

from tradesim.core import InvalidParameter
from tradesim.strategies.indicators import RSI_NEUTRAL, rsi, sma


class TestSMA:
    def test_last_period_only(self):
        assert sma(np.array([1.0, 2.0, 3.0, 4.0, 5.0]), 3) == pytest.approx(4.0)

    def test_short_history_returns_last_close(self):
        assert sma(np.array([5.0, 7.0]), 3) == 7.0

    def test_accepts_lists(self):
        assert sma([2, 4], 2) == pytest.approx(3.0)

    def test_invalid_period(self):
        with pytest.raises(InvalidParameter):
            sma(np.array([1.0]), 0)

    def test_empty(self):
        with pytest.raises(InvalidParameter):
            sma(np.array([]), 3)


class TestRSI:
    def test_neutral_without_history(self):
        assert rsi(np.array([1.0, 2.0, 3.0]), 3) == RSI_NEUTRAL

    def test_no_losses(self):
        assert rsi(np.array([1.0, 2.0, 3.0, 4.0]), 3) == 100.0

    def test_no_gains(self):
        assert rsi(np.array([4.0, 3.0, 2.0, 1.0]), 3) == pytest.approx(0.0)

    def test_mixed(self):
        # gains 3, losses 1 -> RS 3 -> 75
        assert rsi(np.array([10.0, 11.0, 10.0, 12.0]), 3) == pytest.approx(75.0)

    def test_only_recent_window(self):
        assert rsi(np.array([50.0, 10.0, 11.0, 10.0, 12.0]), 3) == pytest.approx(75.0)

    def test_flat_prices(self):
        assert rsi(np.full(20, 100.0), 14) == 100.0

    def test_bounded(self):
        closes = np.random.default_rng(4).uniform(90, 110, size=50)
        value = rsi(closes, 14)
        assert 0.0 <= value <= 100.0
