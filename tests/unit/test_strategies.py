"""
Unit tests for the bot strategies.

Every strategy is driven with hand-built MarketSnapshots so the expected
decision can be read straight off the closes.
"""

import pytest
from decimal import Decimal

from tradesim.core import InvalidParameter, OrderSide
from tradesim.strategies.bots import (
    DCAParams, GridParams, MACrossParams, MarketSnapshot, RSIParams, StrategyKind, StrategyState,
    decide, decide_dca, decide_grid, decide_ma_cross, decide_rsi, make_params,
)


def snap(*prices, tick=1, cash="20000", holdings="0"):
    return MarketSnapshot(
        prices=tuple(Decimal(str(p)) for p in prices),
        tick=tick,
        cash=Decimal(cash),
        holdings=Decimal(holdings),
    )


# ============================================================================
# GRID
# ============================================================================

class TestGrid:
    params = GridParams()

    def test_band(self):
        assert self.params.band == Decimal("1000")

    def test_first_buy_inside_range(self):
        decision = decide_grid(snap(65000), self.params, StrategyState())
        assert decision.instruction.side is OrderSide.BUY
        assert decision.instruction.amount == Decimal("200") / Decimal("65000")
        assert decision.state.last_buy_price == Decimal("65000")
        assert decision.reason == "grid buy level 5"

    def test_outside_range_holds(self):
        for price in (59999, 70001):
            decision = decide_grid(snap(price), self.params, StrategyState())
            assert decision.instruction is None
            assert "outside" in decision.reason

    def test_range_edges_are_inside(self):
        assert decide_grid(snap(60000), self.params, StrategyState()).instruction is not None
        assert decide_grid(snap(70000), self.params, StrategyState()).instruction is not None

    def test_small_dip_holds(self):
        state = StrategyState(last_buy_price=Decimal("65000"))
        decision = decide_grid(snap(64300), self.params, state)
        assert decision.instruction is None
        assert decision.state == state

    def test_buys_after_dip(self):
        state = StrategyState(last_buy_price=Decimal("65000"))
        decision = decide_grid(snap(64200), self.params, state)
        assert decision.instruction.side is OrderSide.BUY
        assert decision.state.last_buy_price == Decimal("64200")

    def test_sells_after_rise(self):
        state = StrategyState(last_buy_price=Decimal("65000"))
        decision = decide_grid(snap(65800, holdings="0.01"), self.params, state)
        assert decision.instruction.side is OrderSide.SELL
        assert decision.instruction.amount == Decimal("200") / Decimal("65800")
        assert decision.state.last_buy_price is None

    def test_sell_capped_by_holdings(self):
        state = StrategyState(last_buy_price=Decimal("65000"))
        decision = decide_grid(snap(66000, holdings="0.002"), self.params, state)
        assert decision.instruction.amount == Decimal("0.002")

    def test_no_holdings_no_sell(self):
        state = StrategyState(last_buy_price=Decimal("65000"))
        decision = decide_grid(snap(66000, holdings="0.0005"), self.params, state)
        assert decision.instruction is None

    def test_cash_check_includes_fee(self):
        assert decide_grid(snap(65000, cash="200.19"), self.params, StrategyState()).instruction is None
        assert decide_grid(snap(65000, cash="200.2"), self.params, StrategyState()).instruction is not None


# ============================================================================
# DCA
# ============================================================================

class TestDCA:
    params = DCAParams()

    def test_buys_on_interval(self):
        decision = decide_dca(snap(50000, tick=40), self.params, StrategyState())
        assert decision.instruction.amount == Decimal("0.004")
        assert decision.reason == "DCA $200"

    def test_waits_between_intervals(self):
        assert decide_dca(snap(50000, tick=41), self.params, StrategyState()).instruction is None

    def test_skips_without_cash(self):
        decision = decide_dca(snap(50000, tick=20, cash="100"), self.params, StrategyState())
        assert decision.instruction is None
        assert "cash" in decision.reason


# ============================================================================
# MA CROSSOVER
# ============================================================================

class TestMACross:
    params = MACrossParams(short_window=2, long_window=3)

    def test_needs_long_window_plus_one(self):
        state = StrategyState()
        decision = decide_ma_cross(snap(10, 10, 10), self.params, state)
        assert decision.instruction is None
        assert decision.state is state

    def test_first_pass_records_averages(self):
        decision = decide_ma_cross(snap(10, 10, 10, 13), self.params, StrategyState())
        assert decision.instruction is None
        assert decision.state.prev_short_ma == pytest.approx(11.5)
        assert decision.state.prev_long_ma == pytest.approx(11.0)

    def test_golden_cross_buys(self):
        state = StrategyState(prev_short_ma=10.0, prev_long_ma=11.0)
        decision = decide_ma_cross(snap(10, 10, 10, 13), self.params, state)
        assert decision.instruction.side is OrderSide.BUY
        assert decision.instruction.amount == Decimal("500") / Decimal("13")
        assert decision.reason == "golden cross MA2/MA3"

    def test_death_cross_sells_fraction(self):
        state = StrategyState(prev_short_ma=12.0, prev_long_ma=11.0)
        decision = decide_ma_cross(snap(13, 13, 13, 10, holdings="0.4"), self.params, state)
        assert decision.instruction.side is OrderSide.SELL
        assert decision.instruction.amount == Decimal("0.2")

    def test_no_cross(self):
        state = StrategyState(prev_short_ma=12.0, prev_long_ma=11.0)
        decision = decide_ma_cross(snap(10, 10, 10, 13), self.params, state)
        assert decision.instruction is None
        assert decision.state.prev_short_ma == pytest.approx(11.5)


# ============================================================================
# RSI
# ============================================================================

class TestRSI:
    params = RSIParams(period=3)

    def test_oversold_buys(self):
        decision = decide_rsi(snap(100, 99, 98, 97), self.params, StrategyState())
        assert decision.instruction.side is OrderSide.BUY
        assert decision.instruction.amount == Decimal("300") / Decimal("97")

    def test_overbought_sells(self):
        decision = decide_rsi(snap(97, 98, 99, 100, holdings="1"), self.params, StrategyState())
        assert decision.instruction.side is OrderSide.SELL
        assert decision.instruction.amount == Decimal("0.5")

    def test_overbought_without_holdings_holds(self):
        assert decide_rsi(snap(97, 98, 99, 100), self.params, StrategyState()).instruction is None

    def test_between_thresholds(self):
        decision = decide_rsi(snap(10, 11, 10, 11, holdings="1"), self.params, StrategyState())
        assert decision.instruction is None
        assert decision.reason.startswith("RSI 66.7")

    def test_needs_history(self):
        assert decide_rsi(snap(100, 90), self.params, StrategyState()).instruction is None


# ============================================================================
# PARAMETERS AND DISPATCH
# ============================================================================

class TestParams:
    def test_defaults(self):
        params = make_params(StrategyKind.GRID)
        assert params == GridParams()

    def test_overrides_coerced(self):
        params = make_params(StrategyKind.GRID, {'lower': 100, 'upper': 200.5})
        assert params.upper == Decimal("200.5")

    def test_unknown_key(self):
        with pytest.raises(InvalidParameter, match="unknown"):
            make_params(StrategyKind.DCA, {'amount': 10, 'speed': 2})

    @pytest.mark.parametrize("kind,overrides", [
        (StrategyKind.GRID, {'lower': 70000, 'upper': 60000}),
        (StrategyKind.GRID, {'grids': 1}),
        (StrategyKind.DCA, {'interval': 0}),
        (StrategyKind.DCA, {'amount': -5}),
        (StrategyKind.MA_CROSS, {'short_window': 20, 'long_window': 20}),
        (StrategyKind.MA_CROSS, {'sell_fraction': 1.5}),
        (StrategyKind.RSI, {'oversold': 80, 'overbought': 70}),
        (StrategyKind.RSI, {'notional': 'lots'}),
    ])
    def test_invalid(self, kind, overrides):
        with pytest.raises(InvalidParameter):
            make_params(kind, overrides)

    @pytest.mark.parametrize("kind,overrides", [
        (StrategyKind.GRID, {'grids': "10"}),
        (StrategyKind.GRID, {'grids': 10.0}),
        (StrategyKind.DCA, {'interval': True}),
        (StrategyKind.MA_CROSS, {'short_window': 5.0}),
        (StrategyKind.MA_CROSS, {'long_window': "20"}),
        (StrategyKind.RSI, {'period': 14.0}),
    ])
    def test_window_counts_must_be_integers(self, kind, overrides):
        with pytest.raises(InvalidParameter, match="integer"):
            make_params(kind, overrides)

    def test_dispatch(self):
        decision = decide(StrategyKind.DCA, snap(50000, tick=20), DCAParams(), StrategyState())
        assert decision.instruction is not None

    def test_dispatch_rejects_wrong_params(self):
        with pytest.raises(InvalidParameter):
            decide(StrategyKind.GRID, snap(65000), DCAParams(), StrategyState())
