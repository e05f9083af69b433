"""
test_core.py - Unit tests for core types and coercion helpers

Tests:
- Decimal coercion (floats via str, rejection of NaN/inf/bool/garbage)
- Direction helpers
- Position contract value and immutability
- Exception hierarchy
"""

import pytest
from dataclasses import FrozenInstanceError
from decimal import Decimal

from tradesim.core import (
    Direction, InstrumentKind, Position, PositionRisk, PricePoint,
    SimulatorError, InsufficientFunds, InsufficientHoldings, InvalidParameter,
    PositionAlreadyOpen, NoOpenPosition,
    to_decimal, require_positive, quantize_price,
)


class TestCoercion:
    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_decimal_passes_through(self):
        value = Decimal("1.23")
        assert to_decimal(value) is value

    @pytest.mark.parametrize("bad", ["abc", None, float("nan"), float("inf"), True, [1]])
    def test_rejects_non_numbers(self, bad):
        with pytest.raises(InvalidParameter):
            to_decimal(bad, "amount")

    @pytest.mark.parametrize("bad", [0, -1, "-0.5"])
    def test_require_positive(self, bad):
        with pytest.raises(InvalidParameter, match="amount must be positive"):
            require_positive(bad, "amount")

    def test_quantize_price_half_even(self):
        assert quantize_price(Decimal("1.005")) == Decimal("1.00")
        assert quantize_price(Decimal("1.015")) == Decimal("1.02")


class TestDirection:
    def test_sign(self):
        assert Direction.LONG.sign == 1
        assert Direction.SHORT.sign == -1

    def test_opposite(self):
        assert Direction.LONG.opposite() is Direction.SHORT
        assert Direction.SHORT.opposite() is Direction.LONG


class TestPosition:
    def make(self):
        return Position(
            position_id=1, kind=InstrumentKind.FUTURE, direction=Direction.LONG,
            entry_price=Decimal("65000"), size=Decimal("0.153846"), leverage=Decimal("10"),
            margin=Decimal("1000"), opened_at_tick=0,
            risk=PositionRisk(liquidation_price=Decimal("58825"), maintenance_ratio=Decimal("0.005")),
        )

    def test_contract_value(self):
        assert self.make().contract_value == Decimal("10000")

    def test_frozen(self):
        position = self.make()
        with pytest.raises(FrozenInstanceError):
            position.margin = Decimal("0")

    def test_repr_mentions_liquidation(self):
        assert "liq=58825" in repr(self.make())


class TestPricePoint:
    def test_bare_close_is_not_candle(self):
        assert not PricePoint(tick=1, close=Decimal("100")).is_candle

    def test_candle(self):
        point = PricePoint(tick=1, close=Decimal("101"), open=Decimal("100"),
                           high=Decimal("102"), low=Decimal("99"), volume=Decimal("300"))
        assert point.is_candle


class TestExceptions:
    @pytest.mark.parametrize("exc", [
        InsufficientFunds, InsufficientHoldings, InvalidParameter, PositionAlreadyOpen, NoOpenPosition,
    ])
    def test_all_rooted_at_simulator_error(self, exc):
        assert issubclass(exc, SimulatorError)
