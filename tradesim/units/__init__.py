"""
Units module - Settlement rules for each instrument family.

- spot: fee-bearing buys and sells, resting limit orders
- future: isolated-margin perpetuals with funding and TP/SL
- margin: borrowed-spot positions with interest and margin calls
- option: Black-Scholes priced, cash-settled European options

Leveraged positions (futures and margin) share one interface, looked up by
Position.kind in POSITION_RULES:

    open(account, direction, amount, leverage, price, tick, position_id, terms)
    close(account, position, price, tick, terms, reason)
    check(account, position, price, tick, terms)
    unrealized_pnl(position, price, tick, terms)
"""

from dataclasses import dataclass
from typing import Callable, Dict

from ..core import InstrumentKind

from . import future, margin, option, spot

from .spot import SpotTerms
from .future import FutureTerms
from .margin import MarginTerms
from .option import OptionTerms, OptionQuote, OptionMark, quote_option, mark_option, mark_options


@dataclass(frozen=True, slots=True)
class PositionRules:
    open: Callable
    close: Callable
    check: Callable
    unrealized_pnl: Callable


POSITION_RULES: Dict[InstrumentKind, PositionRules] = {
    InstrumentKind.FUTURE: PositionRules(
        open=future.open_position,
        close=future.close_position,
        check=future.check_position,
        unrealized_pnl=future.unrealized_pnl,
    ),
    InstrumentKind.MARGIN: PositionRules(
        open=margin.open_position,
        close=margin.close_position,
        check=margin.check_position,
        unrealized_pnl=margin.unrealized_pnl,
    ),
}


__all__ = [
    'spot',
    'future',
    'margin',
    'option',
    'SpotTerms',
    'FutureTerms',
    'MarginTerms',
    'OptionTerms',
    'OptionQuote',
    'OptionMark',
    'quote_option',
    'mark_option',
    'mark_options',
    'PositionRules',
    'POSITION_RULES',
]
