"""
Strategies module - Bot decision functions and the indicators they read.
"""

from .indicators import sma, rsi
from .bots import (
    StrategyKind,
    GridParams,
    DCAParams,
    MACrossParams,
    RSIParams,
    StrategyState,
    MarketSnapshot,
    TradeInstruction,
    Decision,
    STRATEGIES,
    MIN_SELL_HOLDINGS,
    make_params,
    decide,
    decide_grid,
    decide_dca,
    decide_ma_cross,
    decide_rsi,
)

__all__ = [
    'sma',
    'rsi',
    'StrategyKind',
    'GridParams',
    'DCAParams',
    'MACrossParams',
    'RSIParams',
    'StrategyState',
    'MarketSnapshot',
    'TradeInstruction',
    'Decision',
    'STRATEGIES',
    'MIN_SELL_HOLDINGS',
    'make_params',
    'decide',
    'decide_grid',
    'decide_dca',
    'decide_ma_cross',
    'decide_rsi',
]
