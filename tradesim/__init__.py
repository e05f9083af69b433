"""
tradesim - Risk-free trading simulation engine

Spot, margin, perpetual futures, options and strategy-bot simulators driven
by a synthetic price process, with instrument-specific settlement math.

Usage:
    from tradesim import SimulationClock, SimulatorKind, default_config
    from tradesim.actions import OpenPosition
    from tradesim.core import Direction

    clock = SimulationClock(default_config(SimulatorKind.FUTURES, seed=7))
    result = clock.dispatch(OpenPosition(Direction.LONG, amount=1000, leverage=10))
    clock.run_ticks(50)
    print(clock.snapshot()['account'])
"""

# Core types
from .core import (
    SimulatorKind,
    InstrumentKind,
    Direction,
    OrderSide,
    OrderType,
    OptionType,
    OptionAction,
    EventType,
    PricePoint,
    Position,
    PositionRisk,
    OptionContract,
    LimitOrder,
    EntryOrder,
    TradeRecord,
    Event,
    SettlementResult,
    SimulatorError,
    InsufficientFunds,
    InsufficientHoldings,
    InvalidParameter,
    PositionAlreadyOpen,
    NoOpenPosition,
)

# Account
from .account import Account, open_account, credit, debit, record_trade, add_holdings, remove_holdings

# Prices
from .price_process import (
    PriceSeries,
    PriceFeed,
    RandomWalkFeed,
    ScriptedFeed,
    next_price,
    next_candle,
    seed_series,
)

# Configuration
from .config import SimulatorConfig, default_config, load_config

# Simulator
from .simulator import (
    SimulatorState,
    BotState,
    StepResult,
    ActionResult,
    ActionStatus,
    initial_state,
    reset_state,
    advance,
    step,
    apply_action,
    snapshot,
)
from .clock import SimulationClock, Speed

# Strategies
from .strategies import StrategyKind, StrategyState, MarketSnapshot, Decision, TradeInstruction

# Settlement families
from .units import SpotTerms, FutureTerms, MarginTerms, OptionTerms, quote_option, POSITION_RULES

__version__ = "0.1.0"

__all__ = [
    # Core
    'SimulatorKind',
    'InstrumentKind',
    'Direction',
    'OrderSide',
    'OrderType',
    'OptionType',
    'OptionAction',
    'EventType',
    'PricePoint',
    'Position',
    'PositionRisk',
    'OptionContract',
    'LimitOrder',
    'EntryOrder',
    'TradeRecord',
    'Event',
    'SettlementResult',
    'SimulatorError',
    'InsufficientFunds',
    'InsufficientHoldings',
    'InvalidParameter',
    'PositionAlreadyOpen',
    'NoOpenPosition',
    # Account
    'Account',
    'open_account',
    'credit',
    'debit',
    'record_trade',
    'add_holdings',
    'remove_holdings',
    # Prices
    'PriceSeries',
    'PriceFeed',
    'RandomWalkFeed',
    'ScriptedFeed',
    'next_price',
    'next_candle',
    'seed_series',
    # Configuration
    'SimulatorConfig',
    'default_config',
    'load_config',
    # Simulator
    'SimulatorState',
    'BotState',
    'StepResult',
    'ActionResult',
    'ActionStatus',
    'initial_state',
    'reset_state',
    'advance',
    'step',
    'apply_action',
    'snapshot',
    'SimulationClock',
    'Speed',
    # Strategies
    'StrategyKind',
    'StrategyState',
    'MarketSnapshot',
    'Decision',
    'TradeInstruction',
    # Settlement
    'SpotTerms',
    'FutureTerms',
    'MarginTerms',
    'OptionTerms',
    'quote_option',
    'POSITION_RULES',
]
