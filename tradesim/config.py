"""
config.py - Simulator configuration

Each simulator kind ships with defaults matching its trading page. A config
can be built in code with default_config(kind, **overrides) or read from
YAML with load_config(path):

    kind: futures
    initial_balance: 10000
    seed: 7
    future:
      max_leverage: 100
    strategy: rsi
    strategy_params:
      period: 10
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .core import InvalidParameter, SimulatorKind, require_positive, to_decimal
from .strategies.bots import StrategyKind, make_params
from .units import FutureTerms, MarginTerms, OptionTerms, SpotTerms


@dataclass(frozen=True, slots=True)
class SimulatorConfig:
    """
    Everything needed to build a simulator instance.

    Attributes:
        kind: Which simulator
        initial_balance: Starting cash
        start_price: First close of the warm-up history
        volatility: Per-tick shock scale of the random walk
        price_floor: Lowest price the walk may produce
        window: Number of price points kept for charts and strategies
        warmup: Number of points generated before the first live tick
        history_limit: Maximum number of TradeRecords kept
        candles: Generate OHLCV candles instead of bare closes
        slow_interval: Seconds per tick at normal speed
        fast_interval: Seconds per tick at fast speed
        seed: Seed for the price generator (None: fresh entropy)
        strategy: Initial bot strategy
        strategy_params: Overrides for the initial strategy's defaults
    """
    kind: SimulatorKind
    initial_balance: Decimal
    window: int
    warmup: int
    history_limit: int
    candles: bool
    slow_interval: float
    fast_interval: float
    start_price: Decimal = Decimal("65000")
    volatility: Decimal = Decimal("0.018")
    price_floor: Decimal = Decimal("1")
    seed: Optional[int] = None
    spot: SpotTerms = field(default_factory=SpotTerms)
    future: FutureTerms = field(default_factory=FutureTerms)
    margin: MarginTerms = field(default_factory=MarginTerms)
    option: OptionTerms = field(default_factory=OptionTerms)
    strategy: StrategyKind = StrategyKind.GRID
    strategy_params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Convert float values to Decimal and check ranges."""
        object.__setattr__(self, 'initial_balance', to_decimal(self.initial_balance, "initial_balance"))
        object.__setattr__(self, 'start_price', require_positive(self.start_price, "start_price"))
        object.__setattr__(self, 'volatility', require_positive(self.volatility, "volatility"))
        object.__setattr__(self, 'price_floor', require_positive(self.price_floor, "price_floor"))
        if self.initial_balance < 0:
            raise InvalidParameter(f"initial_balance cannot be negative, got {self.initial_balance}")
        if self.window < 2:
            raise InvalidParameter(f"window must be at least 2, got {self.window}")
        if not 1 <= self.warmup <= self.window:
            raise InvalidParameter(f"warmup must be within [1, window], got {self.warmup}")
        if self.history_limit < 1:
            raise InvalidParameter(f"history_limit must be at least 1, got {self.history_limit}")
        if self.slow_interval <= 0 or self.fast_interval <= 0:
            raise InvalidParameter("tick intervals must be positive")
        # Fails early on bad strategy overrides
        make_params(self.strategy, self.strategy_params)

    def strategy_defaults(self):
        return make_params(self.strategy, self.strategy_params)


_DEFAULTS: Dict[SimulatorKind, Dict[str, Any]] = {
    SimulatorKind.SPOT: dict(
        initial_balance=Decimal("10000"), window=80, warmup=60, history_limit=10,
        candles=True, slow_interval=1.2, fast_interval=0.4,
    ),
    SimulatorKind.FUTURES: dict(
        initial_balance=Decimal("10000"), window=100, warmup=80, history_limit=20,
        candles=True, slow_interval=1.0, fast_interval=0.35,
    ),
    SimulatorKind.MARGIN: dict(
        initial_balance=Decimal("10000"), window=100, warmup=80, history_limit=8,
        candles=False, slow_interval=1.0, fast_interval=0.35, volatility=Decimal("0.02"),
    ),
    SimulatorKind.OPTIONS: dict(
        initial_balance=Decimal("20000"), window=60, warmup=60, history_limit=8,
        candles=False, slow_interval=1.2, fast_interval=0.4,
    ),
    SimulatorKind.BOT: dict(
        initial_balance=Decimal("20000"), window=200, warmup=200, history_limit=20,
        candles=False, slow_interval=1.0, fast_interval=0.3,
    ),
}

_TERMS_SECTIONS = {
    'spot': SpotTerms,
    'future': FutureTerms,
    'margin': MarginTerms,
    'option': OptionTerms,
}


def default_config(kind: SimulatorKind, **overrides) -> SimulatorConfig:
    """Defaults for `kind` with keyword overrides applied."""
    values = dict(_DEFAULTS[kind])
    values.update(overrides)
    _reject_unknown(values, {f.name for f in fields(SimulatorConfig)} - {'kind'}, "config")
    return SimulatorConfig(kind=kind, **values)


def load_config(path: str | Path) -> SimulatorConfig:
    """
    Read a YAML config file.

    Raises:
        InvalidParameter: Missing kind, unknown keys or invalid values
    """
    data = _load_yaml(Path(path))
    kind = _parse_enum(SimulatorKind, _require(data, "kind"), "kind")
    overrides = {k: v for k, v in data.items() if k != "kind"}

    for section, terms_type in _TERMS_SECTIONS.items():
        if section in overrides:
            overrides[section] = _parse_terms(terms_type, overrides[section], section)
    if "strategy" in overrides:
        overrides["strategy"] = _parse_enum(StrategyKind, overrides["strategy"], "strategy")
    if "strategy_params" in overrides and not isinstance(overrides["strategy_params"], dict):
        raise InvalidParameter("strategy_params must be a mapping")
    return default_config(kind, **overrides)


def _load_yaml(path: Path) -> Dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise InvalidParameter("Config must be a mapping")
    return data


def _require(data: Dict[str, Any], key: str) -> Any:
    if key not in data:
        raise InvalidParameter(f"Missing required config key: {key}")
    return data[key]


def _parse_enum(enum_cls, value: Any, key: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidParameter(f"Invalid {key}: {value}") from None


def _parse_terms(terms_type, data: Any, section: str):
    if not isinstance(data, dict):
        raise InvalidParameter(f"{section} must be a mapping")
    _reject_unknown(data, {f.name for f in fields(terms_type)}, section)
    try:
        return terms_type(**data)
    except (ArithmeticError, ValueError, TypeError) as exc:
        raise InvalidParameter(f"Invalid {section} terms: {exc}") from None


def _reject_unknown(data: Mapping[str, Any], known, section: str) -> None:
    unknown = set(data) - set(known)
    if unknown:
        raise InvalidParameter(f"Unknown {section} keys: {sorted(unknown)}")
