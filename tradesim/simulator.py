"""
simulator.py - Simulator state and the reducers that advance it

The whole simulator is one immutable SimulatorState. Two pure reducers
produce the next state:

    advance(state, point)          -> StepResult   one clock tick
    apply_action(state, action)    -> ActionResult  one user action

=== TICK ORDER ===

1. Append the new price point to the rolling window
2. Risk pass on the open position (liquidation, margin call, funding, TP/SL)
3. Expire option contracts whose expiry tick has been reached
4. Fill resting limit orders crossed by the close (spot orders, futures
   limit entries)
5. Run the bot (BOT simulator, when enabled) on an immutable snapshot and
   execute its instruction through spot settlement

Every step is a single unit: callers only ever see the state before the
tick or the state after it.

=== REJECTIONS ===

Settlement functions raise SimulatorError subclasses. apply_action catches
them at this boundary and returns ActionResult(status=REJECTED) carrying the
unchanged input state and the error message. Autonomous transitions never
raise; they are reported as Events.
"""

from __future__ import annotations
import logging
from dataclasses import asdict, dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import actions as act
from .account import Account, open_account
from .config import SimulatorConfig
from .core import (
    EntryOrder, Event, EventType, InstrumentKind, InvalidParameter, LimitOrder, NoOpenPosition,
    OptionAction, OptionContract, OrderType, Position, PositionAlreadyOpen, PricePoint,
    SimulatorError, SimulatorKind, REASON_MANUAL, require_positive,
)
from .price_process import PriceFeed, PriceSeries, RandomWalkFeed, seed_series
from .strategies.bots import MarketSnapshot, StrategyKind, StrategyState, decide, make_params
from .units import POSITION_RULES, future, margin, option, spot


logger = logging.getLogger(__name__)


class ActionStatus(Enum):
    APPLIED = "applied"
    REJECTED = "rejected"


_POSITION_KIND = {
    SimulatorKind.FUTURES: InstrumentKind.FUTURE,
    SimulatorKind.MARGIN: InstrumentKind.MARGIN,
}


# ============================================================================
# STATE
# ============================================================================

@dataclass(frozen=True, slots=True)
class BotState:
    strategy: StrategyKind
    params: Any
    memory: StrategyState = StrategyState()
    enabled: bool = False
    last_message: str = ""


@dataclass(frozen=True, slots=True)
class SimulatorState:
    """
    Complete state of one simulator instance.

    At most one leveraged position is open at a time. Option contracts and
    resting orders are kept in the order they were created.
    """
    config: SimulatorConfig
    tick: int
    prices: PriceSeries
    account: Account
    bot: BotState
    position: Optional[Position] = None
    options: Tuple[OptionContract, ...] = ()
    orders: Tuple[LimitOrder, ...] = ()
    entries: Tuple[EntryOrder, ...] = ()
    next_id: int = 1

    @property
    def kind(self) -> SimulatorKind:
        return self.config.kind

    @property
    def price(self) -> Decimal:
        return self.prices.last.close

    def terms_for(self, kind: InstrumentKind):
        return {
            InstrumentKind.SPOT: self.config.spot,
            InstrumentKind.FUTURE: self.config.future,
            InstrumentKind.MARGIN: self.config.margin,
            InstrumentKind.OPTION: self.config.option,
        }[kind]


@dataclass(frozen=True, slots=True)
class StepResult:
    state: SimulatorState
    events: Tuple[Event, ...]
    point: PricePoint


@dataclass(frozen=True, slots=True)
class ActionResult:
    status: ActionStatus
    state: SimulatorState
    events: Tuple[Event, ...] = ()
    message: str = ""

    @property
    def applied(self) -> bool:
        return self.status is ActionStatus.APPLIED


def make_feed(config: SimulatorConfig) -> RandomWalkFeed:
    """The default random-walk feed for a config, seeded with config.seed."""
    return RandomWalkFeed(config.volatility, candles=config.candles, seed=config.seed,
                          price_floor=config.price_floor)


def initial_state(config: SimulatorConfig, feed: Optional[PriceFeed] = None) -> SimulatorState:
    """Fresh account, warm-up price history and an idle bot."""
    feed = feed if feed is not None else make_feed(config)
    return SimulatorState(
        config=config,
        tick=0,
        prices=seed_series(feed, config.start_price, config.warmup, config.window),
        account=open_account(config.initial_balance, config.history_limit),
        bot=BotState(strategy=config.strategy, params=config.strategy_defaults()),
    )


def reset_state(state: SimulatorState, feed: Optional[PriceFeed] = None) -> Tuple[SimulatorState, Event]:
    """
    Start over: new prices, account, position, contracts, orders and history.

    The selected strategy and its parameters survive; the bot is stopped and
    its memory cleared.
    """
    fresh = initial_state(state.config, feed)
    fresh = replace(fresh, bot=BotState(strategy=state.bot.strategy, params=state.bot.params))
    event = Event(fresh.tick, EventType.RESET, "simulator reset",
                  {'balance': fresh.account.cash, 'price': fresh.price})
    logger.info("Reset %s simulator at price %s", state.kind.value, fresh.price)
    return fresh, event


# ============================================================================
# TICK REDUCER
# ============================================================================

def _log_events(events: List[Event]) -> None:
    for event in events:
        level = logging.WARNING if event.event_type is EventType.LIQUIDATION else logging.INFO
        logger.log(level, "tick %d %s: %s", event.tick, event.event_type.value, event.message)


def _run_bot(state: SimulatorState, account: Account, tick: int,
             prices: PriceSeries) -> Tuple[Account, BotState, List[Event]]:
    bot = state.bot
    snapshot = MarketSnapshot(
        prices=tuple(prices.closes()),
        tick=tick,
        cash=account.cash,
        holdings=account.holdings,
        fee_rate=state.config.spot.fee_rate,
    )
    decision = decide(bot.strategy, snapshot, bot.params, bot.memory)
    if decision.instruction is None:
        return account, replace(bot, memory=decision.state, last_message=decision.reason), []

    instruction = decision.instruction
    try:
        result = spot.execute(account, instruction.side, instruction.amount, snapshot.price,
                              tick, state.config.spot, reason=instruction.reason)
    except SimulatorError as exc:
        logger.debug("Bot instruction %s failed: %s", instruction, exc)
        memory = replace(decision.state, last_buy_price=bot.memory.last_buy_price)
        return account, replace(bot, memory=memory, last_message=str(exc)), []

    event = Event(tick, EventType.BOT_ACTION, instruction.reason,
                  {'strategy': bot.strategy.value, 'side': instruction.side.value,
                   'amount': instruction.amount, 'price': snapshot.price})
    bot = replace(bot, memory=decision.state, last_message=instruction.reason)
    return result.account, bot, [event, *result.events]


def advance(state: SimulatorState, point: PricePoint) -> StepResult:
    """
    Apply one price point. The point's tick is forced to state.tick + 1.
    """
    tick = state.tick + 1
    if point.tick != tick:
        point = replace(point, tick=tick)
    price = point.close
    prices = state.prices.append(point)
    account = state.account
    position = state.position
    events: List[Event] = []

    if position is not None:
        rules = POSITION_RULES[position.kind]
        result = rules.check(account, position, price, tick, state.terms_for(position.kind))
        account, position = result.account, result.position
        events.extend(result.events)

    options = state.options
    if options:
        account, options, expired = option.expire_contracts(account, options, price, tick,
                                                            state.config.option)
        events.extend(expired)

    orders = state.orders
    if orders:
        account, orders, filled = spot.fill_orders(account, orders, price, tick, state.config.spot)
        events.extend(filled)

    entries = state.entries
    if entries:
        account, position, entries, entered = future.fill_entry_orders(
            account, position, entries, price, tick, state.config.future)
        events.extend(entered)

    bot = state.bot
    if state.kind is SimulatorKind.BOT and bot.enabled:
        account, bot, bot_events = _run_bot(state, account, tick, prices)
        events.extend(bot_events)

    _log_events(events)
    new_state = replace(state, tick=tick, prices=prices, account=account, position=position,
                        options=options, orders=orders, entries=entries, bot=bot)
    return StepResult(state=new_state, events=tuple(events), point=point)


def step(state: SimulatorState, feed: PriceFeed) -> StepResult:
    """Draw the next point from feed and advance."""
    return advance(state, feed.next_point(state.price, state.tick + 1))


# ============================================================================
# ACTION HANDLERS
# ============================================================================

Handled = Tuple[SimulatorState, List[Event], str]


def _require_position(state: SimulatorState) -> Position:
    if state.position is None:
        raise NoOpenPosition("no open position")
    return state.position


def _open_position(state: SimulatorState, action: act.OpenPosition, feed) -> Handled:
    if state.position is not None:
        raise PositionAlreadyOpen(f"position #{state.position.position_id} is already open")
    kind = _POSITION_KIND[state.kind]
    if action.order_type is OrderType.LIMIT:
        return _place_entry(state, action, kind)
    result = POSITION_RULES[kind].open(
        state.account, action.direction, action.amount, action.leverage, state.price,
        state.tick, state.next_id, state.terms_for(kind),
    )
    new_state = replace(state, account=result.account, position=result.position,
                        next_id=state.next_id + 1)
    return new_state, list(result.events), result.events[0].message


def _place_entry(state: SimulatorState, action: act.OpenPosition, kind: InstrumentKind) -> Handled:
    if kind is not InstrumentKind.FUTURE:
        raise InvalidParameter("limit entries are only available for futures")
    if action.limit_price is None:
        raise InvalidParameter("limit orders need a limit_price")
    limit = require_positive(action.limit_price, "limit_price")
    terms = state.config.future
    if future.is_entry_marketable(action.direction, limit, state.price):
        result = future.open_position(state.account, action.direction, action.amount, action.leverage,
                                      state.price, state.tick, state.next_id, terms)
        new_state = replace(state, account=result.account, position=result.position,
                            next_id=state.next_id + 1)
        return new_state, list(result.events), result.events[0].message

    margin_posted, leverage = future.validate_entry(state.account, action.amount, action.leverage, terms)
    order = EntryOrder(order_id=state.next_id, direction=action.direction, price=limit,
                       margin=margin_posted, leverage=leverage, placed_at_tick=state.tick)
    new_state = replace(state, entries=state.entries + (order,), next_id=state.next_id + 1)
    return new_state, [], f"order #{order.order_id} resting: {action.direction.value} {leverage}x @ {limit}"


def _close_position(state: SimulatorState, action: act.ClosePosition, feed) -> Handled:
    position = _require_position(state)
    result = POSITION_RULES[position.kind].close(
        state.account, position, state.price, state.tick, state.terms_for(position.kind),
        reason=REASON_MANUAL,
    )
    new_state = replace(state, account=result.account, position=None)
    return new_state, list(result.events), result.events[0].message


def _reverse_position(state: SimulatorState, action: act.ReversePosition, feed) -> Handled:
    position = _require_position(state)
    result = future.reverse_position(state.account, position, state.price, state.tick,
                                     state.next_id, state.config.future)
    new_state = replace(state, account=result.account, position=result.position,
                        next_id=state.next_id + 1)
    return new_state, list(result.events), f"reversed to {result.position.direction.value}"


def _optional_price(value, name: str) -> Optional[Decimal]:
    return None if value is None else require_positive(value, name)


def _set_protection(state: SimulatorState, action: act.SetProtection, feed) -> Handled:
    position = _require_position(state)
    take_profit = _optional_price(action.take_profit, "take_profit")
    stop_loss = _optional_price(action.stop_loss, "stop_loss")
    future.validate_protection(position, state.price, take_profit, stop_loss)
    updated = replace(position, take_profit=take_profit, stop_loss=stop_loss)
    return replace(state, position=updated), [], f"TP {take_profit} / SL {stop_loss}"


def _place_order(state: SimulatorState, action: act.PlaceOrder, feed) -> Handled:
    amount = require_positive(action.amount, "amount")
    terms = state.config.spot
    if action.order_type is OrderType.MARKET:
        result = spot.execute(state.account, action.side, amount, state.price, state.tick, terms)
        return replace(state, account=result.account), list(result.events), result.events[0].message

    if action.limit_price is None:
        raise InvalidParameter("limit orders need a limit_price")
    limit = require_positive(action.limit_price, "limit_price")
    if spot.is_marketable(action.side, limit, state.price):
        result = spot.execute(state.account, action.side, amount, state.price, state.tick, terms)
        return replace(state, account=result.account), list(result.events), result.events[0].message

    spot.validate_order(state.account, action.side, amount, limit, terms)
    order = LimitOrder(order_id=state.next_id, side=action.side, price=limit, amount=amount,
                       placed_at_tick=state.tick)
    new_state = replace(state, orders=state.orders + (order,), next_id=state.next_id + 1)
    return new_state, [], f"order #{order.order_id} resting: {action.side.value} {amount} @ {limit}"


def _cancel_order(state: SimulatorState, action: act.CancelOrder, feed) -> Handled:
    resting = state.orders + state.entries
    if not any(o.order_id == action.order_id for o in resting):
        raise NoOpenPosition(f"no resting order #{action.order_id}")
    orders = tuple(o for o in state.orders if o.order_id != action.order_id)
    entries = tuple(o for o in state.entries if o.order_id != action.order_id)
    event = Event(state.tick, EventType.ORDER_CANCELLED, f"order #{action.order_id} cancelled",
                  {'order_id': action.order_id, 'reason': 'user'})
    return replace(state, orders=orders, entries=entries), [event], event.message


def _trade_option(state: SimulatorState, action: act.TradeOption, feed) -> Handled:
    result = option.open_contract(
        state.account, action.option_type, action.action, action.strike, action.days,
        action.contracts, state.price, state.tick, state.next_id, state.config.option,
    )
    new_state = replace(state, account=result.account, options=state.options + (result.contract,),
                        next_id=state.next_id + 1)
    return new_state, list(result.events), result.events[0].message


def _exercise_option(state: SimulatorState, action: act.ExerciseOption, feed) -> Handled:
    contract = next((c for c in state.options if c.contract_id == action.contract_id), None)
    if contract is None:
        raise NoOpenPosition(f"no open contract #{action.contract_id}")
    result = option.exercise_contract(state.account, contract, state.price, state.tick,
                                      state.config.option)
    remaining = tuple(c for c in state.options if c.contract_id != action.contract_id)
    return replace(state, account=result.account, options=remaining), list(result.events), \
        result.events[0].message


def _set_strategy(state: SimulatorState, action: act.SetStrategy, feed) -> Handled:
    params = make_params(action.kind, action.params)
    bot = replace(state.bot, strategy=action.kind, params=params, memory=StrategyState(),
                  last_message=f"strategy set to {action.kind.value}")
    return replace(state, bot=bot), [], bot.last_message


def _toggle_bot(state: SimulatorState, action: act.ToggleBot, feed) -> Handled:
    message = "bot started" if action.enabled else "bot stopped"
    # every start begins from a clean strategy memory
    bot = replace(state.bot, enabled=bool(action.enabled), memory=StrategyState(), last_message=message)
    return replace(state, bot=bot), [], message


def _reset(state: SimulatorState, action: act.Reset, feed) -> Handled:
    new_state, event = reset_state(state, feed)
    return new_state, [event], event.message


_HANDLERS: Dict[type, Callable[..., Handled]] = {
    act.OpenPosition: _open_position,
    act.ClosePosition: _close_position,
    act.ReversePosition: _reverse_position,
    act.SetProtection: _set_protection,
    act.PlaceOrder: _place_order,
    act.CancelOrder: _cancel_order,
    act.TradeOption: _trade_option,
    act.ExerciseOption: _exercise_option,
    act.SetStrategy: _set_strategy,
    act.ToggleBot: _toggle_bot,
    act.Reset: _reset,
}

ALLOWED_ACTIONS: Dict[SimulatorKind, frozenset] = {
    SimulatorKind.SPOT: frozenset({act.PlaceOrder, act.CancelOrder, act.Reset}),
    SimulatorKind.FUTURES: frozenset({act.OpenPosition, act.ClosePosition, act.ReversePosition,
                                      act.SetProtection, act.CancelOrder, act.Reset}),
    SimulatorKind.MARGIN: frozenset({act.OpenPosition, act.ClosePosition, act.Reset}),
    SimulatorKind.OPTIONS: frozenset({act.TradeOption, act.ExerciseOption, act.Reset}),
    SimulatorKind.BOT: frozenset({act.SetStrategy, act.ToggleBot, act.PlaceOrder,
                                  act.CancelOrder, act.Reset}),
}


def apply_action(state: SimulatorState, action: act.Action,
                 feed: Optional[PriceFeed] = None) -> ActionResult:
    """
    Apply a user action.

    Args:
        state: Current state
        action: One of the tradesim.actions types
        feed: Feed to rebuild prices from on Reset (default: a fresh
            random walk from the config)

    Returns:
        ActionResult APPLIED with the new state, or REJECTED with the
        unchanged state and the reason.
    """
    handler = _HANDLERS.get(type(action))
    try:
        if handler is None or type(action) not in ALLOWED_ACTIONS[state.kind]:
            raise InvalidParameter(
                f"{type(action).__name__} is not available in the {state.kind.value} simulator")
        new_state, events, message = handler(state, action, feed)
    except SimulatorError as exc:
        logger.debug("Rejected %s: %s", type(action).__name__, exc)
        return ActionResult(status=ActionStatus.REJECTED, state=state, message=str(exc))

    logger.info("Applied %s: %s", type(action).__name__, message)
    return ActionResult(status=ActionStatus.APPLIED, state=new_state, events=tuple(events),
                        message=message)


# ============================================================================
# SNAPSHOT
# ============================================================================

def _point_dict(point: PricePoint) -> Dict[str, Any]:
    data: Dict[str, Any] = {'tick': point.tick, 'close': point.close}
    if point.is_candle:
        data.update(open=point.open, high=point.high, low=point.low, volume=point.volume)
    return data


def position_unrealized_pnl(state: SimulatorState) -> Decimal:
    position = state.position
    if position is None:
        return Decimal("0")
    rules = POSITION_RULES[position.kind]
    return rules.unrealized_pnl(position, state.price, state.tick, state.terms_for(position.kind))


def _options_value(state: SimulatorState) -> Tuple[Decimal, Decimal, List[Dict[str, Any]]]:
    """(cash value of all contracts, unrealized pnl, per-contract rows)."""
    terms = state.config.option
    total_value = Decimal("0")
    total_pnl = Decimal("0")
    rows = []
    marks = option.mark_options(state.options, state.price, state.tick, terms)
    for contract, mark in zip(state.options, marks):
        lots = option.lot_value(mark.value, contract.contracts, terms)
        if contract.action is OptionAction.BUY:
            total_value += lots
        else:
            total_value += contract.collateral - min(lots, contract.collateral)
        total_pnl += mark.unrealized_pnl
        rows.append({
            'contract_id': contract.contract_id,
            'option_type': contract.option_type.value,
            'action': contract.action.value,
            'strike': contract.strike,
            'premium': contract.premium,
            'contracts': contract.contracts,
            'expiry_tick': contract.expiry_tick,
            'ticks_to_expiry': mark.ticks_to_expiry,
            'collateral': contract.collateral,
            'mark': mark.value,
            'unrealized_pnl': mark.unrealized_pnl,
        })
    return total_value, total_pnl, rows


def snapshot(state: SimulatorState) -> Dict[str, Any]:
    """
    Plain-dict view of the state for the UI layer.

    Equity = cash + holdings at market + what the open position would return
    if closed now + the settlement value of every option contract.
    """
    price = state.price
    account = state.account
    position = state.position
    position_pnl = position_unrealized_pnl(state)
    options_value, options_pnl, option_rows = _options_value(state)

    position_data = None
    position_value = Decimal("0")
    if position is not None:
        position_value = max(position.margin + position_pnl, Decimal("0"))
        position_data = {
            'position_id': position.position_id,
            'kind': position.kind.value,
            'direction': position.direction.value,
            'entry_price': position.entry_price,
            'size': position.size,
            'leverage': position.leverage,
            'margin': position.margin,
            'borrowed': position.borrowed,
            'accrued_funding': position.accrued_funding,
            'liquidation_price': position.risk.liquidation_price,
            'margin_call_price': position.risk.margin_call_price,
            'margin_call_warned': position.margin_call_warned,
            'status': (margin.margin_status(position)
                       if position.kind is InstrumentKind.MARGIN else None),
            'take_profit': position.take_profit,
            'stop_loss': position.stop_loss,
            'unrealized_pnl': position_pnl,
        }

    return {
        'kind': state.kind.value,
        'tick': state.tick,
        'price': price,
        'prices': [_point_dict(p) for p in state.prices],
        'account': {
            'cash': account.cash,
            'initial_balance': account.initial_balance,
            'holdings': account.holdings,
            'avg_entry_price': account.avg_entry_price,
            'realized_pnl': account.realized_pnl,
            'unrealized_pnl': account.unrealized_pnl(price) + position_pnl + options_pnl,
            'equity': account.equity(price) + position_value + options_value,
        },
        'position': position_data,
        'options': option_rows,
        'orders': [
            {'order_id': o.order_id, 'side': o.side.value, 'price': o.price,
             'amount': o.amount, 'placed_at_tick': o.placed_at_tick}
            for o in state.orders
        ],
        'entry_orders': [
            {'order_id': o.order_id, 'direction': o.direction.value, 'price': o.price,
             'margin': o.margin, 'leverage': o.leverage, 'placed_at_tick': o.placed_at_tick}
            for o in state.entries
        ],
        'history': [
            {'tick': r.tick, 'instrument': r.instrument.value, 'side': r.side, 'price': r.price,
             'size': r.size, 'fee': r.fee, 'pnl': r.pnl, 'reason': r.reason,
             'entry_price': r.entry_price}
            for r in account.history
        ],
        'bot': {
            'strategy': state.bot.strategy.value,
            'params': asdict(state.bot.params),
            'enabled': state.bot.enabled,
            'last_message': state.bot.last_message,
        },
    }
