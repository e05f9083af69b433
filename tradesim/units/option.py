"""
option.py - European cash-settled options priced with Black-Scholes

Contracts are quoted per unit of underlying and traded in lots of
unit_size (0.01 BTC by default). Time is measured in ticks; one tick is
days_per_tick calendar days.

=== CASH FLOWS ===

Buyer:
    entry:       cash -= premium * contracts * unit
    settlement:  cash += intrinsic * contracts * unit
    pnl          = (intrinsic - premium) * contracts * unit

Writer:
    entry:       cash += premium * contracts * unit
                 cash -= collateral = max(strike, spot) * contracts * unit
    settlement:  pays min(intrinsic * contracts * unit, collateral),
                 the rest of the collateral comes back
    pnl          = premium_cash - paid

Settlement happens at expiry (autonomous, always applies) or on early
exercise (user action, settles at the current intrinsic value).
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from .. import black_scholes as bs
from ..account import Account, credit, debit, record_trade
from ..core import (
    Event, EventType, InstrumentKind, InvalidParameter, OptionAction, OptionContract, OptionType,
    TradeRecord, REASON_EXERCISE, REASON_EXPIRY, require_positive,
)


@dataclass(frozen=True, slots=True)
class OptionTerms:
    """Market parameters applied to every quote."""
    volatility: Decimal = Decimal("0.65")
    rate: Decimal = Decimal("0.05")
    unit_size: Decimal = Decimal("0.01")
    days_per_tick: Decimal = Decimal("0.1")

    def __post_init__(self):
        """Convert float values to Decimal to ensure type consistency."""
        if not isinstance(self.volatility, Decimal):
            object.__setattr__(self, 'volatility', Decimal(str(self.volatility)))
        if not isinstance(self.rate, Decimal):
            object.__setattr__(self, 'rate', Decimal(str(self.rate)))
        if not isinstance(self.unit_size, Decimal):
            object.__setattr__(self, 'unit_size', Decimal(str(self.unit_size)))
        if not isinstance(self.days_per_tick, Decimal):
            object.__setattr__(self, 'days_per_tick', Decimal(str(self.days_per_tick)))


@dataclass(frozen=True, slots=True)
class OptionQuote:
    """Premium per unit of underlying and the Greeks for one option."""
    option_type: OptionType
    strike: Decimal
    days: Decimal
    premium: Decimal
    intrinsic: Decimal
    greeks: bs.Greeks


@dataclass(frozen=True, slots=True)
class OptionMark:
    """Current value of an open contract."""
    contract_id: int
    value: Decimal
    unrealized_pnl: Decimal
    ticks_to_expiry: int


@dataclass(frozen=True, slots=True)
class OptionResult:
    """Output of an option trade or settlement. contract is None once settled."""
    account: Account
    contract: Optional[OptionContract]
    record: Optional[TradeRecord] = None
    events: Tuple[Event, ...] = ()


# ============================================================================
# PURE CALCULATIONS
# ============================================================================

def expiry_tick(tick: int, days, terms: OptionTerms) -> int:
    """Tick on which an option bought at `tick` with `days` to run expires."""
    d = require_positive(days, "days")
    return tick + math.ceil(d / terms.days_per_tick)


def years_to_expiry(contract: OptionContract, tick: int, terms: OptionTerms) -> Decimal:
    remaining = max(contract.expiry_tick - tick, 0)
    return bs.years_from_days(remaining * terms.days_per_tick)


def lot_value(per_unit: Decimal, contracts: int, terms: OptionTerms) -> Decimal:
    """Scale a per-unit amount to the cash value of `contracts` lots."""
    return per_unit * contracts * terms.unit_size


def quote_option(spot, strike, days, option_type: OptionType, terms: OptionTerms) -> OptionQuote:
    """
    Price an option for the order ticket.

    Raises:
        InvalidParameter: Non-positive spot, strike or days
    """
    s = require_positive(spot, "spot")
    k = require_positive(strike, "strike")
    d = require_positive(days, "days")
    t = bs.years_from_days(d)
    return OptionQuote(
        option_type=option_type,
        strike=k,
        days=d,
        premium=bs.option_price(option_type, s, k, t, terms.rate, terms.volatility),
        intrinsic=bs.intrinsic_value(option_type, s, k),
        greeks=bs.greeks(option_type, s, k, t, terms.rate, terms.volatility),
    )


def calculate_pnl(contract: OptionContract, value: Decimal, terms: OptionTerms) -> Decimal:
    """P&L of settling at per-unit value: buyer gains value - premium, writer the opposite."""
    buyer = lot_value(value - contract.premium, contract.contracts, terms)
    return buyer if contract.action is OptionAction.BUY else -buyer


def mark_option(contract: OptionContract, spot, tick: int, terms: OptionTerms) -> OptionMark:
    """Value an open contract at spot with the time left until expiry."""
    s = require_positive(spot, "spot")
    t = years_to_expiry(contract, tick, terms)
    value = bs.option_price(contract.option_type, s, contract.strike, t, terms.rate, terms.volatility)
    return OptionMark(
        contract_id=contract.contract_id,
        value=value,
        unrealized_pnl=calculate_pnl(contract, value, terms),
        ticks_to_expiry=max(contract.expiry_tick - tick, 0),
    )


def mark_options(contracts: Tuple[OptionContract, ...], spot, tick: int,
                 terms: OptionTerms) -> List[OptionMark]:
    return [mark_option(c, spot, tick, terms) for c in contracts]


# ============================================================================
# SETTLEMENT
# ============================================================================

def open_contract(account: Account, option_type: OptionType, action: OptionAction, strike, days,
                  contracts: int, spot, tick: int, contract_id: int,
                  terms: OptionTerms) -> OptionResult:
    """
    Buy or write an option at the Black-Scholes premium.

    Raises:
        InvalidParameter: Non-positive strike, days, spot or contract count
        InsufficientFunds: If the premium (buyer) or net collateral (writer)
            exceeds cash
    """
    if isinstance(contracts, bool) or not isinstance(contracts, int) or contracts < 1:
        raise InvalidParameter(f"contracts must be a positive integer, got {contracts!r}")
    quote = quote_option(spot, strike, days, option_type, terms)
    s = require_positive(spot, "spot")
    premium_cash = lot_value(quote.premium, contracts, terms)

    if action is OptionAction.BUY:
        collateral = Decimal("0")
        updated = debit(account, premium_cash)
    else:
        collateral = lot_value(max(quote.strike, s), contracts, terms)
        updated = debit(credit(account, premium_cash), collateral)

    contract = OptionContract(
        contract_id=contract_id,
        option_type=option_type,
        action=action,
        strike=quote.strike,
        expiry_tick=expiry_tick(tick, quote.days, terms),
        premium=quote.premium,
        contracts=contracts,
        underlying_at_entry=s,
        opened_at_tick=tick,
        collateral=collateral,
    )
    event = Event(tick, EventType.TRADE,
                  f"{action.value} {contracts} {option_type.value} {quote.strike} @ {quote.premium:.2f}",
                  {'contract_id': contract_id, 'action': action.value, 'option_type': option_type.value,
                   'strike': quote.strike, 'premium': quote.premium, 'contracts': contracts,
                   'expiry_tick': contract.expiry_tick, 'collateral': collateral})
    return OptionResult(account=updated, contract=contract, events=(event,))


def settle_contract(account: Account, contract: OptionContract, spot, tick: int,
                    terms: OptionTerms, reason: str = REASON_EXPIRY) -> OptionResult:
    """Cash-settle a contract at its intrinsic value against spot."""
    s = require_positive(spot, "spot")
    intrinsic = bs.intrinsic_value(contract.option_type, s, contract.strike)
    payout = lot_value(intrinsic, contract.contracts, terms)
    premium_cash = lot_value(contract.premium, contract.contracts, terms)

    if contract.action is OptionAction.BUY:
        updated = credit(account, payout)
        pnl = payout - premium_cash
    else:
        paid = min(payout, contract.collateral)
        updated = credit(account, contract.collateral - paid)
        pnl = premium_cash - paid

    record = TradeRecord(
        tick=tick, instrument=InstrumentKind.OPTION, side=contract.option_type.value,
        price=s, size=Decimal(contract.contracts), fee=Decimal("0"), pnl=pnl,
        reason=reason, entry_price=contract.premium,
    )
    updated = record_trade(updated, record)
    event_type = EventType.OPTION_EXPIRY if reason == REASON_EXPIRY else EventType.TRADE
    event = Event(tick, event_type,
                  f"{contract.action.value} {contract.option_type.value} {contract.strike} "
                  f"settled @ {s} ({reason}), pnl {pnl:.2f}",
                  {'contract_id': contract.contract_id, 'spot': s, 'intrinsic': intrinsic,
                   'pnl': pnl, 'reason': reason})
    return OptionResult(account=updated, contract=None, record=record, events=(event,))


def exercise_contract(account: Account, contract: OptionContract, spot, tick: int,
                      terms: OptionTerms) -> OptionResult:
    """Settle before expiry at the current intrinsic value."""
    return settle_contract(account, contract, spot, tick, terms, reason=REASON_EXERCISE)


def expire_contracts(account: Account, contracts: Tuple[OptionContract, ...], spot, tick: int,
                     terms: OptionTerms) -> Tuple[Account, Tuple[OptionContract, ...], List[Event]]:
    """
    Settle every contract whose expiry tick has been reached.

    Returns:
        (account, still-open contracts, events)
    """
    remaining: List[OptionContract] = []
    events: List[Event] = []
    for contract in contracts:
        if contract.expiry_tick > tick:
            remaining.append(contract)
            continue
        result = settle_contract(account, contract, spot, tick, terms, reason=REASON_EXPIRY)
        account = result.account
        events.extend(result.events)
    return account, tuple(remaining), events
