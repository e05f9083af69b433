#!/usr/bin/env python3
"""
demo.py - Guided tour of the five simulators

Each step drives one simulator with a fixed seed so the output is the same
on every run. Press Enter to advance.

WHAT YOU'LL SEE:
  1: Spot      - market and limit orders, fees, average entry price
  2: Futures   - leverage, liquidation price, funding, take-profit
  3: Margin    - borrowed funds, hourly interest, margin call
  4: Options   - Black-Scholes premiums, Greeks, expiry settlement
  5: Bot       - a grid strategy trading on its own

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from decimal import Decimal
import logging
import sys

from tradesim import (
    Direction, OptionAction, OptionType, OrderSide, OrderType, SimulationClock, SimulatorKind,
    StrategyKind, default_config, quote_option, OptionTerms,
)
from tradesim.actions import (
    OpenPosition, PlaceOrder, SetProtection, SetStrategy, ToggleBot, TradeOption,
)


SEED = 7
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def show_account(clock: SimulationClock):
    view = clock.snapshot()
    account = view['account']
    print(f"Tick {view['tick']:>4}  price {view['price']:>10}  cash {account['cash']:.2f}  "
          f"equity {account['equity']:.2f}  realized {account['realized_pnl']:.2f}")


def show_events(events):
    for event in events:
        print(f"  [{event.tick:>4}] {event.event_type.value:<16} {event.message}")


def show_result(result):
    print(f">>> {result.status.value}: {result.message}")
    show_events(result.events)


# ============================================================================
# STEPS
# ============================================================================

def step_01_spot():
    step_header(1, "Spot Trading", "Buy with cash, sell what you hold, pay 0.1% per trade.")
    clock = SimulationClock(default_config(SimulatorKind.SPOT, seed=SEED))
    show_account(clock)

    show_result(clock.dispatch(PlaceOrder(OrderSide.BUY, Decimal("0.05"))))
    limit = (clock.state.price * Decimal("0.99")).quantize(Decimal("0.01"))
    show_result(clock.dispatch(PlaceOrder(OrderSide.BUY, Decimal("0.02"), OrderType.LIMIT, limit)))
    show_events(clock.run_ticks(40))
    show_result(clock.dispatch(PlaceOrder(OrderSide.SELL, clock.state.account.holdings)))
    show_account(clock)
    wait_for_enter()


def step_02_futures():
    step_header(2, "Perpetual Futures", "Post margin, trade with leverage, watch funding accrue.")
    clock = SimulationClock(default_config(SimulatorKind.FUTURES, seed=SEED))
    show_result(clock.dispatch(OpenPosition(Direction.LONG, Decimal("1000"), Decimal("20"))))
    position = clock.state.position
    print(f"Entry {position.entry_price}  size {position.size}  "
          f"liquidation {position.risk.liquidation_price}")

    target = (position.entry_price * Decimal("1.01")).quantize(Decimal("0.01"))
    show_result(clock.dispatch(SetProtection(take_profit=target)))
    show_events(clock.run_ticks(60))
    show_account(clock)
    wait_for_enter()


def step_03_margin():
    step_header(3, "Margin Trading", "Borrow against your own funds; interest accrues every tick.")
    clock = SimulationClock(default_config(SimulatorKind.MARGIN, seed=SEED))
    show_result(clock.dispatch(OpenPosition(Direction.SHORT, Decimal("2000"), Decimal("5"))))
    position = clock.state.position
    print(f"Borrowed {position.borrowed}  margin call {position.risk.margin_call_price}  "
          f"liquidation {position.risk.liquidation_price}")
    show_events(clock.run_ticks(50))
    show_account(clock)
    wait_for_enter()


def step_04_options():
    step_header(4, "Options", "Price calls and puts with Black-Scholes and hold them to expiry.")
    clock = SimulationClock(default_config(SimulatorKind.OPTIONS, seed=SEED))
    spot = clock.state.price
    strike = (spot / 1000).quantize(Decimal("1")) * 1000
    for option_type in OptionType:
        quote = quote_option(spot, strike, Decimal("3"), option_type, OptionTerms())
        print(f"{option_type.value:<5} K={strike}  premium {quote.premium}  "
              f"delta {quote.greeks.delta}  vega {quote.greeks.vega}")

    show_result(clock.dispatch(TradeOption(OptionType.CALL, OptionAction.BUY, strike, Decimal("3"), 2)))
    show_result(clock.dispatch(TradeOption(OptionType.PUT, OptionAction.SELL, strike, Decimal("3"), 1)))
    show_events(clock.run_ticks(31))
    show_account(clock)
    wait_for_enter()


def step_05_bot():
    step_header(5, "Strategy Bot", "Let a grid strategy buy dips and sell rallies inside a range.")
    clock = SimulationClock(default_config(SimulatorKind.BOT, seed=SEED))
    price = clock.state.price
    params = {'lower': price * Decimal("0.95"), 'upper': price * Decimal("1.05"), 'grids': 10}
    show_result(clock.dispatch(SetStrategy(StrategyKind.GRID, params)))
    show_result(clock.dispatch(ToggleBot(True)))
    show_events(clock.run_ticks(150))
    print(f"Bot says: {clock.state.bot.last_message}")
    show_account(clock)


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    print("=" * 70)
    print("       TRADESIM - GUIDED TOUR")
    print("=" * 70)
    step_01_spot()
    step_02_futures()
    step_03_margin()
    step_04_options()
    step_05_bot()
    print("\nDone.")


if __name__ == "__main__":
    main()
