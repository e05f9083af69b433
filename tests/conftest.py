"""
conftest.py - Shared pytest fixtures for tradesim tests

Provides common fixtures used across unit, functional and conformance tests:
- Accounts (funded, holding base asset)
- Settlement terms with the default parameters
- Scripted simulator states for every kind
"""

import pytest
from decimal import Decimal

from tradesim import SimulatorKind, open_account
from tradesim.account import add_holdings
from tradesim.units import FutureTerms, MarginTerms, OptionTerms, SpotTerms

from tests.sim_harness import scripted_state


@pytest.fixture
def account():
    """An account with 10,000 cash."""
    return open_account(Decimal("10000"), history_limit=20)


@pytest.fixture
def holding_account():
    """An account with 10,000 cash and 0.1 BTC bought at 60,000."""
    return add_holdings(open_account(Decimal("10000"), history_limit=20), Decimal("0.1"), Decimal("60000"))


@pytest.fixture
def spot_terms():
    return SpotTerms()


@pytest.fixture
def future_terms():
    return FutureTerms()


@pytest.fixture
def margin_terms():
    return MarginTerms()


@pytest.fixture
def option_terms():
    return OptionTerms()


@pytest.fixture
def spot_state():
    return scripted_state(SimulatorKind.SPOT)


@pytest.fixture
def futures_state():
    return scripted_state(SimulatorKind.FUTURES)


@pytest.fixture
def margin_state():
    return scripted_state(SimulatorKind.MARGIN)


@pytest.fixture
def options_state():
    return scripted_state(SimulatorKind.OPTIONS)


@pytest.fixture
def bot_state():
    return scripted_state(SimulatorKind.BOT)
