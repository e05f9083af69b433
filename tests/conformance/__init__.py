"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the tradesim engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Cash moves only through fees, interest, funding and P&L
2. atomicity.py - All-or-nothing user actions
3. account_bounds.py - Non-negative balances, bounded history, capped losses
4. determinism.py - Seeded runs replay exactly
5. price_invariants.py - Price floor, quantization and candle shape
6. option_bounds.py - No-arbitrage bounds on prices and Greeks
7. strategy_decisions.py - Bots only request trades the account can carry

These tests use hypothesis for property-based testing.
"""
