"""
Net Worth - Source Package

The flow engine behind a personal multi-asset net-worth tracker.
Users record flows (income, expenses, transfers, trades, debt payments)
and the engine derives asset balances, debt balances and cost basis.

DESIGN PRINCIPLES:
1. Every transaction category is described by one static preset
2. Form decisions are pure; I/O happens in one place
3. Fail early, fail visibly - nothing is half-written
4. Calculators never throw on out-of-domain input
5. Storage and market data are swappable
"""

__version__ = "1.0.0"
__author__ = "Net Worth Team"
