"""
Mint Harness - developer testing harness for the Circle Mint API.

Provides:
- An async REST client for balances, deposits, payouts, wires and express routes
- Resource testers that compose those calls into named operations
- A CLI (mint-harness) and a small dashboard server (mint-dashboard)
"""

__version__ = "0.1.0"
