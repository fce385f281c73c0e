"""
MLM ledger core.

Wallet balances, transaction ledger, referral graph, commission plans
and the payout state machine.
"""

__version__ = "0.1.0"
