"""
Bank Ledger

A small record-keeping backend for per-user budget accounts: accounts,
embedded transactions and a running balance, served over HTTP.
"""

__version__ = "1.0.0"
__description__ = "Bank API"
