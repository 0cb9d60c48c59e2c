"""
Mill Kernel - stock ledger reconstruction for rice-mill operations.

An append-only, replay-based inventory ledger with:
- Typed, immutable stock events (paddy and finished goods)
- Deterministic day-by-day ledger replay
- Point-in-time balances with cleared-batch exclusion
- Structured logging and typed errors
"""

__version__ = "0.1.0"
