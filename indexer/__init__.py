"""
On-chain event indexer.

Folds decoded contract events into materialized views
(per-user statistics, per-address token balances) backed by an
append-only event log.
"""

__version__ = "0.1.0"
