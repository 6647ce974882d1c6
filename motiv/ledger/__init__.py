"""
Git-backed audit ledger.
"""

from .store import LedgerStore, log_filename

__all__ = ["LedgerStore", "log_filename"]
