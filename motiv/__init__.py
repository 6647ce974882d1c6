"""
Motiv: an autonomous development agent.

Turns a natural-language request into a committed, tested change on a
dedicated branch and, depending on the autonomy level, a pull request.
Every request and every status change is recorded in a git-backed ledger.
"""

__version__ = "0.1.0"

from .errors import MotivError
from .ledger import LedgerStore
from .lifecycle import RequestLifecycle
from .pipeline import ExecutionResult, RequestPipeline

__all__ = [
    "__version__",
    "ExecutionResult",
    "LedgerStore",
    "MotivError",
    "RequestLifecycle",
    "RequestPipeline",
]
