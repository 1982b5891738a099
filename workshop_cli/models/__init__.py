"""
Data Models Layer.

This package contains the Pydantic configuration model and the data structures
that describe item outcomes and the shared result store.
"""

from .config import EngineConfig
from .outcome import ChunkReport, ClassifiedLog, Outcome, PassResult, Signal
from .stats import ResultStore
from .summary import RunSummary

__all__ = [
    "ChunkReport",
    "ClassifiedLog",
    "EngineConfig",
    "Outcome",
    "PassResult",
    "ResultStore",
    "RunSummary",
    "Signal",
]
