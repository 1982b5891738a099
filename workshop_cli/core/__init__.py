"""
Core application engine for orchestrating the download process.

The `PassController` acts as the run coordinator, delegating each chunk of
workshop items to an `InstanceWorker` that drives one isolated SteamCMD
instance and reconciles its results.
"""

from .backoff import RateLimitCooldown
from .instance_worker import InstanceWorker, WorkerState
from .partitioner import partition
from .pass_controller import PassController
from .reconciler import Reconciler

__all__ = [
    "InstanceWorker",
    "PassController",
    "RateLimitCooldown",
    "Reconciler",
    "WorkerState",
    "partition",
]
