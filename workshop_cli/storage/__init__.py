"""
Storage Layer.

This package handles all data persistence and filesystem state: configuration
files, the item list, the per-slot isolation directories, the shared content
destination, the failed-IDs file and the run report.
"""

from .config_manager import ConfigManager
from .destination import SharedDestination
from .isolation import IsolationManager
from .item_source import load_identifiers
from .report import write_report
from .retry_state import FailedIdsFile

__all__ = [
    "ConfigManager",
    "FailedIdsFile",
    "IsolationManager",
    "SharedDestination",
    "load_identifiers",
    "write_report",
]
