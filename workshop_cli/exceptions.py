"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class WorkshopCliError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(WorkshopCliError):
    """Raised for issues related to configuration loading or validation."""


class ItemSourceError(WorkshopCliError):
    """Raised when the list of workshop item IDs cannot be read."""


class ToolNotFoundError(WorkshopCliError):
    """Raised when the SteamCMD executable cannot be located before a run."""


class ScriptWriteError(WorkshopCliError):
    """
    Raised when a per-instance run script cannot be written. The affected chunk
    is abandoned for the current pass only.
    """


class ToolLaunchError(WorkshopCliError):
    """Raised when a SteamCMD instance cannot be started."""
