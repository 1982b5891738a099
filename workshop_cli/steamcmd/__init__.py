"""
Everything that talks to SteamCMD: run scripts, process handles and log parsing.
"""

from .classifier import classify_log, classify_log_file
from .process import ProcessExit, ToolProcess
from .script import render_script, write_script

__all__ = [
    "ProcessExit",
    "ToolProcess",
    "classify_log",
    "classify_log_file",
    "render_script",
    "write_script",
]
