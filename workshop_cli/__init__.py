"""
workshop-cli: drives isolated SteamCMD instances to download Steam Workshop
items in parallel, with log classification, reconciliation and retry passes.
"""

__version__ = "1.0.0"
