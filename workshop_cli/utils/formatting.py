"""
Helper functions for formatting data into human-readable strings.
"""

from workshop_cli.models.outcome import Outcome

# Short labels used in the live counters, mirroring the report's categories.
OUTCOME_SHORT = {
    Outcome.SUCCESS: "OK",
    Outcome.SKIPPED: "Skip",
    Outcome.TIMEOUT: "T",
    Outcome.RATE_LIMITED: "RL",
    Outcome.LOCK_CONTENDED: "LK",
    Outcome.VALIDATION_FAILED: "VF",
    Outcome.GENERIC_ERROR: "E",
    Outcome.UNKNOWN: "?",
}

OUTCOME_STYLE = {
    Outcome.SUCCESS: "green",
    Outcome.SKIPPED: "yellow",
    Outcome.TIMEOUT: "red",
    Outcome.RATE_LIMITED: "red",
    Outcome.LOCK_CONTENDED: "magenta",
    Outcome.VALIDATION_FAILED: "magenta",
    Outcome.GENERIC_ERROR: "red",
    Outcome.UNKNOWN: "dim",
}


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_counters(counts: dict[Outcome, int]) -> str:
    """Formats failure counters as 'T:1 E:0 RL:0 LK:2 VF:0'."""
    failure_order = (
        Outcome.TIMEOUT,
        Outcome.GENERIC_ERROR,
        Outcome.RATE_LIMITED,
        Outcome.LOCK_CONTENDED,
        Outcome.VALIDATION_FAILED,
    )
    return " ".join(f"{OUTCOME_SHORT[o]}:{counts.get(o, 0)}" for o in failure_order)


def pluralize(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"
