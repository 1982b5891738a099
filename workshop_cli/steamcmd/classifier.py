"""
Turns the captured console output of one SteamCMD instance into per-item
outcomes and process-wide signals.

SteamCMD reports results in several shapes, for example::

    [AppID 252490] Download item 3511955902 result : Locking Failed
    [AppID 252490] Download item 492051023 result : Failure
    [AppID 252490] Update canceled: Staged file validation failed (13 missing...)
    [AppID 252490] Update canceled: Failed to write patch state file (File locked)
    Success. Downloaded item 1234567 to "..." (12345 bytes)
    ERROR! Download item 1234567 failed (Timeout).
    Timeout downloading item 1234567

``RULES`` below is the precedence table. Exclusive rules are tried in order and
the first match decides the line; non-exclusive rules are checked on every line.
"""

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from workshop_cli.models.outcome import ClassifiedLog, Outcome, Signal

log = logging.getLogger(__name__)

RATE_LIMIT_TEXT = re.compile(
    r"\brate\b|rate.?limit|too many requests|throttl", re.IGNORECASE
)


@dataclass(frozen=True)
class LineEvent:
    """
    What a single log line says. ``item_id`` is None for contextless lines,
    which are attributed to the most recently seen item instead.
    """

    outcome: Outcome | None
    item_id: str | None = None
    signal: Signal = Signal.NONE
    updates_context: bool = True


@dataclass(frozen=True)
class LineRule:
    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str]], LineEvent]
    exclusive: bool = True

    def match(self, line: str) -> LineEvent | None:
        if m := self.pattern.search(line):
            return self.build(m)
        return None


def outcome_for_reason(reason: str) -> tuple[Outcome, Signal]:
    """Maps the free-text reason of a result/error line to an outcome."""
    text = reason.strip()
    lowered = text.lower()
    if text == "OK" or "Success" in text:
        return Outcome.SUCCESS, Signal.NONE
    if "Locking Failed" in text or "locked" in lowered:
        return Outcome.LOCK_CONTENDED, Signal.LOCK
    if "timeout" in lowered:
        return Outcome.TIMEOUT, Signal.TIMEOUT
    if RATE_LIMIT_TEXT.search(text):
        return Outcome.RATE_LIMITED, Signal.RATE_LIMIT
    return Outcome.GENERIC_ERROR, Signal.NONE


def _workshop_result(m: re.Match[str]) -> LineEvent:
    outcome, sig = outcome_for_reason(m.group(2))
    return LineEvent(outcome, m.group(1), sig)


def _console_error(m: re.Match[str]) -> LineEvent:
    outcome, sig = outcome_for_reason(m.group(2))
    if outcome is Outcome.SUCCESS:
        outcome = Outcome.GENERIC_ERROR
    return LineEvent(outcome, m.group(1), sig)


RULES: tuple[LineRule, ...] = (
    LineRule(
        "workshop_result",
        re.compile(r"\[AppID \d+\] Download item (\d+) result : (.+)"),
        _workshop_result,
    ),
    LineRule(
        "staged_validation_item",
        re.compile(r"Staged file validation failed.*?item (\d+)", re.IGNORECASE),
        lambda m: LineEvent(
            Outcome.VALIDATION_FAILED,
            m.group(1),
            Signal.VALIDATION,
            updates_context=False,
        ),
    ),
    LineRule(
        "staged_validation",
        re.compile(r"Staged file validation failed|Missing update files", re.IGNORECASE),
        lambda m: LineEvent(Outcome.VALIDATION_FAILED, None, Signal.VALIDATION),
    ),
    LineRule(
        "patch_state_lock",
        re.compile(
            r"Failed to write patch state file \(File locked\)", re.IGNORECASE
        ),
        lambda m: LineEvent(Outcome.LOCK_CONTENDED, None, Signal.LOCK),
    ),
    LineRule(
        "console_success",
        re.compile(r"Success\. Downloaded item (\d+)"),
        lambda m: LineEvent(Outcome.SUCCESS, m.group(1)),
    ),
    LineRule(
        "console_error",
        re.compile(r"ERROR! Download item (\d+) failed \(([^)]+)\)"),
        _console_error,
    ),
    LineRule(
        "console_timeout",
        re.compile(r"Timeout downloading item (\d+)"),
        lambda m: LineEvent(Outcome.TIMEOUT, m.group(1), Signal.TIMEOUT),
    ),
    LineRule(
        "rate_limit_keyword",
        re.compile(r"rate.?limit|too many requests|throttled", re.IGNORECASE),
        lambda m: LineEvent(None, None, Signal.RATE_LIMIT),
        exclusive=False,
    ),
)


def match_line(line: str) -> list[LineEvent]:
    """Returns the events a line produces: at most one exclusive event plus signals."""
    events: list[LineEvent] = []
    matched_exclusive = False
    for rule in RULES:
        if rule.exclusive and matched_exclusive:
            continue
        event = rule.match(line)
        if event is None:
            continue
        events.append(event)
        if rule.exclusive:
            matched_exclusive = True
    return events


def classify_log(text: str, chunk: Sequence[str]) -> ClassifiedLog:
    """
    Classifies one instance's log for the items of its chunk.

    Items never mentioned stay Unknown. A contextless line only changes the most
    recently seen item, and only while that item is still GenericError or
    Unknown; the item it lands on may belong to an earlier download than the
    one the line was really about.
    """
    result = ClassifiedLog(outcomes=dict.fromkeys(chunk, Outcome.UNKNOWN))
    outcomes = result.outcomes
    last_id: str | None = None

    for line in text.splitlines():
        for event in match_line(line):
            result.signals |= event.signal
            if event.outcome is None:
                continue

            if event.item_id is None:
                if last_id in outcomes and outcomes[last_id] in (
                    Outcome.GENERIC_ERROR,
                    Outcome.UNKNOWN,
                ):
                    outcomes[last_id] = event.outcome
                continue

            if event.updates_context:
                last_id = event.item_id
            if event.outcome is Outcome.SUCCESS:
                result.success_lines += 1
            else:
                result.failure_lines += 1

            current = outcomes.get(event.item_id)
            if current is None:
                continue
            if event.outcome is Outcome.GENERIC_ERROR and current.is_specific_failure:
                continue
            outcomes[event.item_id] = event.outcome

    return result


def classify_log_file(path: Path, chunk: Sequence[str]) -> ClassifiedLog:
    """Reads and classifies a log file. An unreadable log leaves every item Unknown."""
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        log.warning(f"[yellow]Could not open log for parsing: {path} ({e})[/yellow]")
        return ClassifiedLog(outcomes=dict.fromkeys(chunk, Outcome.UNKNOWN))
    return classify_log(text, chunk)
