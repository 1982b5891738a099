import json
from datetime import datetime

import pytest

from workshop_cli.exceptions import ItemSourceError
from workshop_cli.models.outcome import TERMINAL_OUTCOMES, Outcome
from workshop_cli.models.summary import RunSummary
from workshop_cli.storage.item_source import load_identifiers, parse_identifiers
from workshop_cli.storage.report import render_report, write_report
from workshop_cli.storage.retry_state import FailedIdsFile


def test_identifiers_from_imported_skins_json(tmp_path):
    path = tmp_path / "ImportedSkins.json"
    path.write_text(
        json.dumps(
            {
                "Skins": [
                    {"Item Shortname": "rifle.ak", "Skins": [1234567, "2345678"]},
                    {"Item Shortname": "hatchet", "Skins": ["3456789", "2345678"]},
                ],
                "Version": "12",
            }
        ),
        encoding="utf-8",
    )
    # Bare numbers are not quoted in JSON and are ignored, like short strings.
    assert load_identifiers(path) == ["2345678", "3456789"]


def test_identifiers_one_per_line():
    text = "1234567\n  2345678  \n\nnot an id\n1234567\n12345\n"
    assert parse_identifiers(text) == ["1234567", "2345678"]


def test_missing_item_list(tmp_path):
    with pytest.raises(ItemSourceError):
        load_identifiers(tmp_path / "missing.json")


def test_failed_ids_file(tmp_path):
    failed = FailedIdsFile(tmp_path / "failed_ids.txt")
    assert failed.load() == []
    assert failed.save(["3", "1", "3"]) == 2
    assert failed.load() == ["3", "1"]

    failed.path.write_text("# previous run\n\n7\n8\n7\n", encoding="utf-8")
    assert failed.load() == ["7", "8"]

    failed.save([])
    assert failed.exists()
    assert failed.load() == []


def make_summary(**kwargs) -> RunSummary:
    counts = dict.fromkeys(TERMINAL_OUTCOMES, 0)
    counts.update(
        {
            Outcome.SUCCESS: 5,
            Outcome.SKIPPED: 2,
            Outcome.TIMEOUT: 1,
            Outcome.LOCK_CONTENDED: 1,
        }
    )
    defaults = {
        "total_ids": 9,
        "dispatched": 7,
        "counts": counts,
        "failures": [("1000008", Outcome.TIMEOUT), ("1000009", Outcome.LOCK_CONTENDED)],
        "discrepancies": {"1000009": "log reported success but no files were found"},
        "passes_run": 2,
        "duration_s": 75.0,
        "started_at": datetime(2024, 5, 1, 12, 30, 0),
    }
    defaults.update(kwargs)
    return RunSummary(**defaults)


def test_report_contents():
    report = render_report(make_summary())
    assert "Date:                2024-05-01 12:30:00" in report
    assert "Total IDs:           9" in report
    assert "Failed (total):      2" in report
    assert "  Timeouts:          1" in report
    assert "1000008  [Timeout]" in report
    assert "1000009  [LockContended]" in report
    assert "--- Discrepancies ---" in report


def test_summary_exit_code():
    assert make_summary().exit_code == 2
    assert make_summary(failures=[]).exit_code == 0


def test_write_report(tmp_path):
    path = tmp_path / "out" / "download_report.txt"
    assert write_report(path, make_summary())
    assert path.read_text(encoding="utf-8").startswith("=== Workshop Download Report ===")


def test_write_report_failure_is_logged(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    assert write_report(blocker / "report.txt", make_summary()) is False
