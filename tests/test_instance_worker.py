import pytest

from tests.helpers import posix_only
from workshop_cli.core.instance_worker import InstanceWorker, WorkerState
from workshop_cli.models.outcome import Outcome
from workshop_cli.storage.destination import SharedDestination
from workshop_cli.storage.isolation import IsolationManager

pytestmark = posix_only


def make_worker(config, store, slot: int = 0) -> InstanceWorker:
    isolation = IsolationManager(config.path("instances_root"), config.app_id)
    destination = SharedDestination(config.path("shared_root"), config.app_id)
    return InstanceWorker(slot, config, isolation, destination, store)


@pytest.mark.asyncio
async def test_chunk_is_downloaded_and_reconciled(make_config, store, tool_plan):
    tool_plan()
    config = make_config()
    worker = make_worker(config, store, slot=1)

    report = await worker.run(["1000001", "1000002"], pass_number=1)

    assert report.state == WorkerState.RECONCILED.value
    assert report.exit_code == 0
    assert not report.hard_timeout
    assert report.final == {"1000001": Outcome.SUCCESS, "1000002": Outcome.SUCCESS}
    assert report.log_path.name == "instance_p1_t1.log"
    assert worker.reconciler.destination.is_present("1000001")
    assert not worker.isolation.item_dir(1, "1000001").exists()
    assert not worker.script_path().exists()
    staging = worker.isolation.slot_dir(1) / "steamapps" / "workshop" / "downloads"
    assert not any(staging.iterdir())
    assert store.check_invariant()


@pytest.mark.asyncio
async def test_hard_timeout_marks_unfinished_items(make_config, store, tool_plan):
    tool_plan({"1000002": "hang"})
    config = make_config(base_timeout_per_item=1.0)
    worker = make_worker(config, store)

    report = await worker.run(["1000001", "1000002", "1000003"], pass_number=1)

    assert report.hard_timeout
    assert report.duration_s < 30
    # The item finished before the hang is on disk, so it still counts.
    assert report.final == {
        "1000001": Outcome.SUCCESS,
        "1000002": Outcome.TIMEOUT,
        "1000003": Outcome.TIMEOUT,
    }


@pytest.mark.asyncio
async def test_lock_and_rate_limit_outcomes(make_config, store, tool_plan):
    tool_plan({"1000001": "lock", "1000002": "ratelimit"})
    worker = make_worker(make_config(), store)

    report = await worker.run(["1000001", "1000002", "1000003"], pass_number=2)

    assert report.final["1000001"] is Outcome.LOCK_CONTENDED
    assert report.final["1000002"] is Outcome.RATE_LIMITED
    assert report.final["1000003"] is Outcome.SUCCESS
    assert store.consume_rate_limit() is True


@pytest.mark.asyncio
async def test_success_claim_without_files(make_config, store, tool_plan):
    tool_plan({"1000001": "claim"})
    worker = make_worker(make_config(), store)

    report = await worker.run(["1000001"], pass_number=1)

    assert report.classified.outcome("1000001") is Outcome.SUCCESS
    assert report.final["1000001"] is Outcome.VALIDATION_FAILED
    assert "1000001" in store.discrepancies()


@pytest.mark.asyncio
async def test_launch_failure_abandons_the_chunk(make_config, store, tmp_path):
    config = make_config(tool_command=str(tmp_path / "no-such-steamcmd"))
    worker = make_worker(config, store)
    store.mark_dispatched("1000001")

    report = await worker.run(["1000001"], pass_number=1)

    assert report.abandoned
    assert report.state == WorkerState.ABANDONED.value
    assert report.final == {}
    assert store.outcome("1000001") is Outcome.UNKNOWN
    assert not worker.script_path().exists()


@pytest.mark.asyncio
async def test_script_failure_abandons_the_chunk(make_config, store, tmp_path, tool_plan):
    tool_plan()
    blocker = tmp_path / "temp_scripts"
    blocker.write_text("not a directory")
    worker = make_worker(make_config(scripts_dir=str(blocker)), store)

    report = await worker.run(["1000001"], pass_number=1)

    assert report.abandoned
    assert store.outcome("1000001") is Outcome.UNKNOWN
