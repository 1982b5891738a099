import pytest

from tests.helpers import invocations, posix_only, put_item
from workshop_cli.core.backoff import RateLimitCooldown
from workshop_cli.core.pass_controller import PassController
from workshop_cli.exceptions import ToolNotFoundError
from workshop_cli.models.outcome import Outcome


def ids(n: int) -> list[str]:
    return [str(1_000_001 + i) for i in range(n)]


class RecordingProgress:
    def __init__(self):
        self.passes = []
        self.samples = []

    def start_pass(self, pass_number, total_passes, items, slots):
        self.passes.append((pass_number, items, slots))

    def update(self, counts, processed, total, slot_states):
        self.samples.append((processed, total, dict(slot_states)))


def test_plan_applies_skip_and_scope(make_config, store):
    controller = PassController(make_config(), store=store)
    put_item(controller.destination.content_dir, "1000002")

    items = controller.plan(ids(4), skip_existing=True, only_ids=["1000002", "1000003"])

    assert items == ["1000003"]
    assert store.outcome("1000001") is Outcome.SKIPPED
    assert store.outcome("1000002") is Outcome.SKIPPED
    assert store.outcome("1000004") is Outcome.SKIPPED
    assert store.counts()[Outcome.SKIPPED] == 3


def test_plan_without_skip_existing(make_config, store):
    controller = PassController(make_config(), store=store)
    put_item(controller.destination.content_dir, "1000002")
    assert controller.plan(ids(3), skip_existing=False) == ids(3)


def test_preflight_reports_missing_tool(make_config, tmp_path):
    controller = PassController(make_config(tool_command=str(tmp_path / "nope")))
    with pytest.raises(ToolNotFoundError):
        controller.preflight()


@pytest.mark.asyncio
async def test_nothing_to_do(make_config, store):
    controller = PassController(make_config(tool_command="definitely-not-installed"), store=store)
    items = controller.plan([])
    summary = await controller.run(items)
    assert summary.passes_run == 0
    assert summary.exit_code == 0


@posix_only
@pytest.mark.asyncio
async def test_clean_run(make_config, store, tool_plan):
    state = tool_plan()
    progress = RecordingProgress()
    controller = PassController(
        make_config(max_instances=2), store=store, progress=progress
    )

    summary = await controller.run(ids(5))

    assert summary.exit_code == 0
    assert summary.passes_run == 1
    assert summary.succeeded == 5
    assert summary.failures == []
    assert sorted(len(c) for c in invocations(state)) == [2, 3]
    assert progress.passes == [(1, 5, 2)]
    assert progress.samples[-1][:2] == (5, 5)
    assert store.check_invariant()


@posix_only
@pytest.mark.asyncio
async def test_hung_chunk_times_out_as_a_whole(make_config, store, tool_plan):
    all_ids = ids(10)
    tool_plan({all_ids[0]: "hang"})
    config = make_config(max_instances=3, max_retry_passes=0, base_timeout_per_item=1.0)
    controller = PassController(config, store=store)

    result = await controller.run_pass(all_ids, 3, 1)

    assert [len(c) for c in result.chunks] == [4, 3, 3]
    assert result.hard_timeout
    assert [r.hard_timeout for r in result.reports] == [True, False, False]
    counts = store.counts()
    assert counts[Outcome.TIMEOUT] == 4
    assert counts[Outcome.SUCCESS] == 6
    assert store.retry_set(all_ids) == all_ids[:4]


@posix_only
@pytest.mark.asyncio
async def test_lock_contention_survives_all_retries(make_config, store, tool_plan):
    state = tool_plan({"1000002": "lock"})
    config = make_config(max_instances=2, max_retry_passes=2)
    controller = PassController(config, store=store)

    summary = await controller.run(ids(4))

    assert summary.passes_run == 3
    assert summary.failures == [("1000002", Outcome.LOCK_CONTENDED)]
    assert summary.exit_code == 2
    calls = invocations(state)
    assert calls[2:] == [["1000002"], ["1000002"]]
    # Items that succeeded are never dispatched again.
    assert sum(call.count("1000001") for call in calls) == 1
    assert store.check_invariant()


@posix_only
@pytest.mark.asyncio
async def test_flaky_items_recover_with_fewer_instances(make_config, store, tool_plan):
    all_ids = ids(8)
    tool_plan({i: "flaky" for i in all_ids[:3]})
    config = make_config(max_instances=4, max_retry_passes=3)
    controller = PassController(config, store=store)

    summary = await controller.run(all_ids)

    assert summary.exit_code == 0
    assert summary.passes_run == 2
    assert summary.succeeded == 8
    log_dir = config.path("log_dir")
    assert (log_dir / "instance_p2_t0.log").exists()
    assert (log_dir / "instance_p2_t1.log").exists()
    assert not (log_dir / "instance_p2_t2.log").exists()


@posix_only
@pytest.mark.asyncio
async def test_success_claims_without_files(make_config, store, tool_plan):
    tool_plan({"1000001": "claim"})
    controller = PassController(make_config(max_retry_passes=1), store=store)

    summary = await controller.run(ids(2))

    assert summary.failures == [("1000001", Outcome.VALIDATION_FAILED)]
    assert "1000001" in summary.discrepancies


@posix_only
@pytest.mark.asyncio
async def test_rate_limit_applies_cooldown_before_retry(make_config, store, tool_plan):
    tool_plan({"1000001": "ratelimit"})
    slept = []

    async def fake_sleep(delay):
        slept.append(delay)

    config = make_config(max_retry_passes=2, rate_limit_backoff=5.0, max_backoff=600.0)
    cooldown = RateLimitCooldown(5.0, 600.0, sleep=fake_sleep)
    controller = PassController(config, store=store, cooldown=cooldown)

    summary = await controller.run(ids(3))

    assert slept == [10.0, 20.0]
    assert summary.failures == [("1000001", Outcome.RATE_LIMITED)]


@posix_only
@pytest.mark.asyncio
async def test_abandoned_chunks_end_as_generic_error(make_config, store, tmp_path, monkeypatch):
    config = make_config(tool_command=str(tmp_path / "missing-steamcmd"), max_retry_passes=1)
    controller = PassController(config, store=store)
    monkeypatch.setattr(controller, "preflight", lambda: None)

    summary = await controller.run(ids(3))

    assert summary.passes_run == 2
    assert [outcome for _, outcome in summary.failures] == [Outcome.GENERIC_ERROR] * 3
    assert set(summary.discrepancies) == set(ids(3))
    assert Outcome.UNKNOWN not in store.snapshot().values()
    assert store.check_invariant()
