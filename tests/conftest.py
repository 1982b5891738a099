"""Shared fixtures: an engine config rooted in ``tmp_path`` and a scripted fake SteamCMD."""

import json

import pytest

from tests.fake_steamcmd import PLAN_ENV
from tests.helpers import engine_settings
from workshop_cli.models.config import EngineConfig
from workshop_cli.models.stats import ResultStore


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> EngineConfig:
        return EngineConfig(**engine_settings(tmp_path, **overrides))

    return _make


@pytest.fixture
def store():
    return ResultStore()


@pytest.fixture
def tool_plan(tmp_path, monkeypatch):
    """Sets the fake tool's behaviour; returns its state directory."""
    state_dir = tmp_path / "fake_state"
    state_dir.mkdir()

    def _set(items: dict[str, str] | None = None, default: str = "ok"):
        plan = {"items": items or {}, "default": default, "state_dir": str(state_dir)}
        monkeypatch.setenv(PLAN_ENV, json.dumps(plan))
        return state_dir

    return _set
