"""Unit tests for the JSON file and in-memory state stores."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from deployer.domain.errors import CorruptStateError
from deployer.domain.models.phase import Phase
from deployer.domain.models.state import DeploymentState, DeploymentStatus, Environment
from deployer.infrastructure.persistence.file_store import JsonFileStateStore
from deployer.infrastructure.persistence.in_memory import InMemoryStateStore


def _state() -> DeploymentState:
    state = DeploymentState.new(Environment.PRODUCTION)
    state.begin()
    return state


class TestJsonFileStateStore:
    def test_load_missing_returns_none(self, tmp_path: Path) -> None:
        assert JsonFileStateStore(tmp_path / "state.json").load() is None

    def test_save_and_load(self, tmp_path: Path) -> None:
        store = JsonFileStateStore(tmp_path / ".deploy" / "state.json")
        state = _state()
        store.save(state)
        assert store.load() == state

    def test_file_is_camel_case_json(self, tmp_path: Path) -> None:
        store = JsonFileStateStore(tmp_path / "state.json")
        store.save(_state())
        payload = json.loads(store.path.read_text(encoding="utf-8"))
        assert payload["status"] == "in_progress"
        assert payload["currentPhase"] == "1.1"
        assert payload["environment"] == "production"

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        store = JsonFileStateStore(tmp_path / "state.json")
        store.save(_state())
        store.save(_state())
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_crash_before_rename_keeps_previous_state(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        store = JsonFileStateStore(tmp_path / "state.json")
        before = _state()
        store.save(before)

        after = before.model_copy(deep=True)
        after.fail(Phase.ENV_VARS, "env_vars failed: missing: STRIPE_SECRET_KEY")

        def crash(src: str, dst: str) -> None:
            raise OSError("killed before rename")

        monkeypatch.setattr(os, "replace", crash)
        with pytest.raises(OSError, match="killed before rename"):
            store.save(after)
        monkeypatch.undo()

        loaded = store.load()
        assert loaded == before
        assert loaded is not None
        assert loaded.status == DeploymentStatus.IN_PROGRESS
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_truncated_file_is_corrupt(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        store = JsonFileStateStore(path)
        store.save(_state())
        path.write_text(path.read_text(encoding="utf-8")[:40], encoding="utf-8")
        with pytest.raises(CorruptStateError) as exc_info:
            store.load()
        assert exc_info.value.exit_code == 5

    def test_invariant_violation_is_corrupt(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        payload = json.loads(_state().to_json())
        payload["status"] = "failed"
        path.write_text(json.dumps(payload), encoding="utf-8")
        with pytest.raises(CorruptStateError, match="deploy --reset --force"):
            JsonFileStateStore(path).load()

    def test_reset(self, tmp_path: Path) -> None:
        store = JsonFileStateStore(tmp_path / "state.json")
        store.save(_state())
        store.reset()
        assert store.load() is None
        store.reset()  # missing file is fine


class TestInMemoryStateStore:
    def test_round_trip(self) -> None:
        store = InMemoryStateStore()
        state = _state()
        store.save(state)
        assert store.load() == state
        assert store.save_count == 1

    def test_holds_serialized_copy(self) -> None:
        store = InMemoryStateStore()
        state = _state()
        store.save(state)
        state.fail(Phase.ENV_VARS, "env_vars failed: missing: X")
        loaded = store.load()
        assert loaded is not None
        assert loaded.status == DeploymentStatus.IN_PROGRESS

    def test_corrupt_raw(self) -> None:
        with pytest.raises(CorruptStateError):
            InMemoryStateStore("{not json").load()

    def test_reset(self) -> None:
        store = InMemoryStateStore(_state().to_json())
        store.reset()
        assert store.load() is None
