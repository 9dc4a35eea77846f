"""JSON file state store with atomic replace-on-write."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import structlog
from pydantic import ValidationError

from deployer.domain.errors import CorruptStateError
from deployer.domain.models.state import DeploymentState
from deployer.domain.ports.state_store import StateStore


logger = structlog.get_logger(__name__)


def decode_state(raw: str | bytes, source: str) -> DeploymentState:
    """Decode a persisted record, mapping every decoding problem to CorruptStateError."""
    try:
        return DeploymentState.model_validate_json(raw)
    except ValidationError as e:
        raise CorruptStateError(
            f"Deployment state at {source} is corrupt ({e.error_count()} errors: "
            f"{e.errors()[0]['msg']}); inspect it or run `deploy --reset --force`"
        ) from e


class JsonFileStateStore(StateStore):
    """Keeps the deployment state in a single JSON file.

    Writes go to a temp file in the same directory which is fsynced and then
    renamed over the target, so a crash mid-save leaves the previous file.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> DeploymentState | None:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return None
        return decode_state(raw, str(self._path))

    def save(self, state: DeploymentState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.tmp.", dir=str(self._path.parent))
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(state.to_json())
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        finally:
            tmp_path.unlink(missing_ok=True)

        logger.debug(
            "state_saved",
            path=str(self._path),
            status=state.status.value,
            phase=state.current_phase.value if state.current_phase else None,
        )

    def reset(self) -> None:
        self._path.unlink(missing_ok=True)
        logger.info("state_deleted", path=str(self._path))
