"""In-memory state store for development and testing."""

from __future__ import annotations

from deployer.domain.models.state import DeploymentState
from deployer.domain.ports.state_store import StateStore
from deployer.infrastructure.persistence.file_store import decode_state


class InMemoryStateStore(StateStore):
    """Holds the serialized state so tests go through the same codec as the file store."""

    def __init__(self, raw: str | None = None) -> None:
        self._raw = raw
        self.save_count = 0

    def load(self) -> DeploymentState | None:
        if self._raw is None:
            return None
        return decode_state(self._raw, "memory")

    def save(self, state: DeploymentState) -> None:
        self._raw = state.to_json()
        self.save_count += 1

    def reset(self) -> None:
        self._raw = None

    @property
    def raw(self) -> str | None:
        """The serialized record as it would appear on disk."""
        return self._raw
