"""State store port interface (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from deployer.domain.models.state import DeploymentState


class StateStore(ABC):
    """Port for deployment state persistence.

    Implementations must make ``save`` atomic: the next ``load`` sees either
    the complete new state or the previous one, never a partial write.
    """

    @abstractmethod
    def load(self) -> DeploymentState | None:
        """Read the persisted state; None when nothing is stored.

        Raises CorruptStateError when the stored record cannot be decoded.
        """

    @abstractmethod
    def save(self, state: DeploymentState) -> None:
        """Atomically persist the state."""

    @abstractmethod
    def reset(self) -> None:
        """Delete the persisted state."""
