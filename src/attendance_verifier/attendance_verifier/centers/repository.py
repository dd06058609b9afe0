from __future__ import annotations

from typing import Protocol, Sequence

from .model import Center


class CenterRepository(Protocol):
    """Read side of the configuration store; the engine never writes centers."""

    def list_centers(self) -> Sequence[Center]:
        """All configured centers in their declared order (active or not).

        Raises PersistenceTimeoutError when the store cannot be reached.
        """

        raise NotImplementedError
