"""Exception taxonomy for block location and snapshot reads."""
from __future__ import annotations

from typing import Any


class SnapshotError(Exception):
    """Base class. ``chain_id`` is set when the failing network is known."""

    def __init__(self, message: str, chain_id: int | None = None) -> None:
        super().__init__(message)
        self.chain_id = chain_id

    def __str__(self) -> str:
        base = super().__str__()
        if self.chain_id is None:
            return base
        return f"[chain {self.chain_id}] {base}"


class EstimationImpossible(SnapshotError):
    """No usable block-time model for the network."""


class LocateTimeout(SnapshotError):
    """Tolerance not met within the iteration budget. Informational only."""

    def __init__(
        self, message: str, chain_id: int | None = None, estimate: Any = None
    ) -> None:
        super().__init__(message, chain_id)
        self.estimate = estimate


class LocateFailed(SnapshotError):
    """A block lookup kept failing; the network's search was abandoned."""


class TransportError(SnapshotError):
    """RPC call failed: network error, timeout, rate limit, JSON-RPC error."""


class NotFoundError(TransportError):
    """Requested block is above the provider's current height."""


class PartialReadFailure(SnapshotError):
    """Some reads in a batch failed. Surfaced as field warnings only."""


class Cancelled(SnapshotError):
    """The caller asked the resolve call to stop."""


class InvalidRequest(SnapshotError, ValueError):
    """Malformed request: caller-side programming error."""
