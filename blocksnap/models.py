"""Data models: all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .config import LocatorConfig
from .errors import SnapshotError


class Confidence:
    ESTIMATED = "estimated"
    VERIFIED = "verified"


class ReadStatus:
    OK = "ok"
    FAILED = "failed"


class Shape:
    MARKET = "market"
    POSITION = "position"


@dataclass(frozen=True)
class BlockReference:
    """A block's real timestamp, as reported by an RPC provider."""

    block_number: int
    timestamp: int


@dataclass(frozen=True)
class BlockEstimate:
    """A block number plus how much we trust it.

    ``stop_reason`` records why the search ended: ``now``, ``arithmetic``,
    ``tolerance``, ``max_iterations``, ``oscillation`` or ``pinned`` (a block
    number the caller supplied).
    """

    block_number: int
    confidence: str = Confidence.ESTIMATED
    timestamp: int | None = None
    target_timestamp: int | None = None
    iterations: int = 0
    stop_reason: str = "arithmetic"

    @property
    def is_verified(self) -> bool:
        return self.confidence == Confidence.VERIFIED

    @property
    def residual_seconds(self) -> int | None:
        if self.timestamp is None or self.target_timestamp is None:
            return None
        return self.timestamp - self.target_timestamp


@dataclass(frozen=True)
class ReadDescriptor:
    """One contract read producing one snapshot field."""

    contract_address: str
    function_signature: str
    arguments: tuple[Any, ...] = ()
    output_types: tuple[str, ...] = ("uint256",)
    output_index: int = 0
    field: str = ""
    entity: str = ""


@dataclass(frozen=True)
class ReadResult:
    descriptor_index: int
    status: str
    value: bytes | int | None = None

    @property
    def ok(self) -> bool:
        return self.status == ReadStatus.OK


@dataclass(frozen=True)
class FieldWarning:
    """A field that could not be read and was substituted with zero."""

    entity: str
    field: str
    descriptor_index: int | None
    message: str


@dataclass(frozen=True)
class MarketSnapshot:
    entity: str
    total_supply_assets: int = 0
    total_supply_shares: int = 0
    total_borrow_assets: int = 0
    total_borrow_shares: int = 0
    last_update: int = 0
    fee: int = 0
    liquidity_assets: int = 0
    warnings: tuple[FieldWarning, ...] = ()


@dataclass(frozen=True)
class PositionSnapshot:
    entity: str
    supply_shares: int = 0
    supply_assets: int = 0
    borrow_shares: int = 0
    borrow_assets: int = 0
    collateral: int = 0
    warnings: tuple[FieldWarning, ...] = ()


Snapshot = MarketSnapshot | PositionSnapshot


@dataclass(frozen=True)
class EntityReads:
    """Descriptors for one market, or for one (market, user) pair."""

    shape: str
    entity: str
    descriptors: tuple[ReadDescriptor, ...]


@dataclass(frozen=True)
class NetworkDescriptor:
    """A network plus the RPC handle used to talk to it.

    ``locator`` left as ``None`` falls back to the service-wide search budget.
    """

    chain_id: int
    name: str = ""
    average_block_time_seconds: float | None = None
    client: Any = None
    locator: LocatorConfig | None = None


@dataclass(frozen=True)
class SnapshotRequest:
    target_timestamp: int
    networks: tuple[NetworkDescriptor, ...]
    reads_by_network: Mapping[int, tuple[EntityReads, ...]] = field(
        default_factory=dict
    )


@dataclass(frozen=True)
class NetworkResult:
    chain_id: int
    resolved_block: BlockEstimate | None = None
    snapshots: tuple[Snapshot, ...] = ()
    errors: tuple[SnapshotError, ...] = ()
    warnings: tuple[SnapshotError, ...] = ()

    @property
    def status(self) -> str:
        """``accurate``, ``approximate`` or ``unavailable``."""
        if self.resolved_block is None or (self.errors and not self.snapshots):
            return "unavailable"
        if self.resolved_block.is_verified and not self.errors:
            return "accurate"
        return "approximate"


@dataclass(frozen=True)
class QueryResult:
    target_timestamp: int
    per_network: dict[int, NetworkResult] = field(default_factory=dict)


MARKET_FIELDS = (
    "total_supply_assets",
    "total_supply_shares",
    "total_borrow_assets",
    "total_borrow_shares",
    "last_update",
    "fee",
)

# Position reads are followed by the market totals needed to price shares.
POSITION_FIELDS = (
    "supply_shares",
    "borrow_shares",
    "collateral",
    "total_supply_assets",
    "total_supply_shares",
    "total_borrow_assets",
    "total_borrow_shares",
)

SHAPE_FIELDS: dict[str, tuple[str, ...]] = {
    Shape.MARKET: MARKET_FIELDS,
    Shape.POSITION: POSITION_FIELDS,
}
