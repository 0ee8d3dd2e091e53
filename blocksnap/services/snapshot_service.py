"""Config-driven entry points: locate blocks and read historical snapshots."""
from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Sequence

from ..chains.evm import EvmClient
from ..config import AppConfig
from ..errors import InvalidRequest
from ..interfaces.registry import ReadRegistry
from ..interfaces.rpc import RpcClient
from ..models import (
    BlockEstimate,
    EntityReads,
    NetworkDescriptor,
    NetworkResult,
    QueryResult,
    SnapshotRequest,
)
from ..protocols.morpho import MorphoRegistry
from .block_time import BlockTimeModel
from .coordinator import MultiChainCoordinator

logger = logging.getLogger(__name__)

PERIODS: dict[str, int] = {
    "day": 24 * 60 * 60,
    "week": 7 * 24 * 60 * 60,
    "month": 30 * 24 * 60 * 60,
}


def period_timestamps(now: int | None = None) -> dict[str, int]:
    """Target timestamps for the ``day``/``week``/``month`` look-backs."""
    if now is None:
        now = int(time.time())
    return {name: now - seconds for name, seconds in PERIODS.items()}


class SnapshotService:
    """Builds clients and the coordinator from :class:`AppConfig`."""

    def __init__(
        self,
        config: AppConfig,
        clients: Mapping[int, RpcClient] | None = None,
        registry: ReadRegistry | None = None,
    ) -> None:
        self._config = config

        self._networks: dict[int, NetworkDescriptor] = {}
        morpho_overrides: dict[int, str] = {}
        for net_cfg in config.networks.values():
            client: Any = (clients or {}).get(net_cfg.chain_id) or EvmClient(net_cfg)
            self._networks[net_cfg.chain_id] = NetworkDescriptor(
                chain_id=net_cfg.chain_id,
                name=net_cfg.name,
                average_block_time_seconds=net_cfg.average_block_time_seconds,
                client=client,
                locator=net_cfg.locator,
            )
            if "morpho" in net_cfg.contracts:
                morpho_overrides[net_cfg.chain_id] = net_cfg.contracts["morpho"]

        self._registry: ReadRegistry = registry or MorphoRegistry(morpho_overrides)
        self.coordinator = MultiChainCoordinator(config.locator, BlockTimeModel())

    @property
    def chain_ids(self) -> list[int]:
        return sorted(self._networks)

    def network(self, chain_id: int) -> NetworkDescriptor:
        try:
            return self._networks[chain_id]
        except KeyError:
            raise InvalidRequest(f"Unknown chain {chain_id}") from None

    async def locate_block(self, chain_id: int, target_timestamp: int) -> BlockEstimate:
        return await self.coordinator.locate_block(
            self.network(chain_id), target_timestamp
        )

    async def locate_blocks(
        self, target_timestamp: int, chain_ids: Sequence[int]
    ) -> QueryResult:
        """Locate blocks on several chains concurrently, no state reads."""
        return await self._resolve(target_timestamp, {c: [] for c in chain_ids})

    async def _resolve(
        self, target_timestamp: int, reads: Mapping[int, Sequence[EntityReads]]
    ) -> QueryResult:
        request = SnapshotRequest(
            target_timestamp=target_timestamp,
            networks=tuple(self.network(chain_id) for chain_id in reads),
            reads_by_network={k: tuple(v) for k, v in reads.items()},
        )
        return await self.coordinator.resolve(request)

    async def market_snapshots(
        self, target_timestamp: int, markets_by_chain: Mapping[int, Sequence[str]]
    ) -> QueryResult:
        reads = {
            chain_id: [self._registry.market_reads(chain_id, m) for m in market_ids]
            for chain_id, market_ids in markets_by_chain.items()
        }
        return await self._resolve(target_timestamp, reads)

    async def position_snapshots(
        self,
        target_timestamp: int,
        user_address: str,
        markets_by_chain: Mapping[int, Sequence[str]],
    ) -> QueryResult:
        reads = {
            chain_id: [
                self._registry.position_reads(chain_id, m, user_address)
                for m in market_ids
            ]
            for chain_id, market_ids in markets_by_chain.items()
        }
        return await self._resolve(target_timestamp, reads)

    async def market_snapshots_at_block(
        self, chain_id: int, block_number: int, market_ids: Sequence[str]
    ) -> NetworkResult:
        """Market snapshots at a known block; no timestamp search runs."""
        reads = [self._registry.market_reads(chain_id, m) for m in market_ids]
        return await self.coordinator.read_at_block(
            self.network(chain_id), block_number, reads
        )

    async def position_snapshots_at_block(
        self,
        chain_id: int,
        block_number: int,
        user_address: str,
        market_ids: Sequence[str],
    ) -> NetworkResult:
        reads = [
            self._registry.position_reads(chain_id, m, user_address)
            for m in market_ids
        ]
        return await self.coordinator.read_at_block(
            self.network(chain_id), block_number, reads
        )
