"""Multi-chain orchestration: one independent pipeline per network."""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import Awaitable, Callable, Sequence

from ..config import LocatorConfig
from ..errors import InvalidRequest, LocateTimeout, SnapshotError
from ..models import (
    BlockEstimate,
    BlockReference,
    Confidence,
    EntityReads,
    NetworkDescriptor,
    NetworkResult,
    QueryResult,
    ReadResult,
    Snapshot,
    SnapshotRequest,
)
from .assembler import SnapshotAssembler
from .batch_reader import BatchReader
from .block_time import BlockTimeModel
from .estimator import BlockEstimator
from .locator import BlockLocator
from .retry import call_with_retries

logger = logging.getLogger(__name__)


def _validate(request: SnapshotRequest) -> None:
    if not request.networks:
        raise InvalidRequest("At least one network is required")

    chain_ids = [n.chain_id for n in request.networks]
    if len(set(chain_ids)) != len(chain_ids):
        raise InvalidRequest(f"Duplicate networks in request: {chain_ids}")

    missing_client = [n.chain_id for n in request.networks if n.client is None]
    if missing_client:
        raise InvalidRequest(f"Networks without an RPC client: {missing_client}")

    unknown = set(request.reads_by_network) - set(chain_ids)
    if unknown:
        raise InvalidRequest(
            f"Reads supplied for networks not in the request: {sorted(unknown)}"
        )


class MultiChainCoordinator:
    """Run current block → estimate → locate → read → assemble per network."""

    def __init__(
        self,
        config: LocatorConfig | None = None,
        block_times: BlockTimeModel | None = None,
    ) -> None:
        self._config = config or LocatorConfig()
        block_times = block_times or BlockTimeModel()
        self.estimator = BlockEstimator(block_times)
        self.locator = BlockLocator(block_times, self._config)
        self.reader = BatchReader(self._config)
        self.assembler = SnapshotAssembler()

    async def _current_block(
        self, network: NetworkDescriptor, cancel_event: asyncio.Event | None
    ) -> BlockReference:
        settings = network.locator or self._config
        return await call_with_retries(
            network.client.current_block,
            what="current_block",
            chain_id=network.chain_id,
            attempts=settings.fetch_attempts,
            timeout=settings.rpc_timeout,
            backoff_seconds=settings.retry_backoff_seconds,
            cancel_event=cancel_event,
        )

    async def _locate(
        self,
        network: NetworkDescriptor,
        target_timestamp: int,
        cancel_event: asyncio.Event | None,
    ) -> BlockEstimate:
        current = await self._current_block(network, cancel_event)
        estimate = self.estimator.estimate(network, target_timestamp, current)
        return await self.locator.locate(
            network,
            target_timestamp,
            estimate,
            current,
            cancel_event=cancel_event,
        )

    async def locate_block(
        self, network: NetworkDescriptor, target_timestamp: int
    ) -> BlockEstimate:
        """Find the block closest to ``target_timestamp`` without reading state.

        Raises:
            SnapshotError: the network could not be searched.
        """
        return await self._locate(network, target_timestamp, None)

    async def _pinned_block(
        self,
        network: NetworkDescriptor,
        block_number: int,
        cancel_event: asyncio.Event | None,
    ) -> BlockEstimate:
        settings = network.locator or self._config
        block = await call_with_retries(
            functools.partial(network.client.block_by_number, block_number),
            what=f"block_by_number({block_number})",
            chain_id=network.chain_id,
            attempts=settings.fetch_attempts,
            timeout=settings.rpc_timeout,
            backoff_seconds=settings.retry_backoff_seconds,
            cancel_event=cancel_event,
        )
        return BlockEstimate(
            block_number=block.block_number,
            confidence=Confidence.VERIFIED,
            timestamp=block.timestamp,
            stop_reason="pinned",
        )

    def _assemble(
        self, entities: tuple[EntityReads, ...], results: Sequence[ReadResult]
    ) -> list[Snapshot]:
        snapshots: list[Snapshot] = []
        offset = 0
        for entity in entities:
            count = len(entity.descriptors)
            snapshots.extend(
                self.assembler.assemble(
                    entity.descriptors, results[offset : offset + count], entity.shape
                )
            )
            offset += count
        return snapshots

    async def _run_pipeline(
        self,
        network: NetworkDescriptor,
        find_block: Callable[[], Awaitable[BlockEstimate]],
        entities: tuple[EntityReads, ...],
        cancel_event: asyncio.Event | None,
    ) -> NetworkResult:
        resolved: BlockEstimate | None = None
        warnings: list[SnapshotError] = []
        try:
            resolved = await find_block()
            if not resolved.is_verified:
                warnings.append(
                    LocateTimeout(
                        f"Block {resolved.block_number} is approximate "
                        f"({resolved.stop_reason}, {resolved.residual_seconds}s off)",
                        network.chain_id,
                        estimate=resolved,
                    )
                )

            descriptors = [d for entity in entities for d in entity.descriptors]
            outcome = await self.reader.read_at(
                network, resolved.block_number, descriptors, cancel_event
            )
            if outcome.error is not None:
                return NetworkResult(
                    chain_id=network.chain_id,
                    resolved_block=resolved,
                    errors=(outcome.error,),
                    warnings=tuple(warnings),
                )

            snapshots = self._assemble(entities, outcome.results)
        except SnapshotError as e:
            logger.error("Network %s pipeline failed: %s", network.chain_id, e)
            return NetworkResult(
                chain_id=network.chain_id,
                resolved_block=resolved,
                errors=(e,),
                warnings=tuple(warnings),
            )
        except Exception as e:
            logger.exception("Unexpected failure on network %s", network.chain_id)
            return NetworkResult(
                chain_id=network.chain_id,
                resolved_block=resolved,
                errors=(SnapshotError(f"Unexpected error: {e!r}", network.chain_id),),
                warnings=tuple(warnings),
            )

        logger.info(
            "Network %s: block %d (%s), %d snapshots",
            network.chain_id, resolved.block_number, resolved.confidence, len(snapshots),
        )
        return NetworkResult(
            chain_id=network.chain_id,
            resolved_block=resolved,
            snapshots=tuple(snapshots),
            warnings=tuple(warnings),
        )

    async def resolve(
        self,
        request: SnapshotRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> QueryResult:
        """Resolve a block and read snapshots on every requested network.

        Networks run concurrently and fail independently; each outcome lands
        in ``QueryResult.per_network`` keyed by chain id. Setting
        ``cancel_event`` stops pipelines before their next RPC call.

        Raises:
            InvalidRequest: empty or inconsistent request.
        """
        _validate(request)

        results = await asyncio.gather(
            *(
                self._run_pipeline(
                    network,
                    functools.partial(
                        self._locate, network, request.target_timestamp, cancel_event
                    ),
                    tuple(request.reads_by_network.get(network.chain_id, ())),
                    cancel_event,
                )
                for network in request.networks
            )
        )
        return QueryResult(
            target_timestamp=request.target_timestamp,
            per_network={r.chain_id: r for r in results},
        )

    async def read_at_block(
        self,
        network: NetworkDescriptor,
        block_number: int,
        entities: Sequence[EntityReads] = (),
        cancel_event: asyncio.Event | None = None,
    ) -> NetworkResult:
        """Read snapshots at a block the caller already knows.

        The block is fetched once so the result carries its real timestamp;
        no estimate or search runs. Failures land in ``NetworkResult.errors``
        the same way they do in :meth:`resolve`.

        Raises:
            InvalidRequest: negative block number or a network without a client.
        """
        if block_number < 0:
            raise InvalidRequest(f"Block number must be >= 0, got {block_number}")
        if network.client is None:
            raise InvalidRequest(f"Networks without an RPC client: [{network.chain_id}]")

        return await self._run_pipeline(
            network,
            functools.partial(self._pinned_block, network, block_number, cancel_event),
            tuple(entities),
            cancel_event,
        )
