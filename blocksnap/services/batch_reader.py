"""One batched contract read per network, pinned to a block."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from ..config import LocatorConfig
from ..errors import TransportError
from ..models import NetworkDescriptor, ReadDescriptor, ReadResult, ReadStatus
from .retry import call_with_retries

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchReadOutcome:
    """Positional results plus the transport error if the whole batch failed."""

    results: tuple[ReadResult, ...]
    error: TransportError | None = None


def _all_failed(count: int) -> tuple[ReadResult, ...]:
    return tuple(ReadResult(i, ReadStatus.FAILED) for i in range(count))


class BatchReader:
    def __init__(self, config: LocatorConfig | None = None) -> None:
        self._config = config or LocatorConfig()

    async def _checked_batch(
        self,
        network: NetworkDescriptor,
        block_number: int,
        descriptors: Sequence[ReadDescriptor],
    ) -> list[ReadResult]:
        results = await network.client.batch_read(block_number, descriptors)
        if len(results) != len(descriptors):
            raise TransportError(
                f"batch_read returned {len(results)} results "
                f"for {len(descriptors)} reads",
                network.chain_id,
            )
        ordered = sorted(results, key=lambda r: r.descriptor_index)
        if [r.descriptor_index for r in ordered] != list(range(len(descriptors))):
            raise TransportError(
                "batch_read returned descriptor indices "
                f"{[r.descriptor_index for r in results]} for {len(descriptors)} reads",
                network.chain_id,
            )
        return ordered

    async def read_at(
        self,
        network: NetworkDescriptor,
        block_number: int,
        descriptors: Sequence[ReadDescriptor],
        cancel_event: asyncio.Event | None = None,
    ) -> BatchReadOutcome:
        """Read every descriptor at ``block_number`` in one batched call.

        ``results[i]`` always answers ``descriptors[i]``. A batch that keeps
        failing yields all-``failed`` results and the error, never a raise.

        Raises:
            Cancelled: ``cancel_event`` was set before an attempt.
        """
        if not descriptors:
            return BatchReadOutcome(results=())

        settings = network.locator or self._config
        try:
            raw = await call_with_retries(
                lambda: self._checked_batch(network, block_number, descriptors),
                what=f"batch_read({len(descriptors)} reads @ {block_number})",
                chain_id=network.chain_id,
                attempts=settings.batch_attempts,
                timeout=settings.rpc_timeout,
                backoff_seconds=settings.retry_backoff_seconds,
                cancel_event=cancel_event,
            )
        except TransportError as e:
            logger.error(
                "Batch read on chain %s at block %d failed: %s",
                network.chain_id, block_number, e,
            )
            return BatchReadOutcome(results=_all_failed(len(descriptors)), error=e)

        results = tuple(raw)
        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.info(
                "chain %s block %d: %d of %d reads failed",
                network.chain_id, block_number, failed, len(results),
            )
        return BatchReadOutcome(results=results)
