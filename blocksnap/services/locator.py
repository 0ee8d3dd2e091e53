"""Iterative refinement of a block estimate against real block timestamps.

Each iteration costs one ``block_by_number`` round trip. The residual between
the fetched timestamp and the target is converted back into a block offset
with the network's average block time, and the guess is moved by that offset
(clamped to ``[0, current height]``). The loop ends when:

* the residual is within tolerance: result is ``verified``;
* the iteration budget runs out: best-so-far, ``estimated``;
* a proposal revisits a block already fetched: best-so-far, ``estimated``.

"Best-so-far" is the fetched block with the smallest absolute residual.
"""
from __future__ import annotations

import asyncio
import logging

from ..config import LocatorConfig
from ..errors import LocateFailed, NotFoundError, TransportError
from ..models import (
    BlockEstimate,
    BlockReference,
    Confidence,
    NetworkDescriptor,
)
from .block_time import BlockTimeModel
from .estimator import round_half_up
from .retry import call_with_retries

logger = logging.getLogger(__name__)


class BlockLocator:
    def __init__(
        self,
        block_times: BlockTimeModel | None = None,
        config: LocatorConfig | None = None,
    ) -> None:
        self._block_times = block_times or BlockTimeModel()
        self._config = config or LocatorConfig()

    def settings(self, network: NetworkDescriptor) -> LocatorConfig:
        return network.locator or self._config

    def default_tolerance(self, network: NetworkDescriptor) -> float:
        """Configured tolerance, else one block duration (at least 1s)."""
        configured = self.settings(network).tolerance_seconds
        if configured is not None:
            return configured
        return max(1.0, self._block_times.estimate_block_time_seconds(network))

    async def _fetch_block(
        self,
        network: NetworkDescriptor,
        block_number: int,
        cancel_event: asyncio.Event | None,
    ) -> BlockReference:
        settings = self.settings(network)
        try:
            return await call_with_retries(
                lambda: network.client.block_by_number(block_number),
                what=f"block_by_number({block_number})",
                chain_id=network.chain_id,
                attempts=settings.fetch_attempts,
                timeout=settings.rpc_timeout,
                backoff_seconds=settings.retry_backoff_seconds,
                cancel_event=cancel_event,
            )
        except NotFoundError:
            raise
        except TransportError as e:
            raise LocateFailed(
                f"Could not fetch block {block_number}: {e}", network.chain_id
            ) from e

    async def locate(
        self,
        network: NetworkDescriptor,
        target_timestamp: int,
        initial_estimate: BlockEstimate,
        current_block: BlockReference,
        tolerance_seconds: float | None = None,
        max_iterations: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BlockEstimate:
        """Refine ``initial_estimate`` until its timestamp is within tolerance.

        Returns a ``verified`` estimate on success and a best-effort
        ``estimated`` one otherwise; only a failing RPC raises.

        Raises:
            LocateFailed: a block fetch kept failing after retries.
            NotFoundError: the provider does not have a requested block.
            Cancelled: ``cancel_event`` was set.
        """
        if initial_estimate.is_verified:
            return initial_estimate

        if tolerance_seconds is None:
            tolerance_seconds = self.default_tolerance(network)
        if max_iterations is None:
            max_iterations = self.settings(network).max_iterations
        block_time = self._block_times.estimate_block_time_seconds(network)

        guess = min(max(0, initial_estimate.block_number), current_block.block_number)
        visited: set[int] = set()
        best: BlockReference | None = None
        stop_reason = "max_iterations"
        iterations = 0

        while iterations < max_iterations:
            block = await self._fetch_block(network, guess, cancel_event)
            iterations += 1
            visited.add(guess)

            residual = block.timestamp - target_timestamp
            if best is None or abs(residual) < abs(best.timestamp - target_timestamp):
                best = block

            logger.debug(
                "chain %s iteration %d: block %d residual %ds",
                network.chain_id, iterations, guess, residual,
            )

            if abs(residual) <= tolerance_seconds:
                return BlockEstimate(
                    block_number=block.block_number,
                    confidence=Confidence.VERIFIED,
                    timestamp=block.timestamp,
                    target_timestamp=target_timestamp,
                    iterations=iterations,
                    stop_reason="tolerance",
                )

            offset = round_half_up(residual / block_time)
            next_guess = min(max(0, guess - offset), current_block.block_number)
            if next_guess in visited:
                stop_reason = "oscillation"
                break
            guess = next_guess

        if best is None:
            # max_iterations < 1: nothing fetched, keep the arithmetic guess.
            return initial_estimate

        logger.info(
            "chain %s: tolerance %.1fs not met after %d iterations (%s), "
            "best block %d is %ds off",
            network.chain_id, tolerance_seconds, iterations, stop_reason,
            best.block_number, best.timestamp - target_timestamp,
        )
        return BlockEstimate(
            block_number=best.block_number,
            confidence=Confidence.ESTIMATED,
            timestamp=best.timestamp,
            target_timestamp=target_timestamp,
            iterations=iterations,
            stop_reason=stop_reason,
        )
