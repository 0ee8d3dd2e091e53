"""First-guess block number from a timestamp: arithmetic only, no I/O."""
from __future__ import annotations

import math

from ..models import BlockEstimate, BlockReference, Confidence, NetworkDescriptor
from .block_time import BlockTimeModel


def round_half_up(value: float) -> int:
    """Round to nearest, halves towards +inf."""
    return math.floor(value + 0.5)


class BlockEstimator:
    def __init__(self, block_times: BlockTimeModel | None = None) -> None:
        self._block_times = block_times or BlockTimeModel()

    def estimate(
        self,
        network: NetworkDescriptor,
        target_timestamp: int,
        current_block: BlockReference,
    ) -> BlockEstimate:
        """Estimate the block at ``target_timestamp`` counting back from ``current_block``.

        A target at or after the current block's timestamp resolves to the
        current block, verified. Never returns a negative block number.
        """
        delta_seconds = current_block.timestamp - target_timestamp
        if delta_seconds <= 0:
            return BlockEstimate(
                block_number=current_block.block_number,
                confidence=Confidence.VERIFIED,
                timestamp=current_block.timestamp,
                target_timestamp=target_timestamp,
                stop_reason="now",
            )

        block_time = self._block_times.estimate_block_time_seconds(network)
        estimated_blocks = round_half_up(delta_seconds / block_time)
        return BlockEstimate(
            block_number=max(0, current_block.block_number - estimated_blocks),
            confidence=Confidence.ESTIMATED,
            target_timestamp=target_timestamp,
            stop_reason="arithmetic",
        )
