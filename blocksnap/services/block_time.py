"""Average seconds-per-block per network."""
from __future__ import annotations

import math

from ..errors import EstimationImpossible
from ..models import BlockReference, NetworkDescriptor

DEFAULT_BLOCK_TIMES: dict[int, float] = {
    1: 12.0,  # Ethereum
    8453: 2.0,  # Base
    137: 2.0,  # Polygon
    130: 1.0,  # Unichain
    42161: 0.25,  # Arbitrum
    999: 1.0,  # HyperEVM
}


def _usable(value: float | None) -> bool:
    return value is not None and math.isfinite(value) and value > 0


class BlockTimeModel:
    """Resolve a network's block time: descriptor, then overrides, then defaults."""

    def __init__(self, overrides: dict[int, float] | None = None) -> None:
        self._overrides = dict(overrides or {})

    def estimate_block_time_seconds(self, network: NetworkDescriptor) -> float:
        """Return a positive block time or raise :class:`EstimationImpossible`."""
        candidates = (
            network.average_block_time_seconds,
            self._overrides.get(network.chain_id),
            DEFAULT_BLOCK_TIMES.get(network.chain_id),
        )
        for value in candidates:
            if value is None:
                continue
            if not _usable(value):
                raise EstimationImpossible(
                    f"Invalid average block time {value!r}", network.chain_id
                )
            return float(value)
        raise EstimationImpossible("No block time known", network.chain_id)

    @staticmethod
    def from_references(older: BlockReference, newer: BlockReference) -> float:
        """Average block time between two verified blocks."""
        blocks = newer.block_number - older.block_number
        seconds = newer.timestamp - older.timestamp
        if blocks <= 0 or seconds <= 0:
            raise EstimationImpossible(
                f"Cannot derive block time from blocks {older.block_number} "
                f"and {newer.block_number}"
            )
        return seconds / blocks
