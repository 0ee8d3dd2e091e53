"""Unit tests for the block-time model."""
from __future__ import annotations

import math

import pytest

from blocksnap.errors import EstimationImpossible
from blocksnap.models import BlockReference, NetworkDescriptor
from blocksnap.services.block_time import DEFAULT_BLOCK_TIMES, BlockTimeModel


class TestEstimateBlockTime:
    def test_descriptor_value_wins(self) -> None:
        model = BlockTimeModel(overrides={1: 11.0})
        network = NetworkDescriptor(chain_id=1, average_block_time_seconds=13.0)
        assert model.estimate_block_time_seconds(network) == 13.0

    def test_override_before_default(self) -> None:
        model = BlockTimeModel(overrides={1: 11.0})
        assert model.estimate_block_time_seconds(NetworkDescriptor(chain_id=1)) == 11.0

    def test_known_defaults(self) -> None:
        model = BlockTimeModel()
        for chain_id, seconds in DEFAULT_BLOCK_TIMES.items():
            assert model.estimate_block_time_seconds(NetworkDescriptor(chain_id)) == seconds

    def test_unknown_chain_raises(self) -> None:
        with pytest.raises(EstimationImpossible, match="No block time known"):
            BlockTimeModel().estimate_block_time_seconds(NetworkDescriptor(chain_id=424242))

    @pytest.mark.parametrize("bad", [0.0, -2.0, math.nan, math.inf])
    def test_invalid_value_raises(self, bad: float) -> None:
        network = NetworkDescriptor(chain_id=1, average_block_time_seconds=bad)
        with pytest.raises(EstimationImpossible):
            BlockTimeModel().estimate_block_time_seconds(network)


class TestFromReferences:
    def test_average(self) -> None:
        older = BlockReference(block_number=100, timestamp=1_000)
        newer = BlockReference(block_number=150, timestamp=1_600)
        assert BlockTimeModel.from_references(older, newer) == 12.0

    def test_same_block_raises(self) -> None:
        ref = BlockReference(block_number=100, timestamp=1_000)
        with pytest.raises(EstimationImpossible):
            BlockTimeModel.from_references(ref, ref)
