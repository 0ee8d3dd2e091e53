"""Unit tests for iterative block refinement against scripted timestamps."""
from __future__ import annotations

import asyncio

import pytest

from blocksnap.config import LocatorConfig
from blocksnap.errors import Cancelled, LocateFailed, NotFoundError
from blocksnap.models import (
    BlockEstimate,
    BlockReference,
    Confidence,
    NetworkDescriptor,
)
from blocksnap.services.estimator import BlockEstimator
from blocksnap.services.locator import BlockLocator

T = 1_700_000_000
HEAD = 1_000_000


def _network(client, locator: LocatorConfig, block_time: float = 12.0) -> NetworkDescriptor:
    return NetworkDescriptor(
        chain_id=1,
        average_block_time_seconds=block_time,
        client=client,
        locator=locator,
    )


async def _locate(network: NetworkDescriptor, target: int, **kwargs) -> BlockEstimate:
    current = await network.client.current_block()
    estimate = BlockEstimator().estimate(network, target, current)
    return await BlockLocator().locate(network, target, estimate, current, **kwargs)


@pytest.fixture()
def slow_chain(make_client):
    # Real blocks are 10s apart while the model assumes 12s.
    return make_client(head=HEAD, timestamp_of=lambda n: T - (HEAD - n) * 10)


class TestLocate:
    @pytest.mark.asyncio
    async def test_verified_after_one_fetch(self, ethereum, ethereum_client) -> None:
        target = 1_700_000_000 - 50_000
        result = await _locate(ethereum, target)
        assert result.block_number == 18_495_833
        assert result.confidence == Confidence.VERIFIED
        assert result.iterations == 1
        assert result.residual_seconds == -4
        assert result.stop_reason == "tolerance"
        assert ethereum_client.fetched == [18_495_833]

    @pytest.mark.asyncio
    async def test_converges_on_irregular_block_times(
        self, slow_chain, fast_locator
    ) -> None:
        network = _network(slow_chain, fast_locator)
        result = await _locate(network, T - 12_000)
        assert result.is_verified
        assert slow_chain.fetched == [999_000, 998_833, 998_805, 998_801]
        assert result.block_number == 998_801
        assert result.iterations == 4
        assert abs(result.residual_seconds) <= 12

    @pytest.mark.asyncio
    async def test_iteration_budget_returns_best_so_far(
        self, slow_chain, fast_locator
    ) -> None:
        network = _network(slow_chain, fast_locator)
        result = await _locate(network, T - 12_000, max_iterations=2)
        assert result.confidence == Confidence.ESTIMATED
        assert result.stop_reason == "max_iterations"
        assert result.iterations == 2
        assert result.block_number == 998_833
        assert result.residual_seconds == 330

    @pytest.mark.asyncio
    async def test_oscillation_stops_early(self, make_client, fast_locator) -> None:
        # A 100s gap between blocks 100 and 101 makes the search bounce.
        client = make_client(
            head=200,
            timestamp_of=lambda n: n * 12 if n <= 100 else n * 12 + 100,
        )
        network = _network(client, fast_locator)
        result = await _locate(network, 1_250)
        assert result.stop_reason == "oscillation"
        assert not result.is_verified
        assert result.iterations == 2
        assert client.fetched == [96, 104]
        assert abs(result.residual_seconds) == 98

    @pytest.mark.asyncio
    async def test_explicit_zero_tolerance(self, make_client, fast_locator) -> None:
        client = make_client(head=HEAD, timestamp_of=lambda n: T - (HEAD - n) * 12)
        network = _network(client, fast_locator)
        result = await _locate(network, T - 1_200, tolerance_seconds=0)
        assert result.is_verified
        assert result.block_number == HEAD - 100
        assert result.residual_seconds == 0

    @pytest.mark.asyncio
    async def test_verified_input_is_returned_unchanged(self, ethereum, ethereum_client) -> None:
        verified = BlockEstimate(
            block_number=5, confidence=Confidence.VERIFIED, stop_reason="now"
        )
        current = BlockReference(18_500_000, 1_700_000_000)
        result = await BlockLocator().locate(ethereum, 1_700_000_000, verified, current)
        assert result is verified
        assert ethereum_client.fetched == []

    @pytest.mark.asyncio
    async def test_guess_is_clamped_to_head(self, ethereum, ethereum_client) -> None:
        current = BlockReference(18_500_000, 1_700_000_000)
        wild = BlockEstimate(block_number=99_000_000)
        result = await BlockLocator().locate(ethereum, 1_700_000_000 - 6, wild, current)
        assert ethereum_client.fetched[0] == 18_500_000
        assert result.is_verified


class TestLocateFailures:
    @pytest.mark.asyncio
    async def test_retries_transient_errors(
        self, ethereum, ethereum_client, rate_limited
    ) -> None:
        ethereum_client.block_failures = rate_limited(2)
        result = await _locate(ethereum, 1_700_000_000 - 50_000)
        assert result.is_verified
        assert ethereum_client.block_failures == []

    @pytest.mark.asyncio
    async def test_persistent_errors_raise_locate_failed(
        self, ethereum, ethereum_client, rate_limited
    ) -> None:
        ethereum_client.block_failures = rate_limited(3)
        with pytest.raises(LocateFailed) as exc_info:
            await _locate(ethereum, 1_700_000_000 - 50_000)
        assert exc_info.value.chain_id == 1

    @pytest.mark.asyncio
    async def test_not_found_propagates(self, ethereum, ethereum_client) -> None:
        ethereum_client.block_failures = [NotFoundError("pruned")]
        with pytest.raises(NotFoundError):
            await _locate(ethereum, 1_700_000_000 - 50_000)

    @pytest.mark.asyncio
    async def test_cancel_event(self, ethereum, ethereum_client) -> None:
        current = BlockReference(18_500_000, 1_700_000_000)
        event = asyncio.Event()
        event.set()
        with pytest.raises(Cancelled):
            await BlockLocator().locate(
                ethereum,
                1_700_000_000 - 50_000,
                BlockEstimate(block_number=18_495_833),
                current,
                cancel_event=event,
            )
        assert ethereum_client.fetched == []


class TestWorkedExample:
    @pytest.mark.asyncio
    async def test_one_fetch_within_fifteen_seconds(self, make_client, fast_locator) -> None:
        def timestamp_of(n: int) -> int:
            return 1_699_999_994 if n == 18_495_833 else 1_700_050_000 - (18_500_000 - n) * 12

        client = make_client(head=18_500_000, timestamp_of=timestamp_of)
        network = _network(client, fast_locator)
        result = await _locate(network, 1_700_000_000, tolerance_seconds=15)
        assert client.fetched == [18_495_833]
        assert result.block_number == 18_495_833
        assert result.is_verified
        assert result.timestamp == 1_699_999_994
