"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable, Sequence

import pytest

from blocksnap.config import AppConfig, LocatorConfig, NetworkConfig
from blocksnap.errors import NotFoundError, TransportError
from blocksnap.models import (
    BlockReference,
    NetworkDescriptor,
    ReadDescriptor,
    ReadResult,
    ReadStatus,
)


# ---------------------------------------------------------------------------
# Fake RPC client
# ---------------------------------------------------------------------------


class ScriptedRpcClient:
    """In-memory RpcClient.

    Block timestamps come from ``timestamp_of(block_number)``. Failures are
    scripted as queues of exceptions consumed one per call.
    """

    def __init__(
        self,
        head: int,
        timestamp_of: Callable[[int], int],
        read_values: Callable[[ReadDescriptor], bytes | int | None] | None = None,
    ) -> None:
        self.head = head
        self.timestamp_of = timestamp_of
        self.read_values = read_values or (lambda d: 0)
        self.current_failures: list[Exception] = []
        self.block_failures: list[Exception] = []
        self.batch_failures: list[Exception] = []
        self.fetched: list[int] = []
        self.batch_calls: list[tuple[int, int]] = []

    async def current_block(self) -> BlockReference:
        if self.current_failures:
            raise self.current_failures.pop(0)
        return BlockReference(self.head, self.timestamp_of(self.head))

    async def block_by_number(self, block_number: int) -> BlockReference:
        if self.block_failures:
            raise self.block_failures.pop(0)
        if block_number > self.head:
            raise NotFoundError(f"Block {block_number} not found")
        self.fetched.append(block_number)
        return BlockReference(block_number, self.timestamp_of(block_number))

    async def batch_read(
        self, block_number: int, descriptors: Sequence[ReadDescriptor]
    ) -> list[ReadResult]:
        self.batch_calls.append((block_number, len(descriptors)))
        if self.batch_failures:
            raise self.batch_failures.pop(0)
        results = []
        for index, d in enumerate(descriptors):
            value = self.read_values(d)
            if value is None:
                results.append(ReadResult(index, ReadStatus.FAILED))
            else:
                results.append(ReadResult(index, ReadStatus.OK, value))
        return results


@pytest.fixture()
def make_client() -> type[ScriptedRpcClient]:
    return ScriptedRpcClient


@pytest.fixture()
def rate_limited() -> Callable[[int], list[Exception]]:
    return lambda count: [TransportError("rate limited") for _ in range(count)]


@pytest.fixture()
def fast_locator() -> LocatorConfig:
    return LocatorConfig(
        tolerance_seconds=None,
        max_iterations=6,
        rpc_timeout=1.0,
        fetch_attempts=3,
        batch_attempts=3,
        retry_backoff_seconds=0.0,
    )


@pytest.fixture()
def ethereum_client() -> ScriptedRpcClient:
    # 12s blocks; head 18,500,000 at 1,700,000,000.
    return ScriptedRpcClient(
        head=18_500_000,
        timestamp_of=lambda n: 1_700_000_000 - (18_500_000 - n) * 12,
    )


@pytest.fixture()
def ethereum(
    ethereum_client: ScriptedRpcClient, fast_locator: LocatorConfig
) -> NetworkDescriptor:
    return NetworkDescriptor(
        chain_id=1,
        name="ethereum",
        average_block_time_seconds=12.0,
        client=ethereum_client,
        locator=fast_locator,
    )


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_network_config(fast_locator: LocatorConfig) -> NetworkConfig:
    return NetworkConfig(
        chain_id=1,
        name="ethereum",
        average_block_time_seconds=12.0,
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        locator=fast_locator,
    )


@pytest.fixture()
def sample_app_config(fast_locator: LocatorConfig) -> AppConfig:
    return AppConfig(
        locator=fast_locator,
        networks={
            "ethereum": NetworkConfig(
                chain_id=1,
                name="ethereum",
                average_block_time_seconds=12.0,
                rpc_endpoints=("https://eth.example.com",),
                locator=fast_locator,
            ),
            "base": NetworkConfig(
                chain_id=8453,
                name="base",
                average_block_time_seconds=2.0,
                rpc_endpoints=("https://base.example.com",),
                locator=fast_locator,
            ),
        },
    )


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    locator:
      tolerance_seconds: 12
      max_iterations: 5
      rpc_timeout: 3
    networks:
      ethereum:
        chain_id: 1
        average_block_time_seconds: 12
        rpc_endpoints: ["https://eth.example.com", "https://eth2.example.com"]
      arbitrum:
        chain_id: 42161
        rpc_endpoints: ["https://arb.example.com"]
        contracts:
          morpho: "0xABCDEF0000000000000000000000000000000001"
        locator:
          tolerance_seconds: 2
          max_iterations: 8
    api:
      host: 0.0.0.0
      port: 9000
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Sample on-chain data
# ---------------------------------------------------------------------------

MARKET_ID = "0x" + "ab" * 32
USER = "0x1111111111111111111111111111111111111111"


@pytest.fixture()
def market_id() -> str:
    return MARKET_ID


@pytest.fixture()
def user() -> str:
    return USER
