"""EVM JSON-RPC client with endpoint fallback support."""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any, Sequence

import aiohttp
import certifi

from ...config import NetworkConfig
from ...errors import NotFoundError, TransportError
from ...models import BlockReference, ReadDescriptor, ReadResult
from . import abi

logger = logging.getLogger(__name__)


class EvmClient:
    """EVM RPC client with automatic endpoint fallback.

    Satisfies :class:`blocksnap.interfaces.RpcClient`.
    """

    def __init__(self, config: NetworkConfig) -> None:
        self.chain_id = config.chain_id
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.locator.rpc_timeout
        self.multicall_address = config.contracts.get(
            "multicall3", abi.MULTICALL3_ADDRESS
        )
        self.current_rpc_index = 0

    def _advance_past(self, rpc_index: int) -> None:
        self.current_rpc_index = (rpc_index + 1) % len(self.endpoints)

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make RPC call with fallback to alternative endpoints.

        A failing endpoint moves ``current_rpc_index`` on, so the next call
        starts at a different endpoint even when the caller's deadline cut
        this one short.
        """
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        start_index = self.current_rpc_index
        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = self.current_rpc_index
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        rpc_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        if response.status != 200:
                            raise TransportError(
                                f"HTTP {response.status} from {rpc_url}",
                                self.chain_id,
                            )
                        result = await response.json()
                        if "error" in result:
                            raise TransportError(
                                f"RPC Error: {result['error']}", self.chain_id
                            )

                        if rpc_index != start_index:
                            logger.info("Switched to RPC endpoint: %s", rpc_url)

                        return result.get("result")
            except asyncio.CancelledError:
                # Earlier failures in this call already moved the index on.
                if attempt == 0:
                    logger.warning("RPC endpoint %s abandoned by caller", rpc_url)
                    self._advance_past(rpc_index)
                raise
            except (
                aiohttp.ClientError,
                asyncio.TimeoutError,
                OSError,
                TransportError,
                ValueError,
            ) as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                self._advance_past(rpc_index)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        raise TransportError(
            f"All RPC endpoints failed. Last error: {last_error}", self.chain_id
        )

    @staticmethod
    def _parse_block(block: dict[str, Any]) -> BlockReference:
        return BlockReference(
            block_number=int(block["number"], 16),
            timestamp=int(block["timestamp"], 16),
        )

    async def current_block(self) -> BlockReference:
        """Latest block number and timestamp."""
        block = await self.rpc_call("eth_getBlockByNumber", ["latest", False])
        if not block:
            raise TransportError("Provider returned no latest block", self.chain_id)
        return self._parse_block(block)

    async def block_by_number(self, block_number: int) -> BlockReference:
        """Real timestamp of a historical block."""
        block = await self.rpc_call(
            "eth_getBlockByNumber", [hex(block_number), False]
        )
        if block is None:
            raise NotFoundError(
                f"Block {block_number} not found", self.chain_id
            )
        return self._parse_block(block)

    async def batch_read(
        self, block_number: int, descriptors: Sequence[ReadDescriptor]
    ) -> list[ReadResult]:
        """Run all reads in one Multicall3 ``aggregate3`` call pinned to a block."""
        if not descriptors:
            return []

        call_data = abi.encode_aggregate3(descriptors)
        raw = await self.rpc_call(
            "eth_call",
            [
                {"to": self.multicall_address, "data": "0x" + call_data.hex()},
                hex(block_number),
            ],
        )
        if not isinstance(raw, str):
            raise TransportError("eth_call returned no data", self.chain_id)

        try:
            return abi.decode_aggregate3(
                bytes.fromhex(raw.removeprefix("0x")), len(descriptors)
            )
        except ValueError as e:
            raise TransportError(str(e), self.chain_id) from e
