"""RPC client protocol: per-network blockchain access."""
from typing import Protocol, Sequence

from ..models import BlockReference, ReadDescriptor, ReadResult


class RpcClient(Protocol):
    """Abstract interface for the three calls the block search needs.

    Implementations must be safe for concurrent use.
    """

    async def current_block(self) -> BlockReference: ...

    async def block_by_number(self, block_number: int) -> BlockReference: ...

    async def batch_read(
        self, block_number: int, descriptors: Sequence[ReadDescriptor]
    ) -> list[ReadResult]: ...
