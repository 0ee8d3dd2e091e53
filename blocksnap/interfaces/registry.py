"""Registry protocol: which reads describe a market or a position."""
from typing import Protocol

from ..models import EntityReads


class ReadRegistry(Protocol):
    """Abstract interface for building read descriptors for one network."""

    def market_reads(self, chain_id: int, market_id: str) -> EntityReads: ...

    def position_reads(
        self, chain_id: int, market_id: str, user_address: str
    ) -> EntityReads: ...
