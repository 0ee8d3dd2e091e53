"""Morpho Blue read registry: which contract calls make up a snapshot."""
from __future__ import annotations

from ...models import (
    MARKET_FIELDS,
    POSITION_FIELDS,
    EntityReads,
    ReadDescriptor,
    Shape,
)

MORPHO_ADDRESSES: dict[int, str] = {
    1: "0xbbbbbbbbbb9cc5e90e3b3af64bdaf62c37eeffcb",  # Ethereum
    8453: "0xbbbbbbbbbb9cc5e90e3b3af64bdaf62c37eeffcb",  # Base
    137: "0x1bf0c2541f820e775182832f06c0b7fc27a25f67",  # Polygon
    130: "0x8f5ae9cddb9f68de460c77730b018ae7e04a140a",  # Unichain
    42161: "0x6c247b1f6182318877311737bac0844baa518f5e",  # Arbitrum
    999: "0x68e37de8d93d3496ae143f2e900490f6280c57cd",  # HyperEVM
}

MARKET_SIGNATURE = "market(bytes32)"
MARKET_OUTPUTS = ("uint128",) * 6
POSITION_SIGNATURE = "position(bytes32,address)"
POSITION_OUTPUTS = ("uint256", "uint128", "uint128")

POSITION_READS = POSITION_FIELDS[:3]
MARKET_TOTALS = MARKET_FIELDS[:4]


class MorphoRegistry:
    """Build Morpho Blue read descriptors for markets and user positions."""

    def __init__(self, overrides: dict[int, str] | None = None) -> None:
        self._addresses = dict(MORPHO_ADDRESSES)
        self._addresses.update(
            {chain_id: addr.lower() for chain_id, addr in (overrides or {}).items()}
        )

    def morpho_address(self, chain_id: int) -> str:
        try:
            return self._addresses[chain_id]
        except KeyError:
            raise ValueError(f"No Morpho deployment known for chain {chain_id}") from None

    def _market_descriptors(
        self, chain_id: int, market_id: str, entity: str, fields: tuple[str, ...]
    ) -> list[ReadDescriptor]:
        address = self.morpho_address(chain_id)
        return [
            ReadDescriptor(
                contract_address=address,
                function_signature=MARKET_SIGNATURE,
                arguments=(market_id,),
                output_types=MARKET_OUTPUTS,
                output_index=MARKET_FIELDS.index(name),
                field=name,
                entity=entity,
            )
            for name in fields
        ]

    def market_reads(self, chain_id: int, market_id: str) -> EntityReads:
        entity = f"market:{market_id}"
        return EntityReads(
            shape=Shape.MARKET,
            entity=entity,
            descriptors=tuple(
                self._market_descriptors(chain_id, market_id, entity, MARKET_FIELDS)
            ),
        )

    def position_reads(
        self, chain_id: int, market_id: str, user_address: str
    ) -> EntityReads:
        """Position fields followed by the four market totals used to price shares."""
        entity = f"position:{market_id}:{user_address.lower()}"
        address = self.morpho_address(chain_id)
        position = [
            ReadDescriptor(
                contract_address=address,
                function_signature=POSITION_SIGNATURE,
                arguments=(market_id, user_address),
                output_types=POSITION_OUTPUTS,
                output_index=index,
                field=name,
                entity=entity,
            )
            for index, name in enumerate(POSITION_READS)
        ]
        totals = self._market_descriptors(chain_id, market_id, entity, MARKET_TOTALS)
        return EntityReads(
            shape=Shape.POSITION,
            entity=entity,
            descriptors=tuple(position + totals),
        )
