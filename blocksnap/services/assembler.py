"""Turn positional read results into typed market and position snapshots."""
from __future__ import annotations

import hashlib
import logging
from typing import Any, Sequence

from ..chains.evm import abi
from ..models import (
    SHAPE_FIELDS,
    FieldWarning,
    MarketSnapshot,
    PositionSnapshot,
    ReadDescriptor,
    ReadResult,
    Shape,
    Snapshot,
)

logger = logging.getLogger(__name__)


def shares_to_assets(shares: int, total_assets: int, total_shares: int) -> int:
    """Pro-rata share conversion, rounding down; zero when the pool is empty."""
    if total_shares == 0:
        return 0
    return shares * total_assets // total_shares


def descriptor_set_hash(descriptors: Sequence[ReadDescriptor]) -> str:
    """Stable digest of a descriptor list, for ``(chain, block, hash)`` cache keys."""
    digest = hashlib.sha256()
    for d in descriptors:
        digest.update(
            repr(
                (
                    d.contract_address.lower(),
                    d.function_signature,
                    tuple(str(a).lower() for a in d.arguments),
                    d.output_types,
                    d.output_index,
                    d.field,
                )
            ).encode()
        )
    return digest.hexdigest()


def _decode_uint(descriptor: ReadDescriptor, value: Any) -> int:
    if isinstance(value, bytes):
        value = abi.decode_output(descriptor, value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"negative value {value}")
    return value


class SnapshotAssembler:
    def _read_group(
        self,
        descriptors: Sequence[ReadDescriptor],
        results: Sequence[ReadResult],
        offset: int,
        fields: tuple[str, ...],
        entity: str,
    ) -> tuple[dict[str, int], list[FieldWarning]]:
        values: dict[str, int] = {}
        warnings: list[FieldWarning] = []
        for position, name in enumerate(fields):
            index = offset + position
            descriptor = descriptors[index]
            result = results[index]
            label = descriptor.field or name
            if not result.ok:
                warnings.append(
                    FieldWarning(entity, label, index, "read failed, substituted 0")
                )
                values[name] = 0
                continue
            try:
                values[name] = _decode_uint(descriptor, result.value)
            except ValueError as e:
                warnings.append(
                    FieldWarning(entity, label, index, f"undecodable value ({e}), substituted 0")
                )
                values[name] = 0
        return values, warnings

    @staticmethod
    def _market(entity: str, v: dict[str, int], warnings: list[FieldWarning]) -> MarketSnapshot:
        liquidity = v["total_supply_assets"] - v["total_borrow_assets"]
        if liquidity < 0:
            warnings.append(
                FieldWarning(
                    entity,
                    "liquidity_assets",
                    None,
                    f"borrow exceeds supply by {-liquidity}, clamped to 0",
                )
            )
            liquidity = 0
        return MarketSnapshot(
            entity=entity,
            total_supply_assets=v["total_supply_assets"],
            total_supply_shares=v["total_supply_shares"],
            total_borrow_assets=v["total_borrow_assets"],
            total_borrow_shares=v["total_borrow_shares"],
            last_update=v["last_update"],
            fee=v["fee"],
            liquidity_assets=liquidity,
            warnings=tuple(warnings),
        )

    @staticmethod
    def _position(entity: str, v: dict[str, int], warnings: list[FieldWarning]) -> PositionSnapshot:
        return PositionSnapshot(
            entity=entity,
            supply_shares=v["supply_shares"],
            supply_assets=shares_to_assets(
                v["supply_shares"], v["total_supply_assets"], v["total_supply_shares"]
            ),
            borrow_shares=v["borrow_shares"],
            borrow_assets=shares_to_assets(
                v["borrow_shares"], v["total_borrow_assets"], v["total_borrow_shares"]
            ),
            collateral=v["collateral"],
            warnings=tuple(warnings),
        )

    def assemble(
        self,
        descriptors: Sequence[ReadDescriptor],
        results: Sequence[ReadResult],
        shape: str,
    ) -> list[Snapshot]:
        """Zip descriptors with results, one snapshot per group of fields.

        Failed or undecodable fields become zero with one warning each; the
        rest of the snapshot is kept.

        Raises:
            ValueError: unknown shape, or lengths that do not line up.
        """
        try:
            fields = SHAPE_FIELDS[shape]
        except KeyError:
            raise ValueError(f"Unknown snapshot shape: {shape!r}") from None

        if len(descriptors) != len(results):
            raise ValueError(
                f"{len(descriptors)} descriptors but {len(results)} results"
            )
        if len(descriptors) % len(fields):
            raise ValueError(
                f"{len(descriptors)} descriptors is not a multiple of "
                f"{len(fields)} {shape} fields"
            )

        snapshots: list[Snapshot] = []
        for offset in range(0, len(descriptors), len(fields)):
            entity = descriptors[offset].entity or f"{shape}#{offset // len(fields)}"
            values, warnings = self._read_group(
                descriptors, results, offset, fields, entity
            )
            for w in warnings:
                logger.debug("%s: %s %s", w.entity, w.field, w.message)
            if shape == Shape.MARKET:
                snapshots.append(self._market(entity, values, warnings))
            else:
                snapshots.append(self._position(entity, values, warnings))
        return snapshots
