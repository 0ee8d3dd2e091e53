"""JSON-ready views of results. Big integers are rendered as decimal strings."""
from __future__ import annotations

from dataclasses import fields
from typing import Any

from .errors import SnapshotError
from .models import (
    BlockEstimate,
    FieldWarning,
    MarketSnapshot,
    NetworkResult,
    PositionSnapshot,
    QueryResult,
)


def block_to_dict(block: BlockEstimate | None) -> dict[str, Any] | None:
    if block is None:
        return None
    return {
        "blockNumber": block.block_number,
        "confidence": block.confidence,
        "timestamp": block.timestamp,
        "targetTimestamp": block.target_timestamp,
        "residualSeconds": block.residual_seconds,
        "iterations": block.iterations,
        "stopReason": block.stop_reason,
    }


def _warning_to_dict(w: FieldWarning) -> dict[str, Any]:
    return {
        "entity": w.entity,
        "field": w.field,
        "descriptorIndex": w.descriptor_index,
        "message": w.message,
    }


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def snapshot_to_dict(snapshot: MarketSnapshot | PositionSnapshot) -> dict[str, Any]:
    kind = "market" if isinstance(snapshot, MarketSnapshot) else "position"
    out: dict[str, Any] = {"kind": kind, "entity": snapshot.entity}
    for f in fields(snapshot):
        if f.name in ("entity", "warnings"):
            continue
        out[_camel(f.name)] = str(getattr(snapshot, f.name))
    out["warnings"] = [_warning_to_dict(w) for w in snapshot.warnings]
    return out


def _error_to_dict(error: SnapshotError) -> dict[str, Any]:
    return {"type": type(error).__name__, "message": str(error)}


def network_result_to_dict(result: NetworkResult) -> dict[str, Any]:
    return {
        "chainId": result.chain_id,
        "status": result.status,
        "resolvedBlock": block_to_dict(result.resolved_block),
        "snapshots": [snapshot_to_dict(s) for s in result.snapshots],
        "errors": [_error_to_dict(e) for e in result.errors],
        "warnings": [_error_to_dict(w) for w in result.warnings],
    }


def query_result_to_dict(result: QueryResult) -> dict[str, Any]:
    return {
        "targetTimestamp": result.target_timestamp,
        "networks": {
            str(chain_id): network_result_to_dict(r)
            for chain_id, r in sorted(result.per_network.items())
        },
    }
