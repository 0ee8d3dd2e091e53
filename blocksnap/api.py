"""HTTP endpoints for block lookup and historical snapshots."""
from __future__ import annotations

import json
import logging
import time
from typing import Any

from aiohttp import web

from .errors import InvalidRequest, NotFoundError, SnapshotError
from .formatting import block_to_dict, network_result_to_dict
from .models import NetworkResult
from .services.snapshot_service import PERIODS, SnapshotService

logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("snapshot_service", SnapshotService)

routes = web.RouteTableDef()


def _bad_request(message: str) -> web.HTTPBadRequest:
    return web.HTTPBadRequest(
        text=json.dumps({"error": message}),
        content_type="application/json",
    )


def _int_param(request: web.Request, name: str) -> int:
    raw = request.query.get(name, "").strip()
    if not raw:
        raise _bad_request(f"Missing required parameter: {name}")
    try:
        return int(raw)
    except ValueError:
        raise _bad_request(f"Parameter {name} must be an integer") from None


def _str_param(request: web.Request, name: str) -> str:
    value = request.query.get(name, "").strip()
    if not value:
        raise _bad_request(f"Missing required parameter: {name}")
    return value


def _target_timestamp(request: web.Request) -> int:
    """``timestamp`` wins; otherwise ``period`` (day/week/month) back from now."""
    if request.query.get("timestamp"):
        return _int_param(request, "timestamp")
    period = request.query.get("period")
    if period is None:
        raise _bad_request("Missing required parameter: timestamp or period")
    if period not in PERIODS:
        raise _bad_request(f"Unknown period {period!r}")
    return int(time.time()) - PERIODS[period]


def _service(request: web.Request) -> SnapshotService:
    return request.app[SERVICE_KEY]


def _chain_id(request: web.Request) -> int:
    chain_id = _int_param(request, "chainId")
    if chain_id not in _service(request).chain_ids:
        raise web.HTTPNotFound(
            text=json.dumps({"error": f"Unknown chain {chain_id}"}),
            content_type="application/json",
        )
    return chain_id


def _block_number(request: web.Request) -> int | None:
    """Optional ``blockNumber``; when present it replaces the timestamp search."""
    if not request.query.get("blockNumber"):
        return None
    block_number = _int_param(request, "blockNumber")
    if block_number < 0:
        raise _bad_request("Parameter blockNumber must be >= 0")
    return block_number


def _snapshot_response(network: NetworkResult, key: str) -> web.Response:
    body: dict[str, Any] = network_result_to_dict(network)
    if network.status == "unavailable":
        missing = any(isinstance(e, NotFoundError) for e in network.errors)
        return web.json_response(body, status=404 if missing else 502)
    snapshots = body.pop("snapshots")
    body[key] = snapshots[0] if snapshots else None
    return web.json_response(body)


@routes.get("/api/blocks/near")
async def block_near_timestamp(request: web.Request) -> web.Response:
    chain_id = _chain_id(request)
    target = _target_timestamp(request)
    try:
        block = await _service(request).locate_block(chain_id, target)
    except InvalidRequest as e:
        raise _bad_request(str(e)) from None
    except SnapshotError as e:
        logger.error("Block lookup failed: %s", e)
        return web.json_response({"error": str(e)}, status=502)
    return web.json_response({"chainId": chain_id, "block": block_to_dict(block)})


@routes.get("/api/positions/historical")
async def historical_position(request: web.Request) -> web.Response:
    chain_id = _chain_id(request)
    market_id = _str_param(request, "marketId")
    user = _str_param(request, "userAddress")
    block_number = _block_number(request)
    service = _service(request)
    try:
        if block_number is not None:
            network = await service.position_snapshots_at_block(
                chain_id, block_number, user, [market_id]
            )
        else:
            result = await service.position_snapshots(
                _target_timestamp(request), user, {chain_id: [market_id]}
            )
            network = result.per_network[chain_id]
    except ValueError as e:
        raise _bad_request(str(e)) from None
    return _snapshot_response(network, "position")


@routes.get("/api/markets/historical")
async def historical_market(request: web.Request) -> web.Response:
    chain_id = _chain_id(request)
    market_id = _str_param(request, "marketId")
    block_number = _block_number(request)
    service = _service(request)
    try:
        if block_number is not None:
            network = await service.market_snapshots_at_block(
                chain_id, block_number, [market_id]
            )
        else:
            result = await service.market_snapshots(
                _target_timestamp(request), {chain_id: [market_id]}
            )
            network = result.per_network[chain_id]
    except ValueError as e:
        raise _bad_request(str(e)) from None
    return _snapshot_response(network, "market")


def create_app(service: SnapshotService) -> web.Application:
    app = web.Application()
    app[SERVICE_KEY] = service
    app.add_routes(routes)
    return app
