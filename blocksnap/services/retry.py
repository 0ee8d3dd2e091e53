"""Bounded retry with per-call timeout for RPC calls."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from ..errors import Cancelled, NotFoundError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def check_cancelled(cancel_event: asyncio.Event | None, chain_id: int | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise Cancelled("Cancelled by caller", chain_id)


async def _attempt(
    make_call: Callable[[], Awaitable[T]],
    timeout: float,
    cancel_event: asyncio.Event | None,
    chain_id: int | None,
) -> T:
    """One timed call, abandoned as soon as ``cancel_event`` is set."""
    if cancel_event is None:
        return await asyncio.wait_for(make_call(), timeout=timeout)

    call = asyncio.ensure_future(asyncio.wait_for(make_call(), timeout=timeout))
    cancelled = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({call, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancelled.cancel()
        if not call.done():
            call.cancel()
    if call.done() and not call.cancelled():
        return call.result()
    raise Cancelled("Cancelled by caller", chain_id)


async def _backoff(
    delay: float, cancel_event: asyncio.Event | None, chain_id: int | None
) -> None:
    if cancel_event is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise Cancelled("Cancelled by caller", chain_id)


async def call_with_retries(
    make_call: Callable[[], Awaitable[T]],
    *,
    what: str,
    chain_id: int | None,
    attempts: int,
    timeout: float,
    backoff_seconds: float,
    cancel_event: asyncio.Event | None = None,
) -> T:
    """Await ``make_call()`` up to ``attempts`` times.

    A timeout counts as a :class:`TransportError`. ``NotFoundError`` is not
    retried. Backoff doubles after each failed attempt. A set
    ``cancel_event`` is noticed before each attempt, while a call is in
    flight and during the backoff sleep.

    Raises:
        TransportError: the last failure once attempts are exhausted.
        Cancelled: ``cancel_event`` was set.
    """
    last_error: TransportError | None = None
    for attempt in range(1, attempts + 1):
        check_cancelled(cancel_event, chain_id)
        try:
            return await _attempt(make_call, timeout, cancel_event, chain_id)
        except NotFoundError:
            raise
        except asyncio.TimeoutError:
            last_error = TransportError(f"{what} timed out after {timeout}s", chain_id)
        except TransportError as e:
            last_error = e

        logger.warning(
            "%s failed on chain %s (attempt %d/%d): %s",
            what, chain_id, attempt, attempts, last_error,
        )
        if attempt < attempts:
            await _backoff(backoff_seconds * 2 ** (attempt - 1), cancel_event, chain_id)

    raise last_error or TransportError(f"{what}: no attempts made", chain_id)
