"""
Bounded waiting for external collaborators (camera, network, inference).
"""
from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, TypeVar

from core.errors import OperationTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

async def with_timeout(aw: Awaitable[T], seconds: float | None, what: str) -> T:
    """
    Await ``aw`` for at most ``seconds``.

    Raises:
        OperationTimeout: the awaitable did not finish in time (it is cancelled).
    """
    if seconds is None or seconds <= 0:
        return await aw
    try:
        return await asyncio.wait_for(aw, timeout=seconds)
    except asyncio.TimeoutError as e:
        logger.warning(f"[timeout] {what} exceeded {seconds}s")
        raise OperationTimeout(what, seconds) from e
