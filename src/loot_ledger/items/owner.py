"""
Single-worker owner context for the item catalog.

The item catalog is not safe to call concurrently, so every catalog call is
handed to one dedicated worker thread as a task and awaited from the event
loop. Page fetching and HTML parsing never run here; only the item
resolution step of each fetch does.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TypeVar

from ..exceptions import CatalogOwnerClosedError

logger = logging.getLogger("loot-ledger.items.owner")

T = TypeVar("T")

THREAD_NAME_PREFIX = "item-catalog"


class CatalogOwner:
    """Actor that runs catalog work on its own single thread.

    Usage:
        owner = CatalogOwner()
        item_id = await owner.submit(resolver.resolve, "Abyssal whip")
        owner.shutdown()
    """

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=THREAD_NAME_PREFIX)
        self._thread_id: int | None = None
        self._closed = False
        # Record the worker's identity as its first task
        self._executor.submit(self._capture_thread)

    def _capture_thread(self) -> None:
        self._thread_id = threading.get_ident()

    @property
    def closed(self) -> bool:
        return self._closed

    def on_owner_thread(self) -> bool:
        """Return True when called from the owner's worker thread."""
        return self._thread_id is not None and threading.get_ident() == self._thread_id

    async def submit(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn(*args, **kwargs)`` on the owner thread and await its result.

        Raises:
            CatalogOwnerClosedError: If the owner has been shut down.
        """
        if self._closed:
            raise CatalogOwnerClosedError("Item catalog owner has been shut down")

        loop = asyncio.get_running_loop()
        call = functools.partial(fn, *args, **kwargs)
        try:
            return await loop.run_in_executor(self._executor, call)
        except RuntimeError as e:
            # Executor refused the task because shutdown raced with submit
            if self._closed:
                raise CatalogOwnerClosedError("Item catalog owner has been shut down") from e
            raise

    def shutdown(self) -> None:
        """Stop the worker without waiting; queued tasks are cancelled."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.debug("Item catalog owner shut down")


__all__ = ["CatalogOwner"]
