"""
Cache invalidation after writes.

After a write to a document is durably applied, every cached read that
could now be stale is cleared:
- all count results of the model
- all list results of the model
- get-by-id results of that document only
- get-by-query results of the model

Clearing is best-effort. A missing clear_cache callable disables it,
and failures are logged at DEBUG and never reach the writer. Inside a
running event loop the writer never waits on a clear: an async
clear_cache becomes a detached task and a blocking one runs on the
default executor. A read racing the invalidation may still see the old
value. Without a running loop a blocking clear runs inline.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from .cache import KEY_SEPARATOR, CacheOperation, build_key

logger = logging.getLogger(__name__)

WILDCARD = "*"


class InvalidationDispatcher:
    """Issues cache-clear calls for one model.

    Attributes:
        model_name: Cache namespace of the model

    Example:
        >>> dispatcher = InvalidationDispatcher("Item", redis_clear)
        >>> dispatcher.patterns_for(42)
        ['Item:count:*', 'Item:list:*', 'Item:get:42:*', 'Item:get:query:*']
    """

    def __init__(
        self,
        model_name: str,
        clear_cache: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.model_name = model_name
        self._clear_cache = clear_cache
        self._pending: set[asyncio.Future[Any]] = set()

    @property
    def enabled(self) -> bool:
        return self._clear_cache is not None

    def patterns_for(self, identifier: Any = None) -> list[str]:
        """Key patterns a write to ``identifier`` makes stale.

        Without an identifier every get cache of the model is cleared.
        """
        patterns = [
            self._pattern(CacheOperation.COUNT),
            self._pattern(CacheOperation.LIST),
        ]
        if identifier is None:
            patterns.append(self._pattern(CacheOperation.GET))
        else:
            patterns.append(build_key(self.model_name, CacheOperation.GET, identifier) + WILDCARD)
            patterns.append(build_key(self.model_name, CacheOperation.GET) + WILDCARD)
        return patterns

    def on_mutation(self, identifier: Any = None) -> None:
        """Clear every cache a write to ``identifier`` may have made stale.

        Must be called once per successful write, after it is applied.
        """
        self._dispatch(self.patterns_for(identifier))

    def clear_get(self, identifier: Any = None) -> None:
        """Clear get caches of ``identifier``, or of every document."""
        if identifier is None:
            self._dispatch([self._pattern(CacheOperation.GET)])
        else:
            self._dispatch(
                [build_key(self.model_name, CacheOperation.GET, identifier) + WILDCARD]
            )

    def clear_list(self) -> None:
        """Clear every list cache of the model."""
        self._dispatch([self._pattern(CacheOperation.LIST)])

    def clear_count(self) -> None:
        """Clear every count cache of the model."""
        self._dispatch([self._pattern(CacheOperation.COUNT)])

    async def drain(self) -> None:
        """Wait for detached invalidations still in flight."""
        while self._pending:
            pending = list(self._pending)
            self._pending.difference_update(pending)
            await asyncio.gather(*pending, return_exceptions=True)

    def _pattern(self, operation: CacheOperation) -> str:
        # Bare operation namespace; also matches id-scoped get keys
        return KEY_SEPARATOR.join([self.model_name, operation.value, WILDCARD])

    def _dispatch(self, patterns: list[str]) -> None:
        if self._clear_cache is None:
            return
        try:
            loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for pattern in patterns:
            if loop is not None and not inspect.iscoroutinefunction(self._clear_cache):
                # Blocking clears run on the default executor, off the write path
                self._track(pattern, loop.run_in_executor(None, self._clear_cache, pattern))
                continue
            try:
                result = self._clear_cache(pattern)
            except Exception as e:
                logger.debug("Cache clear failed for %s: %s", pattern, e)
                continue
            if inspect.isawaitable(result):
                self._detach(pattern, result)

    def _detach(self, pattern: str, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
            task = asyncio.ensure_future(awaitable, loop=loop)
        except RuntimeError as e:
            logger.debug("No running loop to clear %s: %s", pattern, e)
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        self._track(pattern, task)

    def _track(self, pattern: str, future: asyncio.Future[Any]) -> None:
        self._pending.add(future)

        def _done(f: asyncio.Future[Any]) -> None:
            self._pending.discard(f)
            if f.cancelled():
                return
            if f.exception() is not None:
                logger.debug("Cache clear failed for %s: %s", pattern, f.exception())
                return
            result = f.result()
            if inspect.isawaitable(result):
                # Sync callable that handed back an awaitable
                self._detach(pattern, result)

        future.add_done_callback(_done)
