"""Batch resolution with bounded concurrency."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

from envoi.core.exceptions import MalformedInputError
from envoi.models.constants import Direction
from envoi.models.resolution import BatchResolution, Resolution

from .store import is_valid_key


if TYPE_CHECKING:
    from .coordinator import CacheCoordinator


DEFAULT_MAX_CONCURRENCY = 8


class BatchOrchestrator:
    """Run [resolve_one()][envoi.services.common.coordinator.CacheCoordinator.resolve_one]
    over many keys and label the batch.

    Every key is validated before any lookup starts, so a single malformed
    key rejects the whole batch without touching the cache or the chain.
    Items then run concurrently, at most ``max_concurrency`` at a time, and
    results come back in input order. If one item fails the rest are
    cancelled and that failure is raised.
    """

    def __init__(
        self, coordinator: CacheCoordinator, max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._coordinator = coordinator
        self._max_concurrency = max_concurrency

    async def resolve_batch(
        self,
        keys: Sequence[str],
        direction: Direction,
        ignore_cache: bool = False,
    ) -> BatchResolution:
        """Resolve *keys* and classify the batch as HIT, MISS, MIXED or BYPASS.

        Raises:
            MalformedInputError: If any key is malformed; ``key`` holds the
                offending keys.
        """
        direction = Direction(direction)
        malformed = [k for k in keys if not is_valid_key(k, direction)]
        if malformed:
            raise MalformedInputError(
                f"{len(malformed)} malformed {direction} key(s): {malformed!r}", key=malformed
            )

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def resolve(key: str) -> Resolution:
            async with semaphore:
                return await self._coordinator.resolve_one(key, direction, ignore_cache)

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(resolve(k)) for k in keys]
        except ExceptionGroup as eg:
            # Siblings are already cancelled; surface the first failure as-is.
            raise eg.exceptions[0] from eg

        results = tuple(task.result() for task in tasks)
        return BatchResolution(
            results=results,
            state=BatchResolution.classify(results, ignore_cache=ignore_cache),
        )
