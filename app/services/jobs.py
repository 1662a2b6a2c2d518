from __future__ import annotations

import asyncio
import logging
from typing import Dict, Set

from app.services.anthropic_http_client import get_ai_client
from app.services.errors import DraftBusyError, GenerationError
from app.services.pipeline import GenerationPipeline
from app.services.stores import get_artifact_store, get_brand_store, get_draft_store, get_listing_store


logger = logging.getLogger(__name__)


class GenerationQueue:
    """
    Fire-and-continue job runner with per-draft mutual exclusion.

    A draft id is "pending" from the moment it is submitted until its run
    finishes. Submitting a pending draft raises `DraftBusyError`; runs for
    different drafts proceed concurrently. Each run also holds a per-draft
    `asyncio.Lock`, so even a direct `run()` call for a pending id waits
    for the active run to finish first.
    """

    def __init__(self, pipeline: GenerationPipeline) -> None:
        self._pipeline = pipeline
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._pending: Set[str] = set()
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def pipeline(self) -> GenerationPipeline:
        return self._pipeline

    def is_busy(self, draft_id: str) -> bool:
        return draft_id in self._pending

    def submit(self, draft_id: str) -> asyncio.Task:
        """
        Schedule a generation run and return immediately.

        Must be called from a running event loop.
        """
        if draft_id in self._pending:
            raise DraftBusyError(draft_id)
        self._pending.add(draft_id)
        task = asyncio.create_task(self._run_and_release(draft_id), name=f"generate-{draft_id}")
        self._tasks[draft_id] = task
        logger.info("Generation queued: %s", draft_id)
        return task

    async def run(self, draft_id: str) -> None:
        lock = self._locks.setdefault(draft_id, asyncio.Lock())
        self._lock_users[draft_id] = self._lock_users.get(draft_id, 0) + 1
        try:
            async with lock:
                await self._pipeline.execute(draft_id)
        finally:
            self._lock_users[draft_id] -= 1
            if not self._lock_users[draft_id]:
                del self._lock_users[draft_id]
                del self._locks[draft_id]

    async def wait(self, draft_id: str) -> None:
        """Wait for the pending run of a draft, if any."""
        task = self._tasks.get(draft_id)
        if task is not None:
            await asyncio.shield(task)

    async def _run_and_release(self, draft_id: str) -> None:
        try:
            await self.run(draft_id)
        except GenerationError as exc:
            logger.error("Generation run for %s did not start: %s", draft_id, exc)
        finally:
            self._pending.discard(draft_id)
            self._tasks.pop(draft_id, None)


_queue: GenerationQueue | None = None


def get_generation_queue() -> GenerationQueue:
    """
    Return the process-wide generation queue.

    Built lazily from the default stores and settings.
    """
    global _queue
    if _queue is None:
        pipeline = GenerationPipeline(
            drafts=get_draft_store(),
            listings=get_listing_store(),
            brands=get_brand_store(),
            artifacts=get_artifact_store(),
            ai_client=get_ai_client(),
        )
        _queue = GenerationQueue(pipeline)
    return _queue
