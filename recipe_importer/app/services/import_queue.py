from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from starlette.concurrency import run_in_threadpool

from recipe_importer.app.config import get_settings
from recipe_importer.app.domain.models import ImportRequest
from recipe_importer.app.services.import_pipeline import ImportPipeline

log = logging.getLogger("import_queue")


def _default_pipeline_factory() -> ImportPipeline:
    from recipe_importer.app.deps import build_import_pipeline

    return build_import_pipeline()


class ImportQueue:
    """In-process queue feeding import requests to a fixed pool of worker tasks."""

    def __init__(
        self,
        pipeline_factory: Callable[[], ImportPipeline] = _default_pipeline_factory,
        concurrency: int = 2,
    ) -> None:
        self._queue: "asyncio.Queue[Optional[ImportRequest]]" = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._lock = asyncio.Lock()
        self._pipeline_factory = pipeline_factory
        self._pipeline: Optional[ImportPipeline] = None
        self._concurrency = max(1, concurrency)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _get_pipeline(self) -> ImportPipeline:
        if self._pipeline is None:
            self._pipeline = self._pipeline_factory()
        return self._pipeline

    async def start(self) -> None:
        async with self._lock:
            if any(not worker.done() for worker in self._workers):
                return
            self._get_pipeline()
            self._workers = [
                asyncio.create_task(self._run(), name=f"import-worker-{index}")
                for index in range(self._concurrency)
            ]
            log.info("import.workers_started count=%s", self._concurrency)

    async def stop(self) -> None:
        async with self._lock:
            if not self._workers:
                return
            for _ in self._workers:
                await self._queue.put(None)
            try:
                await asyncio.gather(*self._workers)
            finally:
                self._workers = []

    async def enqueue(self, request: ImportRequest) -> None:
        await self._queue.put(request)
        log.info("import.enqueued job=%s source=%s", request.job_id, request.source_kind.value)

    async def join(self) -> None:
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            request = await self._queue.get()
            if request is None:
                self._queue.task_done()
                break
            try:
                pipeline = self._get_pipeline()
                await run_in_threadpool(pipeline.run, request)
                log.info("import.worker_done job=%s", request.job_id)
            except Exception:
                log.exception("import.worker_unexpected_error job=%s", request.job_id)
            finally:
                self._queue.task_done()


_IMPORT_QUEUE: Optional[ImportQueue] = None


def get_queue() -> ImportQueue:
    global _IMPORT_QUEUE
    if _IMPORT_QUEUE is None:
        _IMPORT_QUEUE = ImportQueue(concurrency=get_settings().IMPORT_WORKER_CONCURRENCY)
    return _IMPORT_QUEUE


async def start_worker() -> None:
    await get_queue().start()


async def stop_worker() -> None:
    await get_queue().stop()


async def enqueue(request: ImportRequest) -> None:
    await get_queue().enqueue(request)
