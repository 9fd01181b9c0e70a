"""
Job Runner - Starts and tracks orchestrator runs.

Every accepted job gets its own asyncio task, and the runner keeps the
handle until the task finishes. Handles let the application refuse a second
run for the same job and cancel outstanding runs on shutdown.
"""

import asyncio
import logging
from typing import Optional

from clipper.services.clipping_pipeline import ClippingPipeline
from clipper.services.job_store import JobStatus, JobStore

logger = logging.getLogger(__name__)


class JobRunner:
    """
    Supervisor for per-job pipeline tasks.

    ``max_concurrent_jobs`` of 0 admits every run immediately. A positive
    value gates runs behind a semaphore; waiting jobs stay ``uploaded``
    until a slot frees up.
    """

    def __init__(
        self,
        pipeline: ClippingPipeline,
        job_store: JobStore,
        max_concurrent_jobs: int = 0,
    ):
        self.pipeline = pipeline
        self.job_store = job_store
        self._tasks: dict[str, asyncio.Task] = {}
        self._semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(max_concurrent_jobs) if max_concurrent_jobs > 0 else None
        )

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def submit(self, job_id: str) -> asyncio.Task:
        """
        Start processing a job in the background.

        Raises:
            KeyError: If the job does not exist
            JobAlreadyStartedError: If the job is running or has left ``uploaded``
        """
        job = self.job_store.get(job_id)
        if job is None:
            raise KeyError(job_id)

        if self.is_running(job_id) or job.status != JobStatus.UPLOADED:
            raise JobAlreadyStartedError(f"Job {job_id} has already been started")

        task = asyncio.create_task(self._run(job_id), name=f"clip-job-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda t: self._on_done(job_id, t))

        logger.info(f"Job {job_id} submitted ({self.active_count} active)")
        return task

    async def _run(self, job_id: str) -> None:
        if self._semaphore is None:
            await self.pipeline.process_job(job_id)
            return

        async with self._semaphore:
            await self.pipeline.process_job(job_id)

    def _on_done(self, job_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]

        if task.cancelled():
            logger.warning(f"Job {job_id} run was cancelled")
        elif task.exception() is not None:
            logger.error(f"Job {job_id} run crashed: {task.exception()!r}")

    async def wait(self, job_id: str) -> None:
        """Wait for a job's run to finish, if one is active."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel and await every outstanding run."""
        tasks = list(self._tasks.values())
        if not tasks:
            return

        logger.info(f"Cancelling {len(tasks)} running jobs")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class JobAlreadyStartedError(Exception):
    """Exception raised when a job is submitted a second time."""
    pass
