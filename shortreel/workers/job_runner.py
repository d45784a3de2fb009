"""Background job runner using asyncio."""
import asyncio
import logging
import traceback
from typing import Any, Awaitable, Callable, Dict, Tuple

logger = logging.getLogger(__name__)

JobKey = Tuple[str, str]


class JobRunner:
    """Async background job runner.

    At most one job per (job_type, key) is in flight; a second start for the
    same key is refused instead of queued.
    """

    def __init__(self):
        self._running_jobs: Dict[JobKey, asyncio.Task] = {}
        self._job_handlers: Dict[str, Callable[..., Awaitable[Any]]] = {}

    def register_handler(self, job_type: str, handler: Callable[..., Awaitable[Any]]):
        """Register a handler for a job type."""
        self._job_handlers[job_type] = handler

    async def start_job(self, job_type: str, key: str, **kwargs) -> bool:
        """
        Start a background job without waiting for it.

        Args:
            job_type: Type of job to run
            key: Identity of the job's subject, e.g. a video ID
            **kwargs: Arguments to pass to the job handler

        Returns:
            True if the job was started
        """
        job_key = (job_type, key)
        if job_key in self._running_jobs:
            logger.warning(f"Job {job_type}:{key} is already running")
            return False

        handler = self._job_handlers.get(job_type)
        if not handler:
            logger.error(f"No handler registered for job type: {job_type}")
            return False

        task = asyncio.create_task(self._run_job(job_key, handler, **kwargs))
        self._running_jobs[job_key] = task

        return True

    async def _run_job(self, job_key: JobKey, handler: Callable, **kwargs):
        """Run a job with error logging."""
        job_type, key = job_key
        try:
            result = await handler(**kwargs)
            logger.info(f"Job {job_type}:{key} finished: {result}")
            return result

        except asyncio.CancelledError:
            logger.info(f"Job {job_type}:{key} was cancelled")
            raise

        except Exception as e:
            logger.error(f"Job {job_type}:{key} failed: {e}\n{traceback.format_exc()}")

        finally:
            self._running_jobs.pop(job_key, None)

    async def wait_for(self, job_type: str, key: str):
        """Wait for an in-flight job; returns immediately if none is running."""
        task = self._running_jobs.get((job_type, key))
        if task:
            await asyncio.gather(task, return_exceptions=True)

    async def cancel_job(self, job_type: str, key: str) -> bool:
        """Cancel a running job."""
        task = self._running_jobs.get((job_type, key))
        if task:
            task.cancel()
            return True
        return False

    def is_job_running(self, job_type: str, key: str) -> bool:
        """Check if a job is currently running."""
        return (job_type, key) in self._running_jobs

    async def shutdown(self):
        """Cancel all running jobs."""
        tasks = list(self._running_jobs.values())
        for task in tasks:
            task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._running_jobs.clear()


# Global job runner instance
job_runner = JobRunner()
