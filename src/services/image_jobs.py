"""Background image jobs - process property uploads after the request returns."""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional
from pydantic import BaseModel, Field
from ulid import ULID

from src.models.image import UploadedImage
from src.utils.config import AppConfig
from src.utils.logging import (
    correlation_context,
    get_correlation_id,
    get_structured_logger,
    log_timing,
)

logger = get_structured_logger(__name__)


class ImageJob(BaseModel):
    """Images accepted for one property, waiting to be turned into variants."""
    job_id: str = Field(default_factory=lambda: str(ULID()), description="Unique job id")
    property_id: str = Field(..., description="Property the images belong to")
    images: list[UploadedImage] = Field(..., description="Validated uploads")
    correlation_id: Optional[str] = Field(default=None, description="Request that submitted the job")
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


JobHandler = Callable[[ImageJob], Awaitable[None]]
FailureHandler = Callable[[ImageJob, Exception], Awaitable[None]]


class ImageJobQueue:
    """Run image jobs on a fixed number of worker tasks."""

    def __init__(
        self,
        handler: JobHandler,
        workers: Optional[int] = None,
        on_failure: Optional[FailureHandler] = None,
    ):
        self.handler = handler
        self.workers = max(1, workers if workers is not None else AppConfig.IMAGE_JOB_WORKERS)
        self.on_failure = on_failure
        self.queue: asyncio.Queue[ImageJob] = asyncio.Queue()
        self.tasks: list[asyncio.Task] = []
        self.processed_count = 0
        self.failed_count = 0
        logger.info("ImageJobQueue initialized", workers=self.workers)

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self.tasks)

    def start(self) -> None:
        if self.running:
            return
        self.tasks = [
            asyncio.create_task(self._worker(index), name=f"image-job-worker-{index}")
            for index in range(self.workers)
        ]

    async def submit(self, property_id: str, images: list[UploadedImage]) -> ImageJob:
        """Queue images for a property and return immediately."""
        job = ImageJob(
            property_id=property_id,
            images=images,
            correlation_id=get_correlation_id(),
        )
        self.start()
        await self.queue.put(job)

        logger.info(
            "Image job queued",
            job_id=job.job_id,
            property_id=property_id,
            images_count=len(images),
            queue_size=self.queue.qsize()
        )
        return job

    async def join(self) -> None:
        """Wait until every queued job has been handled."""
        await self.queue.join()

    async def stop(self, drain: bool = True) -> None:
        if drain and self.running:
            await self.join()
        for task in self.tasks:
            task.cancel()
        await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []
        logger.info(
            "ImageJobQueue stopped",
            processed_successfully=self.processed_count,
            processed_failed=self.failed_count
        )

    async def _worker(self, index: int) -> None:
        while True:
            job = await self.queue.get()
            try:
                await self._run(job, index)
            finally:
                self.queue.task_done()

    async def _run(self, job: ImageJob, worker_index: int) -> None:
        with correlation_context(job.correlation_id):
            try:
                with log_timing(
                    "process_image_job",
                    logger=logger,
                    job_id=job.job_id,
                    property_id=job.property_id,
                    images_count=len(job.images),
                    worker=worker_index
                ):
                    await self.handler(job)
                self.processed_count += 1
            except Exception as e:
                self.failed_count += 1
                logger.error(
                    "Error processing image job",
                    job_id=job.job_id,
                    property_id=job.property_id,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True
                )
                if self.on_failure is not None:
                    await self._notify_failure(job, e)

    async def _notify_failure(self, job: ImageJob, error: Exception) -> None:
        # A failing callback must not take the worker down with it
        try:
            await self.on_failure(job, error)
        except Exception as e:
            logger.error(
                "Image job failure handler raised",
                job_id=job.job_id,
                error=str(e),
                exc_info=True
            )
