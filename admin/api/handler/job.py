"""잡 API 비즈니스 로직 핸들러"""

import logging
from datetime import datetime, timezone

from admin.api.model.health import QueueHealthResponse, QueueStatusResponse, WorkerInfo
from admin.api.model.job import (
    EnqueueRequest,
    EnqueueResponse,
    JobListResponse,
    JobResponse,
    JobStatusResponse,
)
from common.runtime import QueueRuntime
from monitor.model import HealthStatus, QueueMetrics
from store.model import JobStatus, JobType

logger = logging.getLogger(__name__)


class JobHandler:
    """잡 등록/조회 핸들러 (런타임 구성요소 위임)"""

    def __init__(self, runtime: QueueRuntime):
        self._runtime = runtime

    async def enqueue(self, request: EnqueueRequest) -> EnqueueResponse:
        runtime = self._runtime
        job_id = await runtime.dispatcher.enqueue(
            request.type,
            request.payload,
            delay_seconds=request.delay_seconds,
            max_attempts=request.max_attempts,
            priority=request.priority,
        )
        view = await runtime.status.get_job_status(job_id)
        return EnqueueResponse(job_id=job_id, status=view.status)

    async def get_status(self, job_id: str) -> JobStatusResponse:
        view = await self._runtime.status.get_job_status(job_id)
        return JobStatusResponse(job_id=job_id, **view.model_dump())

    async def get_detail(self, job_id: str) -> JobResponse:
        job = await self._runtime.status.get_job(job_id)
        return JobResponse.model_validate(job, from_attributes=True)

    async def cancel(self, job_id: str) -> JobStatusResponse:
        job = await self._runtime.dispatcher.cancel(job_id)
        return JobStatusResponse(
            job_id=job.id, status=job.status, progress=job.progress, error=job.error
        )

    async def get_list(
        self,
        page: int = 1,
        size: int = 20,
        status: JobStatus | None = None,
        job_type: JobType | None = None,
    ) -> JobListResponse:
        offset = (page - 1) * size
        jobs, total = await self._runtime.status.list_jobs(status, job_type, size, offset)
        items = [JobResponse.model_validate(job, from_attributes=True) for job in jobs]
        return JobListResponse.create(items, total, page, size)

    async def get_metrics(self, job_type: JobType | None = None) -> QueueMetrics:
        return await self._runtime.status.get_metrics(job_type)

    async def queue_health(self) -> QueueHealthResponse:
        report = await self._runtime.health.check()
        status = "error" if report.status == HealthStatus.UNHEALTHY else report.status.value
        return QueueHealthResponse(
            status=status,
            queue=report.queue,
            thresholds=report.thresholds,
            reasons=report.reasons,
            error=report.error,
            timestamp=datetime.fromtimestamp(report.timestamp, tz=timezone.utc).isoformat(),
        )

    async def queue_status(self) -> QueueStatusResponse:
        runtime = self._runtime
        report = await runtime.health.check()
        pool = runtime.pool
        return QueueStatusResponse(
            healthy=report.status != HealthStatus.UNHEALTHY,
            metrics=report.queue,
            worker=WorkerInfo(
                pool_size=pool.pool_size,
                running=pool.running_task_count,
                concurrency={t.value: limit for t, limit in pool.type_limits.items()},
            ),
        )
