"""
Status API: Job Store 읽기 전용 조회

모든 조회는 store를 직접 읽으며 워커/디스패처 상태를 기다리지 않습니다.
"""

from store.base import BaseJobStore
from store.model import Job, JobStatus, JobType
from monitor.model import JobStatusView, QueueMetrics


class StatusService:
    """잡 상태/메트릭 조회"""

    def __init__(self, store: BaseJobStore):
        self._store = store

    async def get_job_status(self, job_id: str) -> JobStatusView:
        """
        잡 상태 조회 (부수효과 없음)

        Raises:
            JobNotFoundError: 존재하지 않는 잡
            StoreUnavailableError: 저장소 접근 실패
        """
        job = await self._store.get(job_id)
        return JobStatusView(
            status=job.status,
            progress=job.progress,
            result=job.result if job.status == JobStatus.COMPLETED else None,
            error=job.error,
        )

    async def get_job(self, job_id: str) -> Job:
        """잡 전체 레코드 조회 (운영용)"""
        return await self._store.get(job_id)

    async def get_metrics(self, job_type: JobType | None = None) -> QueueMetrics:
        """상태별 개수와 processing_rate (job_type 지정 시 해당 타입만)"""
        counts = await self._store.count_by_status(job_type)
        return QueueMetrics(
            **counts.model_dump(),
            total=counts.total,
            processing_rate=counts.processing_rate,
        )

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        job_type: JobType | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Job], int]:
        return await self._store.list_jobs(status, job_type, limit, offset)
