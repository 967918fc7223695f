"""
큐 유지보수 태스크

    DelayedJobPromoter: run_at이 지난 delayed 잡을 waiting으로 승격
    StalledJobReaper:   claim 후 timeout + grace가 지나도 active인 잡을 타임아웃 실패로 정산,
                        store에는 있지만 큐 인덱스에 없는 waiting/delayed 잡을 다시 등록
    RetentionSweeper:   보관 기간이 지난 종료 잡 삭제
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from common.periodic import PeriodicTask
from dispatcher.queue.main import JobQueue
from store.base import BaseJobStore
from store.exception import ConflictError, JobNotFoundError, StoreUnavailableError
from store.model import JobStatus
from worker.exception import JobTimeoutError
from worker.executor import Executor

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceConfig:
    """유지보수 태스크 설정"""
    promote_interval_seconds: float = 1.0
    reap_interval_seconds: float = 30.0
    stall_grace_seconds: float = 30.0
    sweep_interval_seconds: float = 3600.0
    retention_seconds: float = 86400.0


async def rebuild_queue(
    store: BaseJobStore,
    queue: JobQueue,
    clock: Callable[[], float] = time.time,
) -> int:
    """
    store의 waiting/delayed 잡 중 큐 인덱스에 없는 것을 등록

    Returns:
        새로 등록한 잡 수
    """
    added = 0
    for job in await store.list_by_status(JobStatus.WAITING):
        if job.id not in queue:
            queue.enqueue(job.id, job.type, priority=job.priority)
            added += 1

    for job in await store.list_by_status(JobStatus.DELAYED):
        if job.id not in queue:
            queue.enqueue(job.id, job.type, run_at=job.run_at or clock(), priority=job.priority)
            added += 1

    if added:
        logger.info(f"Re-indexed {added} jobs from store")
    return added


class DelayedJobPromoter(PeriodicTask):
    """run_at이 지난 delayed 잡을 waiting으로 승격"""

    name = "DelayedJobPromoter"

    def __init__(
        self,
        store: BaseJobStore,
        queue: JobQueue,
        interval_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(interval_seconds)
        self._store = store
        self._queue = queue
        self._clock = clock

    async def run_once(self) -> int:
        """
        Returns:
            승격한 잡 수

        Raises:
            StoreUnavailableError: 승격하지 못한 항목은 delayed 힙에 되돌린 뒤 전파
        """
        due = self._queue.pop_due(self._clock())
        promoted = 0
        for index, entry in enumerate(due):
            try:
                await self._store.update_status(entry.job_id, JobStatus.DELAYED, JobStatus.WAITING)
            except (ConflictError, JobNotFoundError) as e:
                logger.debug(f"Skipping promotion: id={entry.job_id}, reason={e}")
                continue
            except StoreUnavailableError:
                for remaining in due[index:]:
                    self._queue.restore(remaining)
                raise

            self._queue.enqueue(entry.job_id, entry.job_type, priority=entry.priority)
            promoted += 1

        if promoted:
            logger.info(f"Promoted {promoted} delayed jobs")
        return promoted


class StalledJobReaper(PeriodicTask):
    """멈춘 active 잡 회수 및 큐 인덱스 보정"""

    name = "StalledJobReaper"

    def __init__(
        self,
        store: BaseJobStore,
        queue: JobQueue,
        executor: Executor,
        interval_seconds: float = 30.0,
        grace_seconds: float = 30.0,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(interval_seconds)
        self._store = store
        self._queue = queue
        self._executor = executor
        self._grace = grace_seconds
        self._clock = clock

    async def run_once(self) -> int:
        """
        Returns:
            회수한 잡 수
        """
        stalled = await self._store.find_stalled(self._clock(), self._grace)
        reaped = 0
        for job in stalled:
            logger.warning(
                f"Reaping stalled job: id={job.id}, type={job.type.value}, "
                f"attempt={job.attempts}/{job.max_attempts}, claimed_at={job.claimed_at}"
            )
            status = await self._executor.fail(
                job, JobTimeoutError(job.id, job.timeout_seconds, stalled=True)
            )
            if status is not None:
                reaped += 1

        await rebuild_queue(self._store, self._queue, self._clock)
        return reaped


class RetentionSweeper(PeriodicTask):
    """보관 기간이 지난 종료 잡 삭제"""

    name = "RetentionSweeper"

    def __init__(
        self,
        store: BaseJobStore,
        retention_seconds: float = 86400.0,
        interval_seconds: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(interval_seconds)
        self._store = store
        self._retention = retention_seconds
        self._clock = clock

    async def run_once(self) -> int:
        return await self._store.sweep_expired(self._retention, self._clock())
