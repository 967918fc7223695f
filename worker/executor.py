"""
잡 실행기 모듈

개별 잡의 claim, 실행, 결과 정산(settle)을 담당합니다.

    claim:   waiting -> active (attempts + 1)
    성공:    active -> completed (result, progress=100)
    실패:    active -> delayed (backoff 후 재시도) / active -> failed (재시도 상한)

모든 정산은 claim 시점의 attempts를 expected_attempts로 걸어 두므로, 타임아웃 후
reaper가 이미 정산했거나 다른 워커가 다시 claim 한 잡은 덮어쓰지 않습니다.
"""

import asyncio
import logging
import random
import time
from typing import Any, Callable

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from dispatcher.model.dispatcher import DispatcherConfig
from dispatcher.queue.main import JobQueue
from store.base import BaseJobStore
from store.exception import ConflictError, JobNotFoundError, StoreUnavailableError
from store.model import Job, JobPatch, JobStatus, JobType
from worker.base import HandlerRegistry
from worker.exception import HandlerNotFoundError, JobCancelledError, JobTimeoutError
from worker.model.handler import ProgressReporter
from worker.retry import compute_backoff

logger = logging.getLogger(__name__)


def _consume_result(task: asyncio.Task) -> None:
    """버려진 핸들러 태스크의 예외 회수 (미회수 경고 방지)"""
    if not task.cancelled():
        task.exception()


class Executor:
    """잡 실행기"""

    def __init__(
        self,
        store: BaseJobStore,
        queue: JobQueue,
        registry: HandlerRegistry,
        config: DispatcherConfig | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
        store_retry_seconds: float = 1.0,
    ):
        self._store = store
        self._queue = queue
        self._registry = registry
        self._config = config or DispatcherConfig()
        self._clock = clock
        self._rng = rng or random.Random()
        self._store_retry_seconds = store_retry_seconds

    async def claim(self, job_type: JobType) -> Job | None:
        """
        타입의 다음 잡 claim

        큐에서 꺼낸 ID에 대해 waiting -> active CAS를 시도하고, 경쟁에서 지면
        다음 ID로 넘어간다.

        Returns:
            active 상태가 된 잡 (claim 할 잡이 없으면 None)

        Raises:
            StoreUnavailableError: 저장소 접근 실패 (꺼낸 항목은 큐에 되돌림)
        """
        while True:
            entry = self._queue.claim_next(job_type)
            if entry is None:
                return None

            now = self._clock()
            try:
                job = await self._store.update_status(
                    entry.job_id,
                    JobStatus.WAITING,
                    JobStatus.ACTIVE,
                    JobPatch(attempts_delta=1, started_at=now, claimed_at=now),
                )
            except JobNotFoundError:
                logger.debug(f"Skipping missing job: id={entry.job_id}")
                continue
            except ConflictError as e:
                if e.actual == JobStatus.WAITING.value:
                    # 상태는 waiting인데 attempts가 상한에 도달한 경우
                    await self._fail_exhausted(entry.job_id)
                else:
                    logger.debug(f"Lost claim race: id={entry.job_id}, status={e.actual}")
                continue
            except StoreUnavailableError:
                self._queue.restore(entry)
                raise

            logger.info(
                f"Claimed job: id={job.id}, type={job.type.value}, "
                f"attempt={job.attempts}/{job.max_attempts}"
            )
            return job

    async def _fail_exhausted(self, job_id: str) -> None:
        try:
            await self._store.update_status(
                job_id,
                JobStatus.WAITING,
                JobStatus.FAILED,
                JobPatch(error="max attempts exceeded", finished_at=self._clock()),
            )
            logger.warning(f"Job failed without running (attempts exhausted): id={job_id}")
        except (ConflictError, JobNotFoundError):
            pass

    async def execute(self, job: Job) -> JobStatus | None:
        """
        claim 된 잡 실행 및 정산

        핸들러는 별도 태스크로 실행되며, 타임아웃 시 cancel_event를 set 하고 태스크를
        취소한 뒤 종료를 기다리지 않고 바로 실패로 정산한다.

        Returns:
            정산 후 상태 (다른 주체가 먼저 정산했으면 None)
        """
        try:
            handler = self._registry.get(job.type)
        except HandlerNotFoundError as e:
            logger.error(f"Handler not found for job: id={job.id}, type={job.type.value}")
            return await self.fail(job, e)

        try:
            payload = handler.validate_payload(job.payload)
        except ValidationError as e:
            logger.error(f"Invalid payload for job: id={job.id}, error={e}")
            return await self.fail(job, e)

        progress = ProgressReporter(self._store, job.id, job.attempts, job.progress)
        cancel_event = asyncio.Event()
        task = asyncio.create_task(
            handler.execute(payload, progress, cancel_event),
            name=f"job-{job.id}",
        )

        try:
            done, _ = await asyncio.wait({task}, timeout=job.timeout_seconds)
        except asyncio.CancelledError:
            # 워커 종료 등으로 실행기 자체가 취소됨, 잡은 active로 남고 reaper가 회수
            cancel_event.set()
            task.cancel()
            task.add_done_callback(_consume_result)
            raise

        if not done:
            cancel_event.set()
            task.cancel()
            task.add_done_callback(_consume_result)
            logger.error(f"Job timed out: id={job.id}, timeout={job.timeout_seconds}s")
            return await self.fail(job, JobTimeoutError(job.id, job.timeout_seconds))

        try:
            result = task.result()
        except asyncio.CancelledError:
            return await self.fail(job, JobCancelledError(job.id))
        except Exception as e:
            logger.error(f"Job execution failed: id={job.id}, error={e}")
            return await self.fail(job, e)

        return await self.complete(job, result)

    async def complete(self, job: Job, result: Any) -> JobStatus | None:
        """active -> completed 정산"""
        try:
            result = to_jsonable_python(result)
        except PydanticSerializationError as e:
            return await self.fail(job, ValueError(f"Result is not JSON serializable: {e}"))

        updated = await self._settle(
            job,
            JobStatus.COMPLETED,
            JobPatch(
                result=result,
                progress=100,
                finished_at=self._clock(),
                expected_attempts=job.attempts,
            ),
        )
        if updated is None:
            return None
        logger.info(f"Job completed: id={job.id}, attempt={job.attempts}")
        return updated.status

    async def fail(self, job: Job, exc: BaseException) -> JobStatus | None:
        """
        실패 정산

        재시도 여유가 있으면 backoff 후 재실행되도록 delayed로, 없으면 failed로 전이한다.
        reaper도 멈춘 잡을 이 경로로 정산한다.
        """
        error = str(exc) or type(exc).__name__
        now = self._clock()

        if job.attempts < job.max_attempts:
            type_config = self._config.for_type(job.type)
            delay = compute_backoff(
                job.attempts,
                type_config.backoff_base_seconds,
                type_config.backoff_max_seconds,
                type_config.backoff_jitter,
                self._rng,
            )
            updated = await self._settle(
                job,
                JobStatus.DELAYED,
                JobPatch(error=error, run_at=now + delay, expected_attempts=job.attempts),
            )
            if updated is None:
                return None
            self._queue.requeue(job.id, job.type, delay, priority=job.priority)
            logger.info(
                f"Scheduling retry: id={job.id}, attempt={job.attempts}/{job.max_attempts}, "
                f"delay={delay:.2f}s, error={error}"
            )
            return updated.status

        updated = await self._settle(
            job,
            JobStatus.FAILED,
            JobPatch(error=error, finished_at=now, expected_attempts=job.attempts),
        )
        if updated is None:
            return None
        logger.warning(
            f"Job failed permanently: id={job.id}, attempts={job.attempts}/{job.max_attempts}, "
            f"error={error}"
        )
        return updated.status

    async def _settle(self, job: Job, to_status: JobStatus, patch: JobPatch) -> Job | None:
        """active -> to_status 전이 (저장소 장애 시 복구될 때까지 재시도)"""
        while True:
            try:
                return await self._store.update_status(job.id, JobStatus.ACTIVE, to_status, patch)
            except (ConflictError, JobNotFoundError) as e:
                logger.info(f"Settlement skipped, job already settled elsewhere: id={job.id}, reason={e}")
                return None
            except StoreUnavailableError as e:
                logger.warning(
                    f"Store unavailable while settling job {job.id} -> {to_status.value}: {e}. "
                    f"Retrying in {self._store_retry_seconds}s..."
                )
                await asyncio.sleep(self._store_retry_seconds)

    async def run_next(self, job_type: JobType) -> bool:
        """타입의 다음 잡 하나를 claim 하여 실행, 실행했으면 True"""
        job = await self.claim(job_type)
        if job is None:
            return False
        await self.execute(job)
        return True
