"""
Dispatcher: 잡 등록/취소 모듈

잡을 Job Store에 기록한 뒤 큐 인덱스에 등록합니다. 등록 순서는 항상
store -> queue 이므로, 큐 등록 전에 프로세스가 죽어도 잡은 store에 남고
다음 시작 시 큐 인덱스 재구성으로 복구됩니다.
"""

import logging
import time
import uuid
from typing import Any, Callable

from pydantic import ValidationError

from dispatcher.exception import EnqueueValidationError, JobStateError, UnknownJobTypeError
from dispatcher.model.dispatcher import DispatcherConfig
from dispatcher.queue.main import JobQueue
from store.base import BaseJobStore
from store.exception import ConflictError
from store.model import Job, JobPatch, JobStatus, JobType
from worker.base import HandlerRegistry
from worker.exception import HandlerNotFoundError

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "cancelled"


class JobDispatcher:
    """
    잡 등록 창구

    라우트 핸들러, CLI, 테스트가 모두 이 객체를 통해 잡을 등록한다.
    """

    def __init__(
        self,
        store: BaseJobStore,
        queue: JobQueue,
        registry: HandlerRegistry,
        config: DispatcherConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._queue = queue
        self._registry = registry
        self._config = config or DispatcherConfig()
        self._clock = clock

    async def enqueue(
        self,
        job_type: JobType | str,
        payload: dict[str, Any],
        delay_seconds: float | None = None,
        max_attempts: int | None = None,
        priority: int | None = None,
    ) -> str:
        """
        잡 등록

        Args:
            job_type: 잡 타입
            payload: 핸들러 입력 (핸들러의 payload_model로 검증)
            delay_seconds: 지정 시 delayed 상태로 등록되어 해당 시간 후 실행 가능
            max_attempts: 재시도 상한 (None이면 타입 기본값)
            priority: 우선순위 (None이면 핸들러가 payload로 결정)

        Returns:
            생성된 잡 ID

        Raises:
            UnknownJobTypeError: 등록된 핸들러가 없는 타입
            EnqueueValidationError: payload 또는 옵션 검증 실패
            StoreUnavailableError: 저장소 접근 실패
        """
        try:
            job_type = JobType(job_type)
            handler = self._registry.get(job_type)
        except (ValueError, HandlerNotFoundError):
            raise UnknownJobTypeError(str(getattr(job_type, "value", job_type)))

        if delay_seconds is not None and delay_seconds < 0:
            raise EnqueueValidationError(job_type.value, "delay_seconds must be >= 0")
        if max_attempts is not None and max_attempts < 1:
            raise EnqueueValidationError(job_type.value, "max_attempts must be >= 1")

        try:
            validated = handler.validate_payload(payload)
        except ValidationError as e:
            raise EnqueueValidationError(job_type.value, str(e)) from e

        type_config = self._config.for_type(job_type)
        if priority is None:
            priority = handler.priority_for(validated)

        now = self._clock()
        run_at = now + delay_seconds if delay_seconds else None
        job = Job(
            id=uuid.uuid4().hex,
            type=job_type,
            payload=validated.model_dump(mode="json"),
            status=JobStatus.DELAYED if run_at else JobStatus.WAITING,
            max_attempts=max_attempts or type_config.max_attempts,
            priority=priority,
            timeout_seconds=type_config.timeout_seconds,
            created_at=now,
            run_at=run_at,
        )

        await self._store.put(job)
        self._queue.enqueue(job.id, job.type, run_at=run_at, priority=priority)

        logger.info(
            f"Enqueued job: id={job.id}, type={job_type.value}, status={job.status.value}, "
            f"priority={priority}, max_attempts={job.max_attempts}"
        )
        return job.id

    async def cancel(self, job_id: str) -> Job:
        """
        대기 중(waiting/delayed)인 잡 취소

        Returns:
            failed(error="cancelled") 상태의 잡

        Raises:
            JobNotFoundError: 존재하지 않는 잡
            JobStateError: 이미 실행 중이거나 종료된 잡
        """
        job = await self._store.get(job_id)
        if job.status not in (JobStatus.WAITING, JobStatus.DELAYED):
            raise JobStateError(job_id, job.status.value)

        try:
            cancelled = await self._store.update_status(
                job_id,
                job.status,
                JobStatus.FAILED,
                JobPatch(error=CANCELLED_ERROR, finished_at=self._clock()),
            )
        except ConflictError as e:
            # 그 사이 워커가 claim 했거나 승격됨
            raise JobStateError(job_id, e.actual or "unknown") from e

        self._queue.discard(job_id)
        logger.info(f"Cancelled job: id={job_id}, was={job.status.value}")
        return cancelled
