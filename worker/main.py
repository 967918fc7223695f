"""
WorkerPool: 잡 실행 워커풀 모듈

pool_size 개의 슬롯이 각자 독립 루프로 큐에서 잡을 claim 하여 실행합니다.
슬롯은 자신의 번호만큼 어긋난 위치에서 시작해 잡 타입을 라운드로빈으로 돌며,
타입별 동시 실행 수는 세마포어로 제한됩니다.

실행 방법:
    python main.py worker
    jobqueue run
"""

import asyncio
import logging
from dataclasses import dataclass

from dispatcher.model.dispatcher import DispatcherConfig
from dispatcher.queue.main import JobQueue
from store.exception import StoreUnavailableError
from store.model import JobType
from worker.executor import Executor

logger = logging.getLogger(__name__)


@dataclass
class WorkerConfig:
    """워커풀 설정"""
    pool_size: int = 10
    poll_interval_seconds: float = 1.0
    store_retry_seconds: float = 5.0
    shutdown_timeout_seconds: float = 30.0


class WorkerPool:
    """
    잡 실행 워커풀

    start()는 stop()이 호출될 때까지 반환하지 않는다. 종료 시 새 claim을 멈추고
    실행 중인 잡을 shutdown_timeout_seconds 동안 기다린 뒤 남은 슬롯을 취소한다.
    취소된 잡은 active로 남으며 다음 시작 시 reaper가 회수한다.
    """

    def __init__(
        self,
        executor: Executor,
        queue: JobQueue,
        job_types: list[JobType],
        config: WorkerConfig | None = None,
        dispatcher_config: DispatcherConfig | None = None,
    ):
        self._executor = executor
        self._queue = queue
        self._job_types = [JobType(t) for t in job_types]
        self._config = config or WorkerConfig()
        self._dispatcher_config = dispatcher_config or DispatcherConfig()
        self._running = False
        self._stop_event: asyncio.Event | None = None
        self._slots: set[asyncio.Task] = set()
        self._type_semaphores: dict[JobType, asyncio.Semaphore] = {}
        self._active_jobs = 0

    def _type_limit(self, job_type: JobType) -> int:
        concurrency = self._dispatcher_config.for_type(job_type).concurrency
        if concurrency is None:
            return self._config.pool_size
        return max(1, min(concurrency, self._config.pool_size))

    async def start(self) -> None:
        """워커풀 시작 (stop() 호출 시까지 대기)"""
        if self._running:
            logger.warning("WorkerPool is already running")
            return
        if not self._job_types:
            raise ValueError("WorkerPool requires at least one job type")

        self._running = True
        self._stop_event = asyncio.Event()
        self._type_semaphores = {t: asyncio.Semaphore(self._type_limit(t)) for t in self._job_types}

        for slot_id in range(self._config.pool_size):
            task = asyncio.create_task(self._slot_loop(slot_id), name=f"worker-slot-{slot_id}")
            self._slots.add(task)
            task.add_done_callback(self._on_slot_done)

        limits = {t.value: limit for t, limit in self.type_limits.items()}
        logger.info(
            f"WorkerPool started (pool_size={self._config.pool_size}, "
            f"poll_interval={self._config.poll_interval_seconds}s, type_limits={limits})"
        )

        try:
            await self._stop_event.wait()
        except asyncio.CancelledError:
            logger.info("WorkerPool cancelled")
            self._running = False
        finally:
            await self._wait_slots()
            self._running = False
            logger.info("WorkerPool stopped")

    async def stop(self) -> None:
        """WorkerPool graceful shutdown"""
        if not self._running:
            return

        logger.info("Stopping WorkerPool...")
        self._running = False
        if self._stop_event:
            self._stop_event.set()
        self._queue.notify()

    async def _slot_loop(self, slot_id: int) -> None:
        """슬롯 루프: 라운드로빈으로 타입을 돌며 claim -> 실행"""
        offset = slot_id % len(self._job_types)

        while self._running:
            try:
                ran_type_index = await self._run_one(offset)
            except StoreUnavailableError as e:
                logger.warning(
                    f"[slot {slot_id}] Store unavailable: {e}. "
                    f"Retrying in {self._config.store_retry_seconds}s..."
                )
                await self._sleep(self._config.store_retry_seconds)
                continue
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[slot {slot_id}] Unexpected error in slot loop: {e}", exc_info=True)
                await self._sleep(self._config.poll_interval_seconds)
                continue

            if ran_type_index is not None:
                # 다음 라운드는 방금 실행한 타입의 다음 타입부터
                offset = (ran_type_index + 1) % len(self._job_types)
            elif self._queue.has_pending():
                # 대기 잡은 있지만 타입별 동시 실행 상한에 걸림
                await self._sleep(self._config.poll_interval_seconds)
            else:
                await self._queue.wait(self._config.poll_interval_seconds)

    async def _run_one(self, offset: int) -> int | None:
        """offset 위치부터 타입을 돌며 잡 하나를 실행, 실행한 타입의 인덱스 반환"""
        count = len(self._job_types)
        for step in range(count):
            index = (offset + step) % count
            job_type = self._job_types[index]
            semaphore = self._type_semaphores[job_type]
            if semaphore.locked():
                continue

            async with semaphore:
                if not self._running:
                    return None
                job = await self._executor.claim(job_type)
                if job is None:
                    continue
                self._active_jobs += 1
                try:
                    await self._executor.execute(job)
                finally:
                    self._active_jobs -= 1
            return index
        return None

    async def _sleep(self, seconds: float) -> None:
        """인터럽트 가능한 sleep"""
        if self._stop_event:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass

    def _on_slot_done(self, task: asyncio.Task) -> None:
        """슬롯 종료 콜백"""
        self._slots.discard(task)
        if not task.cancelled() and task.exception():
            logger.error(f"Slot exception: {task.exception()}")

    async def _wait_slots(self) -> None:
        """실행 중인 슬롯 완료 대기 (graceful shutdown)"""
        if not self._slots:
            return

        slots = list(self._slots)
        if self._active_jobs:
            logger.info(f"Waiting for {self._active_jobs} running jobs...")

        done, pending = await asyncio.wait(slots, timeout=self._config.shutdown_timeout_seconds)
        if pending:
            logger.warning(
                f"Shutdown timeout ({self._config.shutdown_timeout_seconds}s), "
                f"cancelling {self._active_jobs} running jobs"
            )
            # 강제 취소
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        else:
            logger.info("All slots stopped")

    @property
    def is_running(self) -> bool:
        """실행 중 여부"""
        return self._running

    @property
    def running_task_count(self) -> int:
        """실행 중인 잡 수"""
        return self._active_jobs

    @property
    def pool_size(self) -> int:
        return self._config.pool_size

    @property
    def type_limits(self) -> dict[JobType, int]:
        """타입별 동시 실행 상한"""
        return {t: self._type_limit(t) for t in self._job_types}
