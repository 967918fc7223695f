"""
QueueRuntime: 잡 큐 구성요소 조립

데이터베이스, Job Store, 큐 인덱스, 핸들러 레지스트리, 디스패처, 워커풀,
유지보수 태스크, 헬스 모니터를 한 곳에서 만들고 닫습니다.

사용 예시:
    async with QueueRuntime(load_config()) as runtime:
        job_id = await runtime.dispatcher.enqueue("document-ingest", {"file": "a.pdf"})
        await runtime.run()      # stop() 호출 시까지 워커/유지보수 실행
"""

import asyncio
import logging
import random
import time
from typing import Callable

from common.config import AppConfig
from common.periodic import PeriodicTask
from database import SQLiteDatabase
from dispatcher.main import JobDispatcher
from dispatcher.queue.main import JobQueue
from monitor.health import HealthMonitor
from monitor.status import StatusService
from store.sqlite import SQLiteJobStore
from worker.base import HandlerRegistry, load_handlers
from worker.executor import Executor
from worker.main import WorkerPool
from worker.maintenance import (
    DelayedJobPromoter,
    RetentionSweeper,
    StalledJobReaper,
    rebuild_queue,
)

logger = logging.getLogger(__name__)


class QueueRuntime:
    """잡 큐 런타임"""

    def __init__(
        self,
        config: AppConfig | None = None,
        registry: HandlerRegistry | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ):
        self.config = config or AppConfig()
        self._registry = registry
        self._clock = clock
        self._rng = rng
        self._db: SQLiteDatabase | None = None
        self._stop_event: asyncio.Event | None = None
        self._running = False

        self.store: SQLiteJobStore | None = None
        self.queue: JobQueue | None = None
        self.registry: HandlerRegistry | None = None
        self.dispatcher: JobDispatcher | None = None
        self.executor: Executor | None = None
        self.status: StatusService | None = None
        self.health: HealthMonitor | None = None
        self.pool: WorkerPool | None = None
        self.promoter: DelayedJobPromoter | None = None
        self.reaper: StalledJobReaper | None = None
        self.sweeper: RetentionSweeper | None = None

    async def open(self) -> "QueueRuntime":
        """구성요소 생성 및 큐 인덱스 재구성"""
        if self._db is not None:
            return self

        if self._registry is None:
            self._registry = HandlerRegistry()
            load_handlers(self._registry, self.config.handlers)
        self.registry = self._registry

        db_config = dict(self.config.database)
        self._db = await SQLiteDatabase.create(db_config.pop("name", "default"), db_config)
        self.store = SQLiteJobStore(self._db)
        self.queue = JobQueue(self.registry.job_types, clock=self._clock)

        dispatcher_config = self.config.dispatcher
        maintenance = self.config.maintenance
        self.dispatcher = JobDispatcher(
            self.store, self.queue, self.registry, dispatcher_config, clock=self._clock
        )
        self.executor = Executor(
            self.store,
            self.queue,
            self.registry,
            dispatcher_config,
            clock=self._clock,
            rng=self._rng,
            store_retry_seconds=self.config.worker.store_retry_seconds,
        )
        self.status = StatusService(self.store)
        self.health = HealthMonitor(self.store, self.config.health, clock=self._clock)
        self.pool = WorkerPool(
            self.executor,
            self.queue,
            self.registry.job_types,
            self.config.worker,
            dispatcher_config,
        )
        self.promoter = DelayedJobPromoter(
            self.store, self.queue, maintenance.promote_interval_seconds, clock=self._clock
        )
        self.reaper = StalledJobReaper(
            self.store,
            self.queue,
            self.executor,
            maintenance.reap_interval_seconds,
            maintenance.stall_grace_seconds,
            clock=self._clock,
        )
        self.sweeper = RetentionSweeper(
            self.store,
            maintenance.retention_seconds,
            maintenance.sweep_interval_seconds,
            clock=self._clock,
        )

        await rebuild_queue(self.store, self.queue, self._clock)
        logger.info(f"QueueRuntime opened (job_types={[t.value for t in self.registry.job_types]})")
        return self

    @property
    def periodic_tasks(self) -> list[PeriodicTask]:
        return [self.promoter, self.reaper, self.sweeper, self.health]

    async def run(self) -> None:
        """워커풀과 주기 태스크 실행 (stop() 호출 시까지 대기)"""
        if self.pool is None:
            await self.open()
        if self._running:
            logger.warning("QueueRuntime is already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        tasks = [asyncio.create_task(self.pool.start(), name="worker-pool")]
        tasks += [
            asyncio.create_task(task.start(), name=task.name) for task in self.periodic_tasks
        ]
        logger.info("QueueRuntime started")

        try:
            await self._stop_event.wait()
        finally:
            await self.pool.stop()
            for task in self.periodic_tasks:
                await task.stop()
            await asyncio.gather(*tasks, return_exceptions=True)
            self._running = False
            logger.info("QueueRuntime stopped")

    async def stop(self) -> None:
        if self._stop_event:
            self._stop_event.set()

    async def close(self) -> None:
        """런타임 종료 (데이터베이스 연결 해제)"""
        await self.stop()
        if self._db is not None:
            await self._db.close()
            self._db = None
        logger.info("QueueRuntime closed")

    @property
    def is_running(self) -> bool:
        return self._running

    async def __aenter__(self) -> "QueueRuntime":
        return await self.open()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
