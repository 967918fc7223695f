"""
공통 테스트 픽스처

각 테스트는 tmp_path 아래의 새 SQLite 파일을 사용하며, 시각은 FakeClock으로 고정합니다.
"""

import asyncio
import logging
import random

import pytest
import pytest_asyncio

from database import SQLiteDatabase
from dispatcher.main import JobDispatcher
from dispatcher.model.dispatcher import DispatcherConfig, JobTypeConfig
from dispatcher.queue.main import JobQueue
from store.model import Job, JobStatus, JobType
from store.sqlite import SQLiteJobStore
from worker.base import HandlerRegistry
from worker.executor import Executor
from worker.job.document import DocumentIngestHandler, LocalTextProcessor
from worker.job.podcast import PodcastGenerateHandler, TranscriptPodcastBackend

# 테스트용 로깅 설정
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

START_TIME = 1_700_000_000.0


class FakeClock:
    """수동으로 진행시키는 시계 (epoch seconds)"""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingProgress:
    """핸들러 단위 테스트용 진행률 기록기"""

    def __init__(self):
        self.values: list[int] = []

    async def __call__(self, value: int) -> None:
        self.values.append(value)

    @property
    def value(self) -> int:
        return self.values[-1] if self.values else 0


def make_job(job_id: str = "job-1", **overrides) -> Job:
    fields = {
        "id": job_id,
        "type": JobType.DOCUMENT_INGEST,
        "payload": {"file_path": "a.txt"},
        "status": JobStatus.WAITING,
        "max_attempts": 3,
        "timeout_seconds": 60.0,
        "created_at": START_TIME,
    }
    fields.update(overrides)
    return Job(**fields)


async def wait_until(predicate, timeout: float = 5.0, interval: float = 0.02) -> None:
    """비동기 predicate가 참이 될 때까지 대기"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not await predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_config(tmp_path):
    return {
        "path": str(tmp_path / "jobs.db"),
        "pool": {"pool_size": 4, "pool_timeout": 5.0},
    }


@pytest_asyncio.fixture
async def database(db_config):
    """테스트용 SQLiteDatabase"""
    db = await SQLiteDatabase.create("test", db_config)
    yield db
    await db.close()


@pytest_asyncio.fixture
async def store(database):
    return SQLiteJobStore(database)


@pytest.fixture
def dispatcher_config():
    """jitter 없는 재시도 정책 (backoff 계산값 고정)"""
    return DispatcherConfig(job_types={
        JobType.DOCUMENT_INGEST: JobTypeConfig(
            max_attempts=3, timeout_seconds=5, backoff_base_seconds=2,
            backoff_max_seconds=120, backoff_jitter=0,
        ),
        JobType.PODCAST_GENERATE: JobTypeConfig(
            max_attempts=2, timeout_seconds=5, backoff_base_seconds=5,
            backoff_max_seconds=300, backoff_jitter=0, concurrency=1,
        ),
    })


@pytest.fixture
def registry(tmp_path):
    """기본 핸들러 레지스트리 (로컬 텍스트 처리기 + 스크립트 파일 백엔드)"""
    registry = HandlerRegistry()
    registry.register(JobType.DOCUMENT_INGEST, DocumentIngestHandler(LocalTextProcessor(tmp_path)))
    registry.register(
        JobType.PODCAST_GENERATE, PodcastGenerateHandler(TranscriptPodcastBackend(tmp_path / "podcasts"))
    )
    return registry


@pytest.fixture
def queue(clock):
    return JobQueue(list(JobType), clock=clock)


@pytest.fixture
def dispatcher(store, queue, registry, dispatcher_config, clock):
    return JobDispatcher(store, queue, registry, dispatcher_config, clock=clock)


@pytest.fixture
def executor(store, queue, registry, dispatcher_config, clock):
    return Executor(
        store, queue, registry, dispatcher_config,
        clock=clock, rng=random.Random(42), store_retry_seconds=0.01,
    )
