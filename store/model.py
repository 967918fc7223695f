"""
잡 레코드 모델 정의

시각 필드는 모두 epoch seconds(float)로 저장합니다.
"""

from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, Field


class JobType(str, Enum):
    """잡 타입 (타입별로 정확히 하나의 핸들러가 등록됨)"""
    DOCUMENT_INGEST = "document-ingest"
    PODCAST_GENERATE = "podcast-generate"


class JobStatus(str, Enum):
    """잡 상태"""
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DELAYED = "delayed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class Priority(IntEnum):
    """우선순위 (값이 작을수록 먼저 실행)"""
    HIGH = 1
    NORMAL = 2
    LOW = 3


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# 허용되는 상태 전이 (from -> to)
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.WAITING: frozenset({JobStatus.ACTIVE, JobStatus.FAILED}),
    JobStatus.DELAYED: frozenset({JobStatus.WAITING, JobStatus.FAILED}),
    JobStatus.ACTIVE: frozenset({JobStatus.COMPLETED, JobStatus.DELAYED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class Job(BaseModel):
    """잡 레코드"""
    id: str
    type: JobType
    payload: dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = JobStatus.WAITING
    progress: int = Field(default=0, ge=0, le=100)
    result: Any = None
    error: str | None = None
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=3, ge=1)
    priority: int = Priority.NORMAL
    timeout_seconds: float = Field(default=300.0, gt=0)
    created_at: float
    started_at: float | None = None
    claimed_at: float | None = None
    finished_at: float | None = None
    run_at: float | None = None

    @property
    def attempts_left(self) -> int:
        return self.max_attempts - self.attempts


class JobPatch(BaseModel):
    """compare-and-swap 상태 전이 시 함께 기록할 필드

    None인 필드는 기존 값을 유지한다. started_at은 최초 1회만 기록된다.
    """
    progress: int | None = Field(default=None, ge=0, le=100)
    result: Any = None
    error: str | None = None
    attempts_delta: int = Field(default=0, ge=0, le=1)
    started_at: float | None = None
    claimed_at: float | None = None
    finished_at: float | None = None
    run_at: float | None = None
    expected_attempts: int | None = None


class StatusCounts(BaseModel):
    """상태별 잡 개수"""
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = 0

    @property
    def total(self) -> int:
        return self.waiting + self.active + self.completed + self.failed + self.delayed

    @property
    def processing_rate(self) -> float:
        """완료율 (%) = completed / (completed + failed) * 100"""
        if self.completed == 0:
            return 0.0
        return round(self.completed / (self.completed + self.failed) * 100, 2)
