"""상태/헬스 조회 모델"""

from enum import Enum
from typing import Any

from pydantic import BaseModel

from store.model import JobStatus


class JobStatusView(BaseModel):
    """폴링용 잡 상태"""
    status: JobStatus
    progress: int
    result: Any = None
    error: str | None = None


class QueueMetrics(BaseModel):
    """상태별 잡 개수와 완료율"""
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = 0
    total: int = 0
    processing_rate: float = 0.0


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthThresholds(BaseModel):
    max_waiting: int
    max_active: int
    max_delayed: int


class HealthReport(BaseModel):
    """헬스 체크 결과"""
    status: HealthStatus
    queue: QueueMetrics | None = None
    thresholds: HealthThresholds
    reasons: list[str] = []
    error: str | None = None
    timestamp: float
