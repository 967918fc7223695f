"""헬스/메트릭 API 모델 정의"""

from typing import Literal

from pydantic import BaseModel

from monitor.model import HealthThresholds, QueueMetrics


class QueueHealthResponse(BaseModel):
    """큐 헬스 응답 (error는 store 연결 불가)"""
    service: str = "job-queue"
    status: Literal["healthy", "degraded", "error"]
    queue: QueueMetrics | None = None
    thresholds: HealthThresholds
    reasons: list[str] = []
    error: str | None = None
    timestamp: str


class WorkerInfo(BaseModel):
    pool_size: int
    running: int
    concurrency: dict[str, int]


class QueueStatusResponse(BaseModel):
    """운영용 큐 상태 응답"""
    healthy: bool
    metrics: QueueMetrics | None = None
    worker: WorkerInfo
