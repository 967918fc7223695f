"""Queue 관련 모델"""
from dataclasses import dataclass

from store.model import JobType, Priority


@dataclass(frozen=True)
class QueueEntry:
    """큐 인덱스 항목 (잡 payload는 담지 않음)"""
    job_id: str
    job_type: JobType
    priority: int = Priority.NORMAL
    run_at: float | None = None
    seq: int = 0


@dataclass(frozen=True)
class QueueDepth:
    """큐 인덱스 깊이"""
    pending: int
    delayed: int
