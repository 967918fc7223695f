"""Admin API 모델 패키지"""

from admin.api.model.common import (
    PageResponse,
    ErrorResponse,
    ErrorDetail,
)
from admin.api.model.job import (
    EnqueueRequest,
    EnqueueResponse,
    JobStatusResponse,
    JobResponse,
    JobListResponse,
)
from admin.api.model.health import (
    QueueHealthResponse,
    QueueStatusResponse,
    WorkerInfo,
)

__all__ = [
    'PageResponse',
    'ErrorResponse',
    'ErrorDetail',
    'EnqueueRequest',
    'EnqueueResponse',
    'JobStatusResponse',
    'JobResponse',
    'JobListResponse',
    'QueueHealthResponse',
    'QueueStatusResponse',
    'WorkerInfo',
]
