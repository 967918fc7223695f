"""Job Store 패키지 - 잡 상태의 유일한 원본"""

from store.base import BaseJobStore
from store.sqlite import SQLiteJobStore
from store.model import (
    Job,
    JobPatch,
    JobStatus,
    JobType,
    Priority,
    StatusCounts,
    TERMINAL_STATUSES,
)
from store.exception import (
    StoreError,
    JobNotFoundError,
    ConflictError,
    InvalidTransitionError,
    StoreUnavailableError,
)

__all__ = [
    "BaseJobStore",
    "SQLiteJobStore",
    "Job",
    "JobPatch",
    "JobStatus",
    "JobType",
    "Priority",
    "StatusCounts",
    "TERMINAL_STATUSES",
    "StoreError",
    "JobNotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "StoreUnavailableError",
]
