"""Dispatcher 모듈 - 잡 등록/취소와 큐 인덱스"""

from dispatcher.main import JobDispatcher
from dispatcher.model.dispatcher import DispatcherConfig, JobTypeConfig
from dispatcher.exception import (
    DispatcherError,
    UnknownJobTypeError,
    EnqueueValidationError,
    JobStateError,
)
from dispatcher.queue.main import JobQueue
from dispatcher.queue.model.queue import QueueDepth, QueueEntry

__all__ = [
    "JobDispatcher",
    "DispatcherConfig",
    "JobTypeConfig",
    "DispatcherError",
    "UnknownJobTypeError",
    "EnqueueValidationError",
    "JobStateError",
    "JobQueue",
    "QueueDepth",
    "QueueEntry",
]
