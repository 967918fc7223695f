"""잡 큐 인덱스"""
from dispatcher.queue.main import JobQueue
from dispatcher.queue.model.queue import QueueDepth, QueueEntry

__all__ = ["JobQueue", "QueueDepth", "QueueEntry"]
