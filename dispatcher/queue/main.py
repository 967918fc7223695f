"""
JobQueue: claim 가능한 잡 ID 인덱스

잡 타입별 pending 힙과 하나의 delayed 힙으로 구성됩니다. payload 등 잡 데이터는
보관하지 않으며 Job Store가 원본입니다. 인덱스를 잃어도 store의 waiting/delayed
잡으로 다시 만들 수 있습니다 (worker.maintenance.rebuild_queue).

정렬 기준:
    pending: (priority, 등록 순서)  -> 같은 우선순위 안에서는 FIFO
    delayed: (run_at, 등록 순서)

같은 ID가 다시 등록되면 이전 항목은 무효가 되며, pop 시점에 건너뜁니다.
"""

import asyncio
import heapq
import itertools
import logging
import time
from typing import Callable, Iterable

from dispatcher.queue.model.queue import QueueDepth, QueueEntry
from store.model import JobType, Priority

logger = logging.getLogger(__name__)


class JobQueue:
    """잡 타입별 FIFO(+우선순위, 지연) 인덱스"""

    def __init__(
        self,
        job_types: Iterable[JobType] = (),
        clock: Callable[[], float] = time.time,
    ):
        self._clock = clock
        self._pending: dict[JobType, list[tuple[int, int, str]]] = {
            JobType(t): [] for t in job_types
        }
        self._delayed: list[tuple[float, int, str]] = []
        # job_id -> (유효 토큰, 항목)
        self._members: dict[str, tuple[int, QueueEntry]] = {}
        self._seq = itertools.count()
        self._wakeup = asyncio.Event()

    def enqueue(
        self,
        job_id: str,
        job_type: JobType,
        run_at: float | None = None,
        priority: int = Priority.NORMAL,
    ) -> QueueEntry:
        """
        잡 ID 등록

        run_at이 있으면 delayed 힙에, 없으면 타입별 pending 힙의 뒤에 추가한다.
        run_at이 이미 지났어도 delayed로 두며 다음 pop_due()에서 바로 꺼내진다.
        (store 상태가 delayed인 잡은 delayed -> waiting 전이를 거쳐야 claim 가능)
        """
        job_type = JobType(job_type)
        entry = QueueEntry(job_id, job_type, priority, run_at, next(self._seq))
        self._push(entry)
        return entry

    def _push(self, entry: QueueEntry) -> None:
        if entry.run_at is not None:
            heapq.heappush(self._delayed, (entry.run_at, entry.seq, entry.job_id))
        else:
            heap = self._pending.setdefault(entry.job_type, [])
            heapq.heappush(heap, (entry.priority, entry.seq, entry.job_id))
            self._wakeup.set()
        self._members[entry.job_id] = (entry.seq, entry)

    def requeue(
        self,
        job_id: str,
        job_type: JobType,
        delay_seconds: float,
        priority: int = Priority.NORMAL,
    ) -> QueueEntry:
        """재시도 대상 잡을 delay_seconds 후에 다시 claim 가능하도록 등록"""
        return self.enqueue(job_id, job_type, self._clock() + max(0.0, delay_seconds), priority)

    def claim_next(self, job_type: JobType) -> QueueEntry | None:
        """
        타입의 가장 오래된(우선순위 우선) pending 항목을 꺼냄

        꺼낸 뒤의 store 상태 전이(waiting -> active)가 실패하면 호출자는 다음 항목을
        다시 요청한다. store 접근 자체가 실패하면 restore()로 되돌린다.
        """
        heap = self._pending.get(JobType(job_type))
        while heap:
            _, token, job_id = heapq.heappop(heap)
            member = self._members.get(job_id)
            if member is None or member[0] != token:
                continue  # stale
            del self._members[job_id]
            return member[1]
        return None

    def restore(self, entry: QueueEntry) -> None:
        """claim_next()/pop_due()로 꺼낸 항목을 원래 순서 그대로 되돌림"""
        if entry.job_id in self._members:
            return
        self._push(entry)

    def pop_due(self, now: float | None = None) -> list[QueueEntry]:
        """run_at이 지난 delayed 항목을 꺼냄 (승격은 호출자가 store 전이 후 enqueue)"""
        now = self._clock() if now is None else now
        due = []
        while self._delayed and self._delayed[0][0] <= now:
            _, token, job_id = heapq.heappop(self._delayed)
            member = self._members.get(job_id)
            if member is None or member[0] != token:
                continue
            del self._members[job_id]
            due.append(member[1])
        return due

    def discard(self, job_id: str) -> bool:
        """인덱스에서 제거 (힙 항목은 pop 시점에 건너뜀)"""
        return self._members.pop(job_id, None) is not None

    def contains(self, job_id: str) -> bool:
        return job_id in self._members

    def __contains__(self, job_id: str) -> bool:
        return self.contains(job_id)

    def __len__(self) -> int:
        return len(self._members)

    def depth(self, job_type: JobType | None = None) -> QueueDepth:
        """pending/delayed 항목 수"""
        pending = delayed = 0
        for _, entry in self._members.values():
            if job_type is not None and entry.job_type != job_type:
                continue
            if entry.run_at is None:
                pending += 1
            else:
                delayed += 1
        return QueueDepth(pending=pending, delayed=delayed)

    def has_pending(self) -> bool:
        return any(entry.run_at is None for _, entry in self._members.values())

    def notify(self) -> None:
        """대기 중인 워커 슬롯 깨우기"""
        self._wakeup.set()

    async def wait(self, timeout: float) -> None:
        """pending 항목이 생기거나 timeout이 지날 때까지 대기"""
        if self.has_pending():
            return
        self._wakeup.clear()
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass

    @property
    def job_types(self) -> list[JobType]:
        return list(self._pending)
