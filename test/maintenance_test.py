"""
유지보수 태스크 테스트

테스트 항목:
1. 지연 잡: run_at 이전에는 claim 불가, 이후 승격되어 claim 가능
2. 멈춘 active 잡 회수 (재시도 / 최종 실패)
3. 큐 인덱스 재구성 (store에만 있는 waiting/delayed 잡)
4. 보관 기간 정리
5. PeriodicTask 루프: 예외 후에도 계속 실행, stop()으로 종료

실행: python -m pytest test/maintenance_test.py -v
"""

import asyncio

import pytest

from common.periodic import PeriodicTask
from conftest import START_TIME, make_job, wait_until
from store.exception import StoreUnavailableError
from store.model import JobStatus, JobType
from worker.maintenance import (
    DelayedJobPromoter,
    RetentionSweeper,
    StalledJobReaper,
    rebuild_queue,
)

DOC = JobType.DOCUMENT_INGEST


# ============================================================
# 지연 잡 승격
# ============================================================

class TestDelayedJobPromoter:
    """지연 잡 승격 테스트"""

    @pytest.mark.asyncio
    async def test_delayed_job_lifecycle(self, dispatcher, executor, store, queue, clock, tmp_path):
        """delay 5초 잡: 1초 뒤에는 delayed, 6초 뒤에는 승격되어 실행됨"""
        (tmp_path / "a.txt").write_text("hello", encoding="utf-8")
        promoter = DelayedJobPromoter(store, queue, clock=clock)
        job_id = await dispatcher.enqueue("document-ingest", {"file": "a.txt"}, delay_seconds=5)

        clock.advance(1)
        assert await promoter.run_once() == 0
        assert (await store.get(job_id)).status == JobStatus.DELAYED
        assert await executor.claim(DOC) is None

        clock.advance(5)
        assert await promoter.run_once() == 1
        assert (await store.get(job_id)).status == JobStatus.WAITING

        assert await executor.run_next(DOC)
        assert (await store.get(job_id)).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_skips_cancelled_job(self, dispatcher, store, queue, clock):
        """승격 전에 상태가 바뀐 잡은 건너뜀"""
        promoter = DelayedJobPromoter(store, queue, clock=clock)
        job_id = await dispatcher.enqueue("document-ingest", {"file": "a.txt"}, delay_seconds=5)
        await store.put((await store.get(job_id)).model_copy(update={"status": JobStatus.FAILED}))

        clock.advance(10)
        assert await promoter.run_once() == 0
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_restores_entries_when_store_unavailable(
        self, dispatcher, store, queue, clock, database
    ):
        promoter = DelayedJobPromoter(store, queue, clock=clock)
        await dispatcher.enqueue("document-ingest", {"file": "a.txt"}, delay_seconds=5)
        await database.close()

        clock.advance(10)
        with pytest.raises(StoreUnavailableError):
            await promoter.run_once()
        assert queue.depth().delayed == 1


# ============================================================
# 멈춘 잡 회수
# ============================================================

class TestStalledJobReaper:
    """멈춘 잡 회수 테스트"""

    @pytest.mark.asyncio
    async def test_reap_schedules_retry(self, store, queue, executor, clock):
        await store.put(make_job(
            status=JobStatus.ACTIVE, attempts=1, claimed_at=START_TIME - 200, timeout_seconds=60
        ))
        reaper = StalledJobReaper(store, queue, executor, grace_seconds=30, clock=clock)

        assert await reaper.run_once() == 1

        job = await store.get("job-1")
        assert job.status == JobStatus.DELAYED
        assert "stalled" in job.error
        assert "job-1" in queue

    @pytest.mark.asyncio
    async def test_reap_final_attempt_fails(self, store, queue, executor, clock):
        await store.put(make_job(
            status=JobStatus.ACTIVE, attempts=3, max_attempts=3,
            claimed_at=START_TIME - 200, timeout_seconds=60,
        ))
        reaper = StalledJobReaper(store, queue, executor, grace_seconds=30, clock=clock)

        await reaper.run_once()

        job = await store.get("job-1")
        assert job.status == JobStatus.FAILED
        assert job.finished_at == START_TIME

    @pytest.mark.asyncio
    async def test_running_job_untouched(self, store, queue, executor, clock):
        """timeout + grace 이내의 active 잡은 회수하지 않음"""
        await store.put(make_job(
            status=JobStatus.ACTIVE, attempts=1, claimed_at=START_TIME - 60, timeout_seconds=60
        ))
        reaper = StalledJobReaper(store, queue, executor, grace_seconds=30, clock=clock)

        assert await reaper.run_once() == 0
        assert (await store.get("job-1")).status == JobStatus.ACTIVE


# ============================================================
# 큐 인덱스 재구성
# ============================================================

class TestRebuildQueue:
    """큐 인덱스 재구성 테스트"""

    @pytest.mark.asyncio
    async def test_rebuild_from_store(self, store, queue, clock):
        """프로세스 재시작 후 store의 waiting/delayed 잡을 다시 등록"""
        await store.put(make_job("waiting-1"))
        await store.put(make_job("delayed-1", status=JobStatus.DELAYED, run_at=START_TIME + 30))
        await store.put(make_job("done-1", status=JobStatus.COMPLETED))

        assert await rebuild_queue(store, queue, clock) == 2
        assert queue.claim_next(DOC).job_id == "waiting-1"
        assert queue.pop_due(START_TIME + 10) == []
        assert [e.job_id for e in queue.pop_due(START_TIME + 30)] == ["delayed-1"]

    @pytest.mark.asyncio
    async def test_rebuild_is_idempotent(self, store, queue, clock):
        await store.put(make_job("waiting-1"))

        assert await rebuild_queue(store, queue, clock) == 1
        assert await rebuild_queue(store, queue, clock) == 0
        assert len(queue) == 1


# ============================================================
# 보관 기간 정리
# ============================================================

class TestRetentionSweeper:

    @pytest.mark.asyncio
    async def test_sweep(self, store, clock):
        await store.put(make_job("old", status=JobStatus.COMPLETED, finished_at=START_TIME - 90000))
        await store.put(make_job("new", status=JobStatus.COMPLETED, finished_at=START_TIME - 10))
        sweeper = RetentionSweeper(store, retention_seconds=86400, clock=clock)

        assert await sweeper.run_once() == 1
        jobs, total = await store.list_jobs()
        assert total == 1
        assert jobs[0].id == "new"


# ============================================================
# PeriodicTask
# ============================================================

class FlakyTask(PeriodicTask):
    """첫 실행은 실패, 이후 성공하는 테스트용 태스크"""

    name = "FlakyTask"

    def __init__(self):
        super().__init__(interval_seconds=0.01)
        self.calls = 0

    async def run_once(self):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("first run fails")
        if self.calls == 2:
            raise StoreUnavailableError("locked")


class TestPeriodicTask:

    @pytest.mark.asyncio
    async def test_keeps_running_after_errors(self):
        task = FlakyTask()
        runner = asyncio.create_task(task.start())

        async def ran_three_times():
            return task.calls >= 3

        await wait_until(ran_three_times, timeout=2)
        assert task.is_running

        await task.stop()
        await asyncio.wait_for(runner, timeout=1)
        assert not task.is_running
