"""
Job Store 테스트

테스트 항목:
1. put/get 왕복 및 미존재 잡 조회
2. compare-and-swap 상태 전이 (성공, 충돌, 미존재, 허용되지 않는 전이, 완료 시 error 초기화)
3. 동시 claim 시 정확히 하나만 성공
4. attempts 상한과 expected_attempts 가드
5. 진행률 기록 (감소 무시, attempt 불일치 무시)
6. 상태별 집계, 목록 조회, 멈춘 잡 조회, 보관 기간 정리
7. 연결 종료 후 StoreUnavailableError
8. 예외 시 트랜잭션 롤백과 연결 반환

실행: python -m pytest test/store_test.py -v
"""

import asyncio

import pytest

from conftest import START_TIME, make_job
from store.exception import (
    ConflictError,
    InvalidTransitionError,
    JobNotFoundError,
    StoreUnavailableError,
)
from store.model import JobPatch, JobStatus, JobType


# ============================================================
# 기본 조회/저장
# ============================================================

class TestPutGet:
    """put/get 테스트"""

    @pytest.mark.asyncio
    async def test_put_and_get(self, store):
        """저장한 레코드를 그대로 읽어옴"""
        job = make_job(payload={"file_path": "docs/a.txt", "document_id": "d-1"}, priority=1)
        await store.put(job)

        loaded = await store.get(job.id)
        assert loaded == job
        assert loaded.payload["document_id"] == "d-1"

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        """존재하지 않는 잡은 JobNotFoundError"""
        with pytest.raises(JobNotFoundError):
            await store.get("nope")

    @pytest.mark.asyncio
    async def test_put_overwrites(self, store):
        """같은 ID로 다시 put 하면 덮어씀"""
        await store.put(make_job())
        await store.put(make_job(progress=40, error="boom"))

        loaded = await store.get("job-1")
        assert loaded.progress == 40
        assert loaded.error == "boom"


# ============================================================
# compare-and-swap
# ============================================================

class TestUpdateStatus:
    """상태 전이 테스트"""

    @pytest.mark.asyncio
    async def test_claim_sets_fields(self, store):
        """waiting -> active: attempts 증가, started_at/claimed_at 기록"""
        await store.put(make_job())

        job = await store.update_status(
            "job-1", JobStatus.WAITING, JobStatus.ACTIVE,
            JobPatch(attempts_delta=1, started_at=START_TIME + 1, claimed_at=START_TIME + 1),
        )
        assert job.status == JobStatus.ACTIVE
        assert job.attempts == 1
        assert job.started_at == START_TIME + 1
        assert job.claimed_at == START_TIME + 1

    @pytest.mark.asyncio
    async def test_started_at_kept_on_reclaim(self, store):
        """재시도 claim 시 started_at은 최초 값 유지, claimed_at만 갱신"""
        await store.put(make_job(status=JobStatus.WAITING, attempts=1, started_at=START_TIME))

        job = await store.update_status(
            "job-1", JobStatus.WAITING, JobStatus.ACTIVE,
            JobPatch(attempts_delta=1, started_at=START_TIME + 50, claimed_at=START_TIME + 50),
        )
        assert job.started_at == START_TIME
        assert job.claimed_at == START_TIME + 50
        assert job.attempts == 2

    @pytest.mark.asyncio
    async def test_conflict_reports_actual_status(self, store):
        """저장된 상태가 다르면 ConflictError (실제 상태 포함)"""
        await store.put(make_job(status=JobStatus.COMPLETED))

        with pytest.raises(ConflictError) as exc_info:
            await store.update_status("job-1", JobStatus.WAITING, JobStatus.ACTIVE)
        assert exc_info.value.actual == "completed"

    @pytest.mark.asyncio
    async def test_missing_job(self, store):
        with pytest.raises(JobNotFoundError):
            await store.update_status("nope", JobStatus.WAITING, JobStatus.ACTIVE)

    @pytest.mark.asyncio
    async def test_invalid_transition(self, store):
        """completed -> waiting 같은 전이는 DB 접근 전에 거부"""
        await store.put(make_job(status=JobStatus.COMPLETED))

        with pytest.raises(InvalidTransitionError):
            await store.update_status("job-1", JobStatus.COMPLETED, JobStatus.WAITING)
        with pytest.raises(InvalidTransitionError):
            await store.update_status("job-1", JobStatus.WAITING, JobStatus.COMPLETED)

    @pytest.mark.asyncio
    async def test_concurrent_claim_single_winner(self, store):
        """같은 잡을 동시에 claim 하면 정확히 하나만 성공"""
        await store.put(make_job())

        results = await asyncio.gather(
            *[
                store.update_status(
                    "job-1", JobStatus.WAITING, JobStatus.ACTIVE, JobPatch(attempts_delta=1)
                )
                for _ in range(4)
            ],
            return_exceptions=True,
        )
        winners = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(winners) == 1
        assert len(conflicts) == 3

        job = await store.get("job-1")
        assert job.attempts == 1

    @pytest.mark.asyncio
    async def test_claim_blocked_at_attempt_ceiling(self, store):
        """attempts가 max_attempts에 도달하면 claim 불가"""
        await store.put(make_job(attempts=3, max_attempts=3))

        with pytest.raises(ConflictError) as exc_info:
            await store.update_status(
                "job-1", JobStatus.WAITING, JobStatus.ACTIVE, JobPatch(attempts_delta=1)
            )
        assert exc_info.value.actual == "waiting"
        assert (await store.get("job-1")).attempts == 3

    @pytest.mark.asyncio
    async def test_expected_attempts_guard(self, store):
        """이전 attempt의 정산은 거부됨"""
        await store.put(make_job(status=JobStatus.ACTIVE, attempts=2))

        with pytest.raises(ConflictError):
            await store.update_status(
                "job-1", JobStatus.ACTIVE, JobStatus.COMPLETED,
                JobPatch(result={"ok": True}, expected_attempts=1),
            )

        job = await store.update_status(
            "job-1", JobStatus.ACTIVE, JobStatus.COMPLETED,
            JobPatch(result={"ok": True}, progress=100, expected_attempts=2),
        )
        assert job.result == {"ok": True}
        assert job.progress == 100

    @pytest.mark.asyncio
    async def test_completion_clears_previous_error(self, store):
        """active -> completed 전이는 이전 시도의 error를 지움"""
        await store.put(make_job(status=JobStatus.ACTIVE, attempts=2, error="boom"))

        job = await store.update_status(
            "job-1", JobStatus.ACTIVE, JobStatus.COMPLETED,
            JobPatch(result={"ok": True}, progress=100, expected_attempts=2),
        )
        assert job.error is None
        assert (await store.get("job-1")).error is None

    @pytest.mark.asyncio
    async def test_retry_records_new_error(self, store):
        """active -> delayed 전이는 새 error를 기록"""
        await store.put(make_job(status=JobStatus.ACTIVE, attempts=1, error="old"))

        job = await store.update_status(
            "job-1", JobStatus.ACTIVE, JobStatus.DELAYED,
            JobPatch(error="new", run_at=START_TIME + 2),
        )
        assert job.error == "new"


# ============================================================
# 진행률
# ============================================================

class TestProgress:
    """진행률 기록 테스트"""

    @pytest.mark.asyncio
    async def test_progress_never_decreases(self, store):
        await store.put(make_job(status=JobStatus.ACTIVE, attempts=1))

        assert await store.update_progress("job-1", 1, 40)
        await store.update_progress("job-1", 1, 20)
        assert (await store.get("job-1")).progress == 40

    @pytest.mark.asyncio
    async def test_progress_clamped(self, store):
        await store.put(make_job(status=JobStatus.ACTIVE, attempts=1))

        await store.update_progress("job-1", 1, 250)
        assert (await store.get("job-1")).progress == 100

    @pytest.mark.asyncio
    async def test_progress_ignored_for_other_attempt(self, store):
        """다른 attempt(타임아웃 후 남은 핸들러)의 진행률은 무시"""
        await store.put(make_job(status=JobStatus.ACTIVE, attempts=2))

        assert not await store.update_progress("job-1", 1, 90)
        assert (await store.get("job-1")).progress == 0

    @pytest.mark.asyncio
    async def test_progress_ignored_when_not_active(self, store):
        await store.put(make_job(status=JobStatus.COMPLETED, attempts=1, progress=100))

        assert not await store.update_progress("job-1", 1, 50)


# ============================================================
# 조회/정리
# ============================================================

class TestQueries:
    """집계, 목록, 멈춘 잡, 보관 기간 정리 테스트"""

    @pytest.mark.asyncio
    async def test_count_by_status(self, store):
        for i in range(7):
            await store.put(make_job(f"c-{i}", status=JobStatus.COMPLETED))
        for i in range(2):
            await store.put(make_job(f"f-{i}", status=JobStatus.FAILED))
        await store.put(make_job("w-0", type=JobType.PODCAST_GENERATE))

        counts = await store.count_by_status()
        assert (counts.completed, counts.failed, counts.waiting) == (7, 2, 1)
        assert counts.total == 10
        assert counts.processing_rate == 77.78

        podcast = await store.count_by_status(JobType.PODCAST_GENERATE)
        assert podcast.waiting == 1
        assert podcast.total == 1

    @pytest.mark.asyncio
    async def test_processing_rate_zero_without_completions(self, store):
        await store.put(make_job(status=JobStatus.FAILED))

        counts = await store.count_by_status()
        assert counts.processing_rate == 0.0

    @pytest.mark.asyncio
    async def test_list_jobs_paged(self, store):
        for i in range(5):
            await store.put(make_job(f"j-{i}", created_at=START_TIME + i))
        await store.put(make_job("done", status=JobStatus.COMPLETED, created_at=START_TIME + 10))

        jobs, total = await store.list_jobs(status=JobStatus.WAITING, limit=2, offset=0)
        assert total == 5
        assert [j.id for j in jobs] == ["j-4", "j-3"]

        jobs, total = await store.list_jobs(limit=10)
        assert total == 6
        assert jobs[0].id == "done"

    @pytest.mark.asyncio
    async def test_list_by_status_orders_by_priority(self, store):
        await store.put(make_job("low", priority=3, created_at=START_TIME))
        await store.put(make_job("high", priority=1, created_at=START_TIME + 5))

        jobs = await store.list_by_status(JobStatus.WAITING)
        assert [j.id for j in jobs] == ["high", "low"]

    @pytest.mark.asyncio
    async def test_find_stalled(self, store):
        """claimed_at + timeout + grace가 지난 active 잡만 조회"""
        await store.put(make_job(
            "stalled", status=JobStatus.ACTIVE, attempts=1, claimed_at=START_TIME, timeout_seconds=60
        ))
        await store.put(make_job(
            "fresh", status=JobStatus.ACTIVE, attempts=1, claimed_at=START_TIME + 100, timeout_seconds=60
        ))

        stalled = await store.find_stalled(START_TIME + 100, grace_seconds=30)
        assert [j.id for j in stalled] == ["stalled"]

    @pytest.mark.asyncio
    async def test_sweep_expired(self, store):
        """보관 기간이 지난 종료 잡만 삭제"""
        await store.put(make_job("old", status=JobStatus.COMPLETED, finished_at=START_TIME))
        await store.put(make_job("recent", status=JobStatus.FAILED, finished_at=START_TIME + 86000))
        await store.put(make_job("waiting"))

        deleted = await store.sweep_expired(86400, START_TIME + 90000)
        assert deleted == 1
        with pytest.raises(JobNotFoundError):
            await store.get("old")
        assert (await store.get("recent")).status == JobStatus.FAILED
        assert (await store.get("waiting")).status == JobStatus.WAITING


# ============================================================
# 저장소 장애
# ============================================================

class TestUnavailable:
    """연결 종료 후 동작 테스트"""

    @pytest.mark.asyncio
    async def test_closed_database_raises_unavailable(self, store, database):
        await database.close()

        with pytest.raises(StoreUnavailableError):
            await store.ping()
        with pytest.raises(StoreUnavailableError):
            await store.get("job-1")


class TestTransaction:
    """트랜잭션 커밋/롤백 테스트"""

    @pytest.mark.asyncio
    async def test_rollback_on_error_releases_connection(self, store, database):
        await store.put(make_job())

        # 풀 크기(4)보다 많이 반복해도 연결이 반환되어야 함
        for _ in range(6):
            with pytest.raises(RuntimeError):
                async with database.transaction() as ctx:
                    await ctx.connection.execute("UPDATE jobs SET status = 'failed' WHERE id = 'job-1'")
                    raise RuntimeError("abort")

        assert (await store.get("job-1")).status == JobStatus.WAITING
