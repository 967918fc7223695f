"""
Dispatcher 테스트

테스트 항목:
1. enqueue 시 waiting 상태로 저장되고 큐에 등록됨
2. delay_seconds 지정 시 delayed 상태 + run_at 기록
3. 타입 기본값 (max_attempts, timeout) 및 핸들러 우선순위 적용
4. 등록되지 않은 타입, 잘못된 payload/옵션 거부
5. 대기 중인 잡 취소, 실행 중/종료 잡 취소 거부

실행: python -m pytest test/dispatcher_test.py -v
"""

import pytest

from conftest import START_TIME, make_job
from dispatcher.exception import EnqueueValidationError, JobStateError, UnknownJobTypeError
from dispatcher.main import CANCELLED_ERROR, JobDispatcher
from store.exception import JobNotFoundError
from store.model import JobStatus, JobType, Priority
from worker.base import HandlerRegistry
from worker.job.document import DocumentIngestHandler, LocalTextProcessor

PODCAST_PAYLOAD = {
    "study_guide_id": "sg-1",
    "user_id": "u-1",
    "study_guide_title": "Cells",
    "study_guide_content": "# Cells\nCells are the basic unit of life.",
}


# ============================================================
# enqueue
# ============================================================

class TestEnqueue:
    """잡 등록 테스트"""

    @pytest.mark.asyncio
    async def test_enqueue_waiting(self, dispatcher, store, queue):
        job_id = await dispatcher.enqueue("document-ingest", {"file": "notes.txt", "document_id": "d-1"})

        job = await store.get(job_id)
        assert job.status == JobStatus.WAITING
        assert job.type == JobType.DOCUMENT_INGEST
        assert job.attempts == 0
        assert job.progress == 0
        assert job.created_at == START_TIME
        assert job.payload["file_path"] == "notes.txt"
        assert job.payload["file_type"] == "txt"
        assert job_id in queue
        assert queue.depth().pending == 1

    @pytest.mark.asyncio
    async def test_enqueue_applies_type_defaults(self, dispatcher, store):
        doc_id = await dispatcher.enqueue("document-ingest", {"file": "a.txt"})
        pod_id = await dispatcher.enqueue("podcast-generate", PODCAST_PAYLOAD)

        doc = await store.get(doc_id)
        pod = await store.get(pod_id)
        assert (doc.max_attempts, doc.timeout_seconds) == (3, 5)
        assert (pod.max_attempts, pod.timeout_seconds) == (2, 5)

    @pytest.mark.asyncio
    async def test_enqueue_overrides(self, dispatcher, store):
        job_id = await dispatcher.enqueue(
            JobType.DOCUMENT_INGEST, {"file": "a.txt"}, max_attempts=5, priority=Priority.LOW
        )

        job = await store.get(job_id)
        assert job.max_attempts == 5
        assert job.priority == Priority.LOW

    @pytest.mark.asyncio
    async def test_priority_from_handler(self, dispatcher, store):
        """PDF 문서, high 팟캐스트는 우선순위 HIGH"""
        pdf_id = await dispatcher.enqueue("document-ingest", {"file": "a.pdf"})
        txt_id = await dispatcher.enqueue("document-ingest", {"file": "a.txt"})
        pod_id = await dispatcher.enqueue("podcast-generate", {**PODCAST_PAYLOAD, "priority": "high"})

        assert (await store.get(pdf_id)).priority == Priority.HIGH
        assert (await store.get(txt_id)).priority == Priority.NORMAL
        assert (await store.get(pod_id)).priority == Priority.HIGH

    @pytest.mark.asyncio
    async def test_enqueue_delayed(self, dispatcher, store, queue):
        job_id = await dispatcher.enqueue("document-ingest", {"file": "a.txt"}, delay_seconds=5)

        job = await store.get(job_id)
        assert job.status == JobStatus.DELAYED
        assert job.run_at == START_TIME + 5
        assert queue.depth().delayed == 1
        assert queue.claim_next(JobType.DOCUMENT_INGEST) is None

    @pytest.mark.asyncio
    async def test_zero_delay_is_waiting(self, dispatcher, store):
        job_id = await dispatcher.enqueue("document-ingest", {"file": "a.txt"}, delay_seconds=0)

        assert (await store.get(job_id)).status == JobStatus.WAITING

    @pytest.mark.asyncio
    async def test_unique_ids(self, dispatcher):
        ids = {await dispatcher.enqueue("document-ingest", {"file": "a.txt"}) for _ in range(20)}
        assert len(ids) == 20


# ============================================================
# 검증
# ============================================================

class TestValidation:
    """입력 검증 테스트"""

    @pytest.mark.asyncio
    async def test_unknown_type(self, dispatcher, store):
        with pytest.raises(UnknownJobTypeError):
            await dispatcher.enqueue("video-render", {})

        assert (await store.count_by_status()).total == 0

    @pytest.mark.asyncio
    async def test_type_without_handler(self, store, queue, clock, tmp_path):
        registry = HandlerRegistry()
        registry.register(JobType.DOCUMENT_INGEST, DocumentIngestHandler(LocalTextProcessor(tmp_path)))
        dispatcher = JobDispatcher(store, queue, registry, clock=clock)

        with pytest.raises(UnknownJobTypeError):
            await dispatcher.enqueue("podcast-generate", PODCAST_PAYLOAD)

    @pytest.mark.asyncio
    async def test_invalid_payload(self, dispatcher, store, queue):
        with pytest.raises(EnqueueValidationError):
            await dispatcher.enqueue("podcast-generate", {"user_id": "u-1"})

        assert (await store.count_by_status()).total == 0
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_negative_delay(self, dispatcher):
        with pytest.raises(EnqueueValidationError):
            await dispatcher.enqueue("document-ingest", {"file": "a.txt"}, delay_seconds=-1)

    @pytest.mark.asyncio
    async def test_invalid_max_attempts(self, dispatcher):
        with pytest.raises(EnqueueValidationError):
            await dispatcher.enqueue("document-ingest", {"file": "a.txt"}, max_attempts=0)


# ============================================================
# cancel
# ============================================================

class TestCancel:
    """잡 취소 테스트"""

    @pytest.mark.asyncio
    async def test_cancel_waiting(self, dispatcher, store, queue):
        job_id = await dispatcher.enqueue("document-ingest", {"file": "a.txt"})

        job = await dispatcher.cancel(job_id)
        assert job.status == JobStatus.FAILED
        assert job.error == CANCELLED_ERROR
        assert job.finished_at == START_TIME
        assert job_id not in queue
        assert queue.claim_next(JobType.DOCUMENT_INGEST) is None

    @pytest.mark.asyncio
    async def test_cancel_delayed(self, dispatcher, queue):
        job_id = await dispatcher.enqueue("document-ingest", {"file": "a.txt"}, delay_seconds=30)

        job = await dispatcher.cancel(job_id)
        assert job.status == JobStatus.FAILED
        assert job_id not in queue

    @pytest.mark.asyncio
    async def test_cancel_active_rejected(self, dispatcher, store):
        await store.put(make_job(status=JobStatus.ACTIVE, attempts=1))

        with pytest.raises(JobStateError) as exc_info:
            await dispatcher.cancel("job-1")
        assert exc_info.value.status == "active"
        assert (await store.get("job-1")).status == JobStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_cancel_twice(self, dispatcher):
        job_id = await dispatcher.enqueue("document-ingest", {"file": "a.txt"})
        await dispatcher.cancel(job_id)

        with pytest.raises(JobStateError):
            await dispatcher.cancel(job_id)

    @pytest.mark.asyncio
    async def test_cancel_missing(self, dispatcher):
        with pytest.raises(JobNotFoundError):
            await dispatcher.cancel("nope")
