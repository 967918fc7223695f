"""
SQLite 기반 Job Store

jobs 테이블 하나에 잡 레코드를 저장합니다. 상태 전이는 BEGIN IMMEDIATE 트랜잭션 안의
조건부 UPDATE(compare_and_set_status) 한 번으로 수행되므로, 여러 워커가 같은 잡을
동시에 claim 해도 정확히 하나만 성공합니다.
"""

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

from database import (
    SQLiteDatabase,
    TransactionContext,
    ConnectionPoolExhaustedError,
    PoolClosedError,
)
from store.base import BaseJobStore
from store.exception import (
    ConflictError,
    InvalidTransitionError,
    JobNotFoundError,
    StoreUnavailableError,
)
from store.model import (
    ALLOWED_TRANSITIONS,
    Job,
    JobPatch,
    JobStatus,
    JobType,
    StatusCounts,
)

logger = logging.getLogger(__name__)

SQL_PATH = Path(__file__).parent / "sql" / "job_store.sql"


class SQLiteJobStore(BaseJobStore):
    """SQLite Job Store 구현"""

    def __init__(self, db: SQLiteDatabase):
        self._db = db
        self._queries = db.load_queries("job_store", str(SQL_PATH))

    @asynccontextmanager
    async def _transaction(self, readonly: bool = False) -> AsyncIterator[TransactionContext]:
        """트랜잭션 (저장소 접근 실패는 StoreUnavailableError로 변환)"""
        try:
            async with self._db.transaction(readonly=readonly) as ctx:
                yield ctx
        except (ConnectionPoolExhaustedError, PoolClosedError, aiosqlite.OperationalError) as e:
            raise StoreUnavailableError(str(e)) from e

    @staticmethod
    def _row_to_job(row) -> Job:
        """DB row를 Job으로 변환"""
        row_dict = dict(row)
        row_dict["payload"] = json.loads(row_dict["payload"]) if row_dict["payload"] else {}
        if row_dict.get("result") is not None:
            row_dict["result"] = json.loads(row_dict["result"])
        return Job(**row_dict)

    @staticmethod
    def _job_to_params(job: Job) -> dict[str, Any]:
        params = job.model_dump(mode="json")
        params["payload"] = json.dumps(params["payload"])
        params["result"] = json.dumps(params["result"]) if params["result"] is not None else None
        return params

    async def put(self, job: Job) -> None:
        async with self._transaction() as ctx:
            await self._queries.upsert_job(ctx.connection, **self._job_to_params(job))

    async def get(self, job_id: str) -> Job:
        async with self._transaction(readonly=True) as ctx:
            row = await self._queries.get_job(ctx.connection, id=job_id)
        if row is None:
            raise JobNotFoundError(job_id)
        return self._row_to_job(row)

    async def update_status(
        self,
        job_id: str,
        from_status: JobStatus,
        to_status: JobStatus,
        patch: JobPatch | None = None,
    ) -> Job:
        if to_status not in ALLOWED_TRANSITIONS[from_status]:
            raise InvalidTransitionError(from_status.value, to_status.value)

        patch = patch or JobPatch()
        async with self._transaction() as ctx:
            affected = await self._queries.compare_and_set_status(
                ctx.connection,
                id=job_id,
                from_status=from_status.value,
                to_status=to_status.value,
                progress=patch.progress,
                result=json.dumps(patch.result) if patch.result is not None else None,
                error=patch.error,
                attempts_delta=patch.attempts_delta,
                started_at=patch.started_at,
                claimed_at=patch.claimed_at,
                finished_at=patch.finished_at,
                run_at=patch.run_at,
                expected_attempts=patch.expected_attempts,
            )
            row = await self._queries.get_job(ctx.connection, id=job_id)

        if row is None:
            raise JobNotFoundError(job_id)
        if affected == 0:
            raise ConflictError(job_id, from_status.value, row["status"])

        logger.debug(f"Job {job_id} transitioned {from_status.value} -> {to_status.value}")
        return self._row_to_job(row)

    async def update_progress(self, job_id: str, attempt: int, progress: int) -> bool:
        progress = max(0, min(100, int(progress)))
        async with self._transaction() as ctx:
            affected = await self._queries.update_progress(
                ctx.connection, id=job_id, attempt=attempt, progress=progress
            )
        return affected > 0

    async def count_by_status(self, job_type: JobType | None = None) -> StatusCounts:
        async with self._transaction(readonly=True) as ctx:
            if job_type is None:
                rows = await self._queries.count_by_status(ctx.connection)
            else:
                rows = await self._queries.count_by_status_and_type(
                    ctx.connection, type=JobType(job_type).value
                )
        return StatusCounts(**{row["status"]: row["cnt"] for row in rows})

    async def list_by_status(self, status: JobStatus) -> list[Job]:
        async with self._transaction(readonly=True) as ctx:
            rows = await self._queries.get_jobs_by_status(ctx.connection, status=status.value)
        return [self._row_to_job(row) for row in rows]

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        job_type: JobType | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Job], int]:
        status_value = JobStatus(status).value if status else None
        type_value = JobType(job_type).value if job_type else None

        async with self._transaction(readonly=True) as ctx:
            total_row = await self._queries.count_jobs(
                ctx.connection, status=status_value, type=type_value
            )
            rows = await self._queries.get_jobs_paged(
                ctx.connection, status=status_value, type=type_value, limit=limit, offset=offset
            )

        total = total_row["cnt"] if total_row else 0
        return [self._row_to_job(row) for row in rows], total

    async def find_stalled(self, now: float, grace_seconds: float) -> list[Job]:
        async with self._transaction(readonly=True) as ctx:
            rows = await self._queries.get_stalled_jobs(
                ctx.connection, now=now, grace_seconds=grace_seconds
            )
        return [self._row_to_job(row) for row in rows]

    async def sweep_expired(self, retention_seconds: float, now: float) -> int:
        async with self._transaction() as ctx:
            deleted = await self._queries.delete_expired(
                ctx.connection, cutoff=now - retention_seconds
            )
        if deleted:
            logger.info(f"Swept {deleted} expired jobs (retention={retention_seconds}s)")
        return deleted

    async def ping(self) -> None:
        async with self._transaction(readonly=True) as ctx:
            await self._queries.ping(ctx.connection)
