"""Job Store 기본 인터페이스"""
from abc import ABC, abstractmethod

from store.model import Job, JobPatch, JobStatus, JobType, StatusCounts


class BaseJobStore(ABC):
    """
    잡 저장소 기본 클래스

    잡 상태의 유일한 원본(source of truth). 다른 컴포넌트는 자체 캐시를 두지 않고
    항상 이 인터페이스를 통해 읽고 쓴다. 상태 변경은 update_status()의
    compare-and-swap으로만 수행한다.
    """

    @abstractmethod
    async def put(self, job: Job) -> None:
        """잡 레코드 삽입 또는 덮어쓰기"""
        ...

    @abstractmethod
    async def get(self, job_id: str) -> Job:
        """
        잡 조회

        Raises:
            JobNotFoundError: 존재하지 않는 잡
        """
        ...

    @abstractmethod
    async def update_status(
        self,
        job_id: str,
        from_status: JobStatus,
        to_status: JobStatus,
        patch: JobPatch | None = None,
    ) -> Job:
        """
        상태 전이 (compare-and-swap)

        Returns:
            전이 후의 잡 레코드

        Raises:
            ConflictError: 저장된 상태가 from_status와 다름
            JobNotFoundError: 존재하지 않는 잡
            InvalidTransitionError: 허용되지 않는 전이
        """
        ...

    @abstractmethod
    async def update_progress(self, job_id: str, attempt: int, progress: int) -> bool:
        """진행률 기록 (active 상태, 같은 attempt에서만, 감소하지 않음)"""
        ...

    @abstractmethod
    async def count_by_status(self, job_type: JobType | None = None) -> StatusCounts:
        """상태별 개수 집계"""
        ...

    @abstractmethod
    async def list_by_status(self, status: JobStatus) -> list[Job]:
        """특정 상태의 잡 목록 (큐 인덱스 재구성용)"""
        ...

    @abstractmethod
    async def list_jobs(
        self,
        status: JobStatus | None = None,
        job_type: JobType | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Job], int]:
        """잡 목록 페이징 조회 (최신순)"""
        ...

    @abstractmethod
    async def find_stalled(self, now: float, grace_seconds: float) -> list[Job]:
        """claimed_at + timeout + grace가 지난 active 잡 목록"""
        ...

    @abstractmethod
    async def sweep_expired(self, retention_seconds: float, now: float) -> int:
        """보관 기간이 지난 종료 상태 잡 삭제, 삭제 건수 반환"""
        ...

    @abstractmethod
    async def ping(self) -> None:
        """
        연결 확인

        Raises:
            StoreUnavailableError: 저장소에 접근할 수 없음
        """
        ...
