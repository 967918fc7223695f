"""
Job Store 관련 예외 클래스 정의
"""


class StoreError(Exception):
    """Job Store 기본 예외"""
    pass


class JobNotFoundError(StoreError):
    """잡을 찾을 수 없음"""
    def __init__(self, job_id: str):
        self.job_id = job_id
        self.message = f"Job not found: {job_id}"
        super().__init__(self.message)


class ConflictError(StoreError):
    """compare-and-swap 실패 (저장된 상태가 기대 상태와 다름)"""
    def __init__(self, job_id: str, expected: str, actual: str | None = None):
        self.job_id = job_id
        self.expected = expected
        self.actual = actual
        self.message = (
            f"Status conflict for job {job_id}: expected '{expected}', found '{actual}'"
        )
        super().__init__(self.message)


class InvalidTransitionError(StoreError):
    """허용되지 않는 상태 전이"""
    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        self.message = f"Invalid status transition: {from_status} -> {to_status}"
        super().__init__(self.message)


class StoreUnavailableError(StoreError):
    """저장소에 접근할 수 없음 (연결 종료, 풀 고갈, 잠금 타임아웃 등)"""
    def __init__(self, message: str):
        self.message = f"Job store unavailable: {message}"
        super().__init__(self.message)
