"""
Worker 관련 예외 클래스 정의
"""


class WorkerError(Exception):
    """Worker 기본 예외"""
    pass


class HandlerNotFoundError(WorkerError):
    """잡 타입에 등록된 핸들러가 없음"""
    def __init__(self, name: str):
        self.name = name
        self.message = f"Handler not found: {name}"
        super().__init__(self.message)


class HandlerAlreadyRegisteredError(WorkerError):
    """잡 타입에 이미 핸들러가 등록됨"""
    def __init__(self, name: str):
        self.name = name
        self.message = f"Handler already registered: {name}"
        super().__init__(self.message)


class HandlerError(WorkerError):
    """핸들러 실행 실패 (attempts에 포함되어 재시도 대상)"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class JobTimeoutError(HandlerError):
    """핸들러 실행 시간 초과"""
    def __init__(self, job_id: str, timeout_seconds: float, stalled: bool = False):
        self.job_id = job_id
        self.timeout_seconds = timeout_seconds
        self.stalled = stalled
        if stalled:
            message = f"Job {job_id} stalled: no result within {timeout_seconds}s of claim"
        else:
            message = f"Job {job_id} timed out after {timeout_seconds}s"
        super().__init__(message)


class JobCancelledError(HandlerError):
    """핸들러가 취소 신호를 받고 중단함"""
    def __init__(self, job_id: str | None = None):
        self.job_id = job_id
        super().__init__(f"Job {job_id} cancelled" if job_id else "Job cancelled")
