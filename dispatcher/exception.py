"""
Dispatcher 관련 예외 클래스 정의
"""


class DispatcherError(Exception):
    """Dispatcher 기본 예외"""
    pass


class UnknownJobTypeError(DispatcherError):
    """등록된 핸들러가 없는 잡 타입"""
    def __init__(self, job_type: str):
        self.job_type = job_type
        self.message = f"Unknown job type: {job_type}"
        super().__init__(self.message)


class EnqueueValidationError(DispatcherError):
    """enqueue 입력 검증 실패 (payload 또는 옵션)"""
    def __init__(self, job_type: str, message: str):
        self.job_type = job_type
        self.message = f"Invalid job for {job_type}: {message}"
        super().__init__(self.message)


class JobStateError(DispatcherError):
    """현재 상태에서 허용되지 않는 요청 (예: 실행 중인 잡 취소)"""
    def __init__(self, job_id: str, status: str, message: str | None = None):
        self.job_id = job_id
        self.status = status
        self.message = message or f"Job {job_id} cannot be changed in status '{status}'"
        super().__init__(self.message)
