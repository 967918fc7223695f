"""잡 API 모델 정의"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from admin.api.model.common import PageResponse
from store.model import JobStatus, JobType


class EnqueueRequest(BaseModel):
    """잡 등록 요청"""
    type: str = Field(description="잡 타입 (document-ingest, podcast-generate)")
    payload: dict[str, Any] = Field(default_factory=dict)
    delay_seconds: float | None = Field(default=None, ge=0, le=7 * 86400)
    max_attempts: int | None = Field(default=None, ge=1, le=20)
    priority: int | None = Field(default=None, ge=1, le=3, description="1=high, 2=normal, 3=low")


class EnqueueResponse(BaseModel):
    """잡 등록 응답"""
    job_id: str
    status: JobStatus


class JobStatusResponse(BaseModel):
    """폴링용 잡 상태 응답"""
    job_id: str
    status: JobStatus
    progress: int
    result: Any = None
    error: str | None = None


class JobResponse(BaseModel):
    """잡 전체 레코드 응답"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: JobType
    payload: dict[str, Any]
    status: JobStatus
    progress: int
    result: Any = None
    error: str | None = None
    attempts: int
    max_attempts: int
    priority: int
    timeout_seconds: float
    created_at: float
    started_at: float | None = None
    claimed_at: float | None = None
    finished_at: float | None = None
    run_at: float | None = None


JobListResponse = PageResponse[JobResponse]
