"""
Dispatcher 설정 모델 정의
"""

from pydantic import BaseModel, Field, model_validator

from store.model import JobType


class JobTypeConfig(BaseModel):
    """잡 타입별 실행/재시도 정책"""
    max_attempts: int = Field(default=3, ge=1, le=20)
    timeout_seconds: float = Field(default=300.0, gt=0, le=86400)
    backoff_base_seconds: float = Field(default=2.0, ge=0)
    backoff_max_seconds: float = Field(default=300.0, ge=0)
    backoff_jitter: float = Field(default=0.2, ge=0, lt=1)
    concurrency: int | None = Field(default=None, ge=1, description="None이면 풀 전체 사용")

    @model_validator(mode="after")
    def _check_backoff(self):
        if self.backoff_max_seconds < self.backoff_base_seconds:
            raise ValueError("backoff_max_seconds must be >= backoff_base_seconds")
        return self


def _default_job_types() -> dict[JobType, JobTypeConfig]:
    return {
        JobType.DOCUMENT_INGEST: JobTypeConfig(
            max_attempts=3,
            timeout_seconds=600,
            backoff_base_seconds=2,
            backoff_max_seconds=120,
        ),
        JobType.PODCAST_GENERATE: JobTypeConfig(
            max_attempts=2,
            timeout_seconds=900,
            backoff_base_seconds=5,
            backoff_max_seconds=300,
            concurrency=3,
        ),
    }


class DispatcherConfig(BaseModel):
    """Dispatcher 설정 (queue.yaml의 job_types)"""
    job_types: dict[JobType, JobTypeConfig] = Field(default_factory=_default_job_types)

    def for_type(self, job_type: JobType) -> JobTypeConfig:
        """타입 설정 조회 (없으면 기본 정책)"""
        return self.job_types.get(JobType(job_type)) or JobTypeConfig()
