"""Admin API 라우터 (모든 API 통합)"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from admin.api.handler.job import JobHandler
from admin.api.model.health import QueueHealthResponse, QueueStatusResponse
from admin.api.model.job import (
    EnqueueRequest,
    EnqueueResponse,
    JobListResponse,
    JobResponse,
    JobStatusResponse,
)
from dispatcher.exception import EnqueueValidationError, JobStateError, UnknownJobTypeError
from monitor.model import QueueMetrics
from store.exception import JobNotFoundError
from store.model import JobStatus, JobType

logger = logging.getLogger(__name__)

router = APIRouter()


def get_job_handler(request: Request) -> JobHandler:
    """앱에 연결된 런타임으로 핸들러 생성"""
    return JobHandler(request.app.state.runtime)


# ============================================
# JOB API
# ============================================

@router.post("/api/jobs", response_model=EnqueueResponse, status_code=201, tags=["Job"])
async def enqueue_job(request: EnqueueRequest, handler: JobHandler = Depends(get_job_handler)):
    """잡 등록"""
    try:
        return await handler.enqueue(request)
    except (UnknownJobTypeError, EnqueueValidationError) as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.get("/api/jobs", response_model=JobListResponse, tags=["Job"])
async def get_jobs(
    page: int = Query(default=1, ge=1, description="페이지 번호"),
    size: int = Query(default=20, ge=1, le=100, description="페이지 크기"),
    status: JobStatus | None = Query(default=None, description="상태 필터"),
    type: JobType | None = Query(default=None, description="잡 타입 필터"),
    handler: JobHandler = Depends(get_job_handler),
):
    """잡 목록 조회 (최신순)"""
    return await handler.get_list(page=page, size=size, status=status, job_type=type)


@router.get("/api/jobs/{job_id}", response_model=JobStatusResponse, tags=["Job"])
async def get_job_status(job_id: str, handler: JobHandler = Depends(get_job_handler)):
    """잡 상태 폴링"""
    try:
        return await handler.get_status(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/api/jobs/{job_id}/detail", response_model=JobResponse, tags=["Job"])
async def get_job_detail(job_id: str, handler: JobHandler = Depends(get_job_handler)):
    """잡 전체 레코드 조회"""
    try:
        return await handler.get_detail(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.delete("/api/jobs/{job_id}", response_model=JobStatusResponse, tags=["Job"])
async def cancel_job(job_id: str, handler: JobHandler = Depends(get_job_handler)):
    """대기 중인 잡 취소"""
    try:
        return await handler.cancel(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except JobStateError as e:
        raise HTTPException(status_code=409, detail=e.message)


# ============================================
# Metrics
# ============================================

@router.get("/api/metrics", response_model=QueueMetrics, tags=["Metrics"])
async def get_metrics(
    type: JobType | None = Query(default=None, description="잡 타입 필터"),
    handler: JobHandler = Depends(get_job_handler),
):
    """상태별 잡 개수와 processing_rate"""
    return await handler.get_metrics(type)


@router.get("/api/queue-status", response_model=QueueStatusResponse, tags=["Metrics"])
async def get_queue_status(handler: JobHandler = Depends(get_job_handler)):
    """큐 상태 (헬스 + 메트릭 + 워커 동시성)"""
    return await handler.queue_status()


# ============================================
# Health Check
# ============================================

@router.get(
    "/health/queue",
    response_model=QueueHealthResponse,
    responses={503: {"model": QueueHealthResponse}},
    tags=["Health"],
)
async def queue_health(handler: JobHandler = Depends(get_job_handler)):
    """큐 헬스 체크 (healthy/degraded: 200, error: 503)"""
    report = await handler.queue_health()
    status_code = 503 if report.status == "error" else 200
    return JSONResponse(status_code=status_code, content=report.model_dump(mode="json"))


@router.get("/health", tags=["Health"])
async def health_check(request: Request):
    """서버 상태 확인 (liveness probe)"""
    return {"status": "healthy", "version": request.app.version}

