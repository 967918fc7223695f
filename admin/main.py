"""Admin API 서버 진입점"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from admin.api.model.common import ErrorDetail, ErrorResponse
from admin.api.router.api import router
from common.config import AppConfig, load_config
from common.runtime import QueueRuntime
from store.exception import StoreUnavailableError

logger = logging.getLogger(__name__)


def create_app(runtime: QueueRuntime | None = None, config: AppConfig | None = None) -> FastAPI:
    """
    FastAPI 앱 생성

    Args:
        runtime: 외부에서 관리하는 런타임 (None이면 lifespan에서 직접 열고 닫음)
        config: 런타임을 직접 만들 때 사용할 설정 (None이면 config/ 에서 로드)
    """
    config = runtime.config if runtime is not None else (config or load_config())
    owns_runtime = runtime is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """앱 생명주기 관리"""
        # 시작 시
        if owns_runtime:
            app.state.runtime = await QueueRuntime(config).open()
            logger.info("Queue runtime opened")

        yield

        # 종료 시
        if owns_runtime:
            await app.state.runtime.close()
            logger.info("Queue runtime closed")

    app = FastAPI(
        title="Job Queue Admin API",
        description="문서/팟캐스트 잡 큐 등록, 상태 조회, 헬스 체크 API",
        version="1.0.0",
        lifespan=lifespan,
    )
    if runtime is not None:
        app.state.runtime = runtime

    # CORS 설정
    cors = config.admin.cors
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors.origins,
        allow_credentials=cors.allow_credentials,
        allow_methods=cors.allow_methods,
        allow_headers=cors.allow_headers,
    )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        logger.warning(f"Store unavailable on {request.url.path}: {exc.message}")
        body = ErrorResponse(error=ErrorDetail(code="store_unavailable", message=exc.message))
        return JSONResponse(status_code=503, content=body.model_dump())

    # API 라우터 등록
    app.include_router(router)

    return app


if __name__ == "__main__":
    import uvicorn

    app_config = load_config()
    uvicorn.run(
        create_app(config=app_config),
        host=app_config.admin.host,
        port=app_config.admin.port,
    )
