import asyncio
import importlib
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from store.model import JobType, Priority
from worker.exception import HandlerAlreadyRegisteredError, HandlerNotFoundError
from worker.model.handler import JobPayload, ProgressReporter

__all__ = [
    'BaseHandler',
    'FunctionHandler',
    'HandlerRegistry',
    'HandlerNotFoundError',
    'load_handlers',
]

logger = logging.getLogger(__name__)

HandlerFunc = Callable[[Any, ProgressReporter, asyncio.Event], Awaitable[Any]]


class BaseHandler(ABC):
    """잡 핸들러 기본 클래스"""

    payload_model: type[BaseModel] = JobPayload

    def validate_payload(self, payload: dict[str, Any] | BaseModel) -> BaseModel:
        """payload 검증 (enqueue 시점과 실행 시점 모두 호출됨)

        Raises:
            pydantic.ValidationError: payload가 모델과 맞지 않음
        """
        if isinstance(payload, self.payload_model):
            return payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump()
        return self.payload_model.model_validate(payload)

    def priority_for(self, payload: BaseModel) -> int:
        """payload별 기본 우선순위 (작을수록 먼저)"""
        return Priority.NORMAL

    @abstractmethod
    async def execute(
        self,
        payload: BaseModel,
        progress: ProgressReporter,
        cancel_event: asyncio.Event,
    ) -> Any:
        """
        잡 실행 로직

        Args:
            payload: 검증된 입력 (payload_model 인스턴스)
            progress: 진행률 리포터 (`await progress(0~100)`)
            cancel_event: 타임아웃/종료 시 set 되는 취소 신호

        Returns:
            실행 결과 (JSON 직렬화 가능한 값 또는 pydantic 모델, jobs.result에 저장)

        Raises:
            Exception: 실행 실패 시 예외 발생 (재시도 대상)
        """
        pass


class FunctionHandler(BaseHandler):
    """`async def func(payload, progress, cancel_event)` 형태의 함수를 핸들러로 감쌈"""

    def __init__(self, func: HandlerFunc, payload_model: type[BaseModel] = JobPayload):
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"Handler function must be async: {func!r}")
        self._func = func
        self.payload_model = payload_model

    async def execute(self, payload, progress, cancel_event):
        return await self._func(payload, progress, cancel_event)


class HandlerRegistry:
    """
    잡 타입 -> 핸들러 레지스트리

    런타임마다 인스턴스를 만들어 주입한다. 타입별로 정확히 하나의 핸들러만 등록할 수 있다.
    """

    def __init__(self):
        self._handlers: dict[JobType, BaseHandler] = {}

    def register(self, job_type: JobType | str, handler: BaseHandler | HandlerFunc) -> BaseHandler:
        """핸들러 등록 (함수는 FunctionHandler로 감쌈)"""
        job_type = JobType(job_type)
        if job_type in self._handlers:
            raise HandlerAlreadyRegisteredError(job_type.value)
        if not isinstance(handler, BaseHandler):
            handler = FunctionHandler(handler)
        self._handlers[job_type] = handler
        logger.debug(f"Registered handler for {job_type.value}: {type(handler).__name__}")
        return handler

    def handler(self, job_type: JobType | str):
        """핸들러 등록 데코레이터 (인자 없는 생성자의 BaseHandler 서브클래스 또는 async 함수)"""
        def decorator(obj):
            if inspect.isclass(obj):
                self.register(job_type, obj())
            else:
                self.register(job_type, obj)
            return obj
        return decorator

    def unregister(self, job_type: JobType | str) -> None:
        self._handlers.pop(JobType(job_type), None)

    def get(self, job_type: JobType | str) -> BaseHandler:
        """
        핸들러 조회

        Raises:
            HandlerNotFoundError: 등록되지 않은 타입
        """
        try:
            return self._handlers[JobType(job_type)]
        except (KeyError, ValueError):
            raise HandlerNotFoundError(str(getattr(job_type, 'value', job_type)))

    def __contains__(self, job_type) -> bool:
        try:
            return JobType(job_type) in self._handlers
        except ValueError:
            return False

    @property
    def job_types(self) -> list[JobType]:
        """등록된 잡 타입 (등록 순서)"""
        return list(self._handlers)


def load_handlers(registry: HandlerRegistry, targets: dict[str, str]) -> None:
    """
    설정의 "module:factory" 문자열로 핸들러를 생성하여 등록

    factory는 인자 없이 호출되어 BaseHandler 또는 async 함수를 반환해야 한다.

    Args:
        registry: 등록 대상 레지스트리
        targets: {잡 타입: "package.module:factory"}
    """
    for job_type, target in targets.items():
        module_name, _, attr = target.partition(":")
        if not attr:
            raise ValueError(f"Invalid handler target for {job_type}: '{target}' (expected 'module:factory')")
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
        registry.register(job_type, factory())
        logger.info(f"Loaded handler for {job_type}: {target}")
