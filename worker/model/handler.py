"""
핸들러 입출력 모델

모든 핸들러가 공통으로 사용하는 payload 기본 모델과 진행률 리포터.
"""

import logging

from pydantic import BaseModel, ConfigDict

from store.base import BaseJobStore
from store.exception import StoreUnavailableError

logger = logging.getLogger(__name__)


class JobPayload(BaseModel):
    """핸들러 입력 payload (공통)"""
    model_config = ConfigDict(extra='allow')  # 정의 안 된 필드도 허용


class ProgressReporter:
    """
    진행률 리포터

    핸들러가 `await progress(50)` 형태로 호출한다. 값은 0~100으로 보정되고,
    이전 값보다 작으면 무시된다. 기록은 같은 attempt의 active 잡에만 반영되므로
    타임아웃 후에도 계속 실행 중인 핸들러가 다음 시도의 진행률을 덮어쓰지 못한다.
    """

    def __init__(self, store: BaseJobStore, job_id: str, attempt: int, initial: int = 0):
        self._store = store
        self._job_id = job_id
        self._attempt = attempt
        self._value = initial

    async def __call__(self, value: int) -> None:
        await self.report(value)

    async def report(self, value: int) -> None:
        value = max(0, min(100, int(value)))
        if value <= self._value:
            return
        self._value = value
        try:
            await self._store.update_progress(self._job_id, self._attempt, value)
        except StoreUnavailableError as e:
            # 진행률 기록 실패는 무시하고 실행 계속
            logger.warning(f"Failed to record progress for job {self._job_id}: {e}")

    @property
    def value(self) -> int:
        return self._value
