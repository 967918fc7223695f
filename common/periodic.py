"""주기 실행 태스크 기본 클래스"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from store.exception import StoreUnavailableError

logger = logging.getLogger(__name__)


class PeriodicTask(ABC):
    """
    interval_seconds 마다 run_once()를 호출하는 백그라운드 루프

    start()는 stop()이 호출될 때까지 반환하지 않는다. run_once()의 예외는 로그만
    남기고 다음 주기에 다시 시도한다.
    """

    name: str = "periodic"

    def __init__(self, interval_seconds: float):
        self._interval = interval_seconds
        self._running = False
        self._stop_event: asyncio.Event | None = None

    @abstractmethod
    async def run_once(self) -> Any:
        """한 주기 작업"""
        ...

    async def start(self) -> None:
        if self._running:
            logger.warning(f"{self.name} is already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        logger.info(f"{self.name} started (interval={self._interval}s)")

        try:
            while self._running:
                try:
                    await self.run_once()
                except StoreUnavailableError as e:
                    logger.warning(f"{self.name}: {e}. Retrying in {self._interval}s...")
                except Exception as e:
                    logger.error(f"{self.name} error: {e}", exc_info=True)
                await self._sleep(self._interval)
        except asyncio.CancelledError:
            logger.info(f"{self.name} cancelled")
        finally:
            self._running = False
            logger.info(f"{self.name} stopped")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._stop_event:
            self._stop_event.set()

    async def _sleep(self, seconds: float) -> None:
        """인터럽트 가능한 sleep"""
        if self._stop_event:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass

    @property
    def is_running(self) -> bool:
        return self._running
