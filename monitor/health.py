"""
Health Monitor

store 연결 여부와 큐 깊이 상한으로 healthy / degraded / unhealthy 를 판정합니다.

    healthy:   store 연결 가능, waiting < max_waiting, active < max_active
    degraded:  store 연결 가능, 상한 중 하나 이상 초과
    unhealthy: store 연결 불가 (큐 개수와 무관)

max_delayed는 보고와 경고 로그에만 쓰이며 판정에는 영향을 주지 않습니다.
"""

import logging
import time
from typing import Callable

from pydantic import BaseModel, Field

from common.periodic import PeriodicTask
from monitor.model import HealthReport, HealthStatus, HealthThresholds, QueueMetrics
from monitor.status import StatusService
from store.base import BaseJobStore
from store.exception import StoreUnavailableError

logger = logging.getLogger(__name__)


class HealthConfig(BaseModel):
    """Health Monitor 설정"""
    max_waiting: int = Field(default=1000, ge=1)
    max_active: int = Field(default=50, ge=1)
    max_delayed: int = Field(default=500, ge=1)
    check_interval_seconds: float = Field(default=60.0, gt=0)
    backlog_warning: int = Field(default=100, ge=0)


class HealthMonitor(PeriodicTask):
    """
    주기적 헬스 체크

    check()는 부수효과 없이 현재 상태를 판정하고, 주기 루프는 마지막 결과를 보관하며
    메트릭 로그와 backlog 경고를 남긴다.
    """

    name = "HealthMonitor"

    def __init__(
        self,
        store: BaseJobStore,
        config: HealthConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config or HealthConfig()
        super().__init__(self._config.check_interval_seconds)
        self._store = store
        self._status = StatusService(store)
        self._clock = clock
        self._last_report: HealthReport | None = None

    @property
    def thresholds(self) -> HealthThresholds:
        return HealthThresholds(
            max_waiting=self._config.max_waiting,
            max_active=self._config.max_active,
            max_delayed=self._config.max_delayed,
        )

    async def check(self) -> HealthReport:
        """현재 상태 판정"""
        try:
            await self._store.ping()
            metrics = await self._status.get_metrics()
        except StoreUnavailableError as e:
            return HealthReport(
                status=HealthStatus.UNHEALTHY,
                thresholds=self.thresholds,
                reasons=["store unreachable"],
                error=e.message,
                timestamp=self._clock(),
            )

        reasons = self._exceeded(metrics)
        return HealthReport(
            status=HealthStatus.DEGRADED if reasons else HealthStatus.HEALTHY,
            queue=metrics,
            thresholds=self.thresholds,
            reasons=reasons,
            timestamp=self._clock(),
        )

    def _exceeded(self, metrics: QueueMetrics) -> list[str]:
        reasons = []
        if metrics.waiting >= self._config.max_waiting:
            reasons.append(f"waiting {metrics.waiting} >= {self._config.max_waiting}")
        if metrics.active >= self._config.max_active:
            reasons.append(f"active {metrics.active} >= {self._config.max_active}")
        return reasons

    async def run_once(self) -> HealthReport:
        report = await self.check()
        self._last_report = report

        if report.status == HealthStatus.UNHEALTHY:
            logger.error(f"Queue unhealthy: {report.error}")
            return report

        metrics = report.queue
        logger.info(
            f"Queue metrics: waiting={metrics.waiting}, active={metrics.active}, "
            f"completed={metrics.completed}, failed={metrics.failed}, delayed={metrics.delayed}, "
            f"processing_rate={metrics.processing_rate}"
        )
        if metrics.waiting > self._config.backlog_warning:
            logger.warning(f"High queue backlog: waiting={metrics.waiting}")
        if metrics.delayed > self._config.max_delayed:
            logger.warning(f"Too many delayed jobs: delayed={metrics.delayed} > {self._config.max_delayed}")
        if report.status == HealthStatus.DEGRADED:
            logger.warning(f"Queue degraded: {', '.join(report.reasons)}")
        return report

    @property
    def last_report(self) -> HealthReport | None:
        """마지막 주기 체크 결과"""
        return self._last_report
