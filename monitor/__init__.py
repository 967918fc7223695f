"""Status API와 Health Monitor"""

from monitor.health import HealthConfig, HealthMonitor
from monitor.model import (
    HealthReport,
    HealthStatus,
    HealthThresholds,
    JobStatusView,
    QueueMetrics,
)
from monitor.status import StatusService

__all__ = [
    "HealthConfig",
    "HealthMonitor",
    "HealthReport",
    "HealthStatus",
    "HealthThresholds",
    "JobStatusView",
    "QueueMetrics",
    "StatusService",
]
