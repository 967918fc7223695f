"""
설정 로드

config/ 디렉토리(또는 JOBQUEUE_CONFIG_DIR)의 YAML 파일을 읽어 AppConfig로 만듭니다.
파일이 없으면 해당 섹션은 기본값을 사용합니다.

    database.yaml  database
    worker.yaml    worker, maintenance
    queue.yaml     job_types, handlers, health
    admin.yaml     admin, logging
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from dispatcher.model.dispatcher import DispatcherConfig
from monitor.health import HealthConfig
from worker.job import DEFAULT_HANDLERS
from worker.main import WorkerConfig
from worker.maintenance import MaintenanceConfig

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "JOBQUEUE_CONFIG_DIR"
DEFAULT_CONFIG_DIR = Path(__file__).parent.parent / "config"
CONFIG_FILES = ("database.yaml", "worker.yaml", "queue.yaml", "admin.yaml")


class CorsConfig(BaseModel):
    origins: list[str] = ["*"]
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]


class AdminConfig(BaseModel):
    """Admin API 설정"""
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)
    cors: CorsConfig = Field(default_factory=CorsConfig)


@dataclass
class LoggingConfig:
    """로깅 설정"""
    level: str = "INFO"
    json_format: bool = True
    log_file: str | None = None


@dataclass
class AppConfig:
    """전체 설정"""
    database: dict[str, Any] = field(default_factory=lambda: {"name": "default"})
    worker: WorkerConfig = field(default_factory=WorkerConfig)
    maintenance: MaintenanceConfig = field(default_factory=MaintenanceConfig)
    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    admin: AdminConfig = field(default_factory=AdminConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    handlers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HANDLERS))

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "AppConfig":
        dispatcher = DispatcherConfig()
        if raw.get("job_types"):
            # 지정된 항목만 덮어쓰고 나머지는 기본 정책 유지
            job_types = {t.value: c.model_dump() for t, c in dispatcher.job_types.items()}
            for name, overrides in raw["job_types"].items():
                job_types[name] = {**job_types.get(name, {}), **(overrides or {})}
            dispatcher = DispatcherConfig(job_types=job_types)

        return cls(
            database={"name": "default", **(raw.get("database") or {})},
            worker=WorkerConfig(**(raw.get("worker") or {})),
            maintenance=MaintenanceConfig(**(raw.get("maintenance") or {})),
            dispatcher=dispatcher,
            health=HealthConfig(**(raw.get("health") or {})),
            admin=AdminConfig(**(raw.get("admin") or {})),
            logging=LoggingConfig(**(raw.get("logging") or {})),
            handlers={**DEFAULT_HANDLERS, **(raw.get("handlers") or {})},
        )


def resolve_config_dir(config_dir: str | Path | None = None) -> Path:
    if config_dir is not None:
        return Path(config_dir)
    return Path(os.environ.get(CONFIG_DIR_ENV, DEFAULT_CONFIG_DIR))


def load_config(config_dir: str | Path | None = None) -> AppConfig:
    """설정 디렉토리의 YAML 파일을 모두 읽어 AppConfig 생성"""
    config_path = resolve_config_dir(config_dir)

    raw: dict[str, Any] = {}
    for filename in CONFIG_FILES:
        path = config_path / filename
        if not path.exists():
            logger.debug(f"Config file not found, using defaults: {path}")
            continue
        with open(path, encoding="utf-8") as f:
            raw.update(yaml.safe_load(f) or {})

    return AppConfig.from_dict(raw)
