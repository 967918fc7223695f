"""
JSON 구조화 로깅 설정

모든 로그 레코드에 service 필드를 붙여 JSON 한 줄로 출력합니다.
json_format=False면 사람이 읽기 쉬운 텍스트 포맷을 씁니다.
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "job-queue"
TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# 라이브러리별 최소 레벨
QUIET_LOGGERS = {
    'asyncio': logging.WARNING,
    'aiosqlite': logging.WARNING,
    'uvicorn.access': logging.WARNING,
}


class QueueJsonFormatter(JsonFormatter):
    """JSON 로그 포매터 (timestamp, level, logger, service 필드 고정)"""

    def __init__(self, *args, service: str = SERVICE_NAME, **kwargs):
        super().__init__(*args, **kwargs)
        self._service = service

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['timestamp'] = self.formatTime(record)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['service'] = self._service


def build_formatter(json_format: bool = True) -> logging.Formatter:
    if json_format:
        return QueueJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s')
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None
) -> None:
    """
    루트 로거 설정

    Args:
        level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON 포맷 사용 여부
        log_file: 로그 파일 경로 (None이면 stdout만 사용)
    """
    formatter = build_formatter(json_format)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=handlers,
        force=True  # 기존 설정 덮어쓰기
    )

    for name, min_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(min_level)
