"""
jobqueue 통합 진입점

워커풀(유지보수 태스크, 헬스 모니터 포함)과 Admin API를 한 프로세스에서 실행합니다.

사용법:
    python main.py                 # 전체 실행
    python main.py worker          # 워커풀만
    python main.py admin           # Admin API만
"""

import sys
import os

# Windows 인코딩 설정 (cp949 -> UTF-8)
if sys.platform == "win32":
    os.environ["PYTHONUTF8"] = "1"

import asyncio

from common.config import load_config
from common.logging import setup_logging
from jobqueue.cli import VALID_MODULES, serve


if __name__ == "__main__":
    # 인자 파싱
    args = sys.argv[1:]

    if args:
        modules = [m for m in args if m in VALID_MODULES]
        if not modules:
            print(f"Usage: python main.py [worker] [admin]")
            sys.exit(1)
    else:
        modules = list(VALID_MODULES)

    config = load_config()
    setup_logging(config.logging.level, config.logging.json_format, config.logging.log_file)

    print(f"Starting jobqueue: {', '.join(modules)}")
    try:
        asyncio.run(serve(config, modules))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
