"""jobqueue CLI"""

import argparse
import asyncio
import json
import logging
import signal
import sys

from common.config import AppConfig, load_config
from common.logging import setup_logging
from common.runtime import QueueRuntime
from dispatcher.exception import DispatcherError
from monitor.model import HealthStatus
from store.exception import StoreError

logger = logging.getLogger(__name__)

VALID_MODULES = ("worker", "admin")


async def serve(config: AppConfig, modules: list[str]) -> None:
    """워커풀/Admin API 실행 (SIGINT/SIGTERM 시 graceful shutdown)"""
    stop_event = asyncio.Event()

    # 시그널 핸들러
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    # Windows는 add_signal_handler를 지원하지 않음
    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

    async with QueueRuntime(config) as runtime:
        tasks = []
        if "worker" in modules:
            tasks.append(asyncio.create_task(runtime.run(), name="runtime"))
            logger.info("Worker started")

        server = None
        if "admin" in modules:
            import uvicorn
            from admin.main import create_app

            uv_config = uvicorn.Config(
                create_app(runtime),
                host=config.admin.host,
                port=config.admin.port,
                log_config=None,
            )
            server = uvicorn.Server(uv_config)
            tasks.append(asyncio.create_task(server.serve(), name="admin"))
            logger.info("Admin API started")

        await stop_event.wait()

        await runtime.stop()
        if server is not None:
            server.should_exit = True
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("All modules stopped")


def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


async def _with_runtime(config: AppConfig, action):
    async with QueueRuntime(config) as runtime:
        return await action(runtime)


async def _enqueue(runtime: QueueRuntime, args) -> int:
    payload = json.loads(args.payload)
    job_id = await runtime.dispatcher.enqueue(
        args.type,
        payload,
        delay_seconds=args.delay,
        max_attempts=args.max_attempts,
        priority=args.priority,
    )
    _print_json({"job_id": job_id})
    return 0


async def _status(runtime: QueueRuntime, args) -> int:
    view = await runtime.status.get_job_status(args.job_id)
    _print_json({"job_id": args.job_id, **view.model_dump(mode="json")})
    return 0


async def _metrics(runtime: QueueRuntime, args) -> int:
    metrics = await runtime.status.get_metrics(args.type)
    _print_json(metrics.model_dump(mode="json"))
    return 0


async def _health(runtime: QueueRuntime, args) -> int:
    report = await runtime.health.check()
    _print_json(report.model_dump(mode="json"))
    return 1 if report.status == HealthStatus.UNHEALTHY else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobqueue",
        description="jobqueue - 문서/팟캐스트 백그라운드 잡 큐"
    )
    parser.add_argument("-c", "--config-dir", default=None, help="설정 디렉토리 (기본: config/)")
    parser.add_argument("-v", "--version", action="version", version="%(prog)s 1.0.0")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Run worker pool and/or admin API")
    run_parser.add_argument("modules", nargs="*", help="worker, admin (기본: 둘 다)")

    enqueue_parser = subparsers.add_parser("enqueue", help="Enqueue a job")
    enqueue_parser.add_argument("type", help="Job type (document-ingest, podcast-generate)")
    enqueue_parser.add_argument("payload", help="JSON payload")
    enqueue_parser.add_argument("--delay", type=float, default=None, help="Delay in seconds")
    enqueue_parser.add_argument("--max-attempts", type=int, default=None)
    enqueue_parser.add_argument("--priority", type=int, choices=[1, 2, 3], default=None)

    status_parser = subparsers.add_parser("status", help="Show job status")
    status_parser.add_argument("job_id")

    metrics_parser = subparsers.add_parser("metrics", help="Show queue metrics")
    metrics_parser.add_argument("--type", default=None, help="Job type filter")

    subparsers.add_parser("health", help="Run a health check")
    return parser


COMMANDS = {
    "enqueue": _enqueue,
    "status": _status,
    "metrics": _metrics,
    "health": _health,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    config = load_config(args.config_dir)

    if args.command == "run":
        setup_logging(config.logging.level, config.logging.json_format, config.logging.log_file)
        modules = args.modules or list(VALID_MODULES)
        invalid = [m for m in modules if m not in VALID_MODULES]
        if invalid:
            parser.error(f"invalid module(s): {', '.join(invalid)} (choose from {', '.join(VALID_MODULES)})")
        try:
            asyncio.run(serve(config, modules))
        except KeyboardInterrupt:
            print("\nShutdown requested by user")
        return 0

    setup_logging("WARNING", json_format=False)
    command = COMMANDS[args.command]
    try:
        return asyncio.run(_with_runtime(config, lambda runtime: command(runtime, args)))
    except (DispatcherError, StoreError) as e:
        print(f"Error: {getattr(e, 'message', e)}", file=sys.stderr)
        return 1
    except json.JSONDecodeError as e:
        print(f"Error: invalid JSON payload: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
