"""Opencron entry point."""

import asyncio
import contextlib
import logging
import signal

from opencron.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
)
logger = logging.getLogger(__name__)


def _init_engine():
    """Create the store, executor and scheduler engine."""
    from opencron.scheduler.engine import SchedulerEngine
    from opencron.scheduler.executor import TaskExecutor
    from opencron.scheduler.store import TaskStore

    store = TaskStore(db_path=settings.database_path)
    executor = TaskExecutor(store=store, logs_dir=settings.logs_dir)
    engine = SchedulerEngine(
        store=store,
        executor=executor,
        logs_dir=settings.logs_dir,
        log_retention=settings.log_retention,
    )
    return store, engine


async def _run() -> None:
    from opencron.api.rpc import ApiContext
    from opencron.api.server import ApiServer

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    store, engine = _init_engine()
    await engine.start()

    server = ApiServer(ApiContext(engine=engine, store=store, logs_dir=settings.logs_dir))
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops; Ctrl+C still raises there.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await server.start()
        await stop.wait()
        logger.info("Shutdown requested")
    finally:
        await server.stop()
        await engine.stop()


def main() -> None:
    """Start the scheduler and the HTTP API, and run until interrupted."""
    logger.info(
        "Starting opencron (data_dir=%s, log retention=%dh)",
        settings.data_dir,
        settings.log_retention_hours,
    )
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run())


if __name__ == "__main__":
    main()
