#!/usr/bin/env python3
"""Main entry point for Waigaya (headless Slack listener)."""

import logging
import signal
import sys


def setup_logging() -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Suppress noisy third-party loggers
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def log_task_failure(future) -> None:
    """Done callback that logs an exception nobody else will retrieve."""
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logging.getLogger("waigaya").error(f"Background task failed: {error!r}")


def run() -> int:
    """Load the stored config, connect and log events until interrupted."""
    from PySide6.QtCore import QCoreApplication, QTimer

    from . import __version__
    from .chat.manager import SlackManager
    from .chat.worker import SlackWorker
    from .core.storage import JsonStorage

    logger = logging.getLogger("waigaya")

    app = QCoreApplication(sys.argv)
    app.setApplicationName("Waigaya")
    app.setApplicationVersion(__version__)

    worker = SlackWorker()
    manager = SlackManager(storage=JsonStorage())

    manager.message_ready.connect(lambda m: logger.info(f"[{m.channel}] {m.user}: {m.text}"))
    manager.reaction_ready.connect(
        lambda r: logger.info(f"[{r.channel}] {r.user} {r.action} :{r.reaction}:")
    )
    manager.channel_watch_changed.connect(lambda name: logger.info(f"Current channel: #{name}"))
    manager.connection_changed.connect(
        lambda connected: logger.info("Connected" if connected else "Disconnected")
    )

    async def startup():
        loaded = await manager.load_settings()
        if not loaded.success:
            logger.error(f"Failed to load settings: {loaded.error}")
            return
        if not loaded.config:
            logger.error("No Slack config found. Save bot and app tokens first.")
            return
        await manager.load_local_users()
        await manager.load_local_emojis()
        result = await manager.connect()
        if not result.success:
            logger.error(f"Connection failed: {result.error}")

    def shutdown():
        if worker.isRunning():
            future = worker.submit(manager.close())
            try:
                future.result(timeout=5)
            except Exception as e:
                logger.warning(f"Error during shutdown: {e}")
            worker.stop()
            worker.wait(5000)

    app.aboutToQuit.connect(shutdown)
    signal.signal(signal.SIGINT, lambda *_: app.quit())

    # Wake the Qt loop periodically so Python can run the SIGINT handler
    timer = QTimer()
    timer.timeout.connect(lambda: None)
    timer.start(250)

    worker.start()
    worker.wait_ready()
    worker.submit(startup()).add_done_callback(log_task_failure)

    return app.exec()


def main() -> int:
    """Main entry point."""
    setup_logging()

    try:
        return run()
    except ImportError as e:
        logging.error(f"Failed to import Qt: {e}")
        logging.error("Make sure PySide6 is installed:")
        logging.error("  pip install PySide6")
        return 1


if __name__ == "__main__":
    sys.exit(main())
