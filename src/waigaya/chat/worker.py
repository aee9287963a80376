"""Background thread hosting the asyncio loop the Slack manager runs on."""

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Coroutine

from PySide6.QtCore import QThread

logger = logging.getLogger(__name__)


class SlackWorker(QThread):
    """Worker thread that runs a persistent event loop for Slack commands.

    Commands are submitted from the Qt thread with ``submit()``; results come
    back as concurrent futures, events come back through the manager's signals.
    """

    def __init__(self, parent=None):
        super().__init__(parent)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._ready = threading.Event()
        self._should_stop = False

    def run(self):
        """Run the event loop until stop() is called."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._ready.set()
        try:
            self._loop.run_forever()
        except Exception as e:
            if not self._should_stop:
                logger.error(f"Slack worker error: {e}")
        finally:
            pending = asyncio.all_tasks(self._loop)
            for task in pending:
                task.cancel()
            if pending:
                self._loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            self._loop.close()
            self._loop = None
            self._ready.clear()

    def wait_ready(self, timeout: float | None = None) -> bool:
        """Block until the loop is running."""
        return self._ready.wait(timeout)

    def submit(self, coro: Coroutine) -> concurrent.futures.Future:
        """Schedule a coroutine on the worker loop."""
        if self._loop is None:
            coro.close()
            raise RuntimeError("Slack worker is not running")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def stop(self):
        """Request the worker to stop."""
        self._should_stop = True
        if self._loop and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)
