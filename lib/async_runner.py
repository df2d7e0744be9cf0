import asyncio
import logging
import threading
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)

class BackgroundLoop:
    """
    One asyncio event loop running in a daemon thread.

    Flask request threads hand their coroutines to this loop, so every
    webhook shares the same loop (and the same per-client locks).
    """

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self.loop.set_exception_handler(self._log_unhandled)
        self._thread = threading.Thread(target=self._run, name='bot-event-loop', daemon=True)
        self._thread.start()
        logger.info("Background event loop started")

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    @staticmethod
    def _log_unhandled(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        # Log and keep the loop alive
        error = context.get('exception')
        logger.error(f"Unhandled error in event loop: {context.get('message')}", exc_info=error)

    def run(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        """Run a coroutine on the loop and block the calling thread for its result."""
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout=timeout)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
