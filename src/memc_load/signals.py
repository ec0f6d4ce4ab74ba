"""Signal handling for graceful shutdown."""

import asyncio
import logging
import signal
import sys
from collections.abc import Callable

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def setup_shutdown_signal_handlers(
    request_stop: Callable[[], None],
    is_stopping: Callable[[], bool],
) -> None:
    """Set up signal handlers for graceful shutdown.

    First signal: ``request_stop`` - queues unwind, the current file is left
    unrenamed, counters are reported.
    Second signal: cancels every task for an immediate exit.
    Note: Signal handlers are not supported on Windows; KeyboardInterrupt is
    used instead.
    """
    if sys.platform == "win32":
        logger.debug("Signal handlers not supported on Windows, using KeyboardInterrupt")
        return

    loop = asyncio.get_running_loop()

    def handle_signal(sig: signal.Signals) -> None:
        if not is_stopping():
            logger.info("Received %s, initiating graceful shutdown", sig.name)
            request_stop()
        else:
            logger.warning("Received second signal, forcing immediate shutdown...")
            for task in asyncio.all_tasks(loop):
                task.cancel()

    for sig in SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))


def remove_shutdown_signal_handlers() -> None:
    if sys.platform == "win32":
        return

    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        loop.remove_signal_handler(sig)
