"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                        UPDATE SCHEDULER                                       ║
║              Startup check, recurring check, on-demand trigger                ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  ⏱️ Initial check a few seconds after startup                                ║
║  🔁 Fixed-interval recurring check on a daemon thread                        ║
║  🛑 stop() cancels the timer before the process tears down                   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import threading
from functools import wraps
from typing import Callable, Optional

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
# 🧵 THREAD-SAFE DECORATOR
# ══════════════════════════════════════════════════════════════════════════════

def run_in_thread(func: Callable) -> Callable:
    """
    Decorator to run a function in a separate daemon thread.

    Usage:
        @run_in_thread
        def my_long_running_task():
            ...
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        thread = threading.Thread(
            target=func,
            args=args,
            kwargs=kwargs,
            daemon=True
        )
        thread.start()
        return thread
    return wrapper


# ══════════════════════════════════════════════════════════════════════════════
# SCHEDULER
# ══════════════════════════════════════════════════════════════════════════════

class UpdateScheduler:
    """
    Calls ``job`` shortly after ``start()`` and then every ``interval``
    seconds until ``stop()``.

    ``job`` is expected to drop overlapping runs itself
    (see ``UpdateOrchestrator.run_cycle``).
    """

    def __init__(
        self,
        job: Callable[[], object],
        interval: float = 30 * 60,
        initial_delay: float = 3.0,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.job = job
        self.interval = interval
        self.initial_delay = initial_delay

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="update-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("Update scheduler started (every %.0f s)", self.interval)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Cancel the recurring check. An in-flight job is not interrupted."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.info("Update scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def trigger(self) -> threading.Thread:
        """Run the job now on a background thread."""
        return run_in_thread(self._run_job)()

    def _loop(self) -> None:
        if self._stop.wait(self.initial_delay):
            return
        while not self._stop.is_set():
            self._run_job()
            if self._stop.wait(self.interval):
                return

    def _run_job(self) -> None:
        try:
            self.job()
        except Exception:
            logger.exception("Scheduled update job failed")
