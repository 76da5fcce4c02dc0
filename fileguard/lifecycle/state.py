"""Serving/draining state shared by the accept loop and its workers."""

import logging
import threading
from enum import Enum

from fileguard.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("fileguard.lifecycle"), {})


class Phase(str, Enum):
    SERVING = "serving"
    DRAINING = "draining"


class ServerLifecycle:
    """Tracks the server phase and the worker threads still holding connections.

    Once draining starts the accept loop answers every new connection with
    503 and exits at its next idle poll; ``wait_for_workers`` then blocks
    until in-flight connections are done or the grace period runs out.
    """

    def __init__(self) -> None:
        self._phase = Phase.SERVING
        self._workers_changed = threading.Condition()
        self._workers: set[threading.Thread] = set()

    @property
    def phase(self) -> Phase:
        return self._phase

    def should_stop(self) -> bool:
        return self._phase is Phase.DRAINING

    def is_draining(self) -> bool:
        return self._phase is Phase.DRAINING

    def register_worker(self, thread: threading.Thread) -> None:
        with self._workers_changed:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        with self._workers_changed:
            self._workers.discard(thread)
            self._workers_changed.notify_all()

    def active_worker_count(self) -> int:
        with self._workers_changed:
            return len(self._workers)

    def begin_draining(self) -> None:
        if self._phase is Phase.DRAINING:
            return
        self._phase = Phase.DRAINING
        LIFECYCLE_LOGGER.info(
            "Draining connections before shutdown",
            extra={"event": "draining_started", "draining": True},
        )

    def wait_for_workers(self, timeout: float) -> bool:
        """Return True once no workers remain, False if timeout elapses first."""
        with self._workers_changed:
            finished = self._workers_changed.wait_for(
                lambda: not self._workers, timeout=timeout
            )
            remaining = len(self._workers)
        if not finished:
            LIFECYCLE_LOGGER.warning(
                "Shutdown grace period exceeded",
                extra={"event": "shutdown_timeout", "remaining_workers": remaining},
            )
        return finished
