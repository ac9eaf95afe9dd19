"""
Simulated SIRIUS runs.

``RunBroadcaster.start`` returns a run id at once and plays a scripted
sequence on a background thread:

    status(running) -> log(info) x N -> status(completed)

Every registered listener receives every event of every run; consumers filter
by ``run_id``. There is no cancellation, timeout, or failure path.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
import uuid
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Optional, Sequence, Union

from bandscope.common.config import DEFAULT_RUN_START_DELAY, DEFAULT_RUN_STEP_DELAY
from bandscope.common.utils import utc_now


logger = logging.getLogger(__name__)

SIRIUS_LOG_MESSAGES = (
    "Initializing SIRIUS run",
    "Reading structure data",
    "Building basis and k-mesh",
    "Starting SCF loop",
    "SCF iteration 1/8",
    "SCF iteration 4/8",
    "SCF iteration 8/8",
    "Finalizing outputs",
    "Run complete",
)


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class StatusEvent:
    run_id: str
    status: RunStatus

    kind: ClassVar[str] = "status"

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload


@dataclass(frozen=True)
class LogEvent:
    run_id: str
    level: str
    message: str
    timestamp: str

    kind: ClassVar[str] = "log"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


RunEvent = Union[StatusEvent, LogEvent]
Listener = Callable[[RunEvent], None]


def is_run_finished(event: RunEvent) -> bool:
    return isinstance(event, StatusEvent) and event.status is RunStatus.COMPLETED


class RunSubscription:
    """Consumer end of the broadcast: an unbounded queue owned by one listener."""

    def __init__(self, broadcaster: "RunBroadcaster"):
        self._broadcaster = broadcaster
        self._queue: "queue.Queue[RunEvent]" = queue.Queue()

    def __call__(self, event: RunEvent) -> None:
        self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> RunEvent:
        """Next event; raises ``queue.Empty`` when ``timeout`` elapses."""
        return self._queue.get(timeout=timeout)

    def iter_run(self, run_id: str, timeout: Optional[float] = None) -> Iterator[RunEvent]:
        """Yield the events of one run, stopping after its completed status."""
        while True:
            event = self.get(timeout=timeout)
            if event.run_id != run_id:
                continue
            yield event
            if is_run_finished(event):
                return

    def close(self) -> None:
        self._broadcaster.remove_listener(self)

    def __enter__(self) -> "RunSubscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class RunBroadcaster:
    """Starts simulated runs and fans their events out to listeners."""

    def __init__(
        self,
        start_delay: float = DEFAULT_RUN_START_DELAY,
        step_delay: float = DEFAULT_RUN_STEP_DELAY,
        messages: Sequence[str] = SIRIUS_LOG_MESSAGES,
    ):
        self.start_delay = start_delay
        self.step_delay = step_delay
        self.messages = tuple(messages)
        self._listeners: List[Listener] = []
        self._listeners_lock = threading.Lock()
        # Live runs only; each run drops its own entry when it finishes.
        self._threads: Dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> Listener:
        with self._listeners_lock:
            self._listeners.append(listener)
        return listener

    def remove_listener(self, listener: Listener) -> None:
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def subscribe(self) -> RunSubscription:
        subscription = RunSubscription(self)
        self.add_listener(subscription)
        return subscription

    def _emit(self, event: RunEvent) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.warning("Listener %r failed on %s event for run %s", listener, event.kind, event.run_id, exc_info=True)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def start(self, project_id: str) -> str:
        run_id = str(uuid.uuid4())
        thread = threading.Thread(
            target=self._run,
            args=(run_id, project_id),
            name=f"sirius-run-{run_id[:8]}",
            daemon=True,
        )
        # Registered before start so the thread's own cleanup always finds it.
        with self._threads_lock:
            self._threads[run_id] = thread
        thread.start()
        logger.info("Started SIRIUS run %s for project %s", run_id, project_id)
        return run_id

    def _run(self, run_id: str, project_id: str) -> None:
        try:
            time.sleep(self.start_delay)
            self._emit(StatusEvent(run_id=run_id, status=RunStatus.RUNNING))

            for message in self.messages:
                time.sleep(self.step_delay)
                self._emit(
                    LogEvent(
                        run_id=run_id,
                        level="info",
                        message=message,
                        timestamp=utc_now().isoformat(),
                    )
                )

            self._emit(StatusEvent(run_id=run_id, status=RunStatus.COMPLETED))
            logger.debug("SIRIUS run %s for project %s completed", run_id, project_id)
        finally:
            with self._threads_lock:
                self._threads.pop(run_id, None)

    def join(self, run_id: str, timeout: Optional[float] = None) -> bool:
        """Wait for a run's thread; True once it has finished."""
        with self._threads_lock:
            thread = self._threads.get(run_id)
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def active_runs(self) -> List[str]:
        with self._threads_lock:
            threads = list(self._threads.items())
        return [run_id for run_id, thread in threads if thread.is_alive()]
