import logging
import threading
import uuid
from typing import Callable, Dict, List, Optional

from .errors import ConfigurationError
from .models import (
    BatchReport,
    DelayPolicy,
    ItemOutcome,
    RunState,
    RunStatusResponse,
    WorkItem,
)
from .orchestrator import BatchOrchestrator

logger = logging.getLogger(__name__)

_FINISHED = (RunState.COMPLETED, RunState.CANCELLED, RunState.FAILED)


class UploadRun:
    """State of one background upload, as seen by whoever started it."""

    def __init__(self, run_id: str, total: int):
        self.run_id = run_id
        self.total = total
        self.state = RunState.IDLE
        self.outcomes: List[ItemOutcome] = []
        self.report: Optional[BatchReport] = None
        self.error: Optional[str] = None
        # Set once, never cleared
        self.cancel_event = threading.Event()
        self.thread: Optional[threading.Thread] = None

    def snapshot(self) -> RunStatusResponse:
        return RunStatusResponse(
            run_id=self.run_id,
            state=self.state,
            done=len(self.outcomes),
            total=self.total,
            outcomes=list(self.outcomes),
            report=self.report,
            error=self.error,
        )


class RunTracker:
    """
    Starts uploads on worker threads and keeps their progress.

    Every run gets its own orchestrator and cancel flag. Progress is written
    only by the run's own thread, under the tracker lock; callers get copies.
    """

    def __init__(self,
                 orchestrator_factory: Callable[[threading.Event], BatchOrchestrator],
                 max_finished_runs: int = 100):
        """
        Args:
            orchestrator_factory: Builds an orchestrator for a new run, given
                the run's cancel event (so its wait can serve as the delay).
            max_finished_runs: How many finished runs to keep; the oldest are
                dropped when a new run starts.
        """
        self.orchestrator_factory = orchestrator_factory
        self.max_finished_runs = max_finished_runs
        self.runs: Dict[str, UploadRun] = {}
        self._state_lock = threading.Lock()

    def start(self,
              batch: List[WorkItem],
              list_id: Optional[str],
              delay_policy: Optional[DelayPolicy] = None) -> UploadRun:
        """
        Start a background run and return it immediately.

        Raises:
            ConfigurationError: if ``list_id`` is missing; no run is registered.
        """
        if not list_id:
            raise ConfigurationError("Could not determine list ID.")

        run = UploadRun(uuid.uuid4().hex, len(batch))
        orchestrator = self.orchestrator_factory(run.cancel_event)
        # Validates the list id before anything is registered or started
        steps = orchestrator.iter_run(batch, list_id, delay_policy, run.cancel_event.is_set)

        run.thread = threading.Thread(target=self._drive, args=(run, steps),
                                      name=f"upload-{run.run_id[:8]}", daemon=True)

        with self._state_lock:
            self._evict_finished()
            self.runs[run.run_id] = run
            run.state = RunState.RUNNING
            # Started under the lock so wait() never sees an unstarted thread
            run.thread.start()

        logger.info(f"Started run {run.run_id} with {run.total} item(s)")
        return run

    def _drive(self, run: UploadRun, steps) -> None:
        try:
            while True:
                try:
                    outcome = next(steps)
                except StopIteration as stop:
                    report = stop.value
                    break
                with self._state_lock:
                    run.outcomes.append(outcome)
        except Exception as e:
            logger.exception(f"Run {run.run_id} stopped unexpectedly: {e}")
            with self._state_lock:
                run.state = RunState.FAILED
                run.error = str(e)
            return

        with self._state_lock:
            run.report = report
            run.state = RunState.CANCELLED if report.cancelled else RunState.COMPLETED

    def _evict_finished(self) -> None:
        # Caller holds _state_lock; dict order is start order
        finished = [run_id for run_id, run in self.runs.items() if run.state in _FINISHED]
        for run_id in finished[:max(0, len(finished) - self.max_finished_runs)]:
            del self.runs[run_id]

    def forget(self, run_id: str) -> bool:
        """Drop a finished run. Returns False if it is unknown or still running."""
        with self._state_lock:
            run = self.runs.get(run_id)
            if run is None or run.state not in _FINISHED:
                return False
            del self.runs[run_id]
        return True

    def get(self, run_id: str) -> Optional[RunStatusResponse]:
        with self._state_lock:
            run = self.runs.get(run_id)
            return run.snapshot() if run is not None else None

    def cancel(self, run_id: str) -> bool:
        """Request cancellation; the in-flight item still completes."""
        with self._state_lock:
            run = self.runs.get(run_id)
        if run is None:
            return False
        run.cancel_event.set()
        logger.info(f"Cancelling run {run_id}; will stop after current item")
        return True

    def wait(self, run_id: str, timeout: Optional[float] = None) -> bool:
        """Block until the run's thread ends. Returns False on timeout or unknown id."""
        with self._state_lock:
            run = self.runs.get(run_id)
        if run is None or run.thread is None:
            return False
        run.thread.join(timeout)
        return not run.thread.is_alive()

    def cancel_all(self) -> None:
        with self._state_lock:
            runs = list(self.runs.values())
        for run in runs:
            run.cancel_event.set()
