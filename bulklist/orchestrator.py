import logging
import re
import time
from typing import Callable, Generator, List, Optional, Sequence

from .client import ListClient
from .errors import ConfigurationError, RemoteError
from .models import BatchReport, DelayPolicy, ItemOutcome, RunState, WorkItem

ProgressCallback = Callable[[ItemOutcome, int, int], None]
CancelCheck = Callable[[], bool]

_LIST_ID = re.compile(r"(ls\d+)")


def resolve_list_id(location: Optional[str]) -> Optional[str]:
    """Pull a list id (``ls`` followed by digits) out of a URL, path or bare id."""
    if not location:
        return None
    match = _LIST_ID.search(location)
    return match.group(1) if match else None


def _never_cancelled() -> bool:
    return False


def _ignore_progress(outcome: ItemOutcome, done: int, total: int) -> None:
    pass


class BatchOrchestrator:
    """
    Applies a parsed batch to a list, one item at a time.

    Each item is added, then gets its description set when it has one. Item
    N+1 never starts before both calls for item N have returned. Failures are
    recorded per item and never stop the batch; nothing is retried.
    """

    def __init__(self, client: ListClient, sleep: Callable[[float], object] = time.sleep):
        """
        Args:
            client: Issues the add / set-description mutations
            sleep: Called with the delay in seconds between items. Pass a
                cancellable wait (e.g. ``threading.Event.wait``) to let a
                cancel request cut the delay short.
        """
        self.client = client
        self.sleep = sleep
        self.state = RunState.IDLE
        self.logger = logging.getLogger(__name__)

    def run(self,
            batch: Sequence[WorkItem],
            list_id: Optional[str],
            delay_policy: Optional[DelayPolicy] = None,
            is_cancelled: Optional[CancelCheck] = None,
            on_progress: Optional[ProgressCallback] = None) -> BatchReport:
        """
        Process ``batch`` against ``list_id`` and return the final report.

        ``on_progress(outcome, completed, total)`` is called once per processed
        item, in batch order.

        Raises:
            ConfigurationError: if ``list_id`` is missing; no item is attempted.
        """
        on_progress = on_progress or _ignore_progress
        total = len(batch)
        steps = self.iter_run(batch, list_id, delay_policy, is_cancelled)
        while True:
            try:
                outcome = next(steps)
            except StopIteration as stop:
                return stop.value
            on_progress(outcome, outcome.index + 1, total)

    def iter_run(self,
                 batch: Sequence[WorkItem],
                 list_id: Optional[str],
                 delay_policy: Optional[DelayPolicy] = None,
                 is_cancelled: Optional[CancelCheck] = None
                 ) -> Generator[ItemOutcome, None, BatchReport]:
        """
        Same as :meth:`run`, but yield each outcome as it is produced.

        The generator returns the :class:`BatchReport` when exhausted. The
        list id is checked here, before the generator is created.
        """
        if not list_id or not list_id.strip():
            self.state = RunState.FAILED
            raise ConfigurationError("Could not determine list ID.")
        return self._steps(list(batch), list_id.strip(),
                           delay_policy or DelayPolicy(),
                           is_cancelled or _never_cancelled)

    def _steps(self,
               batch: List[WorkItem],
               list_id: str,
               delay_policy: DelayPolicy,
               is_cancelled: CancelCheck) -> Generator[ItemOutcome, None, BatchReport]:
        total = len(batch)
        outcomes: List[ItemOutcome] = []
        cancelled = False

        self.state = RunState.RUNNING
        self.logger.info(f"Starting upload of {total} item(s) to {list_id}")

        for index, item in enumerate(batch):
            if is_cancelled():
                cancelled = True
                break

            outcome = self._process_item(index, item, list_id)
            outcomes.append(outcome)
            yield outcome

            if delay_policy.enabled and delay_policy.interval_ms > 0 and index < total - 1:
                # A cancel seen here skips the wait; the next loop check stops the run
                if is_cancelled():
                    cancelled = True
                    break
                self.logger.debug(f"Waiting {delay_policy.seconds:.1f}s before next item")
                self.sleep(delay_policy.seconds)

        report = BatchReport(outcomes=outcomes, cancelled=cancelled)
        self.state = RunState.CANCELLED if cancelled else RunState.COMPLETED
        self.logger.info(report.summary())
        return report

    def _process_item(self, index: int, item: WorkItem, list_id: str) -> ItemOutcome:
        try:
            added = self.client.add_item(list_id, item.id)
        except RemoteError as e:
            self.logger.warning(f"Failed {item.id}: {e.message}")
            return self._failed(index, item, e.message)
        except Exception as e:
            self.logger.exception(f"Unexpected error adding {item.id}: {e}")
            return self._failed(index, item, str(e) or e.__class__.__name__)

        label = added.display_label or item.id
        warning = None
        if item.annotation:
            warning = self._apply_annotation(item, list_id, added.remote_item_id)

        self.logger.info(f"Added {label} ({item.id})")
        return ItemOutcome(id=item.id, index=index, succeeded=True,
                           display_label=label, warning=warning)

    def _apply_annotation(self, item: WorkItem, list_id: str,
                          remote_item_id: Optional[str]) -> Optional[str]:
        """Set the description; return warning text if it could not be set."""
        if not remote_item_id:
            self.logger.warning(f"No list item id returned for {item.id}; description skipped")
            return "description not set: no list item id returned"
        try:
            self.client.set_annotation(list_id, remote_item_id, item.annotation)
        except RemoteError as e:
            self.logger.warning(f"Description not set for {item.id}: {e.message}")
            return f"description not set: {e.message}"
        except Exception as e:
            self.logger.exception(f"Unexpected error setting description for {item.id}: {e}")
            return f"description not set: {e}"
        return None

    @staticmethod
    def _failed(index: int, item: WorkItem, reason: str) -> ItemOutcome:
        return ItemOutcome(id=item.id, index=index, succeeded=False,
                           failure_reason=reason, display_label=item.id)
