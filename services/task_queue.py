"""
Extraction task queue with cooperative cancellation.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed, Future
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from config.error_handling import ExportCancelledError, ExtractionFailure

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


class CancellationToken:
    """
    Cancellation signal shared between the export driver and its workers.

    A child token is cancelled when either it or its parent is cancelled.
    """

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        self._parent = parent
        self.reason = ""

    def cancel(self, reason: str = "") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.is_cancelled

    def raise_if_cancelled(self) -> None:
        """Raise ExportCancelledError if cancellation was requested."""
        if self.is_cancelled:
            raise ExportCancelledError(
                f"Export cancelled: {self.reason}" if self.reason else "Export cancelled"
            )

    def child(self) -> "CancellationToken":
        return CancellationToken(parent=self)


class ExtractionQueue:
    """
    Runs one job per sequence index and returns results in index order.

    With ``max_workers=1`` jobs run strictly one after another; larger values
    fan the jobs out over a thread pool. The first failing job aborts the
    remaining ones: queued jobs are cancelled, running jobs see a cancelled
    token, and their results are discarded.
    """

    def __init__(self, max_workers: int = 1):
        self.max_workers = max(1, max_workers)
        self._lock = threading.Lock()
        self._active_futures: Dict[int, Future] = {}

    def run(self, jobs: Sequence[T], worker: Callable[[T, CancellationToken], R],
            cancel_token: Optional[CancellationToken] = None,
            on_result: Optional[Callable[[int, R], None]] = None) -> List[R]:
        """
        Execute ``worker(job, token)`` for every job.

        Args:
            jobs: Jobs in sequence order; job ``i`` has 1-based index ``i + 1``
            worker: Callable doing the work for one job
            cancel_token: External cancellation signal
            on_result: Called with (index, result) as each job completes

        Returns:
            Results ordered by job position

        Raises:
            ExtractionFailure: If a job raises; carries the job's 1-based index
            ExportCancelledError: If the external token is cancelled
        """
        parent = cancel_token or CancellationToken()
        abort = parent.child()
        results: Dict[int, R] = {}

        if self.max_workers == 1 or len(jobs) <= 1:
            for position, job in enumerate(jobs, start=1):
                parent.raise_if_cancelled()
                results[position] = self._run_one(position, job, worker, abort)
                if on_result:
                    on_result(position, results[position])
            return [results[i] for i in range(1, len(jobs) + 1)]

        with ThreadPoolExecutor(max_workers=self.max_workers,
                                thread_name_prefix="extract") as executor:
            future_to_position = {}
            for position, job in enumerate(jobs, start=1):
                future = executor.submit(self._run_one, position, job, worker, abort)
                future_to_position[future] = position
                with self._lock:
                    self._active_futures[position] = future

            try:
                for future in as_completed(future_to_position):
                    position = future_to_position[future]
                    with self._lock:
                        self._active_futures.pop(position, None)
                    results[position] = future.result()
                    if on_result:
                        on_result(position, results[position])
            except BaseException as exc:
                abort.cancel(f"job failed: {exc}")
                self._cancel_pending()
                raise
            finally:
                with self._lock:
                    self._active_futures.clear()

        return [results[i] for i in range(1, len(jobs) + 1)]

    def _run_one(self, position: int, job: T, worker: Callable[[T, CancellationToken], R],
                 abort: CancellationToken) -> R:
        abort.raise_if_cancelled()
        try:
            return worker(job, abort)
        except ExportCancelledError:
            raise
        except Exception as e:
            logger.error(f"Job {position} failed: {e}")
            raise ExtractionFailure(position, e)

    def _cancel_pending(self) -> None:
        with self._lock:
            for future in self._active_futures.values():
                future.cancel()
            self._active_futures.clear()

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active_futures)
