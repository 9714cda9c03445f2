"""Drive an assistant run to a terminal state with bounded polling.

Status checks and sleeps alternate strictly: check, and if the run is still
pending, sleep one full interval before the next check. The loop stops at the
first of three events: a terminal status, ``max_attempts`` checks, or
``timeout_s`` of elapsed clock time. ``sleep`` and ``clock`` are injected so
tests can advance time without waiting.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from .assistant_client import RunHandle
from .errors import UpstreamRunFailed, UpstreamTimeout

logger = logging.getLogger("diyassist.poller")

SUCCESS_STATUS = "completed"
PENDING_STATUSES = frozenset({"queued", "in_progress", "cancelling"})
# requires_action never resolves here because no tool outputs are submitted.
FAILURE_STATUSES = frozenset({"failed", "cancelled", "expired", "incomplete", "requires_action"})

DEFAULT_INTERVAL_S = 1.0
DEFAULT_MAX_ATTEMPTS = 15
DEFAULT_TIMEOUT_S = 20.0

StatusFetcher = Callable[[str, str], str]


class RunPoller:
    def __init__(
        self,
        get_status: StatusFetcher,
        interval_s: float = DEFAULT_INTERVAL_S,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Purpose: Configure polling bounds and time sources.
        Inputs/Outputs: Inputs are a status fetcher (thread_id, run_id) -> status and
            bounds; no return value.
        Side Effects / State: Stores configuration only.
        Dependencies: Typically AssistantsClient.get_run_status.
        Failure Modes: Raises ValueError for non-positive bounds.
        Testing Notes: Inject a fake clock whose sleep advances it.
        """
        if interval_s <= 0 or max_attempts <= 0 or timeout_s <= 0:
            raise ValueError("polling interval, attempts, and timeout must be positive")
        self._get_status = get_status
        self._interval_s = interval_s
        self._max_attempts = max_attempts
        self._timeout_s = timeout_s
        self._sleep = sleep
        self._clock = clock

    def wait(self, thread_id: str, run_id: str) -> RunHandle:
        """Purpose: Block until the run completes or a bound is reached.
        Inputs/Outputs: Inputs are thread_id and run_id; returns the completed RunHandle.
        Side Effects / State: Calls the status fetcher and sleeps between checks.
        Dependencies: Uses the injected get_status, sleep, and clock.
        Failure Modes: UpstreamRunFailed for failure terminals; UpstreamTimeout when
            attempts or elapsed time are exhausted; UpstreamUnavailable from the fetcher
            propagates unchanged.
        Testing Notes: [queued, in_progress, in_progress, completed] sleeps exactly 3 times.
        """
        started = self._clock()
        attempts = 0
        while True:
            elapsed = self._clock() - started
            if elapsed >= self._timeout_s:
                logger.warning("thread=%s run=%s status=timeout attempts=%d", thread_id, run_id, attempts)
                raise UpstreamTimeout(run_id, attempts, elapsed)

            status = self._get_status(thread_id, run_id)
            attempts += 1
            logger.debug("thread=%s run=%s attempt=%d status=%s", thread_id, run_id, attempts, status)

            if status == SUCCESS_STATUS:
                logger.info("thread=%s run=%s status=completed attempts=%d", thread_id, run_id, attempts)
                return RunHandle(thread_id=thread_id, run_id=run_id, status=status)
            if status in FAILURE_STATUSES:
                logger.warning("thread=%s run=%s status=%s", thread_id, run_id, status)
                raise UpstreamRunFailed(status, run_id=run_id)
            if status not in PENDING_STATUSES:
                logger.info("thread=%s run=%s unknown_status=%s treated=pending", thread_id, run_id, status)

            if attempts >= self._max_attempts:
                elapsed = self._clock() - started
                logger.warning("thread=%s run=%s status=timeout attempts=%d", thread_id, run_id, attempts)
                raise UpstreamTimeout(run_id, attempts, elapsed)
            self._sleep(self._interval_s)
