from __future__ import annotations

import threading
import time
from typing import Dict, List, Optional

from .models import Recommendations, SessionSummary, StoredMessage


class SessionStore:
    """In-memory registry of threads seen by this process.

    The store is a best-effort cache created at startup and lost at restart. The
    remote thread remains the source of truth, so callers must tolerate a thread
    that is unknown here or whose transcript is incomplete.
    """

    def __init__(self, max_sessions: Optional[int] = None) -> None:
        """Purpose: Initialize empty caches and the lock guarding them.
        Inputs/Outputs: Input is an optional max_sessions cap; no return.
        Side Effects / State: Allocates in-memory dicts.
        Dependencies: Relies on StoredMessage/SessionSummary models.
        Failure Modes: None.
        Testing Notes: Set a low max_sessions and verify pruning order.
        """
        self._max_sessions = max_sessions
        self._lock = threading.Lock()
        self._sessions: Dict[str, List[StoredMessage]] = {}
        self._summaries: Dict[str, SessionSummary] = {}
        self._recommendations: Dict[str, Recommendations] = {}

    def ensure_session(self, thread_id: str, mock: bool = False) -> None:
        # Initialize empty session structures when missing.
        with self._lock:
            if thread_id in self._summaries:
                return
            self._sessions[thread_id] = []
            self._summaries[thread_id] = SessionSummary(
                thread_id=thread_id,
                title="New Project",
                updated_at=time.time(),
                mock=mock,
            )
            self._prune_sessions()

    def add_message(self, thread_id: str, role: str, content: str) -> None:
        """Purpose: Append a turn to a thread transcript and refresh its summary.
        Inputs/Outputs: Inputs are thread_id, role, content; no return value.
        Side Effects / State: Mutates caches; unknown threads are created implicitly.
        Dependencies: Uses StoredMessage, SessionSummary, _prune_sessions.
        Failure Modes: None.
        Testing Notes: The first user message becomes the summary title.
        """
        timestamp = time.time()
        message = StoredMessage(role=role, content=content, timestamp=timestamp)
        with self._lock:
            self._sessions.setdefault(thread_id, []).append(message)
            summary = self._summaries.get(thread_id)
            if summary is None:
                summary = SessionSummary(thread_id=thread_id, title="New Project", updated_at=timestamp)
                self._summaries[thread_id] = summary
            if role == "user" and summary.title == "New Project" and content.strip():
                summary.title = content.strip().splitlines()[0][:48]
            summary.updated_at = timestamp
            self._prune_sessions()

    def get_messages(self, thread_id: str) -> List[StoredMessage]:
        with self._lock:
            return list(self._sessions.get(thread_id, []))

    def list_sessions(self) -> List[SessionSummary]:
        # Sort summaries by last update time.
        with self._lock:
            return sorted(self._summaries.values(), key=lambda s: s.updated_at, reverse=True)

    def set_recommendations(self, thread_id: str, recommendations: Recommendations) -> None:
        with self._lock:
            self._recommendations[thread_id] = recommendations.model_copy(deep=True)
            if thread_id in self._summaries:
                self._summaries[thread_id].updated_at = time.time()

    def get_recommendations(self, thread_id: str) -> Optional[Recommendations]:
        with self._lock:
            cached = self._recommendations.get(thread_id)
            return cached.model_copy(deep=True) if cached else None

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._summaries.clear()
            self._recommendations.clear()

    def _prune_sessions(self) -> bool:
        """Purpose: Enforce max_sessions by dropping the least recently updated threads.
        Inputs/Outputs: No inputs; returns True if any sessions were removed.
        Side Effects / State: Mutates all caches. Caller must hold the lock.
        Dependencies: Uses _max_sessions and updated_at ordering.
        Failure Modes: None; no-op when max_sessions is unset or not exceeded.
        Testing Notes: Add max_sessions + 1 threads and check the oldest is gone.
        """
        if not self._max_sessions or self._max_sessions <= 0:
            return False
        if len(self._summaries) <= self._max_sessions:
            return False

        sorted_summaries = sorted(self._summaries.values(), key=lambda s: s.updated_at, reverse=True)
        keep_ids = {summary.thread_id for summary in sorted_summaries[: self._max_sessions]}
        removed = [thread_id for thread_id in list(self._summaries.keys()) if thread_id not in keep_ids]
        for thread_id in removed:
            self._summaries.pop(thread_id, None)
            self._sessions.pop(thread_id, None)
            self._recommendations.pop(thread_id, None)
        return bool(removed)
