"""
NoteLens - Edit Session Tracker
In-process store for the edit session lifecycle: start, record, complete, analyze
"""

import logging
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Optional, Union, Any

from pydantic import TypeAdapter

from notelens.config import settings
from notelens.schemas import (
    EditSession, EditDelta, EditBehaviorMetrics, EditAnalysisResult,
    ClinicalContext, EditSessionStartRequest
)
from notelens.exceptions import SessionNotFoundError, SessionStateError, DeltaLimitExceededError
from notelens.modules.edit_analysis import EditPatternAnalyzer, MAJOR_EDIT_LENGTH, get_edit_analyzer

logger = logging.getLogger(__name__)

_delta_adapter = TypeAdapter(EditDelta)


class EditSessionTracker:
    """
    Thread-safe registry of edit sessions

    A session accepts deltas until it is completed, and is analyzed at most
    once; later analysis requests return the stored result.

    At most max_sessions sessions are held. Starting one more evicts the
    oldest analyzed session, else the oldest completed one, else the oldest
    open one.
    """

    def __init__(
        self,
        analyzer: Optional[EditPatternAnalyzer] = None,
        max_deltas: Optional[int] = None,
        max_sessions: Optional[int] = None
    ):
        self.analyzer = analyzer or get_edit_analyzer()
        self.max_deltas = max_deltas or settings.max_deltas_per_session
        self.max_sessions = max_sessions or settings.max_tracked_sessions
        self._sessions: "OrderedDict[str, EditSession]" = OrderedDict()
        self._results: Dict[str, EditAnalysisResult] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start_session(
        self,
        note_id: str,
        original_content: str = "",
        clinical_context: Optional[ClinicalContext] = None,
        patient_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> EditSession:
        session = EditSession(
            note_id=note_id,
            patient_id=patient_id,
            user_id=user_id,
            clinical_context=clinical_context or ClinicalContext(),
            original_content=original_content,
        )
        with self._lock:
            while len(self._sessions) >= self.max_sessions:
                self._evict_one()
            self._sessions[session.session_id] = session

        logger.info(f"Started edit session {session.session_id} for note {note_id}")
        return session

    def _evict_one(self):
        victim = (
            next((s for s in self._sessions.values() if s.is_analyzed), None)
            or next((s for s in self._sessions.values() if s.is_completed), None)
            or next(iter(self._sessions.values()))
        )
        del self._sessions[victim.session_id]
        self._results.pop(victim.session_id, None)

        if victim.is_analyzed:
            logger.debug(f"Evicted analyzed edit session {victim.session_id}")
        else:
            logger.warning(f"Evicted unanalyzed edit session {victim.session_id}; tracker is full")

    def start_from_request(self, request: EditSessionStartRequest) -> EditSession:
        return self.start_session(
            note_id=request.note_id,
            original_content=request.original_content,
            clinical_context=request.clinical_context,
            patient_id=request.patient_id,
            user_id=request.user_id,
        )

    def get_session(self, session_id: str) -> EditSession:
        """
        Look up a session

        Raises:
            SessionNotFoundError: if the ID is unknown
        """
        with self._lock:
            return self._get(session_id)

    def _get(self, session_id: str) -> EditSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError("Edit session not found", session_id=session_id)
        return session

    def record_delta(self, session_id: str, delta: Union[EditDelta, Dict[str, Any]]) -> EditSession:
        """
        Append one delta to an open session

        Raises:
            SessionNotFoundError: unknown session
            SessionStateError: session already completed
            DeltaLimitExceededError: delta log is full
            pydantic.ValidationError: malformed raw delta
        """
        if isinstance(delta, dict):
            delta = _delta_adapter.validate_python(delta)

        with self._lock:
            session = self._get(session_id)
            if session.is_completed:
                raise SessionStateError(
                    "Cannot record edits on a completed session",
                    context={"session_id": session_id}
                )
            if len(session.deltas) >= self.max_deltas:
                raise DeltaLimitExceededError(
                    "Edit session delta limit reached",
                    context={"session_id": session_id, "limit": self.max_deltas}
                )

            session.deltas.append(delta)
            session.total_edits += 1
            if delta.length > MAJOR_EDIT_LENGTH:
                session.major_edits += 1

        logger.debug(f"Recorded {delta.kind} delta on session {session_id} ({session.total_edits} total)")
        return session

    def complete_session(
        self,
        session_id: str,
        final_content: str,
        metrics: Optional[EditBehaviorMetrics] = None
    ) -> EditSession:
        """
        Finalize a session's content and behavioral metrics

        Raises:
            SessionNotFoundError: unknown session
            SessionStateError: session already completed
        """
        with self._lock:
            session = self._get(session_id)
            if session.is_completed:
                raise SessionStateError(
                    "Edit session already completed",
                    context={"session_id": session_id}
                )
            session.final_content = final_content
            session.metrics = metrics or EditBehaviorMetrics()
            session.completed_at = datetime.utcnow()

        logger.info(f"Completed edit session {session_id} with {session.total_edits} edits")
        return session

    def analyze_session(self, session_id: str) -> EditAnalysisResult:
        """
        Analyze a completed session exactly once

        Raises:
            SessionNotFoundError: unknown session
            SessionStateError: session not completed yet
        """
        with self._lock:
            session = self._get(session_id)
            if not session.is_completed:
                raise SessionStateError(
                    "Edit session must be completed before analysis",
                    context={"session_id": session_id}
                )
            if session.is_analyzed:
                return self._results[session_id]

            result = self.analyzer.analyze(session)
            self._results[session_id] = result
            session.is_analyzed = True

        return result

    def get_analysis(self, session_id: str) -> Optional[EditAnalysisResult]:
        with self._lock:
            self._get(session_id)
            return self._results.get(session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


# =============================================================================
# Global Tracker Instance
# =============================================================================

_session_tracker: Optional[EditSessionTracker] = None


def get_session_tracker() -> EditSessionTracker:
    """Get or create the shared session tracker"""
    global _session_tracker
    if _session_tracker is None:
        _session_tracker = EditSessionTracker()
    return _session_tracker
