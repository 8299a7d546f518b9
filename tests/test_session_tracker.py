"""
Unit tests for the edit session tracker
"""

import pytest
from pydantic import ValidationError

from notelens.services.session_tracker import EditSessionTracker
from notelens.modules.edit_analysis import EditPatternAnalyzer
from notelens.schemas import (
    ClinicalContext, InsertDelta, DeleteDelta, EditBehaviorMetrics, EditPatternType
)
from notelens.exceptions import (
    SessionNotFoundError, SessionStateError, DeltaLimitExceededError, SessionError
)


@pytest.fixture
def tracker():
    return EditSessionTracker(analyzer=EditPatternAnalyzer(), max_deltas=10)


@pytest.fixture
def session(tracker):
    return tracker.start_session(
        note_id="note-42",
        original_content="Subjective: Patient reports improved mood.",
        clinical_context=ClinicalContext(clinic="outpatient", emr="epic"),
        user_id="clinician-7"
    )


class TestSessionLifecycle:
    """Test start, record and complete"""

    def test_start_and_get(self, tracker, session):
        fetched = tracker.get_session(session.session_id)

        assert fetched is session
        assert fetched.note_id == "note-42"
        assert fetched.total_edits == 0
        assert not fetched.is_completed
        assert len(tracker) == 1

    def test_unknown_session(self, tracker):
        with pytest.raises(SessionNotFoundError) as exc_info:
            tracker.get_session("missing")

        assert exc_info.value.session_id == "missing"
        assert isinstance(exc_info.value, SessionError)

    def test_record_counts_edits(self, tracker, session):
        tracker.record_delta(session.session_id, InsertDelta(new_content="Sleeping 7 hours."))
        tracker.record_delta(session.session_id, DeleteDelta(old_content="z" * 60))

        assert session.total_edits == 2
        assert session.major_edits == 1
        assert len(session.deltas) == 2

    def test_record_raw_dict(self, tracker, session):
        tracker.record_delta(session.session_id, {"kind": "replace", "old_content": "pt", "new_content": "patient"})

        assert session.deltas[0].kind == "replace"
        assert session.deltas[0].length == 7

    def test_record_invalid_dict(self, tracker, session):
        with pytest.raises(ValidationError):
            tracker.record_delta(session.session_id, {"kind": "insert"})
        assert session.total_edits == 0

    def test_delta_limit(self, tracker, session):
        for _ in range(10):
            tracker.record_delta(session.session_id, InsertDelta(new_content="a"))

        with pytest.raises(DeltaLimitExceededError):
            tracker.record_delta(session.session_id, InsertDelta(new_content="a"))

    def test_complete(self, tracker, session):
        metrics = EditBehaviorMetrics(typing_speed_cpm=180, backspace_frequency=0.1)
        tracker.complete_session(session.session_id, "Final note text", metrics)

        assert session.is_completed
        assert session.final_content == "Final note text"
        assert session.metrics.typing_speed_cpm == 180

    def test_no_edits_after_completion(self, tracker, session):
        tracker.complete_session(session.session_id, "Final note text")

        with pytest.raises(SessionStateError):
            tracker.record_delta(session.session_id, InsertDelta(new_content="late edit"))

    def test_complete_twice(self, tracker, session):
        tracker.complete_session(session.session_id, "Final note text")

        with pytest.raises(SessionStateError):
            tracker.complete_session(session.session_id, "Again")


class TestSessionAnalysis:
    """Test analyze-once semantics"""

    def test_analysis_requires_completion(self, tracker, session):
        with pytest.raises(SessionStateError):
            tracker.analyze_session(session.session_id)

    def test_analysis_runs_once(self, tracker, session):
        for _ in range(5):
            tracker.record_delta(session.session_id, DeleteDelta(old_content="q" * 60))
        tracker.complete_session(session.session_id, "Short note")

        first = tracker.analyze_session(session.session_id)
        second = tracker.analyze_session(session.session_id)

        assert first is second
        assert session.is_analyzed
        assert first.session_id == session.session_id
        assert EditPatternType.FREQUENT_DELETION in [p.pattern_type for p in first.patterns]
        assert tracker.get_analysis(session.session_id) is first

    def test_analysis_unknown_session(self, tracker):
        with pytest.raises(SessionNotFoundError):
            tracker.analyze_session("missing")


class TestSessionEviction:
    """Test the bound on tracked sessions"""

    @pytest.fixture
    def small_tracker(self):
        return EditSessionTracker(analyzer=EditPatternAnalyzer(), max_sessions=2)

    def test_size_bounded(self, small_tracker):
        for i in range(5):
            small_tracker.start_session(note_id=f"note-{i}")

        assert len(small_tracker) == 2

    def test_analyzed_session_evicted_first(self, small_tracker):
        analyzed = small_tracker.start_session(note_id="a")
        small_tracker.complete_session(analyzed.session_id, final_content="done")
        small_tracker.analyze_session(analyzed.session_id)
        open_session = small_tracker.start_session(note_id="b")

        newest = small_tracker.start_session(note_id="c")

        with pytest.raises(SessionNotFoundError):
            small_tracker.get_session(analyzed.session_id)
        with pytest.raises(SessionNotFoundError):
            small_tracker.get_analysis(analyzed.session_id)
        assert small_tracker.get_session(open_session.session_id) is open_session
        assert small_tracker.get_session(newest.session_id) is newest

    def test_completed_preferred_over_open(self, small_tracker):
        open_session = small_tracker.start_session(note_id="a")
        completed = small_tracker.start_session(note_id="b")
        small_tracker.complete_session(completed.session_id, final_content="done")

        small_tracker.start_session(note_id="c")

        assert small_tracker.get_session(open_session.session_id) is open_session
        with pytest.raises(SessionNotFoundError):
            small_tracker.get_session(completed.session_id)

    def test_oldest_open_evicted_when_full(self, small_tracker):
        first = small_tracker.start_session(note_id="a")
        second = small_tracker.start_session(note_id="b")

        small_tracker.start_session(note_id="c")

        with pytest.raises(SessionNotFoundError):
            small_tracker.get_session(first.session_id)
        assert small_tracker.get_session(second.session_id) is second


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
