"""
Unit tests for the section detection engine
"""

import pytest

from notelens.modules.section_detection import (
    SectionDetector,
    parse_clinical_note,
    normalize_text,
    DEFAULT_SECTION_PATTERNS,
    HEURISTIC_CONFIDENCE
)
from notelens.schemas import SectionPattern, SectionType, NoteFormat, EMRType


def assert_spans_valid(parsed):
    """Every span lies inside the normalized text and no two spans overlap"""
    length = len(parsed.normalized_content)
    for section in parsed.sections:
        assert 0 <= section.start_index < section.end_index <= length
    for earlier, later in zip(parsed.sections, parsed.sections[1:]):
        assert earlier.end_index <= later.start_index


class TestNormalization:
    """Test text normalization"""

    def test_unifies_line_endings_and_collapses_spaces(self):
        assert normalize_text("a\r\nb  \t c\rd ") == "a\nb c\nd"

    def test_whitespace_only_is_empty(self):
        assert normalize_text(" \n\t  \r\n ") == ""


class TestSOAPNotes:
    """Test detection of legacy SOAP notes"""

    def test_four_sections_detected(self, soap_note):
        """The classic SOAP note yields its four sections at header confidence"""
        parsed = parse_clinical_note(soap_note)

        assert parsed.detected_format == NoteFormat.SOAP
        assert [s.section_type for s in parsed.sections] == [
            SectionType.SUBJECTIVE, SectionType.OBJECTIVE,
            SectionType.ASSESSMENT, SectionType.PLAN
        ]
        assert all(s.confidence == 0.95 for s in parsed.sections)
        assert parsed.parse_metadata.total_sections == 4
        assert parsed.parse_metadata.confidence == pytest.approx(0.95)
        assert parsed.parse_metadata.errors == []

    def test_content_excludes_header(self, soap_note):
        parsed = parse_clinical_note(soap_note)
        subjective = parsed.get_section(SectionType.SUBJECTIVE)

        assert subjective.content == (
            "Patient reports improved mood and better sleep over the past two weeks."
        )
        assert subjective.metadata.header_text == "Subjective:"
        assert subjective.title == "Subjective"
        assert subjective.metadata.word_count == 12

    def test_clinical_terms_recorded(self, soap_note):
        parsed = parse_clinical_note(soap_note)

        assert "sertraline" in parsed.get_section(SectionType.PLAN).metadata.clinical_terms
        assert "mood" in parsed.get_section(SectionType.SUBJECTIVE).metadata.clinical_terms

    def test_plain_text_note_is_credible(self, soap_note):
        parsed = parse_clinical_note(soap_note)
        assert parsed.emr_type == EMRType.CREDIBLE

    def test_matched_pattern_identifiers(self, soap_note):
        parsed = parse_clinical_note(soap_note)
        assert "SUBJECTIVE:subjective:" in parsed.parse_metadata.matched_patterns
        assert "PLAN:plan:" in parsed.parse_metadata.matched_patterns


class TestNarrativeNotes:
    """Test standardized transfer-of-care notes"""

    def test_narrative_format(self, narrative_note):
        parsed = parse_clinical_note(narrative_note)

        assert parsed.detected_format == NoteFormat.NARRATIVE
        types = [s.section_type for s in parsed.sections]
        assert types == [
            SectionType.DEMOGRAPHICS, SectionType.HPI, SectionType.CURRENT_MEDICATIONS,
            SectionType.DIAGNOSIS, SectionType.PSYCHIATRIC_EXAM, SectionType.SAFETY_PLAN
        ]
        assert all(s.metadata.is_standardized for s in parsed.sections)

    def test_longest_header_wins(self, narrative_note):
        """'Safety Plan:' is a safety plan, not a legacy plan"""
        parsed = parse_clinical_note(narrative_note)

        assert parsed.get_section(SectionType.SAFETY_PLAN) is not None
        assert parsed.get_section(SectionType.PLAN) is None

    def test_standardized_bonus(self, narrative_note):
        parsed = parse_clinical_note(narrative_note)

        mean = sum(s.confidence for s in parsed.sections) / len(parsed.sections)
        assert parsed.parse_metadata.confidence == pytest.approx(min(1.0, mean + 0.1), abs=1e-4)
        assert parsed.parse_metadata.confidence > mean


class TestEMRDetection:
    """Test Epic syntax handling"""

    def test_epic_markers(self, epic_note):
        parsed = parse_clinical_note(epic_note)

        assert parsed.emr_type == EMRType.EPIC
        assert parsed.parse_metadata.smart_phrases == ["@CC@"]
        assert parsed.parse_metadata.dot_phrases == [".psychfu"]
        assert parsed.get_section(SectionType.HPI).metadata.has_emr_syntax is True

    @pytest.mark.parametrize("text", [
        "See @LASTLABS for details",
        "Mood today: {Mood} per patient report",
        "Use .psych template for this visit",
        "Plan: *** pending labs",
    ])
    def test_partial_markers_are_epic(self, text):
        assert parse_clinical_note(text).emr_type == EMRType.EPIC

    def test_partial_smart_phrase_not_listed(self):
        """Only complete @NAME@ tokens are reported as SmartPhrases"""
        parsed = parse_clinical_note("See @LASTLABS for details")
        assert parsed.parse_metadata.smart_phrases == []

    def test_abbreviation_periods_count_as_markers(self):
        """'.g' in 'e.g.' opens a dot-phrase as far as the marker family is concerned"""
        parsed = parse_clinical_note("Reports side effects, e.g. nausea, on current dose.")
        assert parsed.emr_type == EMRType.EPIC

    def test_mixed_format(self, epic_note):
        parsed = parse_clinical_note(epic_note)
        assert parsed.detected_format == NoteFormat.MIXED


class TestFormatDetection:
    """Test SOAP vs narrative classification"""

    def test_soap_words_in_prose_are_not_headers(self):
        text = (
            "HPI: Patient reports subjective improvement in mood.\n"
            "Diagnosis: Major depressive disorder, recurrent.\n"
            "Current medications: Sertraline 100mg daily.\n"
            "Assessment and plan: Continue current regimen."
        )
        parsed = parse_clinical_note(text)

        assert parsed.detected_format == NoteFormat.NARRATIVE
        assert [s.section_type for s in parsed.sections] == [
            SectionType.HPI, SectionType.DIAGNOSIS,
            SectionType.CURRENT_MEDICATIONS, SectionType.ASSESSMENT_AND_PLAN
        ]

    def test_header_tokens_any_case(self):
        detector = SectionDetector()
        text = "SUBJECTIVE: doing well\nobjective: calm\nAssessment: stable"

        assert detector.detect_format(text) == NoteFormat.SOAP


class TestEdgeCases:
    """Test degenerate inputs"""

    @pytest.mark.parametrize("text", ["", "   \n\t  ", None])
    def test_empty_input(self, text):
        parsed = parse_clinical_note(text)

        assert parsed.detected_format == NoteFormat.UNKNOWN
        assert parsed.emr_type == EMRType.UNKNOWN
        assert parsed.sections == []
        assert parsed.parse_metadata.confidence == 0.0
        assert parsed.parse_metadata.errors == []

    def test_bare_header_discarded(self):
        """A header with fewer than five characters of content yields no section"""
        parsed = parse_clinical_note("HPI: ok\nAssessment: Patient stable on current regimen.")

        assert parsed.get_section(SectionType.HPI) is None
        assert parsed.get_section(SectionType.ASSESSMENT).content == "Patient stable on current regimen."

    def test_header_mid_line(self):
        text = "Seen today for follow up. Assessment: stable mood, continue current plan."
        parsed = parse_clinical_note(text)

        section = parsed.get_section(SectionType.ASSESSMENT)
        assert section.start_index == text.index("Assessment:")
        assert section.content == "stable mood, continue current plan."

    def test_header_inside_word_ignored(self):
        parsed = parse_clinical_note("Careplan: adjust dosing schedule next week.")
        assert parsed.get_section(SectionType.PLAN) is None

    def test_internal_failure_recorded(self, monkeypatch):
        detector = SectionDetector()

        def boom(text):
            raise RuntimeError("boom")

        monkeypatch.setattr(detector, "_scan_headers", boom)
        parsed = detector.parse("Plan: continue current medications.")

        assert parsed.sections == []
        assert parsed.detected_format == NoteFormat.UNKNOWN
        assert parsed.parse_metadata.errors == ["Parsing failed: boom"]


class TestHeuristicFallback:
    """Test paragraph classification when no headers are present"""

    def test_paragraphs_classified(self, unstructured_note):
        parsed = parse_clinical_note(unstructured_note)

        assert parsed.detected_format == NoteFormat.UNKNOWN
        assert [s.section_type for s in parsed.sections] == [SectionType.SUBJECTIVE, SectionType.PLAN]
        assert all(s.confidence == HEURISTIC_CONFIDENCE for s in parsed.sections)
        assert all(s.metadata.header_text == "" for s in parsed.sections)
        assert parsed.parse_metadata.confidence == pytest.approx(0.4)
        assert parsed.parse_metadata.warnings

    def test_short_paragraphs_skipped(self):
        parsed = parse_clinical_note("Feels ok, denies.\n\nContinue, return.")
        assert parsed.sections == []

    def test_single_keyword_not_enough(self):
        parsed = parse_clinical_note("The weather was pleasant and the patient reports nothing new.")
        assert parsed.sections == []


class TestConflictResolution:
    """Test overlap resolution with injected pattern tables"""

    TEXT = "Notes: patient doing well on the current regimen."

    def test_standardized_beats_legacy(self):
        detector = SectionDetector(patterns=[
            SectionPattern(section_type=SectionType.ASSESSMENT, keywords=["notes:"], confidence=0.95),
            SectionPattern(section_type=SectionType.DIAGNOSIS, keywords=["notes:"], confidence=0.8,
                           is_standardized=True),
        ])
        parsed = detector.parse(self.TEXT)

        assert [s.section_type for s in parsed.sections] == [SectionType.DIAGNOSIS]
        assert any("Duplicate" in w for w in parsed.parse_metadata.warnings)

    def test_higher_confidence_wins(self):
        detector = SectionDetector(patterns=[
            SectionPattern(section_type=SectionType.SUBJECTIVE, keywords=["notes:"], confidence=0.8),
            SectionPattern(section_type=SectionType.OBJECTIVE, keywords=["notes:"], confidence=0.9),
        ])
        parsed = detector.parse(self.TEXT)

        assert [s.section_type for s in parsed.sections] == [SectionType.OBJECTIVE]

    def test_tie_keeps_first(self):
        detector = SectionDetector(patterns=[
            SectionPattern(section_type=SectionType.SUBJECTIVE, keywords=["notes:"], confidence=0.9),
            SectionPattern(section_type=SectionType.OBJECTIVE, keywords=["notes:"], confidence=0.9),
        ])
        parsed = detector.parse(self.TEXT)

        assert [s.section_type for s in parsed.sections] == [SectionType.SUBJECTIVE]

    def test_empty_table_uses_fallback(self, unstructured_note):
        detector = SectionDetector(patterns=[])
        parsed = detector.parse(unstructured_note)

        assert len(parsed.sections) == 2


class TestParserProperties:
    """Test invariants across sample notes"""

    @pytest.fixture
    def all_notes(self, soap_note, narrative_note, epic_note, unstructured_note):
        return [soap_note, narrative_note, epic_note, unstructured_note]

    def test_span_invariant(self, all_notes):
        for note in all_notes:
            assert_spans_valid(parse_clinical_note(note))

    def test_idempotence(self, all_notes):
        exclude = {"parse_metadata": {"processing_time_ms"}}
        for note in all_notes:
            first = parse_clinical_note(note).model_dump(exclude=exclude)
            second = parse_clinical_note(note).model_dump(exclude=exclude)
            assert first == second

    def test_one_section_per_type(self):
        text = "Plan: start sertraline 25mg.\nPlan: also schedule therapy intake."
        parsed = parse_clinical_note(text)

        plans = [s for s in parsed.sections if s.section_type == SectionType.PLAN]
        assert len(plans) == 1
        assert plans[0].content == "start sertraline 25mg."

    def test_default_table_confidences(self):
        assert all(0.8 <= p.confidence <= 0.95 for p in DEFAULT_SECTION_PATTERNS)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
