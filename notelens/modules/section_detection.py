"""
NoteLens Section Detection Engine
Keyword-table segmentation of free-text clinical notes with heuristic fallback
"""

import re
import time
import logging
from bisect import bisect_left
from typing import List, Dict, Optional, Tuple, NamedTuple, Sequence

from notelens.schemas import (
    Section, SectionMetadata, SectionPattern, SectionType, ParsedNote,
    ParseMetadata, NoteFormat, EMRType
)
from notelens.modules.emr_syntax import find_epic_tokens, has_epic_syntax, unique_token_texts

logger = logging.getLogger(__name__)


# =============================================================================
# Detection Constants
# =============================================================================

# Content shorter than this after the header is treated as a bare header
MIN_SECTION_CONTENT_CHARS = 5

# Paragraphs shorter than this are not classified by the fallback
MIN_PARAGRAPH_CHARS = 20

# Distinct family keywords a paragraph needs before it is classified
MIN_HEURISTIC_HITS = 2

HEURISTIC_CONFIDENCE = 0.4

# Overlap (fraction of the shorter span) above which two detections are duplicates
DUPLICATE_OVERLAP_RATIO = 0.5

# Bonus for well-structured transfer-of-care notes
STANDARDIZED_BONUS_PER_SECTION = 0.02
STANDARDIZED_BONUS_CAP = 0.1

# Header tokens, matched anywhere in the note regardless of case
SOAP_FORMAT_KEYWORDS: Tuple[str, ...] = ("subjective:", "objective:", "assessment:", "plan:")
SOAP_FORMAT_THRESHOLD = 3
NARRATIVE_FORMAT_THRESHOLD = 3


# =============================================================================
# Section Header Table
# =============================================================================

DEFAULT_SECTION_PATTERNS: Tuple[SectionPattern, ...] = (
    # Standardized transfer-of-care sections
    SectionPattern(
        section_type=SectionType.DEMOGRAPHICS,
        keywords=["demographics:", "identifying information:", "identifying data:", "patient information:"],
        confidence=0.85, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.DIAGNOSIS,
        keywords=["diagnosis:", "diagnoses:", "working diagnosis:", "psychiatric diagnosis:", "dsm-5 diagnosis:"],
        confidence=0.9, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.CURRENT_MEDICATIONS,
        keywords=["current medications:", "medications:", "active medications:", "current meds:"],
        confidence=0.9, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.PRIOR_MEDICATIONS,
        keywords=["prior medications:", "past medications:", "previous medications:",
                  "past psychiatric medications:", "medication trials:"],
        confidence=0.85, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.MEDICATION_PLAN,
        keywords=["medication plan:", "medication changes:", "medication recommendations:"],
        confidence=0.85, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.HPI,
        keywords=["history of present illness:", "hpi:", "reason for visit:", "present illness:"],
        confidence=0.9, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.REVIEW_OF_SYSTEMS,
        keywords=["review of systems:", "ros:"],
        confidence=0.85, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.PSYCHIATRIC_EXAM,
        keywords=["mental status exam:", "mental status examination:", "psychiatric exam:", "mse:"],
        confidence=0.9, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.QUESTIONNAIRES,
        keywords=["questionnaires:", "rating scales:", "screening results:", "standardized measures:"],
        confidence=0.8, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.MEDICAL_HISTORY,
        keywords=["past medical history:", "medical history:", "pmh:"],
        confidence=0.85, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.PHYSICAL_EXAM,
        keywords=["physical exam:", "physical examination:", "vital signs:"],
        confidence=0.85, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.RISK_ASSESSMENT,
        keywords=["risk assessment:", "suicide risk assessment:", "safety assessment:"],
        confidence=0.9, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.ASSESSMENT_AND_PLAN,
        keywords=["assessment and plan:", "assessment & plan:", "a/p:"],
        confidence=0.95, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.PSYCHOSOCIAL,
        keywords=["psychosocial history:", "social history:", "psychosocial:"],
        confidence=0.85, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.SAFETY_PLAN,
        keywords=["safety plan:", "crisis plan:"],
        confidence=0.9, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.PROGNOSIS,
        keywords=["prognosis:"],
        confidence=0.85, is_standardized=True,
    ),
    SectionPattern(
        section_type=SectionType.FOLLOW_UP,
        keywords=["follow-up:", "follow up:", "return to clinic:", "next appointment:"],
        confidence=0.85, is_standardized=True,
    ),

    # Legacy SOAP sections
    SectionPattern(section_type=SectionType.SUBJECTIVE, keywords=["subjective:"], confidence=0.95),
    SectionPattern(section_type=SectionType.OBJECTIVE, keywords=["objective:"], confidence=0.95),
    SectionPattern(section_type=SectionType.ASSESSMENT, keywords=["assessment:", "impression:"], confidence=0.95),
    SectionPattern(section_type=SectionType.PLAN, keywords=["plan:", "treatment plan:"], confidence=0.95),

    # Legacy headers
    SectionPattern(section_type=SectionType.CHIEF_COMPLAINT, keywords=["chief complaint:", "cc:"], confidence=0.85),
    SectionPattern(section_type=SectionType.ALLERGIES, keywords=["allergies:", "drug allergies:"], confidence=0.8),
)


# Keyword families for classifying header-less paragraphs
DEFAULT_HEURISTIC_FAMILIES: Dict[SectionType, Tuple[str, ...]] = {
    SectionType.SUBJECTIVE: (
        "reports", "states", "complains", "feels", "feeling", "denies", "endorses", "describes",
    ),
    SectionType.OBJECTIVE: (
        "alert", "oriented", "appearance", "affect", "vital signs", "blood pressure",
        "observed", "eye contact", "speech", "well-groomed",
    ),
    SectionType.ASSESSMENT: (
        "diagnosis", "impression", "consistent with", "disorder", "improving", "worsening",
        "stable", "severity", "meets criteria",
    ),
    SectionType.PLAN: (
        "continue", "increase", "decrease", "start", "follow up", "follow-up", "return",
        "refer", "discontinue", "titrate", "schedule",
    ),
}


CLINICAL_TERMS: Tuple[str, ...] = (
    "anxiety", "depression", "bipolar", "schizophrenia", "psychosis", "ptsd", "adhd", "ocd",
    "gad", "mdd", "panic", "insomnia", "suicidal ideation", "homicidal ideation",
    "hallucinations", "delusions", "mood", "affect", "substance use", "alcohol",
    "sertraline", "fluoxetine", "escitalopram", "citalopram", "bupropion", "venlafaxine",
    "duloxetine", "mirtazapine", "trazodone", "quetiapine", "aripiprazole", "risperidone",
    "olanzapine", "lithium", "lamotrigine", "clonazepam", "lorazepam", "hydroxyzine",
    "cbt", "dbt", "psychotherapy", "ssri", "phq-9", "gad-7",
    "hypertension", "diabetes", "asthma",
)


# =============================================================================
# Text Helpers
# =============================================================================

_CRLF = re.compile(r'\r\n?')
_HORIZONTAL_WS = re.compile(r'[^\S\n]+')
_PARAGRAPH_BREAK = re.compile(r'\n\s*\n')
_WHITESPACE = re.compile(r'\s+')


def normalize_text(text: str) -> str:
    """Unify line endings, collapse horizontal whitespace, trim"""
    text = _CRLF.sub("\n", text)
    text = _HORIZONTAL_WS.sub(" ", text)
    return text.strip()


def _word_regex(term: str) -> re.Pattern:
    return re.compile(rf'\b{re.escape(term)}\b', re.IGNORECASE)


class HeaderHit(NamedTuple):
    start: int
    end: int
    keyword: str
    text: str


# =============================================================================
# Section Detector
# =============================================================================

class SectionDetector:
    """
    Segments raw note text into typed, confidence-scored sections

    The header table, heuristic families and term vocabulary are immutable
    configuration passed in at construction; the detector holds no other
    state, so one instance can serve concurrent callers.
    """

    def __init__(
        self,
        patterns: Optional[Sequence[SectionPattern]] = None,
        heuristic_families: Optional[Dict[SectionType, Sequence[str]]] = None,
        clinical_terms: Optional[Sequence[str]] = None,
        soap_keywords: Optional[Sequence[str]] = None
    ):
        self.patterns: Tuple[SectionPattern, ...] = tuple(
            patterns if patterns is not None else DEFAULT_SECTION_PATTERNS
        )
        families = heuristic_families if heuristic_families is not None else DEFAULT_HEURISTIC_FAMILIES
        self.heuristic_families: Dict[SectionType, List[re.Pattern]] = {
            section_type: [_word_regex(k) for k in keywords]
            for section_type, keywords in families.items()
        }
        self.clinical_terms: List[Tuple[str, re.Pattern]] = [
            (term.lower(), _word_regex(term))
            for term in (clinical_terms if clinical_terms is not None else CLINICAL_TERMS)
        ]
        self.soap_keywords: List[re.Pattern] = [
            re.compile(re.escape(k), re.IGNORECASE)
            for k in (soap_keywords if soap_keywords is not None else SOAP_FORMAT_KEYWORDS)
        ]

        self._pattern_keywords: Dict[SectionType, set] = {}
        all_keywords = set()
        for pattern in self.patterns:
            keys = {self._canonical(k) for k in pattern.keywords}
            self._pattern_keywords.setdefault(pattern.section_type, set()).update(keys)
            all_keywords.update(keys)

        self._header_regex = self._compile_header_regex(all_keywords)

    @staticmethod
    def _canonical(keyword: str) -> str:
        return _WHITESPACE.sub(" ", keyword.strip().lower())

    @staticmethod
    def _compile_header_regex(keywords) -> Optional[re.Pattern]:
        """
        One alternation over every header keyword

        Longest keywords come first so "safety plan:" wins over "plan:" at the
        same position, and a keyword may not start in the middle of a word.
        """
        if not keywords:
            return None
        alternatives = []
        for keyword in sorted(keywords, key=lambda k: (-len(k), k)):
            parts = [re.escape(part) for part in keyword.split(" ")]
            alternatives.append(r'\s+'.join(parts))
        return re.compile(r'(?<!\w)(?:' + "|".join(alternatives) + ')', re.IGNORECASE)

    # =========================================================================
    # Main Parsing Method
    # =========================================================================

    def parse(self, text: str) -> ParsedNote:
        """
        Parse a clinical note into sections

        Args:
            text: Raw note text

        Returns:
            ParsedNote; never raises. Internal failures produce an empty
            UNKNOWN note with the error recorded in parse_metadata.errors
        """
        started = time.perf_counter()
        try:
            return self._parse(text if text is not None else "", started)
        except Exception as e:
            logger.error(f"Section detection failed: {e}", exc_info=True)
            return ParsedNote(
                original_content=text if isinstance(text, str) else "",
                detected_format=NoteFormat.UNKNOWN,
                emr_type=EMRType.UNKNOWN,
                sections=[],
                parse_metadata=ParseMetadata(
                    processing_time_ms=self._elapsed_ms(started),
                    errors=[f"Parsing failed: {e}"]
                )
            )

    def _parse(self, text: str, started: float) -> ParsedNote:
        normalized = normalize_text(text)
        warnings: List[str] = []

        if not normalized:
            logger.info("Empty note received; nothing to parse")
            return ParsedNote(
                original_content=text,
                normalized_content="",
                parse_metadata=ParseMetadata(
                    processing_time_ms=self._elapsed_ms(started),
                    warnings=["Note is empty"]
                )
            )

        tokens = find_epic_tokens(normalized)
        emr_type = EMRType.EPIC if has_epic_syntax(normalized) else EMRType.CREDIBLE

        hits = self._scan_headers(normalized)
        detected_format = self.detect_format(normalized, hits)

        sections, matched_patterns = self._extract_sections(normalized, hits)

        if detected_format == NoteFormat.UNKNOWN and not sections:
            sections, matched_patterns = self._classify_paragraphs(normalized)
            warnings.append("No section headers detected; paragraphs classified heuristically")

        sections = [s for s in sections if not s.metadata.is_empty]
        sections = self._resolve_conflicts(sections, warnings)

        if not sections:
            warnings.append("No sections detected")

        confidence = self._aggregate_confidence(sections)

        parsed = ParsedNote(
            original_content=text,
            normalized_content=normalized,
            detected_format=detected_format,
            emr_type=emr_type,
            sections=sections,
            parse_metadata=ParseMetadata(
                total_sections=len(sections),
                confidence=confidence,
                processing_time_ms=self._elapsed_ms(started),
                warnings=warnings,
                matched_patterns=matched_patterns,
                smart_phrases=unique_token_texts(tokens, "smart_phrase"),
                dot_phrases=unique_token_texts(tokens, "dot_phrase"),
            )
        )

        logger.info(
            f"Parsed note: format={detected_format.value}, emr={emr_type.value}, "
            f"{len(sections)} sections, confidence {confidence:.2f}"
        )
        return parsed

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 3)

    # =========================================================================
    # Header Scanning
    # =========================================================================

    def _scan_headers(self, text: str) -> List[HeaderHit]:
        """All header keyword occurrences, in document order, in one pass"""
        if self._header_regex is None:
            return []
        return [
            HeaderHit(
                start=match.start(),
                end=match.end(),
                keyword=self._canonical(match.group(0)),
                text=match.group(0)
            )
            for match in self._header_regex.finditer(text)
        ]

    # =========================================================================
    # Format Detection
    # =========================================================================

    def detect_format(self, text: str, hits: Optional[List[HeaderHit]] = None) -> NoteFormat:
        """
        Classify the overall note layout

        Args:
            text: Normalized note text
            hits: Header hits if already scanned

        Returns:
            SOAP, NARRATIVE, MIXED or UNKNOWN
        """
        if hits is None:
            hits = self._scan_headers(text)

        soap_hits = sum(1 for regex in self.soap_keywords if regex.search(text))
        if soap_hits >= SOAP_FORMAT_THRESHOLD:
            return NoteFormat.SOAP

        found = {h.keyword for h in hits}
        standardized_types = {
            p.section_type for p in self.patterns
            if p.is_standardized and found & self._pattern_keywords[p.section_type]
        }
        if len(standardized_types) >= NARRATIVE_FORMAT_THRESHOLD:
            return NoteFormat.NARRATIVE
        if soap_hits and standardized_types:
            return NoteFormat.MIXED
        return NoteFormat.UNKNOWN

    # =========================================================================
    # Section Extraction
    # =========================================================================

    def _extract_sections(
        self,
        text: str,
        hits: List[HeaderHit]
    ) -> Tuple[List[Section], List[str]]:
        """
        Build at most one section per pattern from the header hits

        A section runs from its header to the next header of any pattern, so
        mixed-format notes segment without a fixed section order.
        """
        sections: List[Section] = []
        matched: List[str] = []
        if not hits:
            return sections, matched

        starts = [h.start for h in hits]

        for pattern in self.patterns:
            for keyword in pattern.keywords:
                canonical = self._canonical(keyword)
                hit = next((h for h in hits if h.keyword == canonical), None)
                if hit is None:
                    continue

                boundary = bisect_left(starts, hit.end)
                end = hits[boundary].start if boundary < len(hits) else len(text)

                colon = text.find(":", hit.start, end)
                content_start = colon + 1 if colon != -1 else hit.end
                content = text[content_start:end].strip()

                if len(content) < MIN_SECTION_CONTENT_CHARS:
                    logger.debug(f"Discarding bare header '{hit.text}' for {pattern.section_type.value}")
                    continue

                sections.append(self._build_section(
                    pattern.section_type, content, hit.start, end,
                    pattern.confidence, hit.text, pattern.is_standardized
                ))
                matched.append(f"{pattern.section_type.value}:{canonical}")
                break

        return sections, matched

    def _build_section(
        self,
        section_type: SectionType,
        content: str,
        start: int,
        end: int,
        confidence: float,
        header_text: str,
        is_standardized: bool
    ) -> Section:
        return Section(
            section_type=section_type,
            content=content,
            start_index=start,
            end_index=end,
            confidence=confidence,
            metadata=SectionMetadata(
                word_count=len(content.split()),
                has_emr_syntax=has_epic_syntax(content),
                is_empty=not content,
                clinical_terms=self.find_clinical_terms(content),
                header_text=header_text,
                is_standardized=is_standardized,
            )
        )

    def find_clinical_terms(self, text: str) -> List[str]:
        """Vocabulary terms present in the text, vocabulary order"""
        return [term for term, regex in self.clinical_terms if regex.search(text)]

    # =========================================================================
    # Heuristic Fallback
    # =========================================================================

    def _classify_paragraphs(self, text: str) -> Tuple[List[Section], List[str]]:
        """Classify blank-line separated paragraphs by keyword families"""
        sections: List[Section] = []
        matched: List[str] = []

        for start, end in self._paragraph_spans(text):
            paragraph = text[start:end]
            if len(paragraph) < MIN_PARAGRAPH_CHARS:
                continue

            best_type = None
            best_hits = 0
            for section_type, regexes in self.heuristic_families.items():
                hits = sum(1 for regex in regexes if regex.search(paragraph))
                if hits > best_hits:
                    best_type, best_hits = section_type, hits

            if best_type is None or best_hits < MIN_HEURISTIC_HITS:
                continue

            sections.append(self._build_section(
                best_type, paragraph, start, end, HEURISTIC_CONFIDENCE, "", False
            ))
            identifier = f"heuristic:{best_type.value}"
            if identifier not in matched:
                matched.append(identifier)

        logger.debug(f"Heuristic fallback classified {len(sections)} paragraphs")
        return sections, matched

    @staticmethod
    def _paragraph_spans(text: str) -> List[Tuple[int, int]]:
        """Trimmed (start, end) offsets of each paragraph"""
        spans = []
        position = 0
        breaks = [(m.start(), m.end()) for m in _PARAGRAPH_BREAK.finditer(text)]
        breaks.append((len(text), len(text)))

        for break_start, break_end in breaks:
            chunk = text[position:break_start]
            stripped = chunk.strip()
            if stripped:
                start = position + (len(chunk) - len(chunk.lstrip()))
                spans.append((start, start + len(stripped)))
            position = break_end

        return spans

    # =========================================================================
    # Conflict Resolution
    # =========================================================================

    @staticmethod
    def _preference(section: Section) -> Tuple[bool, float]:
        return (section.metadata.is_standardized, section.confidence)

    def _resolve_conflicts(self, sections: List[Section], warnings: List[str]) -> List[Section]:
        """
        Order sections and drop the losers of any overlap

        Standardized sections beat legacy ones, then higher confidence wins;
        ties keep the earlier section. Kept sections never overlap, so each
        candidate only has to be checked against the last kept one.
        """
        ordered = sorted(sections, key=lambda s: (s.start_index, -s.end_index))
        resolved: List[Section] = []

        for candidate in ordered:
            if not resolved or not resolved[-1].overlaps(candidate):
                resolved.append(candidate)
                continue

            current = resolved[-1]
            duplicate = current.overlap_ratio(candidate) > DUPLICATE_OVERLAP_RATIO

            if self._preference(candidate) > self._preference(current):
                winner, loser = candidate, current
                resolved[-1] = candidate
            else:
                winner, loser = current, candidate

            kind = "Duplicate" if duplicate else "Overlapping"
            message = (
                f"{kind} {loser.section_type.value} section at {loser.start_index}-{loser.end_index} "
                f"discarded in favour of {winner.section_type.value}"
            )
            logger.warning(message)
            warnings.append(message)

        return resolved

    # =========================================================================
    # Confidence Aggregation
    # =========================================================================

    @staticmethod
    def _aggregate_confidence(sections: List[Section]) -> float:
        """Mean section confidence plus a capped bonus for standardized sections"""
        if not sections:
            return 0.0
        mean = sum(s.confidence for s in sections) / len(sections)
        standardized = sum(1 for s in sections if s.metadata.is_standardized)
        bonus = min(STANDARDIZED_BONUS_CAP, STANDARDIZED_BONUS_PER_SECTION * standardized)
        return round(min(1.0, mean + bonus), 4)


# =============================================================================
# Global Detector Instance
# =============================================================================

_section_detector: Optional[SectionDetector] = None


def get_section_detector() -> SectionDetector:
    """Get or create the default section detector"""
    global _section_detector
    if _section_detector is None:
        _section_detector = SectionDetector()
    return _section_detector


# =============================================================================
# Public API
# =============================================================================

def parse_clinical_note(text: str) -> ParsedNote:
    """
    Main entry point for note segmentation

    Args:
        text: Raw clinical note text

    Returns:
        ParsedNote with ordered, non-overlapping sections
    """
    return get_section_detector().parse(text)
