"""
NoteLens Edit Pattern Analyzer
Infers satisfaction, behavioral patterns and prompt suggestions from edit deltas
"""

import re
import math
import logging
from collections import OrderedDict
from typing import List, Dict, Optional, Any, Sequence, Tuple, Union

from pydantic import TypeAdapter, ValidationError

from notelens.schemas import (
    EditSession, EditDelta, InsertDelta, DeleteDelta, ReplaceDelta,
    ClinicalContext, EditPattern, EditPatternType, PromptSuggestions,
    EditAnalysisResult, AnalysisPriority
)
from notelens.modules.emr_syntax import has_epic_syntax

logger = logging.getLogger(__name__)


# =============================================================================
# Scoring Constants
# =============================================================================

BASELINE_SATISFACTION = 7.0
MIN_SATISFACTION = 1
MAX_SATISFACTION = 10

HEAVY_EDIT_COUNT = 20          # > -> -2
MODERATE_EDIT_COUNT = 10       # > -> -1
LIGHT_EDIT_COUNT = 3           # < -> +1

MAJOR_EDIT_LENGTH = 50         # deletions longer than this cost 0.5 each
MAJOR_DELETION_PENALTY = 0.5

LONG_SESSION_SECONDS = 300
HIGH_BACKSPACE_FREQUENCY = 0.3

NO_DATA_CONFIDENCE = 0.1
MAX_ANALYSIS_CONFIDENCE = 0.8
CONFIDENCE_SATURATION_EDITS = 10

# Improvement potential normalizers
EDIT_COMPLEXITY_SCALE = 100
WORD_CHANGE_SCALE = 1000
MAJOR_SECTION_CHANGE_WEIGHT = 0.2

# Sections compared between original and final text; below this similarity
# a section counts as a major change
TRACKED_SECTIONS: Tuple[str, ...] = ("HPI", "Assessment", "Plan", "Exam")
MAJOR_CHANGE_SIMILARITY = 0.7

EXAMPLE_MAX_CHARS = 120
MAX_EXAMPLES = 3

GENERAL_SECTION = "General"

_delta_adapter = TypeAdapter(EditDelta)


SUGGESTED_IMPROVEMENTS: Dict[EditPatternType, str] = {
    EditPatternType.FREQUENT_DELETION: "Generate more concise content, focus on essential clinical information",
    EditPatternType.CONSISTENT_DELETION: "Reduce content that users consistently remove from {section}",
    EditPatternType.CONSISTENT_ADDITION: "Include more detailed {section} information in initial generation",
    EditPatternType.STYLE_CHANGE: "Adapt writing style to match user preferences for formality and terminology",
    EditPatternType.TERMINOLOGY_PREFERENCE: "Use the provider's preferred clinical terminology",
    EditPatternType.SECTION_REORGANIZATION: "Adjust note organization and section structure to user preferences",
}


# Phrases that mark third-person formal charting style
FORMAL_MARKERS: Tuple[str, ...] = (
    "patient reports", "patient states", "patient denies", "the patient",
    "presents with", "is noted to", "it is noted", "exhibits", "demonstrates",
)


def _truncate(text: str, limit: int = EXAMPLE_MAX_CHARS) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit - 3].rstrip() + "..."


def _section_of(delta: EditDelta) -> str:
    return delta.section or GENERAL_SECTION


def _touches_epic_syntax(text: str) -> bool:
    # any "@" counts, partial SmartPhrases included
    return bool(text) and ("@" in text or has_epic_syntax(text))


def _is_formal(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in FORMAL_MARKERS)


# =============================================================================
# Section Change Detection
# =============================================================================

_TRACKED_SECTION_REGEXES: Dict[str, re.Pattern] = {
    name: re.compile(
        rf'\b{re.escape(name)}[:\s]*(.*?)(?=\b(?:{"|".join(TRACKED_SECTIONS)})\b|\Z)',
        re.IGNORECASE | re.DOTALL
    )
    for name in TRACKED_SECTIONS
}


def extract_tracked_section(content: str, name: str) -> str:
    """Body of the first `name` section, up to the next tracked section"""
    match = _TRACKED_SECTION_REGEXES[name].search(content or "")
    return match.group(1).strip() if match else ""


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b)
            ))
        previous = current
    return previous[-1]


def text_similarity(a: str, b: str) -> float:
    """1 - edit distance / length of the longer string"""
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return (longer - levenshtein_distance(a, b)) / longer


def detect_major_section_changes(original_content: str, final_content: str) -> List[str]:
    """
    Tracked sections rewritten by more than 30% between original and final text

    A section present on only one side counts as changed.
    """
    changes: List[str] = []
    for name in TRACKED_SECTIONS:
        before = extract_tracked_section(original_content, name)
        after = extract_tracked_section(final_content, name)
        if before != after and text_similarity(before, after) < MAJOR_CHANGE_SIMILARITY:
            changes.append(name)
    return changes


# =============================================================================
# Pattern Rule Base Class
# =============================================================================

class EditPatternRule:
    """Base class for edit pattern rules"""

    def __init__(self, rule_id: str, rule_name: str, pattern_type: EditPatternType):
        self.rule_id = rule_id
        self.rule_name = rule_name
        self.pattern_type = pattern_type

    def detect(self, deltas: List[EditDelta], context: ClinicalContext) -> List[EditPattern]:
        """
        Detect this rule's pattern in a delta log

        Args:
            deltas: Ordered edit deltas
            context: Clinical context of the session

        Returns:
            Detected patterns, possibly empty
        """
        raise NotImplementedError("Subclasses must implement detect()")

    def _create_pattern(
        self,
        description: str,
        confidence: float,
        frequency: int,
        examples: Sequence[str],
        context: ClinicalContext,
        section: Optional[str] = None
    ) -> EditPattern:
        """Helper method to create an edit pattern"""
        improvement = SUGGESTED_IMPROVEMENTS[self.pattern_type].format(section=section or GENERAL_SECTION)
        return EditPattern(
            pattern_type=self.pattern_type,
            description=description,
            section=section,
            confidence=round(confidence, 4),
            frequency=frequency,
            examples=[_truncate(e) for e in list(examples)[:MAX_EXAMPLES]],
            suggested_improvement=improvement,
            clinical_contexts=[context],
        )


# =============================================================================
# Deletion Rules
# =============================================================================

class FrequentDeletionRule(EditPatternRule):
    """
    Rule: Four or more substantial deletions mean the generated note is too verbose
    """

    MIN_LENGTH = 20
    MIN_COUNT = 4

    def __init__(self):
        super().__init__(
            rule_id="EDIT_001",
            rule_name="Frequent Deletion",
            pattern_type=EditPatternType.FREQUENT_DELETION
        )

    def detect(self, deltas: List[EditDelta], context: ClinicalContext) -> List[EditPattern]:
        deletions = [d for d in deltas if isinstance(d, DeleteDelta) and d.length > self.MIN_LENGTH]
        if len(deletions) < self.MIN_COUNT:
            return []

        return [self._create_pattern(
            description="User frequently deletes generated content, suggesting verbosity issues",
            confidence=min(0.9, len(deletions) / 5),
            frequency=len(deletions),
            examples=[d.old_content for d in deletions],
            context=context,
        )]


def _group_by_section(deltas: List[EditDelta]) -> "OrderedDict[str, List[EditDelta]]":
    groups: "OrderedDict[str, List[EditDelta]]" = OrderedDict()
    for delta in deltas:
        groups.setdefault(_section_of(delta), []).append(delta)
    return groups


class ConsistentDeletionRule(EditPatternRule):
    """
    Rule: Repeated removals from the same section mark content the user never wants there
    """

    MIN_LENGTH = 10
    MIN_GROUP = 3

    def __init__(self):
        super().__init__(
            rule_id="EDIT_002",
            rule_name="Consistent Deletion",
            pattern_type=EditPatternType.CONSISTENT_DELETION
        )

    def detect(self, deltas: List[EditDelta], context: ClinicalContext) -> List[EditPattern]:
        deletions = [d for d in deltas if isinstance(d, DeleteDelta) and d.length > self.MIN_LENGTH]
        patterns = []

        for section, group in _group_by_section(deletions).items():
            if len(group) < self.MIN_GROUP:
                continue
            patterns.append(self._create_pattern(
                description=f"User consistently removes content from {section} section",
                confidence=min(0.8, len(group) / 3),
                frequency=len(group),
                examples=[d.old_content for d in group],
                context=context,
                section=section,
            ))

        return patterns


# =============================================================================
# Addition Rules
# =============================================================================

class ConsistentAdditionRule(EditPatternRule):
    """
    Rule: Repeated insertions into one section mark information the generator omits
    """

    MIN_LENGTH = 10
    MIN_GROUP = 3

    def __init__(self):
        super().__init__(
            rule_id="EDIT_003",
            rule_name="Consistent Addition",
            pattern_type=EditPatternType.CONSISTENT_ADDITION
        )

    def detect(self, deltas: List[EditDelta], context: ClinicalContext) -> List[EditPattern]:
        additions = [d for d in deltas if isinstance(d, InsertDelta) and d.length > self.MIN_LENGTH]
        patterns = []

        for section, group in _group_by_section(additions).items():
            if len(group) < self.MIN_GROUP:
                continue
            patterns.append(self._create_pattern(
                description=f"User consistently adds content to {section} section",
                confidence=min(0.8, len(group) / 3),
                frequency=len(group),
                examples=[d.new_content for d in group],
                context=context,
                section=section,
            ))

        return patterns


# =============================================================================
# Replacement Rules
# =============================================================================

class StyleChangeRule(EditPatternRule):
    """
    Rule: Replacements that flip between formal and plain phrasing show a style preference
    """

    MIN_COUNT = 3
    CONFIDENCE = 0.7

    def __init__(self):
        super().__init__(
            rule_id="EDIT_004",
            rule_name="Style Change",
            pattern_type=EditPatternType.STYLE_CHANGE
        )

    def detect(self, deltas: List[EditDelta], context: ClinicalContext) -> List[EditPattern]:
        flips = [
            d for d in deltas
            if isinstance(d, ReplaceDelta) and _is_formal(d.old_content) != _is_formal(d.new_content)
        ]
        if len(flips) < self.MIN_COUNT:
            return []

        toward_formal = sum(1 for d in flips if _is_formal(d.new_content))
        direction = "more formal" if toward_formal * 2 > len(flips) else "less formal"

        return [self._create_pattern(
            description=f"User rewrites generated phrasing to be {direction}",
            confidence=self.CONFIDENCE,
            frequency=len(flips),
            examples=[f"{d.old_content} -> {d.new_content}" for d in flips],
            context=context,
        )]


class TerminologyPreferenceRule(EditPatternRule):
    """
    Rule: The same short term swapped repeatedly is a vocabulary preference
    """

    MAX_WORDS = 3
    MAX_CHARS = 30
    MIN_COUNT = 2

    def __init__(self):
        super().__init__(
            rule_id="EDIT_005",
            rule_name="Terminology Preference",
            pattern_type=EditPatternType.TERMINOLOGY_PREFERENCE
        )

    def _is_term(self, text: str) -> bool:
        text = text.strip()
        return 0 < len(text) <= self.MAX_CHARS and len(text.split()) <= self.MAX_WORDS

    def detect(self, deltas: List[EditDelta], context: ClinicalContext) -> List[EditPattern]:
        pairs: "OrderedDict[Tuple[str, str], int]" = OrderedDict()
        for d in deltas:
            if not isinstance(d, ReplaceDelta):
                continue
            if not (self._is_term(d.old_content) and self._is_term(d.new_content)):
                continue
            key = (d.old_content.strip().lower(), d.new_content.strip().lower())
            if key[0] == key[1]:
                continue
            pairs[key] = pairs.get(key, 0) + 1

        patterns = []
        for (old, new), count in pairs.items():
            if count < self.MIN_COUNT:
                continue
            patterns.append(self._create_pattern(
                description=f"User prefers '{new}' over '{old}'",
                confidence=min(0.85, count / 3),
                frequency=count,
                examples=[f"{old} -> {new}"],
                context=context,
            ))
        return patterns


class SectionReorganizationRule(EditPatternRule):
    """
    Rule: Text cut and pasted back elsewhere means the note's structure is off
    """

    MIN_LENGTH = 20
    MIN_COUNT = 2

    def __init__(self):
        super().__init__(
            rule_id="EDIT_006",
            rule_name="Section Reorganization",
            pattern_type=EditPatternType.SECTION_REORGANIZATION
        )

    def detect(self, deltas: List[EditDelta], context: ClinicalContext) -> List[EditPattern]:
        pending: Dict[str, int] = {}
        moves: List[Tuple[str, Optional[str], Optional[str]]] = []
        sections_by_text: Dict[str, Optional[str]] = {}

        for d in deltas:
            if isinstance(d, DeleteDelta):
                text = d.old_content.strip()
                if len(text) >= self.MIN_LENGTH:
                    pending[text] = pending.get(text, 0) + 1
                    sections_by_text[text] = d.section
            elif isinstance(d, InsertDelta):
                text = d.new_content.strip()
                if pending.get(text):
                    pending[text] -= 1
                    moves.append((text, sections_by_text.get(text), d.section))

        if len(moves) < self.MIN_COUNT:
            return []

        return [self._create_pattern(
            description="User moves generated content between positions or sections",
            confidence=min(0.8, len(moves) / 3),
            frequency=len(moves),
            examples=[
                f"{text} ({source or GENERAL_SECTION} -> {target or GENERAL_SECTION})"
                for text, source, target in moves
            ],
            context=context,
        )]


DEFAULT_RULES: Tuple[type, ...] = (
    FrequentDeletionRule,
    ConsistentDeletionRule,
    ConsistentAdditionRule,
    StyleChangeRule,
    TerminologyPreferenceRule,
    SectionReorganizationRule,
)


# =============================================================================
# Prompt Suggestion Table
# =============================================================================

PROMPT_SUGGESTIONS: Dict[EditPatternType, Dict[str, List[str]]] = {
    EditPatternType.FREQUENT_DELETION: {
        "system": [
            "Generate more concise clinical documentation",
            "Focus on essential information only",
        ],
        "user": ["Generate a concise note focusing on essential clinical information only."],
        "focus": [],
    },
    EditPatternType.CONSISTENT_DELETION: {
        "system": ["Reduce content that users consistently remove."],
        "user": [],
        "focus": [],
    },
    EditPatternType.CONSISTENT_ADDITION: {
        "system": ["Anticipate information that users commonly add."],
        "user": [],
        "focus": [],
    },
    EditPatternType.STYLE_CHANGE: {
        "system": ["Adapt writing style to match user preferences for formality and terminology."],
        "user": ["Use professional medical language appropriate for clinical documentation."],
        "focus": [],
    },
    EditPatternType.TERMINOLOGY_PREFERENCE: {
        "system": ["Match the clinical writing style and terminology preferences of the provider."],
        "user": ["Generate the note using clinical language and style consistent with the provider's preferences."],
        "focus": [],
    },
    EditPatternType.SECTION_REORGANIZATION: {
        "system": ["Follow standard clinical note structure with clear section organization."],
        "user": ["Structure the note with clear, well-organized sections following clinical documentation standards."],
        "focus": ["note structure"],
    },
}

EPIC_FORMATTING_SUGGESTION = "Ensure proper Epic SmartPhrase formatting"
EPIC_FOCUS_AREA = "Epic formatting fidelity"


# =============================================================================
# Edit Pattern Analyzer
# =============================================================================

class EditPatternAnalyzer:
    """
    Main edit analysis engine
    Scores satisfaction, runs the pattern rules and synthesizes prompt suggestions
    """

    def __init__(
        self,
        rules: Optional[Sequence[EditPatternRule]] = None,
        prompt_suggestions: Optional[Dict[EditPatternType, Dict[str, List[str]]]] = None
    ):
        self.rules: List[EditPatternRule] = (
            list(rules) if rules is not None else [rule_cls() for rule_cls in DEFAULT_RULES]
        )
        self.prompt_suggestions = prompt_suggestions if prompt_suggestions is not None else PROMPT_SUGGESTIONS
        logger.info(f"Initialized edit pattern analyzer with {len(self.rules)} rules")

    # =========================================================================
    # Main Analysis Method
    # =========================================================================

    def analyze(
        self,
        session: EditSession,
        deltas: Optional[Sequence[Union[EditDelta, Dict[str, Any]]]] = None
    ) -> EditAnalysisResult:
        """
        Analyze one edit session

        Args:
            session: The edit session
            deltas: Delta log to analyze; defaults to session.deltas. Raw dicts
                are validated and malformed ones skipped

        Returns:
            EditAnalysisResult; never raises
        """
        session_id = getattr(session, "session_id", None)
        try:
            return self._analyze(session, deltas)
        except Exception as e:
            logger.error(f"Edit analysis failed for session {session_id}: {e}", exc_info=True)
            return self._neutral_result(session_id)

    def _analyze(
        self,
        session: EditSession,
        deltas: Optional[Sequence[Union[EditDelta, Dict[str, Any]]]]
    ) -> EditAnalysisResult:
        delta_list = self.coerce_deltas(session.deltas if deltas is None else deltas)

        if not delta_list:
            logger.info(f"Session {session.session_id} has no edits; returning neutral analysis")
            return self._neutral_result(session.session_id)

        satisfaction = self.infer_satisfaction(session, delta_list)
        patterns = self.detect_patterns(delta_list, session.clinical_context)
        suggestions = self.synthesize_suggestions(session, delta_list, patterns)
        potential = self.improvement_potential(session, delta_list)
        priority = self.classify_priority(satisfaction, potential)
        confidence = min(MAX_ANALYSIS_CONFIDENCE, len(delta_list) / CONFIDENCE_SATURATION_EDITS)

        result = EditAnalysisResult(
            session_id=session.session_id,
            overall_satisfaction=satisfaction,
            confidence=round(confidence, 4),
            patterns=patterns,
            prompt_suggestions=suggestions,
            improvement_potential=round(potential, 4),
            priority=priority,
        )

        logger.info(
            f"Analyzed session {session.session_id}: {len(delta_list)} edits, "
            f"satisfaction {satisfaction}, {len(patterns)} patterns, priority {priority.value}"
        )
        return result

    @staticmethod
    def _neutral_result(session_id: Optional[str]) -> EditAnalysisResult:
        return EditAnalysisResult(
            session_id=session_id,
            overall_satisfaction=int(BASELINE_SATISFACTION),
            confidence=NO_DATA_CONFIDENCE,
            patterns=[],
            prompt_suggestions=PromptSuggestions(),
            improvement_potential=0.0,
            priority=AnalysisPriority.LOW,
        )

    @staticmethod
    def coerce_deltas(raw: Optional[Sequence[Union[EditDelta, Dict[str, Any]]]]) -> List[EditDelta]:
        """Validate raw delta records, dropping the malformed ones"""
        deltas: List[EditDelta] = []
        for index, item in enumerate(raw or []):
            if isinstance(item, (InsertDelta, DeleteDelta, ReplaceDelta)):
                deltas.append(item)
                continue
            try:
                deltas.append(_delta_adapter.validate_python(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed delta at index {index}: {e.error_count()} validation errors")
        return deltas

    # =========================================================================
    # Satisfaction Inference
    # =========================================================================

    @staticmethod
    def infer_satisfaction(session: EditSession, deltas: List[EditDelta]) -> int:
        """
        Heuristic 1-10 satisfaction score

        Starts at 7 and applies fixed adjustments for edit volume, major
        deletions, long sessions and heavy backspacing.
        """
        if not deltas:
            return int(BASELINE_SATISFACTION)

        score = BASELINE_SATISFACTION

        edit_count = len(deltas)
        if edit_count > HEAVY_EDIT_COUNT:
            score -= 2
        elif edit_count > MODERATE_EDIT_COUNT:
            score -= 1
        elif edit_count < LIGHT_EDIT_COUNT:
            score += 1

        major_deletions = [d for d in deltas if isinstance(d, DeleteDelta) and d.length > MAJOR_EDIT_LENGTH]
        score -= MAJOR_DELETION_PENALTY * len(major_deletions)

        duration = session.duration_seconds()
        if duration is not None and duration > LONG_SESSION_SECONDS:
            score -= 1

        if session.metrics.backspace_frequency > HIGH_BACKSPACE_FREQUENCY:
            score -= 1

        score = max(MIN_SATISFACTION, min(MAX_SATISFACTION, score))
        # Round half up
        return int(math.floor(score + 0.5))

    # =========================================================================
    # Pattern Detection
    # =========================================================================

    def detect_patterns(self, deltas: List[EditDelta], context: ClinicalContext) -> List[EditPattern]:
        """Run every rule, isolating failures per rule"""
        patterns: List[EditPattern] = []
        for rule in self.rules:
            try:
                found = rule.detect(deltas, context)
                if found:
                    logger.debug(f"Rule {rule.rule_id} detected {len(found)} patterns")
                    patterns.extend(found)
            except Exception as e:
                logger.error(f"Error evaluating rule {rule.rule_id}: {e}", exc_info=True)
        return patterns

    # =========================================================================
    # Prompt Suggestions
    # =========================================================================

    def synthesize_suggestions(
        self,
        session: EditSession,
        deltas: List[EditDelta],
        patterns: List[EditPattern]
    ) -> PromptSuggestions:
        """Map detected patterns and Epic edits to advisory prompt changes"""
        system: List[str] = []
        user: List[str] = []
        focus: List[str] = []

        for pattern in patterns:
            entry = self.prompt_suggestions.get(pattern.pattern_type)
            if entry:
                system.extend(entry.get("system", []))
                user.extend(entry.get("user", []))
                focus.extend(entry.get("focus", []))

            if pattern.pattern_type == EditPatternType.CONSISTENT_ADDITION and pattern.section:
                section = pattern.section.strip().lower()
                if "assessment" in section:
                    user.append("Include detailed clinical assessment")
                    focus.append("assessment")
                elif "plan" in section:
                    user.append("Provide comprehensive treatment planning")
                    focus.append("plan")
                else:
                    user.append(f"Include more detailed {pattern.section} information")
                    focus.append(section)

        if session.clinical_context.is_epic and any(
            _touches_epic_syntax(getattr(d, "old_content", "")) or _touches_epic_syntax(getattr(d, "new_content", ""))
            for d in deltas
        ):
            system.append(EPIC_FORMATTING_SUGGESTION)
            focus.append(EPIC_FOCUS_AREA)

        return PromptSuggestions(
            system_prompt_changes=list(OrderedDict.fromkeys(system)),
            user_prompt_additions=list(OrderedDict.fromkeys(user)),
            clinical_focus_areas=list(OrderedDict.fromkeys(focus)),
        )

    # =========================================================================
    # Improvement Potential & Priority
    # =========================================================================

    @staticmethod
    def improvement_potential(session: EditSession, deltas: List[EditDelta]) -> float:
        """
        Mean of edit complexity, major section changes and word-count change

        Edit count is scaled by 100 and the absolute word-count change by
        1000; each rewritten tracked section adds 0.2. Sessions without final
        content contribute edit complexity only.
        """
        major_changes = 0
        word_change = 0
        if session.final_content is not None:
            major_changes = len(detect_major_section_changes(session.original_content, session.final_content))
            word_change = len(session.final_content.split()) - len(session.original_content.split())

        potential = (
            len(deltas) / EDIT_COMPLEXITY_SCALE
            + major_changes * MAJOR_SECTION_CHANGE_WEIGHT
            + abs(word_change) / WORD_CHANGE_SCALE
        ) / 3
        return min(1.0, potential)

    @staticmethod
    def classify_priority(satisfaction: int, potential: float) -> AnalysisPriority:
        if satisfaction <= 4 or potential > 0.7:
            return AnalysisPriority.HIGH
        if satisfaction <= 6 or potential > 0.4:
            return AnalysisPriority.MEDIUM
        return AnalysisPriority.LOW


# =============================================================================
# Global Analyzer Instance
# =============================================================================

_edit_analyzer: Optional[EditPatternAnalyzer] = None


def get_edit_analyzer() -> EditPatternAnalyzer:
    """Get or create the default edit analyzer"""
    global _edit_analyzer
    if _edit_analyzer is None:
        _edit_analyzer = EditPatternAnalyzer()
    return _edit_analyzer


# =============================================================================
# Public API
# =============================================================================

def analyze_edit_session(
    session: EditSession,
    deltas: Optional[Sequence[Union[EditDelta, Dict[str, Any]]]] = None
) -> EditAnalysisResult:
    """
    Analyze a completed edit session

    Args:
        session: Edit session with clinical context and metrics
        deltas: Optional delta log overriding session.deltas

    Returns:
        EditAnalysisResult
    """
    return get_edit_analyzer().analyze(session, deltas)
