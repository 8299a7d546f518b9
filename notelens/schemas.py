"""
NoteLens - Clinical Note Schemas
Pydantic models for parsed notes, edit sessions and edit analysis
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from typing import Optional, List, Dict, Union, Literal, Annotated
from datetime import datetime
from enum import Enum
from uuid import uuid4


# ============================================================================
# Enumerations - Note Structure
# ============================================================================

class SectionType(str, Enum):
    """Clinical note section kinds"""
    # Standardized transfer-of-care sections
    DEMOGRAPHICS = "DEMOGRAPHICS"
    DIAGNOSIS = "DIAGNOSIS"
    CURRENT_MEDICATIONS = "CURRENT_MEDICATIONS"
    PRIOR_MEDICATIONS = "PRIOR_MEDICATIONS"
    MEDICATION_PLAN = "MEDICATION_PLAN"
    HPI = "HPI"
    REVIEW_OF_SYSTEMS = "REVIEW_OF_SYSTEMS"
    PSYCHIATRIC_EXAM = "PSYCHIATRIC_EXAM"
    QUESTIONNAIRES = "QUESTIONNAIRES"
    MEDICAL_HISTORY = "MEDICAL_HISTORY"
    PHYSICAL_EXAM = "PHYSICAL_EXAM"
    RISK_ASSESSMENT = "RISK_ASSESSMENT"
    ASSESSMENT_AND_PLAN = "ASSESSMENT_AND_PLAN"
    PSYCHOSOCIAL = "PSYCHOSOCIAL"
    SAFETY_PLAN = "SAFETY_PLAN"
    PROGNOSIS = "PROGNOSIS"
    FOLLOW_UP = "FOLLOW_UP"

    # Legacy SOAP sections
    SUBJECTIVE = "SUBJECTIVE"
    OBJECTIVE = "OBJECTIVE"
    ASSESSMENT = "ASSESSMENT"
    PLAN = "PLAN"

    # Legacy headers
    CHIEF_COMPLAINT = "CHIEF_COMPLAINT"
    ALLERGIES = "ALLERGIES"

    UNKNOWN = "UNKNOWN"


SECTION_TITLES: Dict[SectionType, str] = {
    SectionType.DEMOGRAPHICS: "Demographics",
    SectionType.DIAGNOSIS: "Diagnosis",
    SectionType.CURRENT_MEDICATIONS: "Current Medications",
    SectionType.PRIOR_MEDICATIONS: "Prior Medications",
    SectionType.MEDICATION_PLAN: "Medication Plan",
    SectionType.HPI: "History of Present Illness",
    SectionType.REVIEW_OF_SYSTEMS: "Review of Systems",
    SectionType.PSYCHIATRIC_EXAM: "Psychiatric Exam",
    SectionType.QUESTIONNAIRES: "Questionnaires",
    SectionType.MEDICAL_HISTORY: "Medical History",
    SectionType.PHYSICAL_EXAM: "Physical Exam",
    SectionType.RISK_ASSESSMENT: "Risk Assessment",
    SectionType.ASSESSMENT_AND_PLAN: "Assessment and Plan",
    SectionType.PSYCHOSOCIAL: "Psychosocial",
    SectionType.SAFETY_PLAN: "Safety Plan",
    SectionType.PROGNOSIS: "Prognosis",
    SectionType.FOLLOW_UP: "Follow-up",
    SectionType.SUBJECTIVE: "Subjective",
    SectionType.OBJECTIVE: "Objective",
    SectionType.ASSESSMENT: "Assessment",
    SectionType.PLAN: "Plan",
    SectionType.CHIEF_COMPLAINT: "Chief Complaint",
    SectionType.ALLERGIES: "Allergies",
    SectionType.UNKNOWN: "Unclassified",
}


class NoteFormat(str, Enum):
    """Overall note layout"""
    SOAP = "SOAP"
    NARRATIVE = "NARRATIVE"
    MIXED = "MIXED"
    UNKNOWN = "UNKNOWN"


class EMRType(str, Enum):
    """Source EMR guess"""
    EPIC = "epic"
    CREDIBLE = "credible"
    UNKNOWN = "unknown"


# ============================================================================
# Section Detection Models
# ============================================================================

class SectionPattern(BaseModel):
    """One row of a section header table"""
    model_config = ConfigDict(frozen=True)

    section_type: SectionType
    keywords: List[str] = Field(..., min_length=1, description="Header variants, in priority order")
    confidence: float = Field(..., ge=0.0, le=1.0)
    is_standardized: bool = False


class SectionMetadata(BaseModel):
    """Per-section facts gathered during parsing"""
    model_config = ConfigDict(frozen=True)

    word_count: int = Field(0, ge=0)
    has_emr_syntax: bool = False
    is_empty: bool = False
    clinical_terms: List[str] = Field(default_factory=list)
    header_text: str = ""
    is_standardized: bool = False


class Section(BaseModel):
    """Contiguous typed span of a note"""
    model_config = ConfigDict(frozen=True)

    section_type: SectionType
    content: str
    start_index: int = Field(..., ge=0)
    end_index: int = Field(..., gt=0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    metadata: SectionMetadata = Field(default_factory=SectionMetadata)

    @computed_field
    @property
    def title(self) -> str:
        """Display label for the section type"""
        return SECTION_TITLES.get(self.section_type, self.section_type.value.title())

    @model_validator(mode="after")
    def validate_span(self) -> "Section":
        """Spans must be non-empty and forward"""
        if self.start_index >= self.end_index:
            raise ValueError(
                f"start_index ({self.start_index}) must be less than end_index ({self.end_index})"
            )
        return self

    def overlaps(self, other: "Section") -> bool:
        return self.start_index < other.end_index and other.start_index < self.end_index

    def overlap_ratio(self, other: "Section") -> float:
        """Overlap length as a fraction of the shorter span"""
        overlap = min(self.end_index, other.end_index) - max(self.start_index, other.start_index)
        if overlap <= 0:
            return 0.0
        shorter = min(self.end_index - self.start_index, other.end_index - other.start_index)
        return overlap / shorter


class ParseMetadata(BaseModel):
    """Bookkeeping for one parse invocation"""
    model_config = ConfigDict(frozen=True)

    total_sections: int = 0
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    processing_time_ms: float = Field(0.0, ge=0.0)
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    matched_patterns: List[str] = Field(default_factory=list)
    smart_phrases: List[str] = Field(default_factory=list)
    dot_phrases: List[str] = Field(default_factory=list)


class ParsedNote(BaseModel):
    """Result of parsing one clinical note"""
    model_config = ConfigDict(frozen=True)

    original_content: str
    normalized_content: str = ""
    detected_format: NoteFormat = NoteFormat.UNKNOWN
    emr_type: EMRType = EMRType.UNKNOWN
    sections: List[Section] = Field(default_factory=list)
    parse_metadata: ParseMetadata = Field(default_factory=ParseMetadata)

    def get_section(self, section_type: SectionType) -> Optional[Section]:
        """First section of the given type, if detected"""
        for section in self.sections:
            if section.section_type == section_type:
                return section
        return None


class NoteParseRequest(BaseModel):
    """Request body for note parsing"""
    text: str = Field(..., description="Raw clinical note text")
    use_cache: bool = True


# ============================================================================
# Edit Tracking Models
# ============================================================================

class EditOperation(str, Enum):
    """Atomic edit kinds"""
    INSERT = "insert"
    DELETE = "delete"
    REPLACE = "replace"


class _DeltaBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    position: int = Field(0, ge=0, description="Character offset in the note")
    section: Optional[str] = Field(None, description="Note section the edit falls in")
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class InsertDelta(_DeltaBase):
    """Text added to the note"""
    kind: Literal["insert"] = "insert"
    new_content: str

    @computed_field
    @property
    def length(self) -> int:
        return len(self.new_content)


class DeleteDelta(_DeltaBase):
    """Text removed from the note"""
    kind: Literal["delete"] = "delete"
    old_content: str

    @computed_field
    @property
    def length(self) -> int:
        return len(self.old_content)


class ReplaceDelta(_DeltaBase):
    """Text swapped for other text"""
    kind: Literal["replace"] = "replace"
    old_content: str
    new_content: str

    @computed_field
    @property
    def length(self) -> int:
        return max(len(self.old_content), len(self.new_content))


EditDelta = Annotated[Union[InsertDelta, DeleteDelta, ReplaceDelta], Field(discriminator="kind")]


class ClinicalContext(BaseModel):
    """Opaque clinical setting descriptor"""
    model_config = ConfigDict(frozen=True)

    clinic: Optional[str] = None
    visit_type: Optional[str] = None
    emr: Optional[str] = None
    specialty: Optional[str] = None

    @property
    def is_epic(self) -> bool:
        return (self.emr or "").strip().lower() == EMRType.EPIC.value


class EditBehaviorMetrics(BaseModel):
    """Editor-side behavioral measurements"""
    pause_durations_ms: List[float] = Field(default_factory=list)
    typing_speed_cpm: float = Field(0.0, ge=0.0, description="Characters per minute")
    backspace_frequency: float = Field(0.0, ge=0.0, le=1.0)
    session_duration_seconds: Optional[float] = Field(None, ge=0.0)


class EditSession(BaseModel):
    """One editing interaction with one generated note"""
    session_id: str = Field(default_factory=lambda: uuid4().hex)
    note_id: str
    patient_id: Optional[str] = None
    user_id: Optional[str] = None
    clinical_context: ClinicalContext = Field(default_factory=ClinicalContext)

    original_content: str = ""
    final_content: Optional[str] = None
    deltas: List[EditDelta] = Field(default_factory=list)

    total_edits: int = Field(0, ge=0)
    major_edits: int = Field(0, ge=0)
    metrics: EditBehaviorMetrics = Field(default_factory=EditBehaviorMetrics)

    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    is_analyzed: bool = False

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def duration_seconds(self) -> Optional[float]:
        """Measured duration, else summed pauses, else wall time between start and completion"""
        if self.metrics.session_duration_seconds is not None:
            return self.metrics.session_duration_seconds
        if self.metrics.pause_durations_ms:
            return sum(self.metrics.pause_durations_ms) / 1000.0
        if self.completed_at is not None:
            return max(0.0, (self.completed_at - self.started_at).total_seconds())
        return None


class EditSessionStartRequest(BaseModel):
    """Request body for starting an edit session"""
    note_id: str
    patient_id: Optional[str] = None
    user_id: Optional[str] = None
    clinical_context: ClinicalContext = Field(default_factory=ClinicalContext)
    original_content: str = ""


class EditSessionCompleteRequest(BaseModel):
    """Request body for completing an edit session"""
    final_content: str
    metrics: EditBehaviorMetrics = Field(default_factory=EditBehaviorMetrics)


# ============================================================================
# Edit Analysis Models
# ============================================================================

class EditPatternType(str, Enum):
    """Behavioral regularities detected in edits"""
    FREQUENT_DELETION = "frequent_deletion"
    CONSISTENT_DELETION = "consistent_deletion"
    CONSISTENT_ADDITION = "consistent_addition"
    STYLE_CHANGE = "style_change"
    TERMINOLOGY_PREFERENCE = "terminology_preference"
    SECTION_REORGANIZATION = "section_reorganization"


class AnalysisPriority(str, Enum):
    """How urgently prompts should be revisited"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EditPattern(BaseModel):
    """Detected behavioral regularity"""
    model_config = ConfigDict(frozen=True)

    pattern_type: EditPatternType
    description: str
    section: Optional[str] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    frequency: int = Field(..., ge=0)
    examples: List[str] = Field(default_factory=list, max_length=3)
    suggested_improvement: str
    clinical_contexts: List[ClinicalContext] = Field(default_factory=list)


class PromptSuggestions(BaseModel):
    """Advisory prompt changes grouped by target"""
    model_config = ConfigDict(frozen=True)

    system_prompt_changes: List[str] = Field(default_factory=list)
    user_prompt_additions: List[str] = Field(default_factory=list)
    clinical_focus_areas: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.system_prompt_changes or self.user_prompt_additions or self.clinical_focus_areas)


class EditAnalysisResult(BaseModel):
    """Output of analyzing one completed edit session"""
    model_config = ConfigDict(frozen=True)

    session_id: Optional[str] = None
    overall_satisfaction: int = Field(7, ge=1, le=10)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    patterns: List[EditPattern] = Field(default_factory=list)
    prompt_suggestions: PromptSuggestions = Field(default_factory=PromptSuggestions)
    improvement_potential: float = Field(0.0, ge=0.0, le=1.0)
    priority: AnalysisPriority = AnalysisPriority.LOW


class EditAnalysisRequest(BaseModel):
    """Request body for stateless edit analysis"""
    session: EditSession
    deltas: Optional[List[EditDelta]] = None


# ============================================================================
# Selective Update Models
# ============================================================================

class SectionUpdateConfig(BaseModel):
    """Whether and how one section of a previous note gets refreshed"""
    section_type: SectionType
    should_update: bool = True
    update_reason: str = ""
    preserve_original: bool = False
    merge_strategy: Literal["replace", "append", "merge"] = "replace"


class UpdatePlanRequest(BaseModel):
    """Request body for building a selective update plan"""
    parsed_note: ParsedNote
    visit_type: Optional[str] = None
    preset: Optional[str] = None
