"""
NoteLens Selective Update Planner
Decides which sections of a previous note get refreshed at the next visit
"""

import logging
from typing import List, Dict, Optional, Callable, NamedTuple, FrozenSet

from notelens.schemas import ParsedNote, SectionType, SectionUpdateConfig
from notelens.exceptions import UnknownPresetError

logger = logging.getLogger(__name__)


DEFAULT_UPDATE_REASON = "Standard update for this visit type"


# =============================================================================
# Visit Type Defaults
# =============================================================================

# Sections a visit type keeps from the previous note; everything else updates
PRESERVED_BY_VISIT_TYPE: Dict[str, FrozenSet[SectionType]] = {
    "transfer-of-care": frozenset(),
    "follow-up": frozenset({SectionType.ASSESSMENT}),
    "psychiatric-intake": frozenset(),
}

UPDATE_REASONS: Dict[str, Dict[SectionType, str]] = {
    "transfer-of-care": {
        SectionType.SUBJECTIVE: "Update with interval history since last visit",
        SectionType.OBJECTIVE: "Current mental status and clinical findings",
        SectionType.ASSESSMENT: "Revised diagnostic impression and severity",
        SectionType.PLAN: "Updated treatment plan and recommendations",
        SectionType.HPI: "Recent developments in symptom presentation",
        SectionType.PSYCHIATRIC_EXAM: "Current mental status examination findings",
    },
    "follow-up": {
        SectionType.SUBJECTIVE: "Interval changes and treatment response",
        SectionType.OBJECTIVE: "Current clinical presentation",
        SectionType.ASSESSMENT: "Typically preserved from previous visit",
        SectionType.PLAN: "Adjusted based on treatment response",
        SectionType.HPI: "Recent symptom changes",
        SectionType.PSYCHIATRIC_EXAM: "Current mental status",
    },
}


def _normalize_visit_type(visit_type: Optional[str]) -> str:
    return (visit_type or "").strip().lower().replace("_", "-").replace(" ", "-")


def default_should_update(section_type: SectionType, visit_type: Optional[str]) -> bool:
    """Whether a section updates by default for the visit type"""
    preserved = PRESERVED_BY_VISIT_TYPE.get(_normalize_visit_type(visit_type), frozenset())
    return section_type not in preserved


def update_reason(section_type: SectionType, visit_type: Optional[str]) -> str:
    """Human-readable reason for the section's default"""
    reasons = UPDATE_REASONS.get(_normalize_visit_type(visit_type), {})
    return reasons.get(section_type, DEFAULT_UPDATE_REASON)


# =============================================================================
# Presets
# =============================================================================

class UpdatePreset(NamedTuple):
    key: str
    name: str
    description: str
    should_update: Callable[[SectionType], bool]


PRESETS: Dict[str, UpdatePreset] = {
    "update-all": UpdatePreset(
        key="update-all",
        name="Update All Sections",
        description="Update all sections with new information",
        should_update=lambda section_type: True,
    ),
    "preserve-assessment": UpdatePreset(
        key="preserve-assessment",
        name="Preserve Assessment",
        description="Update clinical findings but keep diagnostic assessment",
        should_update=lambda section_type: section_type not in {SectionType.ASSESSMENT, SectionType.DIAGNOSIS},
    ),
    "update-plan-only": UpdatePreset(
        key="update-plan-only",
        name="Plan Updates Only",
        description="Only update treatment plan and recommendations",
        should_update=lambda section_type: section_type in {
            SectionType.PLAN, SectionType.MEDICATION_PLAN, SectionType.FOLLOW_UP
        },
    ),
    "standard-followup": UpdatePreset(
        key="standard-followup",
        name="Standard Follow-up",
        description="Typical updates for follow-up visits",
        should_update=lambda section_type: section_type in {
            SectionType.SUBJECTIVE, SectionType.OBJECTIVE, SectionType.PLAN,
            SectionType.HPI, SectionType.PSYCHIATRIC_EXAM
        },
    ),
}


# =============================================================================
# Public API
# =============================================================================

def build_update_plan(parsed_note: ParsedNote, visit_type: Optional[str] = None) -> List[SectionUpdateConfig]:
    """
    One update config per detected section, in note order

    Args:
        parsed_note: Previous note, already parsed
        visit_type: Visit type of the upcoming encounter

    Returns:
        List of SectionUpdateConfig
    """
    configs = [
        SectionUpdateConfig(
            section_type=section.section_type,
            should_update=default_should_update(section.section_type, visit_type),
            update_reason=update_reason(section.section_type, visit_type),
            preserve_original=False,
            merge_strategy="replace",
        )
        for section in parsed_note.sections
    ]

    preserved = sum(1 for c in configs if not c.should_update)
    logger.info(
        f"Built update plan for visit type '{visit_type or 'unspecified'}': "
        f"{len(configs)} sections, {preserved} preserved"
    )
    return configs


def apply_preset(configs: List[SectionUpdateConfig], preset: str) -> List[SectionUpdateConfig]:
    """
    Apply a named preset to an update plan

    Raises:
        UnknownPresetError: if the preset name is not recognised
    """
    if preset not in PRESETS:
        raise UnknownPresetError(
            f"Unknown update preset '{preset}'",
            context={"available": ", ".join(PRESETS)}
        )

    rule = PRESETS[preset].should_update
    return [
        config.model_copy(update={"should_update": rule(config.section_type)})
        for config in configs
    ]
