"""
Unit tests for the selective update planner
"""

import pytest

from notelens.modules.section_detection import parse_clinical_note
from notelens.modules.selective_update import (
    build_update_plan,
    apply_preset,
    PRESETS,
    DEFAULT_UPDATE_REASON
)
from notelens.schemas import SectionType
from notelens.exceptions import UnknownPresetError


def plan_by_type(configs):
    return {c.section_type: c for c in configs}


class TestVisitTypeDefaults:
    """Test default update decisions per visit type"""

    def test_follow_up_preserves_assessment(self, soap_note):
        configs = plan_by_type(build_update_plan(parse_clinical_note(soap_note), "follow-up"))

        assert configs[SectionType.ASSESSMENT].should_update is False
        assert configs[SectionType.ASSESSMENT].update_reason == "Typically preserved from previous visit"
        assert configs[SectionType.PLAN].should_update is True
        assert configs[SectionType.PLAN].update_reason == "Adjusted based on treatment response"

    def test_visit_type_spelling_normalized(self, soap_note):
        configs = plan_by_type(build_update_plan(parse_clinical_note(soap_note), "Follow Up"))
        assert configs[SectionType.ASSESSMENT].should_update is False

    def test_transfer_of_care_updates_everything(self, soap_note):
        configs = build_update_plan(parse_clinical_note(soap_note), "transfer-of-care")
        assert all(c.should_update for c in configs)

    def test_unknown_visit_type(self, narrative_note):
        configs = build_update_plan(parse_clinical_note(narrative_note), None)

        assert all(c.should_update for c in configs)
        assert all(c.update_reason == DEFAULT_UPDATE_REASON for c in configs)
        assert all(c.merge_strategy == "replace" and not c.preserve_original for c in configs)

    def test_one_config_per_section(self, narrative_note):
        parsed = parse_clinical_note(narrative_note)
        configs = build_update_plan(parsed, "transfer-of-care")

        assert [c.section_type for c in configs] == [s.section_type for s in parsed.sections]


class TestPresets:
    """Test named presets"""

    @pytest.fixture
    def narrative_plan(self, narrative_note):
        return build_update_plan(parse_clinical_note(narrative_note), "transfer-of-care")

    def test_preserve_assessment(self, narrative_plan):
        configs = plan_by_type(apply_preset(narrative_plan, "preserve-assessment"))

        assert configs[SectionType.DIAGNOSIS].should_update is False
        assert configs[SectionType.HPI].should_update is True

    def test_update_plan_only(self, soap_note):
        configs = apply_preset(build_update_plan(parse_clinical_note(soap_note)), "update-plan-only")
        updated = [c.section_type for c in configs if c.should_update]

        assert updated == [SectionType.PLAN]

    def test_standard_followup(self, narrative_plan):
        configs = plan_by_type(apply_preset(narrative_plan, "standard-followup"))

        assert configs[SectionType.HPI].should_update is True
        assert configs[SectionType.PSYCHIATRIC_EXAM].should_update is True
        assert configs[SectionType.CURRENT_MEDICATIONS].should_update is False

    def test_update_all(self, soap_note):
        configs = build_update_plan(parse_clinical_note(soap_note), "follow-up")
        assert all(c.should_update for c in apply_preset(configs, "update-all"))

    def test_preset_does_not_mutate_input(self, narrative_plan):
        apply_preset(narrative_plan, "update-plan-only")
        assert all(c.should_update for c in narrative_plan)

    def test_unknown_preset(self, narrative_plan):
        with pytest.raises(UnknownPresetError):
            apply_preset(narrative_plan, "update-nothing")

    def test_preset_catalogue(self):
        assert set(PRESETS) == {"update-all", "preserve-assessment", "update-plan-only", "standard-followup"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
