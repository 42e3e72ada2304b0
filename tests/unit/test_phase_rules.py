"""
Unit tests for the per-phase rule tables and payload normalisation.
"""

import pytest

from src.models.phase import Phase
from src.utils.field_validator import failures, validate_fields
from src.utils.phase_rules import (
    PHASE_SECTIONS,
    deferrable_fields,
    normalize_payload,
    rules_for,
    section_of,
)


class TestRuleTables:
    """Rule tables per phase."""

    def test_every_phase_has_a_table(self):
        for phase in Phase:
            assert rules_for(phase, current_year=2026)

    def test_sections_cover_the_rule_table(self):
        for phase, sections in PHASE_SECTIONS.items():
            fields = {f for _, names in sections for f in names}
            assert fields == set(rules_for(phase, current_year=2026))

    def test_phase1_valid_payload(self):
        data = {"first_name": "Jane", "last_name": "Doe", "phone": "+250788123456"}
        assert failures(validate_fields(data, rules_for(Phase.PHASE_1))) == []

    def test_phase1_short_phone(self):
        data = {"first_name": "Jane", "last_name": "Doe", "phone": "+1234567"}
        errors = failures(validate_fields(data, rules_for(Phase.PHASE_1)))
        assert [(e.field, e.message) for e in errors] == [
            ("phone", "Please enter a valid phone number")
        ]

    def test_phase1_invalid_international_phone(self):
        data = {"first_name": "Jane", "last_name": "Doe", "phone": "0788-123-456"}
        errors = failures(validate_fields(data, rules_for(Phase.PHASE_1)))
        assert errors[0].message == "Please enter a valid international phone number"

    def test_graduation_year_window_follows_current_year(self):
        # Arrange
        rules = rules_for(Phase.PHASE_2, current_year=2026)
        year = rules["graduation_year"]

        # Assert
        assert (year.min_value, year.max_value) == (2016, 2036)
        assert year.messages["bounds"] == "Year must be between 2016 and 2036"

    def test_graduation_year_custom_window(self):
        year = rules_for(Phase.PHASE_2, current_year=2026, year_window=5)["graduation_year"]
        assert (year.min_value, year.max_value) == (2021, 2031)

    def test_phase2_other_status_required(self):
        data = {
            "enrollment_status": "Other",
            "major_program": "Computer Science",
            "program_of_study": "BSc",
            "graduation_year": 2027,
        }
        errors = failures(validate_fields(data, rules_for(Phase.PHASE_2, current_year=2026)))
        assert [(e.field, e.message) for e in errors] == [
            ("other_status", "Please specify your enrollment status")
        ]

    def test_phase2_major_required_message(self):
        data = {
            "enrollment_status": "Graduated",
            "program_of_study": "BSc",
            "graduation_year": 2027,
        }
        errors = failures(validate_fields(data, rules_for(Phase.PHASE_2, current_year=2026)))
        assert errors[0].message == "Major/Program of study is required"

    def test_phase3_requires_skill_and_interest(self):
        errors = failures(validate_fields({"current_role": "Founder"}, rules_for(Phase.PHASE_3)))
        assert {e.field: e.message for e in errors} == {
            "skills": "Please select at least one skill",
            "support_interests": "Please select at least one support interest",
        }

    def test_phase3_unknown_role_rejected(self):
        data = {"current_role": "Intern", "skills": ["Python"], "support_interests": ["Funding"]}
        errors = failures(validate_fields(data, rules_for(Phase.PHASE_3)))
        assert [e.field for e in errors] == ["current_role"]

    def test_phase3_single_string_selections(self):
        data = {"current_role": "Founder", "skills": "Python", "support_interests": "Mentorship"}

        assert failures(validate_fields(data, rules_for(Phase.PHASE_3))) == []
        payload = normalize_payload(Phase.PHASE_3, data)

        assert payload["skills"] == ["Python"]
        assert payload["support_interests"] == ["Mentorship"]

    def test_phase1_list_names_rejected(self):
        data = {"first_name": ["J"], "last_name": "Doe", "phone": "+250788123456"}
        errors = failures(validate_fields(data, rules_for(Phase.PHASE_1)))
        assert {e.field: e.message for e in errors} == {"first_name": "First name must be text"}

    def test_phase5_all_optional(self):
        assert failures(validate_fields({}, rules_for(Phase.PHASE_5))) == []


class TestSections:
    """Section lookup and deferral."""

    def test_section_of(self):
        assert section_of(Phase.PHASE_1, "phone") == "contact"
        assert section_of(Phase.PHASE_3, "other_interest") == "interests"
        assert section_of(Phase.PHASE_1, "skills") is None

    def test_identity_section_defers_phone(self):
        assert deferrable_fields(Phase.PHASE_1, ["first_name", "last_name"]) == ["phone"]

    def test_contact_section_defers_nothing(self):
        assert deferrable_fields(Phase.PHASE_1, ["phone"]) == []

    def test_latest_touched_section_wins(self):
        assert deferrable_fields(Phase.PHASE_1, ["first_name", "phone"]) == []

    def test_phase3_role_section_defers_later_sections(self):
        assert deferrable_fields(Phase.PHASE_3, ["current_role"]) == [
            "skills",
            "support_interests",
            "other_interest",
        ]

    def test_empty_submission_defers_nothing(self):
        assert deferrable_fields(Phase.PHASE_2, []) == []


class TestNormalizePayload:
    """Payload normalisation before submission."""

    def test_phase1(self):
        payload = normalize_payload(
            Phase.PHASE_1,
            {
                "first_name": "  jane ",
                "middle_name": "   ",
                "last_name": "doe",
                "phone": "+250 788 123 456",
            },
        )
        assert payload == {
            "first_name": "Jane",
            "middle_name": None,
            "last_name": "Doe",
            "phone": "+250788123456",
            "profile_photo_url": None,
        }

    def test_phase2_drops_other_text_unless_other(self):
        payload = normalize_payload(
            Phase.PHASE_2,
            {
                "enrollment_status": "Graduated",
                "other_status": "Exchange student",
                "major_program": " Computer Science ",
                "program_of_study": "BSc",
                "graduation_year": "2027",
            },
        )
        assert payload["other_status"] is None
        assert payload["major_program"] == "Computer Science"
        assert payload["graduation_year"] == 2027

    def test_phase3_dedupes_lists(self):
        payload = normalize_payload(
            Phase.PHASE_3,
            {
                "current_role": "Other",
                "other_role": "Advisor",
                "skills": ["Python", " Python ", "", "Design"],
                "support_interests": ["Funding", "Other", "Funding"],
                "other_interest": "Legal advice",
            },
        )
        assert payload == {
            "current_role": "Other",
            "other_role": "Advisor",
            "skills": ["Python", "Design"],
            "support_interests": ["Funding", "Other"],
            "other_interest": "Legal advice",
        }

    def test_phase5_blank_notes_become_none(self):
        assert normalize_payload(Phase.PHASE_5, {"additional_notes": "  "}) == {
            "additional_notes": None
        }

    def test_unknown_phase_rejected(self):
        with pytest.raises(ValueError):
            normalize_payload(4, {})
