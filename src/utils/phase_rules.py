"""
Phase Rule Tables

Static, per-phase validation rules, the fields each phase needs to count as
complete, the deferrable prerequisites, and normalisation of a validated
payload into what the profile service expects.

Phase 1 (Essential Info): identity section + contact section
Phase 2 (Academic): enrollment status section + academic details section
Phase 3 (Professional): role, skills, support interests sections
Phase 5 (Additional): optional notes
"""

from datetime import date
from functools import lru_cache
from typing import Any, Iterable, Mapping, Optional

from src.models.phase import Phase
from src.models.profile import EnrollmentStatus, ProfessionalRole, SupportInterest
from src.models.validation import OTHER_SENTINEL, FieldRule
from src.utils.field_validator import parse_int, selects_other

PHONE_PATTERN = r"\+?[1-9]\d{1,14}"
PHOTO_URL_PATTERN = r"(https?://|data:image/)\S+"
NOTES_MAX_WORDS = 500
DEFAULT_YEAR_WINDOW = 10

# Form sections of each phase, in the order the participant fills them in.
# A section may be saved before the sections after it; required fields of
# those later sections are then prerequisites and the submission is deferred
# to the draft store until they arrive.
PHASE_SECTIONS: dict[Phase, tuple[tuple[str, tuple[str, ...]], ...]] = {
    Phase.PHASE_1: (
        ("identity", ("first_name", "middle_name", "last_name", "profile_photo_url")),
        ("contact", ("phone",)),
    ),
    Phase.PHASE_2: (
        ("status", ("enrollment_status", "other_status")),
        ("details", ("major_program", "program_of_study", "graduation_year")),
    ),
    Phase.PHASE_3: (
        ("role", ("current_role", "other_role")),
        ("skills", ("skills",)),
        ("interests", ("support_interests", "other_interest")),
    ),
    Phase.PHASE_5: (("notes", ("additional_notes",)),),
}

# Fields that must be present on the profile for the phase to count as complete
COMPLETION_FIELDS: dict[Phase, tuple[str, ...]] = {
    Phase.PHASE_1: ("first_name", "last_name", "phone"),
    Phase.PHASE_2: ("enrollment_status", "major_program", "program_of_study", "graduation_year"),
    Phase.PHASE_3: ("current_role", "skills", "support_interests"),
    Phase.PHASE_5: ("additional_notes",),
}

# Companion "specify other" fields: (selection field, free-text field)
OTHER_COMPANIONS: dict[Phase, tuple[tuple[str, str], ...]] = {
    Phase.PHASE_2: (("enrollment_status", "other_status"),),
    Phase.PHASE_3: (("current_role", "other_role"), ("support_interests", "other_interest")),
}

_PHASE_1_RULES = {
    "first_name": FieldRule(label="First name", required=True, min_length=2, max_length=50),
    "middle_name": FieldRule(
        label="Middle name",
        max_length=50,
        messages={"max_length": "Middle name cannot exceed 50 characters"},
    ),
    "last_name": FieldRule(label="Last name", required=True, min_length=2, max_length=50),
    "phone": FieldRule(
        label="Phone number",
        required=True,
        min_length=9,
        pattern=PHONE_PATTERN,
        messages={
            "min_length": "Please enter a valid phone number",
            "pattern": "Please enter a valid international phone number",
        },
    ),
    "profile_photo_url": FieldRule(
        label="Profile photo",
        pattern=PHOTO_URL_PATTERN,
        messages={"pattern": "Please select a valid image file"},
    ),
}

_PHASE_3_RULES = {
    "current_role": FieldRule(
        label="Current role",
        required=True,
        choices=tuple(role.value for role in ProfessionalRole),
        messages={"required": "Please select your current role"},
    ),
    "other_role": FieldRule(
        label="Role",
        required_if="current_role",
        max_length=100,
        messages={"required": "Please specify your role"},
    ),
    "skills": FieldRule(
        label="Skill",
        required=True,
        many=True,
        min_items=1,
        max_length=100,
        messages={
            "required": "Please select at least one skill",
            "min_items": "Please select at least one skill",
        },
    ),
    "support_interests": FieldRule(
        label="Support interest",
        required=True,
        many=True,
        min_items=1,
        choices=tuple(interest.value for interest in SupportInterest),
        messages={
            "required": "Please select at least one support interest",
            "min_items": "Please select at least one support interest",
        },
    ),
    "other_interest": FieldRule(
        label="Other interest",
        required_if="support_interests",
        max_length=100,
        messages={"required": "Please specify your other interest"},
    ),
}

_PHASE_5_RULES = {
    "additional_notes": FieldRule(
        label="Additional notes",
        max_words=NOTES_MAX_WORDS,
        messages={"max_words": f"Additional notes cannot exceed {NOTES_MAX_WORDS} words"},
    ),
}


@lru_cache(maxsize=8)
def _phase_2_rules(current_year: int, year_window: int) -> dict[str, FieldRule]:
    earliest = current_year - year_window
    latest = current_year + year_window
    return {
        "enrollment_status": FieldRule(
            label="Enrollment status",
            required=True,
            choices=tuple(status.value for status in EnrollmentStatus),
            messages={"required": "Please select your enrollment status"},
        ),
        "other_status": FieldRule(
            label="Enrollment status",
            required_if="enrollment_status",
            max_length=100,
            messages={"required": "Please specify your enrollment status"},
        ),
        "major_program": FieldRule(
            label="Major",
            required=True,
            min_length=2,
            max_length=100,
            messages={"required": "Major/Program of study is required"},
        ),
        "program_of_study": FieldRule(
            label="Program of study", required=True, min_length=2, max_length=100
        ),
        "graduation_year": FieldRule(
            label="Graduation year",
            required=True,
            integer=True,
            min_value=earliest,
            max_value=latest,
            messages={"bounds": f"Year must be between {earliest} and {latest}"},
        ),
    }


def rules_for(
    phase: Phase,
    current_year: Optional[int] = None,
    year_window: int = DEFAULT_YEAR_WINDOW,
) -> dict[str, FieldRule]:
    """
    Rule table for a phase.

    Args:
        phase: Profile phase
        current_year: Reference year for the graduation-year window (defaults to today)
        year_window: Years either side of current_year accepted for graduation

    Returns:
        Field name -> FieldRule, in form order
    """
    if phase is Phase.PHASE_1:
        return _PHASE_1_RULES
    if phase is Phase.PHASE_2:
        return _phase_2_rules(current_year or date.today().year, year_window)
    if phase is Phase.PHASE_3:
        return _PHASE_3_RULES
    if phase is Phase.PHASE_5:
        return _PHASE_5_RULES
    raise ValueError(f"No rule table for {phase!r}")


def section_of(phase: Phase, field_id: str) -> Optional[str]:
    """Name of the form section that owns a field, or None."""
    for name, fields in PHASE_SECTIONS[phase]:
        if field_id in fields:
            return name
    return None


def deferrable_fields(phase: Phase, supplied: Iterable[str]) -> list[str]:
    """
    Fields of the sections that come after the last section the caller touched.

    Saving the identity section of phase 1 makes the contact section's phone
    deferrable; saving the contact section makes nothing deferrable. An empty
    submission touches no section and defers nothing.
    """
    sections = PHASE_SECTIONS[phase]
    supplied = set(supplied)
    touched = [
        index
        for index, (_, fields) in enumerate(sections)
        if supplied.intersection(fields)
    ]
    if not touched:
        return []
    return [field for _, fields in sections[max(touched) + 1 :] for field in fields]


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(getattr(value, "value", value)).strip()
    return text or None


def _capitalize_first(text: Optional[str]) -> Optional[str]:
    if not text:
        return text
    return text[0].upper() + text[1:]


def _dedupe(items: Any) -> list[str]:
    if isinstance(items, str):
        items = [items]
    seen: list[str] = []
    for item in items or []:
        text = _clean(item)
        if text and text not in seen:
            seen.append(text)
    return seen


def normalize_payload(phase: Phase, data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Turn a validated candidate into the payload sent to the profile service.

    Strings are trimmed, empty optional values become None, first/last names
    get a capital first letter, the phone loses its spaces, the graduation
    year becomes an int, list fields are de-duplicated in order, and "specify
    other" texts are dropped unless their companion selects "Other".

    Args:
        phase: Phase the data belongs to
        data: Candidate values that already passed validation

    Returns:
        Payload dict restricted to the phase's rule-table fields
    """
    if phase is Phase.PHASE_1:
        phone = _clean(data.get("phone"))
        return {
            "first_name": _capitalize_first(_clean(data.get("first_name"))),
            "middle_name": _clean(data.get("middle_name")),
            "last_name": _capitalize_first(_clean(data.get("last_name"))),
            "phone": "".join(phone.split()) if phone else None,
            "profile_photo_url": _clean(data.get("profile_photo_url")),
        }

    if phase is Phase.PHASE_2:
        status = _clean(data.get("enrollment_status"))
        return {
            "enrollment_status": status,
            "other_status": _clean(data.get("other_status")) if status == OTHER_SENTINEL else None,
            "major_program": _clean(data.get("major_program")),
            "program_of_study": _clean(data.get("program_of_study")),
            "graduation_year": parse_int(data.get("graduation_year")),
        }

    if phase is Phase.PHASE_3:
        role = _clean(data.get("current_role"))
        interests = _dedupe(data.get("support_interests"))
        return {
            "current_role": role,
            "other_role": _clean(data.get("other_role")) if role == OTHER_SENTINEL else None,
            "skills": _dedupe(data.get("skills")),
            "support_interests": interests,
            "other_interest": (
                _clean(data.get("other_interest")) if selects_other(interests) else None
            ),
        }

    if phase is Phase.PHASE_5:
        return {"additional_notes": _clean(data.get("additional_notes"))}

    raise ValueError(f"No payload shape for {phase!r}")
