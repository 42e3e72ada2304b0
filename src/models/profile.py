"""
Incubatee Profile Data Models
"""

import json
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.phase import Phase


class EnrollmentStatus(str, Enum):
    """Academic enrollment status (Phase 2)."""

    CURRENTLY_ENROLLED = "CurrentlyEnrolled"
    GRADUATED = "Graduated"
    ON_LEAVE = "OnLeave"
    OTHER = "Other"


class ProfessionalRole(str, Enum):
    """Role in the incubated project (Phase 3)."""

    PROJECT_LEAD = "ProjectLead"
    FOUNDER = "Founder"
    EMPLOYEE = "Employee"
    ATTENDS_WORKSHOPS_ONLY = "AttendsWorkshopsOnly"
    OTHER = "Other"


class SupportInterest(str, Enum):
    """Kinds of incubator support a participant can ask for (Phase 3)."""

    MENTORSHIP = "Mentorship"
    FUNDING = "Funding"
    NETWORKING = "Networking"
    TECHNICAL_EQUIPMENT = "TechnicalEquipment"
    BUSINESS_TRAINING = "BusinessTraining"
    COWORKING_SPACE = "CoworkingSpace"
    OTHER = "Other"


# Profile attributes owned by each phase. Phase 4 lives in project management.
PHASE_FIELDS: dict[Phase, tuple[str, ...]] = {
    Phase.PHASE_1: ("first_name", "middle_name", "last_name", "phone", "profile_photo_url"),
    Phase.PHASE_2: (
        "enrollment_status",
        "other_status",
        "major_program",
        "program_of_study",
        "graduation_year",
    ),
    Phase.PHASE_3: ("current_role", "other_role", "skills", "support_interests", "other_interest"),
    Phase.PHASE_5: ("additional_notes",),
}


def _decode_json_list(value: Any) -> Any:
    """Decode list fields the portal API sometimes returns as JSON strings."""
    if isinstance(value, str):
        if not value:
            return []
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return []
        return decoded if isinstance(decoded, list) else []
    if value is None:
        return []
    return value


class Profile(BaseModel):
    """Participant profile accumulated across phases.

    The remote profile service is the system of record; this model is the
    in-session snapshot held by the ProfileStateController.

    Attributes:
        id: Remote user identifier
        email: Login email (not editable in this flow)
        name: Display name maintained by the portal
        role: Portal role (e.g. "incubatee")
        first_name/middle_name/last_name/profile_photo_url: Phase 1 identity
        phone: Phase 1 contact, international format
        enrollment_status/other_status/major_program/program_of_study/graduation_year:
            Phase 2 academic fields
        current_role/other_role/skills/support_interests/other_interest:
            Phase 3 professional fields
        additional_notes: Phase 5 free text (optional phase)
        profile_completion_percentage: Percentage last reported by the server
    """

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    email: str = ""
    name: str = ""
    role: str = ""

    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    profile_photo_url: Optional[str] = None

    enrollment_status: Optional[EnrollmentStatus] = None
    other_status: Optional[str] = None
    major_program: Optional[str] = None
    program_of_study: Optional[str] = None
    graduation_year: Optional[int] = None

    current_role: Optional[ProfessionalRole] = None
    other_role: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    support_interests: List[SupportInterest] = Field(default_factory=list)
    other_interest: Optional[str] = None

    additional_notes: Optional[str] = None
    profile_completion_percentage: int = 0

    @field_validator("skills", mode="before")
    @classmethod
    def decode_skills(cls, v: Any) -> Any:
        return [str(item) for item in _decode_json_list(v) if item]

    @field_validator("support_interests", mode="before")
    @classmethod
    def decode_support_interests(cls, v: Any) -> Any:
        """Decode JSON strings and drop values outside the closed enumeration."""
        allowed = {interest.value for interest in SupportInterest}
        return [item for item in _decode_json_list(v) if item in allowed]

    @field_validator("enrollment_status", mode="before")
    @classmethod
    def coerce_enrollment_status(cls, v: Any) -> Any:
        if v in (None, "") or v not in {s.value for s in EnrollmentStatus}:
            return None
        return v

    @field_validator("current_role", mode="before")
    @classmethod
    def coerce_current_role(cls, v: Any) -> Any:
        if v in (None, "") or v not in {r.value for r in ProfessionalRole}:
            return None
        return v

    @field_validator("profile_completion_percentage", mode="before")
    @classmethod
    def coerce_percentage(cls, v: Any) -> Any:
        return 0 if v is None else v

    def phase_values(self, phase: Phase) -> dict[str, Any]:
        """Current values of the fields a phase owns, in wire form (enums as strings)."""
        dumped = self.model_dump(mode="json", include=set(PHASE_FIELDS[phase]))
        return {name: dumped.get(name) for name in PHASE_FIELDS[phase]}

    @property
    def display_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(part.strip() for part in parts if part and part.strip()) or self.name
