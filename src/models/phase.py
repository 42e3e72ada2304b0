"""
Phase Data Models

The profile flow is an ordered, tagged sequence of phases. Phase 4 (project
details) is owned by the project-management module and is not a member here,
so nothing in this package ever derives a phase by ``n + 1``.
"""

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Phase(IntEnum):
    """Profile completion phases, valued by their display number."""

    PHASE_1 = 1
    PHASE_2 = 2
    PHASE_3 = 3
    PHASE_5 = 5

    @property
    def key(self) -> str:
        """Storage key used for drafts and completion maps (e.g. "phase1")."""
        return f"phase{self.value}"

    @property
    def title(self) -> str:
        return PHASE_TITLES[self]

    @property
    def optional(self) -> bool:
        return self in OPTIONAL_PHASES

    @classmethod
    def coerce(cls, value: "Phase | int | str") -> "Phase":
        """Resolve a phase from a Phase, its number, or its storage key.

        Raises:
            ValueError: If the value names a phase outside this flow (e.g. 4)
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for phase in cls:
                if phase.key == value:
                    return phase
            if value.isdigit():
                value = int(value)
            else:
                raise ValueError(f"Unknown profile phase: {value!r}")
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Phase {value} is not part of the profile completion flow"
            ) from None


PHASE_SEQUENCE: tuple[Phase, ...] = (
    Phase.PHASE_1,
    Phase.PHASE_2,
    Phase.PHASE_3,
    Phase.PHASE_5,
)

OPTIONAL_PHASES = frozenset({Phase.PHASE_5})

PHASE_TITLES = {
    Phase.PHASE_1: "Essential Info",
    Phase.PHASE_2: "Academic",
    Phase.PHASE_3: "Professional",
    Phase.PHASE_5: "Additional",
}


class PhaseState(str, Enum):
    """Navigation state of a single phase."""

    LOCKED = "locked"
    UNLOCKED = "unlocked"  # unlocked, not yet complete
    DRAFTED = "drafted"  # unlocked, deferred draft waiting on a prerequisite
    COMPLETE = "complete"


class DraftReason(str, Enum):
    """Why a phase draft was written to local storage."""

    DEFERRED = "deferred"
    AUTOSAVE = "autosave"
    SUBMIT_FAILED = "submit_failed"


class PhaseDraft(BaseModel):
    """Unsent field values for one phase, persisted by the draft store."""

    phase: str
    data: dict[str, Any] = Field(default_factory=dict)
    reason: DraftReason = DraftReason.AUTOSAVE
    saved_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class PhaseCompletionState(BaseModel):
    """Derived completion snapshot; rebuilt after every successful submission.

    Attributes:
        phases: Completion flag per phase in the flow
        percentage: round(100 * completed / counted phases)
        missing_fields: Required fields still absent, per phase key
    """

    phases: dict[Phase, bool]
    percentage: int = Field(ge=0, le=100)
    missing_fields: dict[str, list[str]] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def is_complete(self, phase: Phase) -> bool:
        return self.phases.get(phase, False)

    def completed_phases(self) -> list[Phase]:
        return [phase for phase in PHASE_SEQUENCE if self.is_complete(phase)]

    def as_flags(self) -> dict[str, bool]:
        """Completion flags keyed by storage key, as the portal's progress bar expects."""
        return {phase.key: self.is_complete(phase) for phase in PHASE_SEQUENCE}

    @classmethod
    def empty(cls) -> "PhaseCompletionState":
        return cls(phases={phase: False for phase in PHASE_SEQUENCE}, percentage=0)

    def describe(self, phase: Optional[Phase] = None) -> str:
        """Human-readable summary, e.g. "2/3 phases complete (67%)"."""
        if phase is not None:
            state = "complete" if self.is_complete(phase) else "incomplete"
            return f"Phase {phase.value} ({phase.title}): {state}"
        done = len(self.completed_phases())
        return f"{done}/{len(PHASE_SEQUENCE)} phases complete ({self.percentage}%)"
