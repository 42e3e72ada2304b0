"""
Phase Navigation Policy

Pure decisions over a completion snapshot: which phases are locked, which are
complete, and where to go after a phase is submitted. Ordering comes from the
tagged PHASE_SEQUENCE, so phase 3 is followed by phase 5 without any special
case for the phase handled by project management.

Lock rules:
    - Phase 1 is always unlocked.
    - Phase 5 is optional and always unlocked; it never gates anything.
    - Any other phase unlocks once its predecessor in the sequence is complete.
    - A complete phase is never reported as locked.
"""

from typing import Iterable, Optional

from src.models.phase import PHASE_SEQUENCE, Phase, PhaseCompletionState, PhaseState

ALWAYS_UNLOCKED = frozenset({Phase.PHASE_1, Phase.PHASE_5})


def next_phase_after(phase: Phase | int) -> Optional[Phase]:
    """Phase that follows ``phase`` in the flow (1->2, 2->3, 3->5), None after the last.

    Raises:
        ValueError: If ``phase`` is not part of the flow (e.g. 4)
    """
    index = PHASE_SEQUENCE.index(Phase.coerce(phase))
    if index + 1 < len(PHASE_SEQUENCE):
        return PHASE_SEQUENCE[index + 1]
    return None


def previous_phase(phase: Phase | int) -> Optional[Phase]:
    """Phase preceding ``phase`` in the flow, None for the first."""
    index = PHASE_SEQUENCE.index(Phase.coerce(phase))
    return PHASE_SEQUENCE[index - 1] if index > 0 else None


class PhaseNavigationPolicy:
    """Lock/complete/next decisions for one completion snapshot."""

    def __init__(
        self,
        completion: PhaseCompletionState,
        drafted: Iterable[Phase] = (),
    ):
        """
        Args:
            completion: Snapshot from the ProfileStateController
            drafted: Phases holding a deferred draft that waits on a prerequisite
        """
        self.completion = completion
        self.drafted = frozenset(drafted)

    def is_complete(self, phase: Phase | int) -> bool:
        return self.completion.is_complete(Phase.coerce(phase))

    def is_locked(self, phase: Phase | int) -> bool:
        phase = Phase.coerce(phase)
        if phase in ALWAYS_UNLOCKED or self.completion.is_complete(phase):
            return False
        predecessor = previous_phase(phase)
        return predecessor is not None and not self.completion.is_complete(predecessor)

    def state_of(self, phase: Phase | int) -> PhaseState:
        phase = Phase.coerce(phase)
        if self.completion.is_complete(phase):
            return PhaseState.COMPLETE
        if self.is_locked(phase):
            return PhaseState.LOCKED
        if phase in self.drafted:
            return PhaseState.DRAFTED
        return PhaseState.UNLOCKED

    def next_phase_after(self, phase: Phase | int) -> Optional[Phase]:
        return next_phase_after(phase)

    def unlocked_phases(self) -> list[Phase]:
        return [phase for phase in PHASE_SEQUENCE if not self.is_locked(phase)]

    def first_incomplete_phase(self) -> Phase:
        """Phase to open first: the earliest incomplete one, or phase 1 once all are done."""
        for phase in PHASE_SEQUENCE:
            if not self.completion.is_complete(phase):
                return phase
        return PHASE_SEQUENCE[0]

    def states(self) -> dict[Phase, PhaseState]:
        return {phase: self.state_of(phase) for phase in PHASE_SEQUENCE}
