"""
Profile State Controller

Orchestrates the phased profile completion flow. It is the only writer of the
in-session Profile snapshot and the derived PhaseCompletionState: every change
goes through a phase-scoped update that validates, then either defers to the
local draft store or submits through the gateway.

Lifecycle: create -> load_profile() -> update_phase*(...) -> close()

Example Usage:
    gateway = ProfileGateway.from_params(params)
    store = LocalDraftStore(params.drafts.draft_dir)

    async with ProfileStateController(gateway, store) as controller:
        await controller.load_profile()
        result = await controller.update_phase1({"first_name": "Jane", "last_name": "Doe"})
        if result.status is UpdateStatus.DEFERRED:
            ...  # move on to the contact section
        navigation = controller.navigation()
        navigation.is_locked(Phase.PHASE_2)
"""

import uuid
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

from src.models.config import WorkflowParams
from src.models.phase import (
    PHASE_SEQUENCE,
    DraftReason,
    Phase,
    PhaseCompletionState,
)
from src.models.profile import PHASE_FIELDS, Profile
from src.models.validation import FieldRule, ValidationResult
from src.utils.draft_store import LocalDraftStore
from src.utils.field_validator import (
    failures,
    is_blank,
    selects_other,
    validate,
    validate_fields,
)
from src.utils.logger import configure_logging, get_logger
from src.utils.phase_rules import (
    COMPLETION_FIELDS,
    DEFAULT_YEAR_WINDOW,
    OTHER_COMPANIONS,
    deferrable_fields,
    normalize_payload,
    rules_for,
    section_of,
)
from src.utils.profile_gateway import (
    DEFAULT_FAILURE_MESSAGE,
    GatewayResult,
    ProfileGateway,
    ProfileGatewayError,
)
from src.workflow.phase_navigation import PhaseNavigationPolicy, next_phase_after

LOAD_FAILURE_MESSAGE = "Failed to load profile"
IN_PROGRESS_MESSAGE = "A submission for this phase is already in progress"
SESSION_CLOSED_MESSAGE = "Profile session has ended"


class UpdateStatus(str, Enum):
    """Outcome of a phase update."""

    SUBMITTED = "submitted"
    DEFERRED = "deferred"
    INVALID = "invalid"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"


class PhaseUpdateResult(BaseModel):
    """Result value returned by every update operation (never raised).

    Attributes:
        phase: Phase the update targeted
        status: Outcome
        validation: Per-field results from the validation pass (empty if not reached)
        message: User-facing message (gateway failures are passed through verbatim)
        next_phase: Phase to advance to after a successful submission
        pending_fields: Prerequisite fields a deferred submission is waiting for
        next_section: Form section to open after a deferral
    """

    phase: Phase
    status: UpdateStatus
    validation: list[ValidationResult] = Field(default_factory=list)
    message: Optional[str] = None
    next_phase: Optional[Phase] = None
    pending_fields: list[str] = Field(default_factory=list)
    next_section: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True when the caller should move forward (submitted or deferred)."""
        return self.status in (UpdateStatus.SUBMITTED, UpdateStatus.DEFERRED)

    @property
    def errors(self) -> list[ValidationResult]:
        return failures(self.validation)

    def error_messages(self) -> dict[str, str]:
        return {result.field: result.message or "" for result in self.errors}


class LoadResult(BaseModel):
    """Result of load_profile()."""

    success: bool
    message: Optional[str] = None


def derive_completion(
    profile: Optional[Profile], count_optional_phases: bool = False
) -> PhaseCompletionState:
    """
    Derive phase completion from a profile snapshot.

    Phase 1: first name, last name, and phone present
    Phase 2: enrollment status, major, program, graduation year present
             (and the "specify other" text when the status is Other)
    Phase 3: role, at least one skill, at least one support interest
             (and the "specify other" texts where Other is selected)
    Phase 5: notes non-empty

    Args:
        profile: Current snapshot (None before the first load)
        count_optional_phases: Include phase 5 in the percentage denominator

    Returns:
        PhaseCompletionState with percentage = round(100 * done / counted)
    """
    phases: dict[Phase, bool] = {}
    missing_fields: dict[str, list[str]] = {}

    for phase in PHASE_SEQUENCE:
        if profile is None:
            missing = list(COMPLETION_FIELDS[phase])
        else:
            missing = [f for f in COMPLETION_FIELDS[phase] if is_blank(getattr(profile, f))]
            for selector, other_field in OTHER_COMPANIONS.get(phase, ()):
                if selects_other(getattr(profile, selector)) and is_blank(
                    getattr(profile, other_field)
                ):
                    missing.append(other_field)
        phases[phase] = not missing
        if missing:
            missing_fields[phase.key] = missing

    counted = [p for p in PHASE_SEQUENCE if count_optional_phases or not p.optional]
    done = sum(1 for p in counted if phases[p])
    percentage = round(100 * done / len(counted))

    return PhaseCompletionState(
        phases=phases, percentage=percentage, missing_fields=missing_fields
    )


class ProfileStateController:
    """Owner and sole mutator of the profile snapshot and its completion state."""

    def __init__(
        self,
        gateway: ProfileGateway,
        draft_store: LocalDraftStore,
        count_optional_phases: bool = False,
        year_window: int = DEFAULT_YEAR_WINDOW,
        current_year: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ):
        """
        Initialize the controller.

        Args:
            gateway: Phase Submission Gateway
            draft_store: Local Draft Store
            count_optional_phases: Count phase 5 in the completion percentage
            year_window: Graduation-year window either side of the current year
            current_year: Fixed reference year for graduation validation (tests)
            correlation_id: Correlation ID for logging (auto-generated if None)
        """
        self.gateway = gateway
        self.draft_store = draft_store
        self.count_optional_phases = count_optional_phases
        self.year_window = year_window
        self.current_year = current_year
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.logger = get_logger(
            correlation_id=self.correlation_id,
            component="profile_controller",
        )

        self._profile: Optional[Profile] = None
        self._completion = derive_completion(None, count_optional_phases)
        self._deferred: set[Phase] = set()
        self._in_flight: set[Phase] = set()
        self._revisions: dict[Phase, int] = {phase: 0 for phase in PHASE_SEQUENCE}
        self._closed = False

    @classmethod
    def from_params(
        cls,
        params: WorkflowParams,
        gateway: Optional[ProfileGateway] = None,
        draft_store: Optional[LocalDraftStore] = None,
        correlation_id: Optional[str] = None,
    ) -> "ProfileStateController":
        """Build a controller and its collaborators from workflow configuration."""
        configure_logging(log_level=params.log_level)
        correlation_id = correlation_id or str(uuid.uuid4())
        return cls(
            gateway=gateway or ProfileGateway.from_params(params, correlation_id=correlation_id),
            draft_store=draft_store
            or LocalDraftStore(params.drafts.draft_dir, correlation_id=correlation_id),
            count_optional_phases=params.completion.count_optional_phases,
            year_window=params.graduation_year_window,
            correlation_id=correlation_id,
        )

    async def __aenter__(self) -> "ProfileStateController":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """End the session; later updates fail without touching state."""
        self._closed = True
        self.logger.info("Profile session closed", deferred=[p.key for p in self._deferred])

    @property
    def profile(self) -> Optional[Profile]:
        return self._profile

    @property
    def completion(self) -> PhaseCompletionState:
        return self._completion

    @property
    def deferred_phases(self) -> frozenset[Phase]:
        return frozenset(self._deferred)

    def revision(self, phase: Phase | int) -> int:
        """Number of confirmed submissions for a phase in this session."""
        return self._revisions[Phase.coerce(phase)]

    def is_submitting(self, phase: Phase | int) -> bool:
        return Phase.coerce(phase) in self._in_flight

    def navigation(self) -> PhaseNavigationPolicy:
        """Navigation policy over the current snapshot."""
        return PhaseNavigationPolicy(self._completion, drafted=self._deferred)

    def recompute_completion(self) -> PhaseCompletionState:
        """Re-derive completion from the current profile snapshot."""
        self._completion = derive_completion(self._profile, self.count_optional_phases)
        return self._completion

    def rules(self, phase: Phase) -> dict[str, FieldRule]:
        return rules_for(phase, current_year=self.current_year, year_window=self.year_window)

    async def load_profile(self) -> LoadResult:
        """
        Fetch the current profile and recompute completion.

        On failure the previous snapshot is kept untouched and a user-visible
        message is returned.
        """
        if self._closed:
            return LoadResult(success=False, message=SESSION_CLOSED_MESSAGE)

        try:
            profile = await self.gateway.fetch_profile()
        except ProfileGatewayError as e:
            self.logger.error("Failed to load profile", error=str(e))
            return LoadResult(success=False, message=LOAD_FAILURE_MESSAGE)
        except Exception as e:
            self.logger.exception("Unexpected error loading profile", error=str(e))
            return LoadResult(success=False, message=LOAD_FAILURE_MESSAGE)

        previous = self._completion
        self._profile = profile
        completion = self.recompute_completion()

        regressed = [
            p.key for p in PHASE_SEQUENCE if previous.is_complete(p) and not completion.is_complete(p)
        ]
        if regressed:
            self.logger.warning("Server profile no longer completes phases", phases=regressed)

        self._restore_deferred()
        await self._check_server_completion()

        self.logger.info(
            "Profile loaded",
            percentage=completion.percentage,
            completed=[p.key for p in completion.completed_phases()],
            deferred=sorted(p.key for p in self._deferred),
        )
        return LoadResult(success=True)

    def _restore_deferred(self) -> None:
        """Pick up deferred drafts left by an earlier session."""
        for phase in PHASE_SEQUENCE:
            if self._completion.is_complete(phase):
                self._deferred.discard(phase)
                continue
            draft = self.draft_store.load_draft(phase.key)
            if draft is not None and draft.reason is DraftReason.DEFERRED:
                self._deferred.add(phase)

    async def _check_server_completion(self) -> None:
        """Log drift between the server's completion figure and the local derivation."""
        try:
            server = await self.gateway.fetch_completion()
        except ProfileGatewayError as e:
            self.logger.debug("Server completion unavailable", error=str(e))
            return

        reported = server.get("percentage") if isinstance(server, dict) else None
        if reported is not None and reported != self._completion.percentage:
            self.logger.warning(
                "Completion drift between server and local derivation",
                server_percentage=reported,
                local_percentage=self._completion.percentage,
            )

    async def update_phase(
        self, phase: Phase | int, raw_data: Mapping[str, Any]
    ) -> PhaseUpdateResult:
        """
        Validate and persist one phase (or one section of it).

        Args:
            phase: Phase to update
            raw_data: Field values from the form

        Returns:
            PhaseUpdateResult; this method does not raise for validation,
            deferral, or remote failures
        """
        phase = Phase.coerce(phase)
        log = self.logger.bind(phase=phase.key)

        if self._closed:
            return PhaseUpdateResult(
                phase=phase, status=UpdateStatus.FAILED, message=SESSION_CLOSED_MESSAGE
            )
        if phase in self._in_flight:
            log.warning("Submission already in flight")
            return PhaseUpdateResult(
                phase=phase, status=UpdateStatus.IN_PROGRESS, message=IN_PROGRESS_MESSAGE
            )

        self._in_flight.add(phase)
        try:
            return await self._update_phase(phase, dict(raw_data or {}), log)
        finally:
            self._in_flight.discard(phase)

    async def update_phase1(self, data: Mapping[str, Any]) -> PhaseUpdateResult:
        return await self.update_phase(Phase.PHASE_1, data)

    async def update_phase2(self, data: Mapping[str, Any]) -> PhaseUpdateResult:
        return await self.update_phase(Phase.PHASE_2, data)

    async def update_phase3(self, data: Mapping[str, Any]) -> PhaseUpdateResult:
        return await self.update_phase(Phase.PHASE_3, data)

    async def update_phase5(self, data: Mapping[str, Any]) -> PhaseUpdateResult:
        return await self.update_phase(Phase.PHASE_5, data)

    def _candidate(self, phase: Phase, raw_data: dict[str, Any]) -> dict[str, Any]:
        """Profile values, overlaid with the stored draft, overlaid with the submission."""
        rules = self.rules(phase)
        candidate: dict[str, Any] = {}
        if self._profile is not None:
            candidate.update(
                {k: v for k, v in self._profile.phase_values(phase).items() if not is_blank(v)}
            )
        draft = self.draft_store.load(phase.key) or {}
        candidate.update({k: v for k, v in draft.items() if k in rules})
        candidate.update({k: v for k, v in raw_data.items() if k in rules})
        return candidate

    async def _update_phase(
        self, phase: Phase, raw_data: dict[str, Any], log: Any
    ) -> PhaseUpdateResult:
        rules = self.rules(phase)
        ignored = sorted(set(raw_data) - set(rules))
        if ignored:
            log.debug("Ignoring fields outside the phase", fields=ignored)

        candidate = self._candidate(phase, raw_data)
        pending = [
            f
            for f in deferrable_fields(phase, raw_data)
            if f not in raw_data and is_blank(candidate.get(f))
        ]

        results = validate_fields(candidate, rules, skip=pending)
        failed = failures(results)
        if failed:
            log.info("Phase validation failed", fields=[r.field for r in failed])
            return PhaseUpdateResult(
                phase=phase,
                status=UpdateStatus.INVALID,
                validation=results,
                message=failed[0].message,
            )

        required_pending = [f for f in pending if rules[f].required]
        if required_pending:
            return self._defer(phase, candidate, results, required_pending, log)

        payload = normalize_payload(phase, candidate)
        try:
            result = await self.gateway.submit_phase(phase, payload)
        except Exception as e:
            log.exception("Gateway raised during submission", error=str(e))
            result = GatewayResult.fail(DEFAULT_FAILURE_MESSAGE)

        if not result.success or result.profile is None:
            reason = DraftReason.DEFERRED if phase in self._deferred else DraftReason.SUBMIT_FAILED
            self.draft_store.save(phase.key, candidate, reason=reason)
            log.error("Phase submission failed", message=result.message)
            return PhaseUpdateResult(
                phase=phase,
                status=UpdateStatus.FAILED,
                validation=results,
                message=result.message or DEFAULT_FAILURE_MESSAGE,
            )

        self._apply_profile(result.profile, owned_fields=PHASE_FIELDS[phase])
        self.draft_store.clear(phase.key)
        self._deferred.discard(phase)
        self._revisions[phase] += 1

        log.info(
            "Phase submitted",
            complete=self._completion.is_complete(phase),
            percentage=self._completion.percentage,
        )
        return PhaseUpdateResult(
            phase=phase,
            status=UpdateStatus.SUBMITTED,
            validation=results,
            message=result.message or f"Profile Phase {phase.value} updated successfully",
            next_phase=next_phase_after(phase),
        )

    def _defer(
        self,
        phase: Phase,
        candidate: dict[str, Any],
        results: list[ValidationResult],
        pending: list[str],
        log: Any,
    ) -> PhaseUpdateResult:
        saved = self.draft_store.save(phase.key, candidate, reason=DraftReason.DEFERRED)
        self._deferred.add(phase)
        log.info("Phase submission deferred", pending_fields=pending, draft_saved=saved)
        return PhaseUpdateResult(
            phase=phase,
            status=UpdateStatus.DEFERRED,
            validation=results,
            message="Saved. Complete the next section to finish this phase.",
            pending_fields=pending,
            next_section=section_of(phase, pending[0]),
        )

    def _apply_profile(self, profile: Profile, owned_fields: tuple[str, ...]) -> None:
        """
        Merge a profile returned by a write into the snapshot.

        Fields in ``owned_fields`` are taken as returned; any other field is
        taken only when the response carries a value, so a partial response
        never clears data belonging to another phase.
        """
        if self._profile is None:
            self._profile = profile
        else:
            updates = {
                name: getattr(profile, name)
                for name in Profile.model_fields
                if name in owned_fields or not is_blank(getattr(profile, name))
            }
            self._profile = self._profile.model_copy(update=updates)
        self.recompute_completion()

    async def update_photo(self, profile_photo_url: str) -> PhaseUpdateResult:
        """Replace the profile photo reference through the dedicated endpoint."""
        phase = Phase.PHASE_1
        rule = self.rules(phase)["profile_photo_url"].model_copy(update={"required": True})
        check = validate("profile_photo_url", profile_photo_url, rule)
        if not check.valid:
            return PhaseUpdateResult(
                phase=phase, status=UpdateStatus.INVALID, validation=[check], message=check.message
            )
        if self._closed:
            return PhaseUpdateResult(
                phase=phase, status=UpdateStatus.FAILED, message=SESSION_CLOSED_MESSAGE
            )

        try:
            result = await self.gateway.upload_photo(profile_photo_url.strip())
        except Exception as e:
            self.logger.exception("Gateway raised during photo upload", error=str(e))
            result = GatewayResult.fail("Failed to upload photo")

        if not result.success or result.profile is None:
            return PhaseUpdateResult(
                phase=phase,
                status=UpdateStatus.FAILED,
                validation=[check],
                message=result.message or "Failed to upload photo",
            )

        self._apply_profile(result.profile, owned_fields=("profile_photo_url",))
        return PhaseUpdateResult(
            phase=phase,
            status=UpdateStatus.SUBMITTED,
            validation=[check],
            message="Profile photo updated successfully",
        )

    def autosave_draft(
        self,
        phase: Phase | int,
        data: Mapping[str, Any],
        revision: Optional[int] = None,
    ) -> bool:
        """
        Write in-progress form data to the draft store.

        A no-op when the phase is already complete, or when a submission for
        the phase has been confirmed since ``revision`` was taken. Saved data
        is merged over the existing draft so a deferred section is kept.

        Returns:
            True if a draft was written
        """
        phase = Phase.coerce(phase)
        log = self.logger.bind(phase=phase.key)

        if self._completion.is_complete(phase):
            log.debug("Auto-save skipped, phase complete")
            return False
        if revision is not None and revision != self._revisions[phase]:
            log.warning(
                "Auto-save skipped, superseded by a confirmed submission",
                scheduled_revision=revision,
                current_revision=self._revisions[phase],
            )
            return False

        existing = self.draft_store.load(phase.key) or {}
        reason = DraftReason.DEFERRED if phase in self._deferred else DraftReason.AUTOSAVE
        return self.draft_store.save(phase.key, {**existing, **dict(data)}, reason=reason)
