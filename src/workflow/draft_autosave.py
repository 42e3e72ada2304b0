"""
Draft Auto-Saver

Debounced, per-phase background saving of in-progress form data. Each call to
schedule() restarts the phase's timer; when it fires, the data goes through
ProfileStateController.autosave_draft(), which drops the write if the phase was
completed or confirmed by a submission after the save was scheduled.

Example Usage:
    saver = DraftAutoSaver(controller, interval_seconds=30)
    saver.schedule(Phase.PHASE_2, {"major_program": "Computer Science"})
    ...
    await saver.flush()  # e.g. when the page is closed
"""

import asyncio
from typing import Any, Mapping

from src.models.config import WorkflowParams
from src.models.phase import Phase
from src.utils.logger import get_logger
from src.workflow.profile_controller import ProfileStateController

DEFAULT_AUTOSAVE_INTERVAL = 30.0


class DraftAutoSaver:
    """Per-phase debounce timers feeding the controller's draft auto-save."""

    def __init__(
        self,
        controller: ProfileStateController,
        interval_seconds: float = DEFAULT_AUTOSAVE_INTERVAL,
    ):
        """
        Args:
            controller: Controller whose draft store receives the saves
            interval_seconds: Quiet period after the last edit before saving
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than 0")
        self.controller = controller
        self.interval_seconds = interval_seconds
        self.logger = get_logger(
            correlation_id=controller.correlation_id, component="draft_autosave"
        )
        self._timers: dict[Phase, asyncio.Task] = {}
        self._payloads: dict[Phase, tuple[dict[str, Any], int]] = {}

    @classmethod
    def from_params(
        cls, controller: ProfileStateController, params: WorkflowParams
    ) -> "DraftAutoSaver":
        return cls(controller, interval_seconds=params.drafts.autosave_interval_seconds)

    @property
    def pending_phases(self) -> list[Phase]:
        return sorted(self._payloads)

    def schedule(self, phase: Phase | int, data: Mapping[str, Any]) -> None:
        """
        (Re)start the auto-save timer for a phase. Must be called from a running event loop.

        The controller's revision for the phase is captured now; a submission
        confirmed before the timer fires makes this save stale.
        """
        phase = Phase.coerce(phase)
        if self.controller.completion.is_complete(phase):
            self.logger.debug("Auto-save not scheduled, phase complete", phase=phase.key)
            return

        self._cancel_timer(phase)
        self._payloads[phase] = (dict(data), self.controller.revision(phase))
        self._timers[phase] = asyncio.get_running_loop().create_task(self._save_later(phase))

    async def _save_later(self, phase: Phase) -> None:
        await asyncio.sleep(self.interval_seconds)
        self._timers.pop(phase, None)
        self._write(phase)

    def _write(self, phase: Phase) -> bool:
        pending = self._payloads.pop(phase, None)
        if pending is None:
            return False
        data, revision = pending
        written = self.controller.autosave_draft(phase, data, revision=revision)
        self.logger.info("Auto-saved draft" if written else "Auto-save dropped", phase=phase.key)
        return written

    def _cancel_timer(self, phase: Phase) -> None:
        timer = self._timers.pop(phase, None)
        if timer is not None and not timer.done():
            timer.cancel()

    async def flush(self) -> int:
        """Write every pending save now. Returns the number of drafts written."""
        written = 0
        for phase in list(self._payloads):
            self._cancel_timer(phase)
            if self._write(phase):
                written += 1
        await asyncio.sleep(0)
        return written

    def cancel_all(self) -> None:
        """Drop every pending save without writing."""
        for phase in list(self._timers):
            self._cancel_timer(phase)
        self._payloads.clear()
