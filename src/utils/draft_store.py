"""
Local Draft Store Module

Persists not-yet-submitted phase data as JSON Lines files so a participant's
work survives a reload. One file per phase key; a new save replaces the
previous draft for that key.

Every operation fails soft: a storage problem is logged and reported as
False/None, never raised.

Example Usage:
    from src.utils.draft_store import LocalDraftStore
    from src.models.phase import DraftReason

    store = LocalDraftStore(draft_dir="drafts")

    store.save("phase1", {"first_name": "Jane", "last_name": "Doe"}, reason=DraftReason.DEFERRED)
    store.load("phase1")        # {"first_name": "Jane", "last_name": "Doe"}
    store.load_draft("phase1")  # PhaseDraft(phase="phase1", reason=DEFERRED, ...)
    store.clear("phase1")
"""

import contextlib
import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional

import jsonlines
from pydantic import ValidationError

from src.models.phase import DraftReason, PhaseDraft
from src.utils.logger import get_logger

DRAFT_FILE_PREFIX = "profile_draft_"
_KEY_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
_STORAGE_ERRORS = (OSError, TypeError, ValueError, jsonlines.Error)


class LocalDraftStore:
    """Key/value draft persistence keyed by phase key (e.g. "phase1")."""

    def __init__(self, draft_dir: str = "drafts", correlation_id: Optional[str] = None):
        """
        Initialize LocalDraftStore.

        Args:
            draft_dir: Directory path for draft files (default: "drafts")
            correlation_id: Correlation ID for logging
        """
        self.draft_dir = Path(draft_dir)
        self.logger = get_logger(correlation_id=correlation_id, component="draft_store")
        try:
            self.draft_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.logger.warning(
                "Draft directory unavailable", draft_dir=str(self.draft_dir), error=str(e)
            )

    def _path(self, key: str) -> Path:
        if not isinstance(key, str) or not _KEY_PATTERN.fullmatch(key):
            raise ValueError(f"Invalid draft key: {key!r}")
        return self.draft_dir / f"{DRAFT_FILE_PREFIX}{key}.jsonl"

    def save(
        self,
        key: str,
        data: Mapping[str, Any],
        reason: DraftReason = DraftReason.AUTOSAVE,
    ) -> bool:
        """
        Save draft data for a phase, replacing any previous draft.

        Args:
            key: Phase key (e.g., "phase1")
            data: JSON-serialisable field values
            reason: Why the draft is being written

        Returns:
            True if the draft was written, False if storage failed
        """
        tmp_path = None
        try:
            path = self._path(key)
            draft = PhaseDraft(phase=key, data=dict(data), reason=reason)
            record = draft.model_dump(mode="json")
            tmp_path = path.with_suffix(".jsonl.tmp")
            with jsonlines.open(tmp_path, mode="w") as writer:
                writer.write(record)
            os.replace(tmp_path, path)
        except _STORAGE_ERRORS as e:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink(missing_ok=True)
            self.logger.warning(
                "Failed to save draft", draft_key=key, reason=str(reason), error=str(e)
            )
            return False

        self.logger.info(
            "Draft saved", draft_key=key, reason=draft.reason.value, fields=sorted(draft.data)
        )
        return True

    def load_draft(self, key: str) -> Optional[PhaseDraft]:
        """
        Load the stored draft record for a phase.

        Args:
            key: Phase key (e.g., "phase1")

        Returns:
            The PhaseDraft, or None if absent, unreadable, or corrupted
        """
        try:
            path = self._path(key)
            if not path.exists():
                return None
            record = None
            with jsonlines.open(path) as reader:
                for record in reader:
                    pass
            if record is None:
                return None
            return PhaseDraft.model_validate(record)
        except (ValidationError, *_STORAGE_ERRORS) as e:
            self.logger.warning("Failed to load draft", draft_key=key, error=str(e))
            return None

    def load(self, key: str) -> Optional[dict[str, Any]]:
        """
        Load draft field values for a phase.

        Args:
            key: Phase key (e.g., "phase1")

        Returns:
            The saved field values, or None if there is no usable draft
        """
        draft = self.load_draft(key)
        return draft.data if draft is not None else None

    def clear(self, key: str) -> bool:
        """
        Discard the draft for a phase.

        Returns:
            True if no draft remains, False if removal failed
        """
        try:
            self._path(key).unlink(missing_ok=True)
        except _STORAGE_ERRORS as e:
            self.logger.warning("Failed to clear draft", draft_key=key, error=str(e))
            return False
        self.logger.debug("Draft cleared", draft_key=key)
        return True

    def keys(self) -> list[str]:
        """List phase keys that currently have a stored draft."""
        try:
            files = sorted(self.draft_dir.glob(f"{DRAFT_FILE_PREFIX}*.jsonl"))
        except OSError as e:
            self.logger.warning("Failed to list drafts", error=str(e))
            return []
        return [f.name[len(DRAFT_FILE_PREFIX) : -len(".jsonl")] for f in files]

    def clear_all(self) -> None:
        """Discard every stored draft."""
        for key in self.keys():
            self.clear(key)
