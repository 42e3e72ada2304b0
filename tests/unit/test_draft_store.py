"""
Unit tests for draft_store module.
"""

import json

from src.models.phase import DraftReason
from src.utils.draft_store import LocalDraftStore


class TestLocalDraftStore:
    """Test cases for LocalDraftStore class."""

    def test_initialization_creates_directory(self, tmp_path):
        """Test that LocalDraftStore creates the draft directory."""
        # Arrange
        draft_dir = tmp_path / "drafts"

        # Act
        LocalDraftStore(draft_dir=str(draft_dir))

        # Assert
        assert draft_dir.is_dir()

    def test_save_creates_jsonl_file(self, tmp_path):
        """Test that save writes a single JSONL record."""
        # Arrange
        store = LocalDraftStore(draft_dir=str(tmp_path))

        # Act
        saved = store.save("phase1", {"first_name": "Jane"}, reason=DraftReason.DEFERRED)

        # Assert
        assert saved is True
        draft_file = tmp_path / "profile_draft_phase1.jsonl"
        lines = draft_file.read_text().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["phase"] == "phase1"
        assert record["data"] == {"first_name": "Jane"}
        assert record["reason"] == "deferred"
        assert record["saved_at"]

    def test_save_replaces_previous_draft(self, tmp_path):
        """Test that a second save overwrites rather than appends."""
        # Arrange
        store = LocalDraftStore(draft_dir=str(tmp_path))
        store.save("phase2", {"major_program": "Biology"})

        # Act
        store.save("phase2", {"major_program": "Chemistry"})

        # Assert
        assert store.load("phase2") == {"major_program": "Chemistry"}
        assert not list(tmp_path.glob("*.tmp"))

    def test_load_missing_returns_none(self, tmp_path):
        store = LocalDraftStore(draft_dir=str(tmp_path))
        assert store.load("phase3") is None
        assert store.load_draft("phase3") is None

    def test_load_draft_returns_reason(self, tmp_path):
        # Arrange
        store = LocalDraftStore(draft_dir=str(tmp_path))
        store.save("phase1", {"first_name": "Jane"}, reason=DraftReason.SUBMIT_FAILED)

        # Act
        draft = store.load_draft("phase1")

        # Assert
        assert draft is not None
        assert draft.reason is DraftReason.SUBMIT_FAILED
        assert draft.data == {"first_name": "Jane"}

    def test_keys_are_isolated_per_phase(self, tmp_path):
        store = LocalDraftStore(draft_dir=str(tmp_path))
        store.save("phase1", {"first_name": "Jane"})
        store.save("phase5", {"additional_notes": "Hello"})

        assert store.keys() == ["phase1", "phase5"]
        assert store.load("phase1") == {"first_name": "Jane"}
        assert store.load("phase5") == {"additional_notes": "Hello"}

    def test_clear_removes_draft(self, tmp_path):
        # Arrange
        store = LocalDraftStore(draft_dir=str(tmp_path))
        store.save("phase1", {"first_name": "Jane"})

        # Act
        cleared = store.clear("phase1")

        # Assert
        assert cleared is True
        assert store.load("phase1") is None

    def test_clear_missing_is_noop(self, tmp_path):
        store = LocalDraftStore(draft_dir=str(tmp_path))
        assert store.clear("phase2") is True

    def test_clear_all(self, tmp_path):
        store = LocalDraftStore(draft_dir=str(tmp_path))
        store.save("phase1", {"first_name": "Jane"})
        store.save("phase2", {"major_program": "Biology"})

        store.clear_all()

        assert store.keys() == []


class TestDraftStoreFailSoft:
    """Storage failures are reported, never raised."""

    def test_corrupted_file_loads_as_none(self, tmp_path):
        # Arrange
        store = LocalDraftStore(draft_dir=str(tmp_path))
        (tmp_path / "profile_draft_phase1.jsonl").write_text("{not json\n")

        # Act & Assert
        assert store.load("phase1") is None

    def test_record_with_wrong_shape_loads_as_none(self, tmp_path):
        store = LocalDraftStore(draft_dir=str(tmp_path))
        (tmp_path / "profile_draft_phase1.jsonl").write_text('{"data": "nope"}\n')

        assert store.load_draft("phase1") is None

    def test_unwritable_directory(self, tmp_path):
        """A file where the draft directory should be makes every operation fail soft."""
        # Arrange
        blocker = tmp_path / "drafts"
        blocker.write_text("not a directory")

        # Act
        store = LocalDraftStore(draft_dir=str(blocker))

        # Assert
        assert store.save("phase1", {"first_name": "Jane"}) is False
        assert store.load("phase1") is None
        assert store.keys() == []

    def test_unserialisable_data(self, tmp_path):
        store = LocalDraftStore(draft_dir=str(tmp_path))
        assert store.save("phase1", {"first_name": object()}) is False
        assert store.load("phase1") is None

    def test_failed_replace_leaves_no_temp_file(self, tmp_path, mocker):
        # Arrange
        store = LocalDraftStore(draft_dir=str(tmp_path))
        store.save("phase1", {"first_name": "Jane"})
        mocker.patch("src.utils.draft_store.os.replace", side_effect=OSError("disk full"))

        # Act
        saved = store.save("phase1", {"first_name": "Janet"})

        # Assert
        assert saved is False
        assert not list(tmp_path.glob("*.tmp"))
        assert store.load("phase1") == {"first_name": "Jane"}

    def test_invalid_key(self, tmp_path):
        store = LocalDraftStore(draft_dir=str(tmp_path))
        assert store.save("../escape", {"first_name": "Jane"}) is False
        assert store.load("../escape") is None
        assert store.clear("../escape") is False
