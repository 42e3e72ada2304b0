"""
Shared test fixtures.

FakeProfileGateway stands in for ProfileGateway at the controller boundary:
it keeps the remote profile as a dict, applies submitted payloads to it, and
records every call.
"""

import asyncio
from typing import Any, Optional

import pytest

from src.models.phase import Phase
from src.models.profile import Profile
from src.utils.draft_store import LocalDraftStore
from src.utils.profile_gateway import GatewayResult, ProfileGatewayError
from src.workflow.profile_controller import ProfileStateController

CURRENT_YEAR = 2026


class FakeProfileGateway:
    """In-memory profile service."""

    def __init__(self, profile: Optional[dict[str, Any]] = None):
        self.remote: dict[str, Any] = {"id": "u-1", "email": "jane@example.org", **(profile or {})}
        self.submissions: list[tuple[Phase, dict[str, Any]]] = []
        self.photos: list[str] = []
        self.fail_with: Optional[str] = None
        self.raise_error: Optional[Exception] = None
        self.fetch_error: Optional[Exception] = None
        self.completion: Optional[dict[str, Any]] = None
        self.partial_responses = False
        self.release: Optional[asyncio.Event] = None

    async def fetch_profile(self) -> Profile:
        if self.fetch_error is not None:
            raise self.fetch_error
        return Profile.model_validate(self.remote)

    async def fetch_completion(self) -> dict[str, Any]:
        if self.completion is None:
            raise ProfileGatewayError("Profile service returned no completion data")
        return self.completion

    async def submit_phase(self, phase: Phase, data: dict[str, Any]) -> GatewayResult:
        self.submissions.append((phase, dict(data)))
        if self.release is not None:
            await self.release.wait()
        if self.raise_error is not None:
            raise self.raise_error
        if self.fail_with is not None:
            return GatewayResult.fail(self.fail_with)
        self.remote.update(data)
        returned = data if self.partial_responses else self.remote
        return GatewayResult.ok(
            Profile.model_validate(returned),
            message=f"Profile Phase {phase.value} updated successfully",
        )

    async def upload_photo(self, profile_photo_url: str) -> GatewayResult:
        self.photos.append(profile_photo_url)
        if self.fail_with is not None:
            return GatewayResult.fail(self.fail_with)
        self.remote["profile_photo_url"] = profile_photo_url
        return GatewayResult.ok(Profile.model_validate(self.remote))


@pytest.fixture
def gateway() -> FakeProfileGateway:
    return FakeProfileGateway()


@pytest.fixture
def draft_store(tmp_path) -> LocalDraftStore:
    return LocalDraftStore(draft_dir=str(tmp_path / "drafts"))


@pytest.fixture
def controller(gateway, draft_store) -> ProfileStateController:
    return ProfileStateController(
        gateway=gateway,
        draft_store=draft_store,
        current_year=CURRENT_YEAR,
        correlation_id="test-session",
    )


@pytest.fixture
def make_controller(draft_store):
    """Build a controller over a gateway preloaded with the given remote profile."""

    def _make(profile: Optional[dict[str, Any]] = None, **kwargs) -> ProfileStateController:
        return ProfileStateController(
            gateway=FakeProfileGateway(profile),
            draft_store=draft_store,
            current_year=CURRENT_YEAR,
            **kwargs,
        )

    return _make
