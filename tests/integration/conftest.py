"""
Integration Test Configuration

Provides an in-memory portal served through httpx.MockTransport, so the
scenarios exercise the real ProfileGateway (envelopes, retries, status
handling) together with the controller and the on-disk draft store.
When running in CI environment (CI=true), slow tests are automatically skipped.
"""

import json
import os
from typing import Any

import httpx
import pytest
from tenacity import wait_none

from src.utils.draft_store import LocalDraftStore
from src.utils.profile_gateway import ProfileGateway
from src.workflow.profile_controller import ProfileStateController

BASE_URL = "https://portal.example.org/api"
CURRENT_YEAR = 2026


class PortalStub:
    """Minimal profile service: stores the profile and answers the phase endpoints."""

    def __init__(self):
        self.profile: dict[str, Any] = {"id": "u-1", "email": "jane@example.org", "role": "incubatee"}
        self.requests: list[tuple[str, str, Any]] = []
        self.reject_with: dict[str, Any] | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))

        if request.method == "GET" and path == "/users/profile/extended":
            return httpx.Response(200, json={"success": True, "data": self.profile})
        if request.method == "GET" and path == "/users/profile/completion":
            return httpx.Response(404, json={"success": False, "message": "Not found"})
        if request.method == "PUT" and path.startswith("/users/profile/"):
            if self.reject_with is not None:
                return httpx.Response(400, json={"success": False, **self.reject_with})
            self.profile.update(body or {})
            return httpx.Response(
                200,
                json={"success": True, "data": self.profile, "message": "Profile updated"},
            )
        return httpx.Response(404, json={"success": False, "message": "Not found"})

    def writes(self) -> list[tuple[str, Any]]:
        return [(path, body) for method, path, body in self.requests if method == "PUT"]


@pytest.fixture
def portal() -> PortalStub:
    return PortalStub()


@pytest.fixture
def workflow(portal, tmp_path):
    """Build a controller talking to the portal stub; keyword args go to the controller."""

    def _make(**kwargs) -> ProfileStateController:
        gateway = ProfileGateway(
            base_url=BASE_URL,
            token="test-token",
            transport=httpx.MockTransport(portal.handler),
            retry_wait=wait_none(),
        )
        store = LocalDraftStore(draft_dir=str(tmp_path / "drafts"))
        return ProfileStateController(gateway, store, current_year=CURRENT_YEAR, **kwargs)

    return _make


@pytest.fixture
def is_ci_environment() -> bool:
    """
    Detect if tests are running in CI environment.

    Returns:
        True if CI environment variable is set to 'true'
    """
    return os.getenv("CI", "").lower() == "true"


@pytest.fixture(autouse=True)
def skip_slow_tests_in_ci(request, is_ci_environment):
    """
    Automatically skip slow integration tests when running in CI.

    Args:
        request: pytest request fixture
        is_ci_environment: Fixture indicating CI environment
    """
    if is_ci_environment and request.node.get_closest_marker("slow"):
        pytest.skip("Skipping slow test in CI environment")
