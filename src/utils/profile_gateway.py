"""Phase Submission Gateway.

Thin async transport boundary to the portal's profile service. It validates
nothing; it sends phase payloads and turns every outcome into either an
updated Profile or a failure message. Transient transport errors (timeouts,
network errors) are retried here with exponential backoff; nothing above this
layer retries.

Endpoints:
    GET  /users/profile/extended     -> current profile
    GET  /users/profile/completion   -> server-side completion summary
    PUT  /users/profile/phase{N}     -> submit one phase (N in 1, 2, 3, 5)
    PUT  /users/profile/photo        -> replace the profile photo

Responses use the envelope {"success": bool, "data": ..., "message": str}.
"""

from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from src.models.config import WorkflowParams
from src.models.phase import Phase
from src.models.profile import Profile
from src.utils.logger import get_logger

DEFAULT_FAILURE_MESSAGE = "Failed to update profile"
RETRYABLE_ERRORS = (httpx.TimeoutException, httpx.NetworkError)


class ProfileGatewayError(Exception):
    """Raised by the read path when the profile service cannot supply data."""

    pass


class GatewayResult(BaseModel):
    """Outcome of a write to the profile service."""

    success: bool
    profile: Optional[Profile] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, profile: Profile, message: Optional[str] = None) -> "GatewayResult":
        return cls(success=True, profile=profile, message=message)

    @classmethod
    def fail(cls, message: str) -> "GatewayResult":
        return cls(success=False, message=message)


def _envelope(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class ProfileGateway:
    """HTTP client for the phased profile endpoints."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        correlation_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        """Initialize the gateway.

        Args:
            base_url: API root, e.g. "https://portal.example.org/api"
            token: Bearer token for the Authorization header
            timeout: Request timeout in seconds (default: 30)
            max_retries: Attempts for transient transport errors (default: 3)
            correlation_id: Correlation ID for logging
            transport: Optional httpx transport (tests pass httpx.MockTransport)
            retry_wait: Optional tenacity wait strategy between attempts
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.max_retries = max_retries
        self.transport = transport
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)
        self.logger: Any = get_logger(
            correlation_id=correlation_id,
            component="profile_gateway",
        )

    @classmethod
    def from_params(
        cls,
        params: WorkflowParams,
        correlation_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ProfileGateway":
        """Build a gateway from workflow configuration."""
        return cls(
            base_url=params.api.base_url,
            token=params.api_token(),
            timeout=params.api.timeout_seconds,
            max_retries=params.api.max_retries,
            correlation_id=correlation_id,
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self, method: str, path: str, payload: Optional[dict[str, Any]] = None
    ) -> httpx.Response:
        """Send one request, retrying transient transport errors.

        Raises:
            httpx.TimeoutException: After max retries exceeded
            httpx.NetworkError: After max retries exceeded
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self.retry_wait,
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    self.logger.info(
                        "Retrying profile request",
                        method=method,
                        path=path,
                        attempt=attempt.retry_state.attempt_number,
                    )
                async with httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=self.timeout,
                    headers=self._headers(),
                    transport=self.transport,
                ) as client:
                    return await client.request(method, path, json=payload)
        raise AssertionError("unreachable")  # pragma: no cover

    async def fetch_profile(self) -> Profile:
        """Fetch the participant's current profile.

        Returns:
            Profile snapshot from the system of record

        Raises:
            ProfileGatewayError: On transport failure, error status, or a malformed body
        """
        body = await self._get("/users/profile/extended")
        try:
            return Profile.model_validate(body.get("data") or {})
        except ValidationError as e:
            self.logger.error("Profile payload invalid", error=str(e))
            raise ProfileGatewayError("Profile service returned an invalid profile") from e

    async def fetch_completion(self) -> dict[str, Any]:
        """Fetch the server-side completion summary ({percentage, phases, missingFields}).

        Raises:
            ProfileGatewayError: On transport failure, error status, or a malformed body
        """
        body = await self._get("/users/profile/completion")
        data = body.get("data")
        if not isinstance(data, dict):
            raise ProfileGatewayError("Profile service returned no completion data")
        return data

    async def _get(self, path: str) -> dict[str, Any]:
        try:
            response = await self._request("GET", path)
        except httpx.HTTPError as e:
            self.logger.error("Profile request failed", path=path, error=str(e))
            raise ProfileGatewayError(f"Could not reach profile service: {e}") from e

        body = _envelope(response)
        if response.is_error or body.get("success") is False:
            message = body.get("message") or f"Profile service returned {response.status_code}"
            self.logger.error(
                "Profile request rejected", path=path, status_code=response.status_code
            )
            raise ProfileGatewayError(message)
        return body

    async def submit_phase(self, phase: Phase, data: dict[str, Any]) -> GatewayResult:
        """Submit one phase's payload.

        Args:
            phase: Phase being submitted
            data: Normalised phase payload

        Returns:
            GatewayResult with the updated profile, or a failure message
        """
        path = f"/users/profile/{phase.key}"
        self.logger.info("Submitting phase", path=path, fields=sorted(data))
        return await self._write(path, data)

    async def submit_phase1(self, data: dict[str, Any]) -> GatewayResult:
        return await self.submit_phase(Phase.PHASE_1, data)

    async def submit_phase2(self, data: dict[str, Any]) -> GatewayResult:
        return await self.submit_phase(Phase.PHASE_2, data)

    async def submit_phase3(self, data: dict[str, Any]) -> GatewayResult:
        return await self.submit_phase(Phase.PHASE_3, data)

    async def submit_phase5(self, data: dict[str, Any]) -> GatewayResult:
        return await self.submit_phase(Phase.PHASE_5, data)

    async def upload_photo(self, profile_photo_url: str) -> GatewayResult:
        """Replace the profile photo reference."""
        return await self._write(
            "/users/profile/photo", {"profile_photo_url": profile_photo_url}
        )

    async def _write(self, path: str, payload: dict[str, Any]) -> GatewayResult:
        try:
            response = await self._request("PUT", path, payload)
        except httpx.HTTPError as e:
            self.logger.error("Profile update failed", path=path, error=str(e))
            return GatewayResult.fail(DEFAULT_FAILURE_MESSAGE)

        body = _envelope(response)
        if response.is_error or not body.get("success"):
            message = body.get("message") or DEFAULT_FAILURE_MESSAGE
            self.logger.error(
                "Profile update rejected",
                path=path,
                status_code=response.status_code,
                message=message,
            )
            return GatewayResult.fail(message)

        data = body.get("data")
        try:
            if isinstance(data, dict) and data:
                profile = Profile.model_validate(data)
            else:
                # Some endpoints acknowledge without echoing the entity
                profile = await self.fetch_profile()
        except (ValidationError, ProfileGatewayError) as e:
            self.logger.error("Updated profile unavailable", path=path, error=str(e))
            return GatewayResult.fail("Profile saved but could not be reloaded")

        self.logger.info("Profile updated", path=path, status_code=response.status_code)
        return GatewayResult.ok(profile, message=body.get("message"))
