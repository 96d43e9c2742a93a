"""
HTTP client for the FlashLearn backend.

Only the set-detail endpoint is consumed by the quiz engine.
"""
import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised when a backend request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FlashLearnClient:
    """Async HTTP client for the FlashLearn REST API."""

    SET_DETAIL_ENDPOINT = "/api/set/{set_id}"

    def __init__(
        self,
        base_url: str,
        timeout_ms: int = 15000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Backend base URL, e.g. http://127.0.0.1:3001
            timeout_ms: Request timeout in milliseconds
            transport: Optional transport override (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_ms / 1000.0
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout_seconds),
            follow_redirects=True,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "FlashLearnClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @staticmethod
    def _headers(token: Optional[str]) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Requested-With": "XMLHttpRequest",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def get_set(self, set_id: str, token: str) -> Dict[str, Any]:
        """
        Fetch a set with its cards.

        Args:
            set_id: Identifier of the flashcard set
            token: Bearer token of the signed-in user

        Returns:
            Response payload: {'success', 'set', 'cards', 'message'}

        Raises:
            ApiError: On network failure, non-2xx status or a malformed body
        """
        path = self.SET_DETAIL_ENDPOINT.format(set_id=set_id)
        try:
            response = await self.client.get(path, headers=self._headers(token))
        except httpx.TimeoutException as e:
            logger.warning(f"Set detail request timed out for set {set_id}: {e}")
            raise ApiError(f"Request timed out fetching set {set_id}") from e
        except httpx.HTTPError as e:
            logger.error(f"Set detail request failed for set {set_id}: {e}")
            raise ApiError(f"Network error fetching set {set_id}: {e}") from e

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(
                f"Set detail request for set {set_id} returned {response.status_code}: {message}"
            )
            raise ApiError(message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON in set detail response: {e}", response.status_code) from e

        if not isinstance(data, dict):
            raise ApiError("Set detail response must be a JSON object", response.status_code)
        return data

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return f"HTTP {response.status_code}"
