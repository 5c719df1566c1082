"""Feed HTTP Client - Imperative Shell.

This module fetches raw JSON from the seismic feeds.
All I/O is contained here; parsing is in the core module.
"""

import logging
from dataclasses import dataclass
from typing import Any

import requests


logger = logging.getLogger(__name__)


# Default timeout for feed requests (seconds)
DEFAULT_TIMEOUT = 10


@dataclass
class FeedResponse:
    """Response from a feed request.

    Attributes:
        success: Whether a JSON body was retrieved
        data: Decoded JSON body (None if failed)
        status_code: HTTP status code (0 if no response)
        error: Error message if failed
    """
    success: bool
    data: Any = None
    status_code: int = 0
    error: str | None = None


class FeedClient:
    """Client for fetching feed JSON over HTTP.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize feed client.

        Args:
            timeout: Request timeout in seconds
            session: Optional requests session to reuse connections
        """
        self.timeout = timeout
        self.session = session

    def fetch_json(self, url: str) -> FeedResponse:
        """Fetch and decode a JSON document.

        This method performs HTTP I/O. It never raises; every failure is
        reported through the returned FeedResponse.

        Args:
            url: Feed URL

        Returns:
            FeedResponse with the decoded body or an error
        """
        getter = self.session.get if self.session is not None else requests.get

        try:
            response = getter(
                url,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
        except requests.Timeout:
            logger.error("Feed request timed out after %ss: %s", self.timeout, url)
            return FeedResponse(success=False, error="Request timed out")
        except requests.RequestException as e:
            logger.error("Feed request failed: %s - %s", url, str(e))
            return FeedResponse(success=False, error=str(e))

        if not response.ok:
            logger.warning(
                "Feed returned non-2xx: %d - %s",
                response.status_code,
                url,
            )
            return FeedResponse(
                success=False,
                status_code=response.status_code,
                error=f"HTTP {response.status_code}",
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error("Feed returned invalid JSON: %s - %s", url, str(e))
            return FeedResponse(
                success=False,
                status_code=response.status_code,
                error=f"Invalid JSON: {e}",
            )

        return FeedResponse(
            success=True,
            data=data,
            status_code=response.status_code,
        )
