"""Push Notification Client - Imperative Shell.

This module hands alerts to Firebase Cloud Messaging through the
FCM HTTP v1 API. All I/O is contained here; alert content is built by
core.formatter.

Authentication uses Application Default Credentials via google-auth.
"""

import logging
from dataclasses import dataclass
from typing import Any

import google.auth
import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession

from quakewatch.core.formatter import Alert


logger = logging.getLogger(__name__)


FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"

# Default timeout for FCM requests (seconds)
DEFAULT_TIMEOUT = 10


@dataclass
class PushResponse:
    """Response from FCM.

    Attributes:
        success: Whether the message was accepted
        status_code: HTTP status code (0 if no response)
        message_name: FCM message name on success
        error: Error message if failed
    """
    success: bool
    status_code: int = 0
    message_name: str | None = None
    error: str | None = None


def build_fcm_message(alert: Alert) -> dict[str, Any]:
    """Translate an alert into an FCM v1 message body.

    Pure function.
    """
    payload = alert.to_payload()
    hint = payload["priorityHint"]

    return {
        "message": {
            "topic": payload["topic"],
            "notification": {
                "title": payload["title"],
                "body": payload["body"],
            },
            "android": {
                "priority": hint["android"].upper(),
            },
            "apns": {
                "headers": {
                    "apns-priority": hint["apns"],
                },
            },
            "data": {
                "tier": alert.tier.value,
            },
        }
    }


class PushClient:
    """Client for sending alerts through FCM.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(
        self,
        project_id: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize push client.

        Args:
            project_id: Firebase project ID (None to use the ADC project)
            timeout: Request timeout in seconds
            session: Authorized session (created lazily if not provided)
        """
        self.project_id = project_id
        self.timeout = timeout
        self._session = session

    @property
    def session(self) -> requests.Session:
        """Lazy initialization of the authorized session."""
        if self._session is None:
            credentials, default_project = google.auth.default(scopes=[FCM_SCOPE])
            if self.project_id is None:
                self.project_id = default_project
            self._session = AuthorizedSession(credentials)
        return self._session

    def send(self, alert: Alert) -> PushResponse:
        """Send an alert to its topic.

        This method performs HTTP I/O. It never raises.

        Args:
            alert: Alert built by the notification policy

        Returns:
            PushResponse indicating success or failure
        """
        logger.info("Sending %s push to topic %s", alert.tier.value, alert.topic)

        try:
            session = self.session
            if not self.project_id:
                return PushResponse(success=False, error="No Firebase project configured")

            response = session.post(
                FCM_SEND_URL.format(project_id=self.project_id),
                json=build_fcm_message(alert),
                timeout=self.timeout,
            )

        except requests.Timeout:
            logger.error("FCM request timed out")
            return PushResponse(success=False, error="Request timed out")
        except requests.RequestException as e:
            logger.error("FCM request failed: %s", str(e))
            return PushResponse(success=False, error=str(e))
        except GoogleAuthError as e:
            logger.error("FCM credentials unavailable: %s", str(e))
            return PushResponse(success=False, error=str(e))

        if response.status_code == 200:
            try:
                name = response.json().get("name")
            except ValueError:
                name = None
            logger.info("Push accepted by FCM: %s", name)
            return PushResponse(
                success=True,
                status_code=response.status_code,
                message_name=name,
            )

        logger.warning(
            "FCM returned non-200: %d - %s",
            response.status_code,
            response.text,
        )
        return PushResponse(
            success=False,
            status_code=response.status_code,
            error=response.text,
        )
