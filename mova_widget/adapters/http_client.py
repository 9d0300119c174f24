"""HTTP client for the remote todo server.

Wire contract:
    POST {server}/create   Basic auth, JSON body {"title": text}
    POST {server}/restart  Basic auth, no body

Status classification for /create:
    2xx      -> success
    401      -> auth failure (never retried)
    502, 503 -> server unavailable (restart candidate)
    other    -> other failure "http_<status>"
    transport error, timeout or unusable URL -> other failure "network_error"
"""

from __future__ import annotations

import logging

import httpx

from mova_widget.core.models import SubmissionOutcome
from mova_widget.core.utils import normalize_server_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0
SERVER_UNAVAILABLE_STATUSES = frozenset({502, 503})

# InvalidURL is not an HTTPError subclass; a bad stored URL surfaces here.
REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


class HttpSubmissionClient:
    """httpx-backed implementation of ``SubmissionClientProtocol``.

    Holds no state between calls beyond the connection pool; every
    ``submit_once`` issues exactly one request with no transport-level
    retries (retries belong to the orchestrator).
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            timeout_seconds: Per-request timeout.
            transport: Optional transport override (tests use
                ``httpx.MockTransport``).
        """
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=min(10.0, timeout_seconds)),
            transport=transport,
            follow_redirects=False,
        )

    def submit_once(
        self,
        server_url: str,
        username: str,
        password: str,
        text: str,
    ) -> SubmissionOutcome:
        url = f"{normalize_server_url(server_url)}/create"
        try:
            response = self._client.post(
                url,
                json={"title": text},
                auth=httpx.BasicAuth(username, password),
            )
        except REQUEST_ERRORS as e:
            logger.info("Create request failed before a response: %s", type(e).__name__)
            return SubmissionOutcome.other_failure("network_error")

        outcome = classify_create_status(response.status_code)
        logger.debug("Create request returned %d (%s)", response.status_code, outcome.kind.value)
        return outcome

    def request_restart(self, server_url: str, username: str, password: str) -> bool:
        url = f"{normalize_server_url(server_url)}/restart"
        try:
            response = self._client.post(url, auth=httpx.BasicAuth(username, password))
        except REQUEST_ERRORS as e:
            logger.warning("Restart request failed: %s", type(e).__name__)
            return False

        if response.is_success:
            logger.info("Server acknowledged restart request")
            return True
        logger.warning("Restart request rejected with status %d", response.status_code)
        return False

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpSubmissionClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def classify_create_status(status_code: int) -> SubmissionOutcome:
    """Map a /create HTTP status to a ``SubmissionOutcome``."""
    if 200 <= status_code < 300:
        return SubmissionOutcome.success()
    if status_code == 401:
        return SubmissionOutcome.auth_failure()
    if status_code in SERVER_UNAVAILABLE_STATUSES:
        return SubmissionOutcome.server_unavailable()
    return SubmissionOutcome.other_failure(f"http_{status_code}")
