"""HTTP client for a transactional email API (Resend-compatible).

``POST {EMAIL_API_URL}/emails`` with a Bearer token and a JSON body of
``{from, to, subject, html}``.  Only connection failures are retried: a
timeout or server error may already have delivered the message, and a
summary must never be sent twice.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

import httpx

from parts_assistant.config import EMAIL_API_KEY, EMAIL_API_URL, EMAIL_FROM
from parts_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)

MAX_CONNECT_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 15.0


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the email API."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class EmailClient:
    """Thin wrapper around the email API's send endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        sender: str | None = None,
    ):
        self._api_key = api_key or EMAIL_API_KEY
        self._sender = sender or EMAIL_FROM
        self._client = httpx.Client(
            base_url=base_url or EMAIL_API_URL,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def send(self, to_address: str, subject: str, html_body: str) -> dict[str, Any]:
        """Send one email.  Returns the API's JSON response.

        Raises:
            EmailDeliveryError: no API key, a 4xx/5xx response, a timeout,
                or the API stayed unreachable after the connect retries.
        """
        if not self.configured:
            raise EmailDeliveryError("Email delivery is not configured (EMAIL_API_KEY unset).")

        payload = {
            "from": self._sender,
            "to": [to_address],
            "subject": subject,
            "html": html_body,
        }
        last_error: Exception | None = None
        for attempt in range(1, MAX_CONNECT_RETRIES + 1):
            t0 = time.perf_counter()
            try:
                response = self._client.post("/emails", json=payload)
            except httpx.ConnectError as exc:
                last_error = exc
                metrics.record_failure("email", "POST /emails", error_type="ConnectError")
                if attempt == MAX_CONNECT_RETRIES:
                    logger.warning("Email API attempt %d/%d could not connect.", attempt, MAX_CONNECT_RETRIES)
                    break
                backoff = INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1))
                logger.warning(
                    "Email API attempt %d/%d could not connect. Retrying in %.1fs…",
                    attempt, MAX_CONNECT_RETRIES, backoff,
                )
                time.sleep(backoff)
                continue
            except httpx.TimeoutException as exc:
                metrics.record_failure("email", "POST /emails", error_type="Timeout")
                raise EmailDeliveryError(f"Email API timed out: {exc}") from exc

            elapsed = (time.perf_counter() - t0) * 1000
            if response.status_code >= 400:
                metrics.record_failure(
                    "email", "POST /emails",
                    error_type=f"{response.status_code // 100}xx", latency_ms=elapsed,
                )
                raise EmailDeliveryError(
                    f"Email API error {response.status_code}: {response.text}",
                    status_code=response.status_code,
                )
            metrics.record_success("email", "POST /emails", latency_ms=elapsed)
            logger.info("Summary email accepted for delivery to %s", to_address)
            return response.json()

        raise EmailDeliveryError(
            f"Email API unreachable after {MAX_CONNECT_RETRIES} attempts: {last_error}"
        )


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: EmailClient | None = None
_client_lock = threading.Lock()


def get_email_client() -> EmailClient:
    """Return a module-level EmailClient singleton."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = EmailClient()
    return _client
