# delivery.py
"""Webhook delivery with a long-horizon retry schedule.

The automation endpoint behind the relay (n8n, Make, Zapier) may be cold
starting or mid-deployment, so every non-2xx response and every network
failure is retried. Delays follow a fixed escalating schedule and then repeat
the last step, keeping the request alive for up to about fifteen minutes with
the default budget of 60 attempts.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests
from requests.exceptions import RequestException

from .models import WebhookPayload

logger = logging.getLogger(__name__)

# Delay before each retry, in milliseconds; the last step repeats
DELAY_SCHEDULE_MS = (2000, 3000, 5000, 8000, 10000, 15000)
DEFAULT_MAX_ATTEMPTS = 60
DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_RETRIES_EXCEEDED = "Max retries exceeded"


def retry_delay_seconds(attempt: int) -> float:
    """Return the wait after the given zero-based failed attempt."""
    index = min(attempt, len(DELAY_SCHEDULE_MS) - 1)
    return DELAY_SCHEDULE_MS[index] / 1000.0


@dataclass
class DeliveryResult:
    """Outcome of delivering one payload to one webhook URL.

    Attributes:
        success: Whether a 2xx response was received.
        attempts: Number of HTTP attempts made.
        status_code: Status of the successful response, or of the last
            response received when every attempt failed.
        response_body: Response body on success; the error message or
            "Max retries exceeded" on failure.
    """

    success: bool
    attempts: int
    status_code: Optional[int] = None
    response_body: Optional[str] = None

    @property
    def is_client_error(self) -> bool:
        """Check whether the last response was a 4xx."""
        return self.status_code is not None and 400 <= self.status_code < 500

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "success": self.success,
            "attempts": self.attempts,
            "status_code": self.status_code,
            "response_body": self.response_body,
        }


class WebhookDeliveryClient:
    """Client that POSTs webhook payloads with the relay's retry policy.

    Attributes:
        timeout: Per-attempt HTTP timeout in seconds.
        session: Requests session for connection pooling.

    Example:
        >>> with WebhookDeliveryClient() as client:
        ...     result = client.deliver(url, payload, max_attempts=5)
        >>> result.success, result.attempts
        (True, 2)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the delivery client.

        Args:
            timeout: Per-attempt HTTP timeout in seconds.
            session: Optional preconfigured session.
            sleep: Function used to wait between attempts.
        """
        self.timeout = timeout
        self.session = session or requests.Session()
        self._sleep = sleep

    def close(self) -> None:
        """Close the requests session and release resources."""
        if self.session:
            self.session.close()

    def __enter__(self) -> "WebhookDeliveryClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def deliver(
        self,
        url: str,
        payload: WebhookPayload,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> DeliveryResult:
        """Deliver a payload, retrying until a 2xx or the budget runs out.

        Args:
            url: Webhook URL.
            payload: Normalized webhook payload.
            max_attempts: Maximum number of HTTP attempts (default: 60).

        Returns:
            DeliveryResult describing the final outcome. Network failures on
            the last attempt return the error message as the response body.

        Raises:
            ValueError: If max_attempts is less than 1.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        body = payload.to_wire()
        last_status: Optional[int] = None

        for attempt in range(max_attempts):
            is_last = attempt == max_attempts - 1
            logger.info(
                "Webhook attempt",
                extra={
                    "url": url,
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                },
            )

            try:
                response = self.session.post(
                    url,
                    json=body,
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout,
                )
            except RequestException as e:
                logger.warning(
                    "Webhook attempt failed",
                    extra={"url": url, "attempt": attempt + 1, "error": str(e)},
                )
                if is_last:
                    return DeliveryResult(
                        success=False,
                        attempts=attempt + 1,
                        response_body=str(e),
                    )
                self._wait(attempt)
                continue

            logger.info(
                "Webhook response",
                extra={
                    "url": url,
                    "attempt": attempt + 1,
                    "status_code": response.status_code,
                },
            )

            if 200 <= response.status_code < 300:
                return DeliveryResult(
                    success=True,
                    attempts=attempt + 1,
                    status_code=response.status_code,
                    response_body=response.text,
                )

            # Non-2xx responses, 4xx included, are retried
            last_status = response.status_code
            if not is_last:
                self._wait(attempt)

        logger.error(
            "Webhook delivery failed after all attempts",
            extra={"url": url, "attempts": max_attempts, "status_code": last_status},
        )
        return DeliveryResult(
            success=False,
            attempts=max_attempts,
            status_code=last_status,
            response_body=MAX_RETRIES_EXCEEDED,
        )

    def _wait(self, attempt: int) -> None:
        delay = retry_delay_seconds(attempt)
        logger.debug(
            "Waiting before next webhook attempt",
            extra={"attempt": attempt + 1, "wait_seconds": delay},
        )
        self._sleep(delay)
