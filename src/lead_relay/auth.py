# auth.py
"""Caller authentication against the hosted auth service."""

import logging
from dataclasses import dataclass
from typing import Optional

import requests
from requests.exceptions import RequestException

from .config import config
from .errors import RelayAuthError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated user behind a relay request."""

    user_id: str
    email: Optional[str] = None


def parse_bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an Authorization header.

    Raises:
        RelayAuthError: If the header is missing or carries no token.
    """
    if not authorization:
        raise RelayAuthError("Missing authorization header")

    token = authorization
    if token.startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX):]
    token = token.strip()
    if not token:
        raise RelayAuthError("Missing authorization header")
    return token


class SupabaseAuthenticator:
    """Resolves access tokens through the auth service's user endpoint.

    Attributes:
        base_url: Auth service base URL (SUPABASE_URL).
        timeout: Request timeout in seconds.

    Example:
        >>> auth = SupabaseAuthenticator()
        >>> auth.resolve("eyJhbGciOi...").user_id
        '0b6c...'
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        service_key: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the authenticator.

        Args:
            base_url: Auth service URL. Defaults to SUPABASE_URL.
            service_key: Service credential. Defaults to SUPABASE_SERVICE_ROLE_KEY.
            timeout: Request timeout. Defaults to AUTH_TIMEOUT_SECONDS.
            session: Optional preconfigured session.

        Raises:
            ValueError: If the URL or service credential is missing.
        """
        self.base_url = (base_url or config.SUPABASE_URL).rstrip("/")
        self._service_key = service_key or config.SUPABASE_SERVICE_ROLE_KEY
        if not self.base_url or not self._service_key:
            raise ValueError(
                "Auth service settings required. Set SUPABASE_URL and "
                "SUPABASE_SERVICE_ROLE_KEY environment variables."
            )
        self.timeout = timeout if timeout is not None else config.AUTH_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def close(self) -> None:
        """Close the requests session."""
        self.session.close()

    def resolve(self, token: str) -> CallerIdentity:
        """Resolve an access token to the calling user.

        Raises:
            RelayAuthError: If the token is rejected or cannot be verified.
        """
        try:
            response = self.session.get(
                f"{self.base_url}/auth/v1/user",
                headers={
                    "apikey": self._service_key,
                    "Authorization": f"{BEARER_PREFIX}{token}",
                },
                timeout=self.timeout,
            )
        except RequestException as e:
            logger.error("Auth service request failed", extra={"error": str(e)})
            raise RelayAuthError("Invalid authorization token", details=str(e)) from e

        if response.status_code != 200:
            logger.warning(
                "Auth service rejected token",
                extra={"status_code": response.status_code},
            )
            raise RelayAuthError("Invalid authorization token")

        try:
            data = response.json()
        except ValueError as e:
            raise RelayAuthError("Invalid authorization token") from e

        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            raise RelayAuthError("Invalid authorization token")

        return CallerIdentity(user_id=str(user_id), email=data.get("email"))
