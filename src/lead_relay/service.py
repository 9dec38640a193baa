# service.py
"""Relay orchestration: authenticate, validate, deliver, log, ingest, respond."""

import asyncio
import functools
import logging
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .auth import CallerIdentity, SupabaseAuthenticator, parse_bearer_token
from .config import RelayConfig, config as default_config
from .db import UserSettings
from .delivery import DeliveryResult, WebhookDeliveryClient
from .errors import RelayValidationError
from .ingestion import build_lead_records, generate_campaign_id, parse_results
from .messages import get_message, resolve_locale
from .models import (
    DeliveryAttemptLog,
    RelayResponse,
    SearchRequest,
    WebhookPayload,
    derive_log_status,
)
from .store import RelayStore
from .tokens import build_payload

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Missing required fields: country, city, niche"


class RelayService:
    """Handles one search relay invocation end to end.

    The flow is linear: AUTHENTICATE -> VALIDATE -> NORMALIZE -> DELIVER ->
    LOG -> INGEST (on success) -> RESPOND. Only authentication and validation
    failures raise; delivery exhaustion becomes a failed RelayResponse, and
    audit, lead and history write failures are logged and absorbed.

    Attributes:
        authenticator: Resolves bearer tokens to caller identities.
        store: Persistence for logs, leads, settings and history.
        delivery_client: Delivers payloads with the retry policy.
        config: Relay configuration.
    """

    def __init__(
        self,
        authenticator: SupabaseAuthenticator,
        store: RelayStore,
        delivery_client: WebhookDeliveryClient,
        relay_config: Optional[RelayConfig] = None,
    ) -> None:
        self.authenticator = authenticator
        self.store = store
        self.delivery_client = delivery_client
        self.config = relay_config or default_config

    async def handle(self, authorization: Optional[str], body: Any) -> RelayResponse:
        """Relay a search request to the automation webhook.

        Args:
            authorization: Raw Authorization header value.
            body: Decoded JSON request body.

        Returns:
            RelayResponse for the caller; ``status_code`` carries the HTTP status.

        Raises:
            RelayAuthError: If the caller cannot be authenticated.
            RelayValidationError: If required search fields are missing.
        """
        loop = asyncio.get_running_loop()

        token = parse_bearer_token(authorization)
        caller: CallerIdentity = await loop.run_in_executor(
            None, self.authenticator.resolve, token
        )

        request = self.parse_request(body)

        settings = await self._load_settings(caller.user_id)
        locale = resolve_locale(
            settings.locale if settings else None, self.config.DEFAULT_LOCALE
        )

        payload = build_payload(request, self.config.MAX_RESULTS_CAP)
        target_url = self.resolve_webhook_url(request, settings)

        logger.info(
            "Sending webhook",
            extra={
                "user_id": caller.user_id,
                "url": target_url,
                "payload": payload.to_wire(),
            },
        )

        result: DeliveryResult = await loop.run_in_executor(
            None,
            functools.partial(
                self.delivery_client.deliver,
                target_url,
                payload,
                max_attempts=self.config.WEBHOOK_MAX_ATTEMPTS,
            ),
        )

        logger.info(
            "Webhook delivery finished",
            extra={"user_id": caller.user_id, **result.to_dict()},
        )

        await self._write_log(caller.user_id, payload, target_url, result)

        if not result.success:
            return self._failure_response(result, locale)

        saved_count = await self._ingest(caller.user_id, request, result)
        await self._record_search(caller.user_id, request, saved_count)

        return RelayResponse(
            success=True,
            message=get_message("saved", locale, count=saved_count),
            attempts=result.attempts,
            saved_count=saved_count,
        )

    @staticmethod
    def parse_request(body: Any) -> SearchRequest:
        """Validate the request body into a SearchRequest.

        Raises:
            RelayValidationError: If the body is not an object, has malformed
                fields, or lacks niche, country or city.
        """
        if not isinstance(body, dict):
            raise RelayValidationError("Request body must be a JSON object")

        try:
            request = SearchRequest.model_validate(body)
        except ValidationError as e:
            raise RelayValidationError("Invalid search request", details=str(e)) from e

        if request.missing_fields():
            raise RelayValidationError(MISSING_FIELDS_MESSAGE)
        return request

    def resolve_webhook_url(
        self,
        request: SearchRequest,
        settings: Optional[UserSettings],
    ) -> str:
        """Pick the target URL: request override, then user setting, then default."""
        if request.webhook_url:
            return request.webhook_url
        if settings is not None and settings.webhook_url:
            return settings.webhook_url
        return self.config.DEFAULT_WEBHOOK_URL

    def _failure_response(self, result: DeliveryResult, locale: str) -> RelayResponse:
        key = "input_error" if result.is_client_error else "temporary_error"
        return RelayResponse(
            success=False,
            error=get_message(key, locale),
            details=result.response_body,
            attempts=result.attempts,
            status_code=result.status_code or 500,
        )

    async def _load_settings(self, user_id: str) -> Optional[UserSettings]:
        try:
            return await self.store.get_user_settings(user_id)
        except SQLAlchemyError:
            logger.exception(
                "Failed to load user settings", extra={"user_id": user_id}
            )
            return None

    async def _write_log(
        self,
        user_id: str,
        payload: WebhookPayload,
        url: str,
        result: DeliveryResult,
    ) -> None:
        log = DeliveryAttemptLog(
            user_id=user_id,
            payload=payload.to_wire(),
            webhook_url=url,
            status=derive_log_status(result.success, result.attempts),
            attempts=result.attempts,
            response_code=result.status_code,
            response_body=result.response_body,
        )
        try:
            await self.store.insert_webhook_log(log)
        except SQLAlchemyError:
            logger.exception(
                "Failed to log webhook attempt",
                extra={"user_id": user_id, "status": log.status.value},
            )

    async def _ingest(
        self,
        user_id: str,
        request: SearchRequest,
        result: DeliveryResult,
    ) -> int:
        items = parse_results(result.response_body)
        if not items:
            return 0

        campaign_id = generate_campaign_id()
        try:
            records = build_lead_records(items, request, user_id, campaign_id)
        except ValidationError:
            logger.exception(
                "Failed to map webhook results",
                extra={"user_id": user_id, "campaign": campaign_id, "items": len(items)},
            )
            return 0

        try:
            saved = await self.store.insert_leads(records)
        except SQLAlchemyError:
            logger.exception(
                "Failed to save leads",
                extra={"user_id": user_id, "campaign": campaign_id},
            )
            return 0

        logger.info(
            "Saved leads for search",
            extra={"user_id": user_id, "campaign": campaign_id, "count": saved},
        )
        return saved

    async def _record_search(
        self,
        user_id: str,
        request: SearchRequest,
        saved_count: int,
    ) -> None:
        try:
            await self.store.record_search(
                user_id=user_id,
                niche=request.niche,
                city=request.city,
                country=request.country,
                results_count=saved_count,
            )
        except SQLAlchemyError:
            logger.exception(
                "Failed to record search history", extra={"user_id": user_id}
            )
