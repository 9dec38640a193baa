# src/lead_relay/tests/test_service.py
"""
Tests for relay orchestration.

Tests cover:
- Authentication and validation short-circuits
- Success flow: delivery, audit log, lead ingestion, search history
- Failure flow: status passthrough, localized errors, audit status
- Absorbed persistence failures
- Webhook URL and locale resolution
"""
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from lead_relay.db import Lead, SearchHistory, UserSettings, WebhookLog
from lead_relay.delivery import DeliveryResult
from lead_relay.errors import RelayAuthError, RelayValidationError
from lead_relay.messages import MESSAGES
from lead_relay.models import DeliveryStatus, LeadRecord, SearchRequest
from lead_relay.service import MISSING_FIELDS_MESSAGE, RelayService
from lead_relay.store import RelayStore

from .conftest import MOCK_ENV_VARS

AUTH_HEADER = "Bearer token-123"


@pytest.fixture
def service(mock_authenticator, mock_store, mock_delivery, relay_config) -> RelayService:
    return RelayService(
        authenticator=mock_authenticator,
        store=mock_store,
        delivery_client=mock_delivery,
        relay_config=relay_config,
    )


def logged_entry(mock_store):
    mock_store.insert_webhook_log.assert_awaited_once()
    return mock_store.insert_webhook_log.await_args.args[0]


class TestRelayServiceRejections:
    """Tests for requests rejected before delivery."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_authorization(self, service, mock_authenticator, search_body):
        with pytest.raises(RelayAuthError):
            await service.handle(None, search_body)

        mock_authenticator.resolve.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_token(self, service, mock_authenticator, mock_delivery, search_body):
        mock_authenticator.resolve.side_effect = RelayAuthError("Invalid authorization token")

        with pytest.raises(RelayAuthError):
            await service.handle(AUTH_HEADER, search_body)

        mock_delivery.deliver.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["niche", "country", "city"])
    async def test_missing_required_field(
        self, service, mock_delivery, mock_store, search_body, missing
    ):
        search_body[missing] = "  "

        with pytest.raises(RelayValidationError) as exc_info:
            await service.handle(AUTH_HEADER, search_body)

        assert exc_info.value.message == MISSING_FIELDS_MESSAGE
        assert exc_info.value.status_code == 400
        mock_delivery.deliver.assert_not_called()
        mock_store.insert_webhook_log.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [None, [], "text"])
    async def test_body_not_an_object(self, service, mock_delivery, body):
        with pytest.raises(RelayValidationError):
            await service.handle(AUTH_HEADER, body)

        mock_delivery.deliver.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_auth_checked_before_validation(self, service, mock_authenticator):
        with pytest.raises(RelayAuthError):
            await service.handle("", {})

        mock_authenticator.resolve.assert_not_called()


class TestRelayServiceSuccess:
    """Tests for successful deliveries."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success_response(self, service, search_body):
        response = await service.handle(AUTH_HEADER, search_body)

        assert response.success is True
        assert response.saved_count == 1
        assert response.attempts == 1
        assert response.status_code == 200
        assert response.message == MESSAGES["en"]["saved"].format(count=1)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delivers_normalized_payload(
        self, service, mock_delivery, mock_authenticator, search_body
    ):
        await service.handle(AUTH_HEADER, search_body)

        mock_authenticator.resolve.assert_called_once_with("token-123")
        url, payload = mock_delivery.deliver.call_args.args
        assert url == MOCK_ENV_VARS["DEFAULT_WEBHOOK_URL"]
        assert payload.to_wire()["minimumRating"] == "fourAndHalf"
        assert payload.to_wire()["region"] == "Dentists"
        assert mock_delivery.deliver.call_args.kwargs == {"max_attempts": 60}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_writes_one_success_log(self, service, mock_store, search_body):
        await service.handle(AUTH_HEADER, search_body)

        log = logged_entry(mock_store)
        assert log.status == DeliveryStatus.SUCCESS
        assert log.attempts == 1
        assert log.user_id == "user-1"
        assert log.response_code == 200

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ingests_results_and_records_search(self, service, mock_store, search_body):
        await service.handle(AUTH_HEADER, search_body)

        records = mock_store.insert_leads.await_args.args[0]
        assert [r.name for r in records] == ["Acme"]
        assert records[0].campaign.startswith("search-")
        mock_store.record_search.assert_awaited_once_with(
            user_id="user-1",
            niche="Dentists",
            city="Amman",
            country="Jordan",
            results_count=1,
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unparseable_body_still_succeeds(
        self, service, mock_delivery, mock_store, search_body
    ):
        mock_delivery.deliver.return_value = DeliveryResult(True, 3, 200, "<html>ok</html>")

        response = await service.handle(AUTH_HEADER, search_body)

        assert response.success is True
        assert response.saved_count == 0
        assert response.attempts == 3
        mock_store.insert_leads.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_lead_insert_failure_reports_zero_saved(
        self, service, mock_store, search_body
    ):
        mock_store.insert_leads.side_effect = SQLAlchemyError("constraint violation")

        response = await service.handle(AUTH_HEADER, search_body)

        assert response.success is True
        assert response.saved_count == 0
        mock_store.record_search.assert_awaited_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response_body",
        [
            '[{"title": "Acme", "phoneUnformatted": 96270000000}]',
            '[{"title": "Acme", "totalScore": "n/a"}]',
            '[{"title": "Acme", "instagrams": [{"url": "x"}]}]',
        ],
    )
    async def test_loosely_typed_items_are_saved(
        self, service, mock_delivery, mock_store, search_body, response_body
    ):
        mock_delivery.deliver.return_value = DeliveryResult(True, 1, 200, response_body)

        response = await service.handle(AUTH_HEADER, search_body)

        assert response.success is True
        assert response.saved_count == 1
        records = mock_store.insert_leads.await_args.args[0]
        assert records[0].name == "Acme"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mapping_failure_reports_zero_saved(
        self, service, mock_store, search_body
    ):
        def reject(*args):
            return [LeadRecord.model_validate({})]

        with patch("lead_relay.service.build_lead_records", side_effect=reject):
            response = await service.handle(AUTH_HEADER, search_body)

        assert response.success is True
        assert response.saved_count == 0
        mock_store.insert_leads.assert_not_awaited()
        mock_store.record_search.assert_awaited_once()
        assert logged_entry(mock_store).status == DeliveryStatus.SUCCESS

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_log_write_failure_is_absorbed(self, service, mock_store, search_body):
        mock_store.insert_webhook_log.side_effect = SQLAlchemyError("connection lost")

        response = await service.handle(AUTH_HEADER, search_body)

        assert response.success is True
        assert response.saved_count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_history_failure_is_absorbed(self, service, mock_store, search_body):
        mock_store.record_search.side_effect = SQLAlchemyError("connection lost")

        response = await service.handle(AUTH_HEADER, search_body)

        assert response.success is True


class TestRelayServiceFailure:
    """Tests for deliveries that exhaust their retry budget."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_quick_failure_is_queued(
        self, service, mock_delivery, mock_store, search_body
    ):
        mock_delivery.deliver.return_value = DeliveryResult(
            False, 2, 500, "Max retries exceeded"
        )

        response = await service.handle(AUTH_HEADER, search_body)

        assert response.success is False
        assert response.status_code == 500
        assert response.attempts == 2
        assert response.error == MESSAGES["en"]["temporary_error"]
        assert response.details == "Max retries exceeded"
        assert logged_entry(mock_store).status == DeliveryStatus.QUEUED
        mock_store.insert_leads.assert_not_awaited()
        mock_store.record_search.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exhausted_failure_is_failed(
        self, service, mock_delivery, mock_store, search_body
    ):
        mock_delivery.deliver.return_value = DeliveryResult(
            False, 60, 503, "Max retries exceeded"
        )

        response = await service.handle(AUTH_HEADER, search_body)

        assert response.status_code == 503
        log = logged_entry(mock_store)
        assert log.status == DeliveryStatus.FAILED
        assert log.attempts == 60
        assert log.response_code == 503

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_client_error_uses_input_message(self, service, mock_delivery, search_body):
        mock_delivery.deliver.return_value = DeliveryResult(
            False, 60, 422, "Max retries exceeded"
        )

        response = await service.handle(AUTH_HEADER, search_body)

        assert response.status_code == 422
        assert response.error == MESSAGES["en"]["input_error"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_network_failure_defaults_to_500(self, service, mock_delivery, search_body):
        mock_delivery.deliver.return_value = DeliveryResult(
            False, 60, None, "connection refused"
        )

        response = await service.handle(AUTH_HEADER, search_body)

        assert response.status_code == 500
        assert response.details == "connection refused"
        assert response.error == MESSAGES["en"]["temporary_error"]


class TestRelayServiceSettings:
    """Tests for per-user webhook URL and locale."""

    @pytest.mark.unit
    def test_request_url_wins(self, service, search_body):
        request = SearchRequest.model_validate(
            dict(search_body, webhookUrl="https://hooks.example.com/request")
        )
        settings = UserSettings(user_id="user-1", webhook_url="https://hooks.example.com/user")

        assert service.resolve_webhook_url(request, settings) == "https://hooks.example.com/request"

    @pytest.mark.unit
    def test_user_url_over_default(self, service, search_body):
        request = SearchRequest.model_validate(search_body)
        settings = UserSettings(user_id="user-1", webhook_url="https://hooks.example.com/user")

        assert service.resolve_webhook_url(request, settings) == "https://hooks.example.com/user"

    @pytest.mark.unit
    def test_default_url(self, service, search_body):
        request = SearchRequest.model_validate(search_body)
        settings = UserSettings(user_id="user-1", webhook_url=None)

        assert service.resolve_webhook_url(request, settings) == MOCK_ENV_VARS["DEFAULT_WEBHOOK_URL"]
        assert service.resolve_webhook_url(request, None) == MOCK_ENV_VARS["DEFAULT_WEBHOOK_URL"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_user_locale_used_for_messages(self, service, mock_store, search_body):
        mock_store.get_user_settings.return_value = UserSettings(
            user_id="user-1", locale="ar"
        )

        response = await service.handle(AUTH_HEADER, search_body)

        assert response.message == MESSAGES["ar"]["saved"].format(count=1)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_settings_failure_falls_back_to_defaults(
        self, service, mock_store, mock_delivery, search_body
    ):
        mock_store.get_user_settings.side_effect = SQLAlchemyError("timeout")

        response = await service.handle(AUTH_HEADER, search_body)

        assert response.success is True
        assert mock_delivery.deliver.call_args.args[0] == MOCK_ENV_VARS["DEFAULT_WEBHOOK_URL"]


class TestRelayServiceWithDatabase:
    """End-to-end service tests against the in-memory database."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success_persists_log_leads_and_history(
        self, mock_authenticator, mock_delivery, relay_config, session_factory, search_body
    ):
        mock_delivery.deliver.return_value = DeliveryResult(
            True,
            2,
            200,
            '[{"title": "Acme", "reviewsCount": 12, "website": "http://x.com",'
            ' "emails": ["a@x.com", "b@x.com"]}, {"title": "Beta"}]',
        )
        service = RelayService(
            authenticator=mock_authenticator,
            store=RelayStore(session_factory=session_factory),
            delivery_client=mock_delivery,
            relay_config=relay_config,
        )

        response = await service.handle(AUTH_HEADER, search_body)

        async with session_factory() as session:
            logs = (await session.execute(select(WebhookLog))).scalars().all()
            leads = (await session.execute(select(Lead).order_by(Lead.name))).scalars().all()
            history = (await session.execute(select(SearchHistory))).scalars().all()

        assert response.saved_count == 2
        assert len(logs) == 1
        assert logs[0].status == "success"
        assert logs[0].attempts == 2
        assert [lead.name for lead in leads] == ["Acme", "Beta"]
        assert leads[0].email == "a@x.com"
        assert leads[0].additional_emails == ["b@x.com"]
        assert leads[0].campaign == leads[1].campaign
        assert len(history) == 1
        assert history[0].results_count == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_user_settings_row_overrides_url(
        self, mock_authenticator, mock_delivery, relay_config, session_factory, search_body
    ):
        async with session_factory() as session:
            async with session.begin():
                session.add(
                    UserSettings(
                        user_id="user-1",
                        webhook_url="https://hooks.example.com/user",
                    )
                )
        service = RelayService(
            authenticator=mock_authenticator,
            store=RelayStore(session_factory=session_factory),
            delivery_client=mock_delivery,
            relay_config=relay_config,
        )

        await service.handle(AUTH_HEADER, search_body)

        assert mock_delivery.deliver.call_args.args[0] == "https://hooks.example.com/user"
