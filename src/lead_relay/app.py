# app.py
"""FastAPI application exposing the lead search relay.

Endpoints:
- POST /send-webhook - Relay a lead search to the automation webhook
- GET /health - Health check endpoint

Environment Variables:
- SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY: Auth service used to verify callers
- DATABASE_URL: PostgreSQL connection string for leads and audit logs
- DEFAULT_WEBHOOK_URL: Automation endpoint used without a per-user override
- LOG_LEVEL: Logging level (default: INFO)

Example:
    uvicorn lead_relay.app:app --host 0.0.0.0 --port 8080
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .auth import SupabaseAuthenticator
from .config import config
from .db import close_database
from .delivery import WebhookDeliveryClient
from .errors import RelayError
from .logging_utils import setup_logging
from .messages import get_message
from .models import RelayResponse
from .service import RelayService
from .store import RelayStore

logger = logging.getLogger(__name__)

_service: Optional[RelayService] = None


def get_relay_service() -> RelayService:
    """Return the process-wide relay service, creating it on first use.

    Raises:
        RelayError: If the service cannot be built from the current settings.
    """
    global _service
    if _service is None:
        try:
            authenticator = SupabaseAuthenticator()
        except ValueError as e:
            logger.exception("Relay service is not configured")
            raise RelayError(
                get_message("unexpected_error", config.DEFAULT_LOCALE),
                details=str(e),
            ) from e
        _service = RelayService(
            authenticator=authenticator,
            store=RelayStore(),
            delivery_client=WebhookDeliveryClient(
                timeout=config.WEBHOOK_TIMEOUT_SECONDS
            ),
        )
    return _service


async def _shutdown_service() -> None:
    global _service
    if _service is not None:
        _service.delivery_client.close()
        _service.authenticator.close()
        _service = None
    await close_database()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    setup_logging()
    logger.info("Lead relay starting", extra={"version": __version__})
    yield
    logger.info("Lead relay shutting down")
    await _shutdown_service()


app = FastAPI(
    title="Lead Relay",
    description="Relays lead searches to an automation webhook and stores the results",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if config.is_production() else "/docs",
    redoc_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS", "GET"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


def _json(response: RelayResponse) -> JSONResponse:
    return JSONResponse(content=response.to_body(), status_code=response.status_code)


def _error_json(e: RelayError) -> JSONResponse:
    logger.warning(
        "Relay request rejected",
        extra={"error": e.message, "status_code": e.status_code},
    )
    return _json(
        RelayResponse(
            success=False,
            error=e.message,
            details=e.details,
            status_code=e.status_code,
        )
    )


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Render relay errors raised while resolving endpoint dependencies."""
    return _error_json(exc)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "lead-relay",
        "version": __version__,
        "auth_configured": bool(config.SUPABASE_URL and config.SUPABASE_SERVICE_ROLE_KEY),
        "database_configured": bool(config.DATABASE_URL),
    }


@app.post("/send-webhook")
async def send_webhook(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    service: RelayService = Depends(get_relay_service),
) -> JSONResponse:
    """Relay a lead search and return the delivery summary."""
    try:
        body = await request.json()
    except ValueError:
        # Rejected after authentication, in RelayService.parse_request
        body = None

    try:
        result = await service.handle(authorization, body)
    except RelayError as e:
        return _error_json(e)
    except Exception as e:
        logger.exception("Relay request failed")
        return _json(
            RelayResponse(
                success=False,
                error=get_message("unexpected_error", config.DEFAULT_LOCALE),
                details=str(e),
                status_code=500,
            )
        )

    return _json(result)
