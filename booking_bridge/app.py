"""FastAPI application: HTTP endpoints called by the voice agent.

Endpoints:

  GET  /health             Health check, plain ``ok``
  POST /get-free-slots     Business-hour slots from the remote calendar
  POST /book-appointment   Upsert the contact, then create the appointment

The two POST routes are also served under ``/retell`` for agents configured
against the original deployment paths.

Error responses are always JSON ``{"error": ..., "detail": ...}``; booking
failures add ``"stage"`` (``contact`` or ``appointment``) so the agent can
tell which upstream step failed.
"""

from __future__ import annotations

# Load .env into os.environ before Settings is instantiated.
from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from booking_bridge import __version__
from booking_bridge.config import Settings, settings as default_settings
from booking_bridge.errors import BridgeError, ClientInputError
from booking_bridge.models import BookingRequest, FreeSlotsRequest
from booking_bridge.providers import LeadConnectorProvider, SchedulingProvider
from booking_bridge.tools import BookAppointmentTool, CheckAvailabilityTool

log = logging.getLogger("booking_bridge.app")


async def _read_json(request: Request) -> dict[str, Any]:
    """Request body as a dict; an empty body counts as ``{}``."""
    if not (await request.body()).strip():
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise ClientInputError("Request body is not valid JSON")
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ClientInputError(
            "Request body must be a JSON object",
            detail={"received": type(body).__name__},
        )
    return body


def _validation_detail(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def _build_router() -> APIRouter:
    router = APIRouter()

    @router.post("/get-free-slots")
    async def get_free_slots(request: Request) -> JSONResponse:
        """Return up to three bookable slots for the requested window."""
        body = await _read_json(request)
        try:
            params = FreeSlotsRequest.model_validate(body)
        except ValidationError as exc:
            raise ClientInputError(
                "Invalid free-slots request", detail=_validation_detail(exc)
            )

        tool: CheckAvailabilityTool = request.app.state.availability_tool
        result = await tool.execute(start_date=params.start_date, days=params.days)
        return JSONResponse(result.model_dump(by_alias=True))

    @router.post("/book-appointment")
    async def book_appointment(request: Request) -> JSONResponse:
        """Book the chosen slot for the caller."""
        body = await _read_json(request)
        try:
            booking = BookingRequest.model_validate(body)
        except ValidationError as exc:
            raise ClientInputError(
                "Invalid booking request", detail=_validation_detail(exc)
            )

        tool: BookAppointmentTool = request.app.state.booking_tool
        result = await tool.execute(booking)
        return JSONResponse(result.model_dump())

    return router


def create_app(
    settings: Optional[Settings] = None,
    provider: Optional[SchedulingProvider] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``settings`` defaults to the environment-loaded configuration and
    ``provider`` to a :class:`LeadConnectorProvider` built from it.  Both
    are fixed for the life of the app; handlers never read the environment.
    Invalid settings raise ``ValueError`` before anything is built.
    """
    settings = settings or default_settings
    for warning in settings.validate_startup():
        log.warning(warning)
    provider = provider or LeadConnectorProvider(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info(
            "Bridge ready: calendar=%s timezone=%s filter=%s",
            settings.calendar_id or "<unset>",
            settings.calendar_timezone,
            "on" if settings.slot_filter_enabled else "off",
        )
        try:
            yield
        finally:
            await provider.close()
            log.info("Bridge stopped")

    app = FastAPI(
        title="Booking Bridge",
        description="Availability and booking bridge for voice agents",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.availability_tool = CheckAvailabilityTool(provider, settings)
    app.state.booking_tool = BookAppointmentTool(provider, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Error mapping ──────────────────────────────────────────

    @app.exception_handler(BridgeError)
    async def bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
        if exc.status_code >= 500:
            log.error("%s %s failed: %s %s", request.method, request.url.path,
                      exc.message, exc.detail)
        else:
            log.info("%s %s rejected: %s", request.method, request.url.path,
                     exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    # ── Health check ───────────────────────────────────────────

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> str:
        return "ok"

    # ── Agent endpoints ────────────────────────────────────────

    router = _build_router()
    app.include_router(router)
    app.include_router(router, prefix="/retell")

    return app


def main() -> None:
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "booking_bridge.app:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
        log_config=log_config,
    )


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    main()
