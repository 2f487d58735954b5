"""
HTTP transport for the Oblique Strategies MCP Server.

Routes:
- GET  /          plain-text banner
- POST /register  bind a device to a short-lived PIN (JSON)
- GET  /auth      PIN entry form (HTML)
- POST /auth      exchange a PIN for a bearer token (JSON or form body, HTML page)
- POST /mcp       authenticated JSON-RPC, one SSE event per response

Everything else answers 404 ``{"error": "Not Found"}``, including known paths
requested with the wrong method.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from mcp_oblique import __version__
from mcp_oblique.config import AppConfig
from mcp_oblique.dispatcher import MCPDispatcher
from mcp_oblique.errors import InvalidArgumentError, ToolError
from mcp_oblique.logging import get_logger
from mcp_oblique.pages import auth_form_page, auth_success_page
from mcp_oblique.routing import ToolRegistry
from mcp_oblique.security.audit_logger import AuditLogger
from mcp_oblique.security.auth import AuthenticationError, authenticate_request
from mcp_oblique.security.pairing import INVALID_BODY_MESSAGE, exchange_pin, register_device
from mcp_oblique.sse import create_sse_response
from mcp_oblique.storage.kv import KVStore
from mcp_oblique.tools import register_strategy_tools

logger = get_logger(__name__)

BANNER = "Oblique Strategies MCP Server"
FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def _error_json(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _tool_error_response(error: ToolError) -> JSONResponse:
    if error.http_status >= 500:
        return _error_json(500, "Internal server error")
    return _error_json(error.http_status, error.message)


async def _read_json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as e:
        raise InvalidArgumentError(INVALID_BODY_MESSAGE) from e


async def _read_auth_body(request: Request) -> Any:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}
    return await _read_json_body(request)


def _mcp_url(config: AppConfig, request: Request) -> str:
    base = config.server.public_url or str(request.base_url)
    return f"{base.rstrip('/')}/mcp"


def create_app(
    config: AppConfig,
    store: KVStore,
    *,
    registry: ToolRegistry | None = None,
    audit_logger: AuditLogger | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Application configuration.
        store: KV store handle shared by every request.
        registry: Tool registry; defaults to the strategy tools bound to ``store``.
        audit_logger: Audit logger; defaults to one built from ``config.logging``.

    Returns:
        The configured FastAPI application.
    """
    if registry is None:
        registry = register_strategy_tools(ToolRegistry(), store, config.history)
    if audit_logger is None:
        audit_logger = AuditLogger.from_config(config.logging)

    dispatcher = MCPDispatcher(registry, audit_logger=audit_logger)

    app = FastAPI(
        title=BANNER,
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    app.state.store = store
    app.state.dispatcher = dispatcher

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> Response:
        if exc.status_code in (404, 405):
            return _error_json(404, "Not Found")
        return _error_json(exc.status_code, str(exc.detail))

    @app.get("/")
    async def index() -> Response:
        return PlainTextResponse(BANNER)

    @app.post("/register")
    async def register(request: Request) -> Response:
        try:
            body = await _read_json_body(request)
            result = await register_device(
                store, body, pin_ttl_seconds=config.auth.pin_ttl_seconds
            )
        except ToolError as e:
            audit_logger.log_auth_event(
                "device_registered",
                success=False,
                source_ip=_client_ip(request),
                details={"error": e.message},
            )
            return _tool_error_response(e)
        except Exception:
            logger.exception("Unexpected error in /register")
            return _error_json(500, "Internal server error")

        audit_logger.log_auth_event(
            "device_registered",
            success=True,
            device_id=body.get("deviceId"),
            source_ip=_client_ip(request),
        )
        return JSONResponse(result)

    @app.get("/auth")
    async def auth_form() -> Response:
        return HTMLResponse(auth_form_page())

    @app.post("/auth")
    async def auth_exchange(request: Request) -> Response:
        try:
            body = await _read_auth_body(request)
            grant = await exchange_pin(store, body)
        except ToolError as e:
            audit_logger.log_auth_event(
                "pin_exchanged",
                success=False,
                source_ip=_client_ip(request),
                details={"error": e.message},
            )
            return _tool_error_response(e)
        except Exception:
            logger.exception("Unexpected error in /auth")
            return _error_json(500, "Internal server error")

        audit_logger.log_auth_event(
            "pin_exchanged",
            success=True,
            device_id=grant.device_id,
            source_ip=_client_ip(request),
        )
        return HTMLResponse(auth_success_page(grant.token, _mcp_url(config, request)))

    @app.post("/mcp")
    async def mcp(request: Request) -> Response:
        try:
            device_id = await authenticate_request(
                store, request.headers.get("authorization")
            )
        except AuthenticationError as e:
            audit_logger.log_auth_event(
                "bearer_rejected",
                success=False,
                source_ip=_client_ip(request),
            )
            return _error_json(401, e.message)

        body = await request.body()
        response = await dispatcher.dispatch(
            body,
            device_id,
            transport="http",
            metadata={"client_ip": _client_ip(request)},
        )
        if response is None:
            return Response(status_code=200)
        return create_sse_response(response)

    return app
