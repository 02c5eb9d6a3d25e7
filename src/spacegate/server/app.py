"""FastAPI application factory and server runner."""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from spacegate.config import Config, load_config
from spacegate.credentials import CredentialStore
from spacegate.errors import SpacegateError, admin_error_body, openai_error_body
from spacegate.gateway import ChatGateway
from spacegate.gateway.completions import ClientFactory
from spacegate.server.middleware import AccessLogMiddleware, CorrelationIdMiddleware
from spacegate.server.routers import chat_routes, space_routes
from spacegate.space_config import SpaceConfigStore
from spacegate.stores import build_stores
from spacegate.upstream import UpstreamClientFactory
from spacegate.users import UserDirectory

logger = logging.getLogger("spacegate.server")

# Routes under this prefix answer with OpenAI-shaped error bodies
_OPENAI_PREFIX = "/v1/"


def _is_openai_route(request: Request) -> bool:
    return request.url.path.startswith(_OPENAI_PREFIX)


def create_app(
    config: Config | None = None,
    credentials: CredentialStore | None = None,
    space_configs: SpaceConfigStore | None = None,
    users: UserDirectory | None = None,
    client_factory: ClientFactory | None = None,
) -> FastAPI:
    """Create the FastAPI app. Stores not passed in are opened from config.storage."""
    cfg: Config = config if config is not None else load_config()
    if credentials is None or space_configs is None or users is None:
        default_creds, default_configs, default_users = build_stores(cfg)
        if credentials is None:
            credentials = default_creds
        if space_configs is None:
            space_configs = default_configs
        if users is None:
            users = default_users
    if client_factory is None:
        client_factory = UpstreamClientFactory(cfg.upstream.client_cache_size)

    app = FastAPI(title="spacegate", description="OpenAI-compatible chat over Gemini File Search spaces")
    app.state.cfg = cfg
    app.state.credentials = credentials
    app.state.space_configs = space_configs
    app.state.users = users
    app.state.gateway = ChatGateway(credentials, space_configs, client_factory)

    # Starlette middleware order: last added = outermost (first to run)
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=cfg.serve.cors_origin_regex,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---

    @app.exception_handler(SpacegateError)
    async def spacegate_error_handler(request: Request, exc: SpacegateError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        body = openai_error_body(exc) if _is_openai_route(request) else admin_error_body(exc.message)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        if _is_openai_route(request):
            body = {"error": {"message": detail, "type": "invalid_request_error"}}
        else:
            body = admin_error_body(detail)
        return JSONResponse(status_code=400, content=body)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error: %s", exc)
        if _is_openai_route(request):
            body = {"error": {"message": "Internal server error", "type": "api_error"}}
        else:
            body = admin_error_body("Internal server error")
        return JSONResponse(status_code=500, content=body)

    # --- Routes ---

    @app.get("/health")
    async def health():
        """Liveness probe."""
        return {"status": "ok"}

    app.include_router(chat_routes.router)
    app.include_router(space_routes.router)
    # older front ends call /api/spaces/...
    app.include_router(space_routes.router, prefix="/api")

    return app


def run_server(config: Config | None = None) -> None:
    """Build the app from config and serve it with uvicorn."""
    if config is None:
        config = load_config()
    app = create_app(config)
    logger.info("spacegate listening on %s:%d", config.serve.host, config.serve.port)
    logger.info("chat endpoint: %s/v1/chat/completions", config.serve.endpoint_base())
    uvicorn.run(app, host=config.serve.host, port=config.serve.port, log_config=None)
