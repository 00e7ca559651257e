"""FastAPI endpoints for the sessionserver join / hasJoined handshake."""

from __future__ import annotations

from functools import partial
from typing import Any

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .audit import AuditSink, create_audit_sink
from .cache import SessionCache, create_session_cache
from .config import BackendSettings, configure_logging, load_settings
from .errors import ForbiddenOperation
from .locks import LockCoordinator, create_lock_coordinator
from .security import TokenOracle, TokenValidationChain, sign_payload
from .service import SessionService
from .store import AccountDirectory, create_directory
from .validator import ExternalTokenValidator


class JoinRequest(BaseModel):
    accessToken: str = Field(min_length=1)
    selectedProfile: str = Field(min_length=1)
    serverId: str = Field(min_length=1)


def _redis_client(settings: BackendSettings) -> Any:
    if settings.cache_driver != "redis":
        return None
    import redis

    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


def create_app(
    settings: BackendSettings | None = None,
    directory: AccountDirectory | None = None,
    cache: SessionCache | None = None,
    locks: LockCoordinator | None = None,
    audit: AuditSink | None = None,
    validator: TokenOracle | None = None,
) -> FastAPI:
    app = FastAPI(title="Yggdrasil Session API", version="0.1.0")
    settings = settings if settings is not None else load_settings()
    configure_logging(settings.log_level)
    redis_client = _redis_client(settings) if cache is None or locks is None else None

    account_directory = directory if directory is not None else create_directory(settings.database_url)
    external = (
        validator
        if validator is not None
        else ExternalTokenValidator(validate_url=settings.validate_url, timeout=settings.validate_timeout)
    )
    session_service = SessionService(
        directory=account_directory,
        validation=TokenValidationChain(directory=account_directory, external=external),
        cache=cache if cache is not None else create_session_cache(settings, redis_client=redis_client),
        locks=locks if locks is not None else create_lock_coordinator(settings, redis_client=redis_client),
        audit=audit if audit is not None else create_audit_sink(settings.database_url),
        signer=partial(sign_payload, signing_key=settings.signing_key),
        has_joined_timeout=settings.has_joined_timeout,
    )
    app.state.session_service = session_service

    def get_service() -> SessionService:
        return session_service

    @app.exception_handler(ForbiddenOperation)
    async def forbidden_operation(request: Request, exc: ForbiddenOperation) -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content={"error": "ForbiddenOperationException", "errorMessage": exc.message},
        )

    @app.post("/sessionserver/session/minecraft/join", status_code=204)
    def join_server(
        payload: JoinRequest,
        service: SessionService = Depends(get_service),
    ) -> Response:
        service.join_server(
            access_token=payload.accessToken,
            selected_profile=payload.selectedProfile,
            server_id=payload.serverId,
            parameters=payload.model_dump(),
        )
        return Response(status_code=204)

    @app.get("/sessionserver/session/minecraft/hasJoined")
    def has_joined_server(
        username: str = Query(default=""),
        serverId: str = Query(default=""),
        ip: str | None = Query(default=None),
        service: SessionService = Depends(get_service),
    ) -> Response:
        profile = service.has_joined_server(username=username, server_id=serverId, ip=ip)
        if profile is None:
            return Response(status_code=204)
        return JSONResponse(content=profile)

    return app


app = create_app()
