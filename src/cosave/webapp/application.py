"""FastAPI frontend for CoSave.

Every route speaks JSON and lives under ``API_PREFIX`` (``/api`` by default),
with interactive docs at ``{API_PREFIX}/documentation``.
Savers authenticate with the bearer token returned by ``POST /login``; the
same token identifies a co-signer when resolving withdrawals.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Sequence

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from ..api import ApiExporter
from ..emailing import EmailClient, EmailDispatcher
from ..exceptions import AuthenticationError, CoSaveError
from ..models import Identity
from ..notifications import NotificationCenter, NotificationDispatcher
from ..ops import StructuredLogger
from ..security import TokenSigner
from ..service import CoSave
from .config import (
    API_PREFIX,
    CORS_ORIGINS,
    LOG_PATH,
    LOGIN_LOCKOUT_MINUTES,
    LOGIN_MAX_ATTEMPTS,
    MAIL_FROM,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
    SQLITE_FILE_NAME,
    TOKEN_SECRET,
    TOKEN_TTL,
)
from .persistence import SqlRecordStore, build_engine, create_db_and_tables

exporter = ApiExporter()
bearer = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RegisterBody(_Body):
    name: str = ""
    email: str = ""
    password: str = ""
    co_signer_email: str = Field(default="", alias="coSignerEmail")


class LoginBody(_Body):
    email: str = ""
    password: str = ""


class CreateGoalBody(_Body):
    goal_name: str = Field(default="", alias="goalName")
    target_amount: Any = Field(default=None, alias="targetAmount")
    lock_until: Any = Field(default=None, alias="lockUntil")


class AmountBody(_Body):
    amount: Any = None


class DecisionBody(_Body):
    status: Optional[str] = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def get_service(request: Request) -> CoSave:
    return request.app.state.cosave


def current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Identity:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")
    return get_service(request).authenticate(credentials.credentials)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
router = APIRouter()


@router.post("/register", status_code=201, tags=["Auth"])
def register(body: RegisterBody, service: CoSave = Depends(get_service)) -> Dict[str, str]:
    service.register(
        name=body.name,
        email=body.email,
        password=body.password,
        co_signer_email=body.co_signer_email,
    )
    return {"message": "User registered successfully"}


@router.post("/login", tags=["Auth"])
def login(body: LoginBody, service: CoSave = Depends(get_service)) -> Dict[str, str]:
    return {"token": service.login(body.email, body.password)}


@router.get("/profile", tags=["Auth"])
def profile(
    identity: Identity = Depends(current_identity),
    service: CoSave = Depends(get_service),
) -> Dict[str, object]:
    return exporter.user(service.profile(identity))


@router.post("/saving/create", status_code=201, tags=["Saving"])
def create_saving(
    body: CreateGoalBody,
    identity: Identity = Depends(current_identity),
    service: CoSave = Depends(get_service),
) -> Dict[str, object]:
    goal = service.create_goal(
        identity,
        goal_name=body.goal_name,
        target_amount=body.target_amount,
        lock_until=body.lock_until,
    )
    return exporter.goal(goal)


@router.post("/saving/add", tags=["Saving"])
def add_funds(
    body: AmountBody,
    identity: Identity = Depends(current_identity),
    service: CoSave = Depends(get_service),
) -> Dict[str, object]:
    return exporter.goal(service.add_funds(identity, body.amount))


@router.get("/saving", tags=["Saving"])
def list_savings(
    identity: Identity = Depends(current_identity),
    service: CoSave = Depends(get_service),
) -> List[Dict[str, object]]:
    return exporter.goals(service.list_goals(identity))


@router.get("/saving/{goal_id}", tags=["Saving"])
def get_saving(
    goal_id: str,
    identity: Identity = Depends(current_identity),
    service: CoSave = Depends(get_service),
) -> Dict[str, object]:
    return exporter.goal(service.get_goal(identity, goal_id))


@router.post("/withdrawal/request", status_code=201, tags=["Withdrawal"])
def request_withdrawal(
    body: AmountBody,
    identity: Identity = Depends(current_identity),
    service: CoSave = Depends(get_service),
) -> Dict[str, object]:
    return exporter.receipt(service.request_withdrawal(identity, body.amount))


@router.post("/withdrawal/approve/{withdrawal_id}", tags=["Withdrawal"])
def approve_withdrawal(
    withdrawal_id: str,
    body: DecisionBody,
    identity: Identity = Depends(current_identity),
    service: CoSave = Depends(get_service),
) -> Dict[str, object]:
    resolution = service.resolve_withdrawal(withdrawal_id, identity, body.status or "")
    return exporter.resolution(resolution)


@router.get("/withdrawal", tags=["Withdrawal"])
def list_withdrawals(
    identity: Identity = Depends(current_identity),
    service: CoSave = Depends(get_service),
) -> List[Dict[str, object]]:
    return exporter.withdrawals(service.list_withdrawals(identity))


@router.get("/withdrawal/pending", tags=["Withdrawal"])
def pending_for_co_signer(
    identity: Identity = Depends(current_identity),
    service: CoSave = Depends(get_service),
) -> List[Dict[str, object]]:
    return exporter.withdrawals(service.pending_for_co_signer(identity))


# ---------------------------------------------------------------------------
# FastAPI application setup
# ---------------------------------------------------------------------------
def default_dispatcher() -> NotificationDispatcher:
    if not SMTP_HOST:
        return NotificationCenter()
    client = EmailClient(
        SMTP_HOST,
        SMTP_PORT,
        username=SMTP_USERNAME,
        password=SMTP_PASSWORD,
        use_tls=SMTP_USE_TLS,
    )
    return EmailDispatcher(client, sender=MAIL_FROM)


def default_service() -> CoSave:
    return CoSave(
        store=SqlRecordStore(build_engine(SQLITE_FILE_NAME)),
        dispatcher=default_dispatcher(),
        signer=TokenSigner(TOKEN_SECRET, ttl=TOKEN_TTL),
        logger=StructuredLogger(path=LOG_PATH),
        max_login_attempts=LOGIN_MAX_ATTEMPTS,
        lockout_minutes=LOGIN_LOCKOUT_MINUTES,
    )


def create_app(
    service: CoSave | None = None,
    *,
    api_prefix: str = API_PREFIX,
    cors_origins: Sequence[str] | None = None,
) -> FastAPI:
    cosave = service or default_service()
    origins = list(CORS_ORIGINS if cors_origins is None else cors_origins)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if isinstance(cosave.store, SqlRecordStore):
            create_db_and_tables(cosave.store.engine)
        yield

    app = FastAPI(
        title="CoSave",
        lifespan=lifespan,
        docs_url=f"{api_prefix}/documentation",
        redoc_url=None,
        openapi_url=f"{api_prefix}/openapi.json",
    )
    app.state.cosave = cosave
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers refuse credentials with a wildcard origin.
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CoSaveError)
    async def cosave_error_handler(request: Request, exc: CoSaveError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        if exc.status_code >= 500:
            cosave.logger.error("request_failed", path=request.url.path, error=str(exc))
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def body_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
            for error in exc.errors()
        )
        return JSONResponse({"error": f"Invalid request body: {details}"}, status_code=400)

    app.include_router(router, prefix=api_prefix)
    return app


__all__ = ["create_app", "default_service", "router"]
