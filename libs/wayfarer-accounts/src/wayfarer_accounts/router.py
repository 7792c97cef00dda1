"""FastAPI router factory exposing the account lifecycle to the front end."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from wayfarer_persistence import PersistenceError, ProfileStore

from wayfarer_accounts.errors import (
    AccountError,
    AccountValidationError,
    EmailNotVerifiedError,
    NotSignedInError,
    ProviderAuthError,
    ReauthRequiredError,
)
from wayfarer_accounts.lifecycle import AccountLifecycle
from wayfarer_accounts.session import SessionObserver
from wayfarer_accounts.stats import member_count

logger = logging.getLogger(__name__)

_PROVIDER_AUTH_STATUS: dict[str, int] = {
    "email-already-in-use": 409,
    "invalid-email": 400,
    "weak-password": 400,
    "too-many-requests": 429,
}


class SignupRequest(BaseModel):
    name: str
    email: str
    password: str
    confirm_password: str


class LoginRequest(BaseModel):
    email: str
    password: str


def _status_for(exc: AccountError) -> int:
    if isinstance(exc, AccountValidationError):
        return 422
    if isinstance(exc, EmailNotVerifiedError):
        return 403
    if isinstance(exc, ReauthRequiredError):
        return 409
    if isinstance(exc, NotSignedInError):
        return 401
    if isinstance(exc, ProviderAuthError):
        return _PROVIDER_AUTH_STATUS.get(exc.code, 401)
    return 502


def _http_error(exc: AccountError) -> HTTPException:
    detail: dict[str, object] = {"code": exc.code, "message": exc.message}
    if isinstance(exc, AccountValidationError):
        detail["failed_rules"] = exc.failed_rules
    return HTTPException(status_code=_status_for(exc), detail=detail)


def _storage_error(exc: PersistenceError) -> HTTPException:
    logger.error("Profile store failure during %s: %s", exc.operation, exc.detail)
    return HTTPException(
        status_code=503,
        detail={"code": "profile-store-unavailable", "message": "An error occurred. Please try again."},
    )


def create_accounts_router(
    accounts: AccountLifecycle,
    observer: SessionObserver,
    profiles: ProfileStore,
    *,
    prefix: str = "/accounts",
) -> APIRouter:
    """Create a router for a single-session front end.

    .. warning::
        The process holds exactly one session, shared by every request.
        ``GET /me`` and ``DELETE /me`` act on whoever signed in last, with no
        check of who is calling. Serve this router to a single local client
        only (for example a desktop shell on loopback); never expose it to
        more than one client.

    Endpoints:

    - ``POST /accounts/signup`` — 202 with ``status: pending-verification``.
    - ``POST /accounts/login`` — 200 with the current identity.
    - ``POST /accounts/logout`` — 204, always.
    - ``GET /accounts/me`` — the current identity or ``null``.
    - ``DELETE /accounts/me`` — 204; 409 ``reauth-required`` when the
      provider wants a fresh sign-in first.
    - ``GET /accounts/stats/members`` — formatted member count.

    Asking the user to confirm a deletion is the client's job; this router
    deletes on request.
    """
    router = APIRouter(prefix=prefix, tags=["accounts"])

    @router.post("/signup", status_code=202)
    async def signup(body: SignupRequest) -> JSONResponse:
        try:
            result = await accounts.signup(body.name, body.email, body.password, body.confirm_password)
        except AccountError as exc:
            raise _http_error(exc) from exc
        except PersistenceError as exc:
            raise _storage_error(exc) from exc
        return JSONResponse(status_code=202, content=result.model_dump())

    @router.post("/login")
    async def login(body: LoginRequest) -> JSONResponse:
        try:
            current = await accounts.login(body.email, body.password)
        except AccountError as exc:
            raise _http_error(exc) from exc
        return JSONResponse(content=current.model_dump())

    @router.post("/logout", status_code=204)
    async def logout() -> Response:
        await accounts.logout()
        return Response(status_code=204)

    @router.get("/me")
    async def me() -> JSONResponse:
        current = observer.current
        return JSONResponse(content=current.model_dump() if current else None)

    @router.delete("/me", status_code=204)
    async def delete_me() -> Response:
        try:
            await accounts.delete_account(observer.current)
        except AccountError as exc:
            raise _http_error(exc) from exc
        except PersistenceError as exc:
            raise _storage_error(exc) from exc
        return Response(status_code=204)

    @router.get("/stats/members")
    async def members() -> JSONResponse:
        return JSONResponse(content={"members": await member_count(profiles)})

    return router
