"""Hosted identity provider client for the Identity Toolkit REST API."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from wayfarer_accounts.config import IdentityToolkitConfig
from wayfarer_accounts.credentials.base import SessionListener, SessionListeners, Unsubscribe
from wayfarer_accounts.errors import REQUIRES_RECENT_LOGIN, CredentialStoreError
from wayfarer_accounts.identity import Identity

logger = logging.getLogger(__name__)

# Provider error strings -> normalized credential-store codes.
_ERROR_CODES: dict[str, str] = {
    "EMAIL_EXISTS": "email-already-in-use",
    "INVALID_EMAIL": "invalid-email",
    "MISSING_EMAIL": "invalid-email",
    "WEAK_PASSWORD": "weak-password",
    "EMAIL_NOT_FOUND": "user-not-found",
    "USER_NOT_FOUND": "user-not-found",
    "INVALID_PASSWORD": "wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "invalid-credential",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "too-many-requests",
    "CREDENTIAL_TOO_OLD_LOGIN_AGAIN": REQUIRES_RECENT_LOGIN,
    "TOKEN_EXPIRED": "user-token-expired",
    "INVALID_ID_TOKEN": "user-token-expired",
    "USER_DISABLED": "user-disabled",
}


def _error_from_response(response: httpx.Response) -> CredentialStoreError:
    """Build a :class:`CredentialStoreError` from a provider error body.

    Error bodies look like ``{"error": {"message": "WEAK_PASSWORD : Password should be ..."}}``.
    """
    try:
        raw = str(response.json()["error"]["message"])
    except (ValueError, KeyError, TypeError):
        return CredentialStoreError("internal-error", f"Provider returned HTTP {response.status_code}.")
    key, _, detail = raw.partition(" : ")
    key = key.strip()
    return CredentialStoreError(_ERROR_CODES.get(key, key.lower().replace("_", "-")), detail.strip())


@dataclass
class _Token:
    id_token: str
    signed_in_at: float


class IdentityToolkitCredentialStore:
    """Credential store backed by a hosted provider over HTTPS.

    The ID token from the latest sign-in is held in memory for the signed-in
    identity and sent with verification and deletion requests. Signing out is
    local: the token is dropped and listeners are told the session ended.
    """

    def __init__(self, config: IdentityToolkitConfig, client: httpx.AsyncClient | None = None) -> None:
        config.require_api_key()
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self._session: Identity | None = None
        self._tokens: dict[str, _Token] = {}
        self._listeners = SessionListeners()

    async def __aenter__(self) -> IdentityToolkitCredentialStore:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.config.base_url.rstrip('/')}/accounts:{method}"
        try:
            response = await self._client.post(url, params={"key": self.config.api_key}, json=payload)
        except httpx.HTTPError as exc:
            logger.error("Identity provider request failed: method=%s error=%s", method, type(exc).__name__)
            raise CredentialStoreError("network-request-failed", "Could not reach the identity provider.") from exc
        if response.status_code >= 400:
            error = _error_from_response(response)
            logger.info("Identity provider rejected %s: code=%s", method, error.code)
            raise error
        try:
            data: dict[str, Any] = response.json()
        except ValueError as exc:
            logger.error("Identity provider returned a non-JSON body: method=%s", method)
            raise CredentialStoreError(
                "internal-error", f"Provider returned an unreadable response for {method}."
            ) from exc
        return data

    async def _start_session(self, identity: Identity, id_token: str) -> None:
        # Only the signed-in identity holds a token.
        self._tokens.clear()
        self._tokens[identity.uid] = _Token(id_token=id_token, signed_in_at=time.monotonic())
        if identity != self._session:
            self._session = identity
            await self._listeners.notify(identity)

    async def register(self, email: str, password: str) -> Identity:
        data = await self._post("signUp", {"email": email, "password": password, "returnSecureToken": True})
        identity = Identity(uid=data["localId"], email=data.get("email", email), email_verified=False)
        await self._start_session(identity, data["idToken"])
        return identity

    async def authenticate(self, email: str, password: str) -> Identity:
        data = await self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        lookup = await self._post("lookup", {"idToken": data["idToken"]})
        users = lookup.get("users") or [{}]
        identity = Identity(
            uid=data["localId"],
            email=data.get("email", email),
            email_verified=bool(users[0].get("emailVerified", False)),
        )
        await self._start_session(identity, data["idToken"])
        return identity

    async def send_verification(self, identity: Identity) -> None:
        token = self._tokens.get(identity.uid)
        if token is None:
            raise CredentialStoreError("user-token-expired", "No active sign-in for this identity.")
        await self._post("sendOobCode", {"requestType": "VERIFY_EMAIL", "idToken": token.id_token})

    async def sign_out(self) -> None:
        self._tokens.clear()
        if self._session is None:
            return
        self._session = None
        await self._listeners.notify(None)

    async def delete_identity(self, identity: Identity) -> None:
        token = self._tokens.get(identity.uid)
        if token is None or time.monotonic() - token.signed_in_at > self.config.recent_login_seconds:
            raise CredentialStoreError(REQUIRES_RECENT_LOGIN, "This operation requires a recent sign-in.")
        try:
            await self._post("delete", {"idToken": token.id_token})
        except CredentialStoreError as exc:
            if exc.code == "user-token-expired":
                raise CredentialStoreError(REQUIRES_RECENT_LOGIN, exc.detail) from exc
            raise
        self._tokens.pop(identity.uid, None)
        if self._session is not None and self._session.uid == identity.uid:
            self._session = None
            await self._listeners.notify(None)

    def on_session_change(self, callback: SessionListener) -> Unsubscribe:
        return self._listeners.add(callback)

    def current_session(self) -> Identity | None:
        return self._session
