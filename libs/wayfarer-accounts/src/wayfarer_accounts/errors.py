"""Account lifecycle error types and provider error mapping."""

from __future__ import annotations

GENERIC_PROVIDER_MESSAGE = "An error occurred. Please try again."

# Normalized credential-store codes that map to a fixed user-facing message.
PROVIDER_AUTH_MESSAGES: dict[str, str] = {
    "email-already-in-use": "This email is already registered. Please login instead.",
    "invalid-email": "Invalid email address.",
    "weak-password": "Password is too weak. Use at least 6 characters.",
    "user-not-found": "No account found with this email.",
    "wrong-password": "Incorrect password.",
    "invalid-credential": "Incorrect email or password.",
    "too-many-requests": "Too many failed attempts. Please try again later.",
}

REQUIRES_RECENT_LOGIN = "requires-recent-login"


class AccountError(Exception):
    """Base class for every error surfaced by the account lifecycle."""

    code: str = "account-error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AccountValidationError(AccountError):
    """Raised before any network call when signup input is rejected locally."""

    code = "validation-error"

    def __init__(self, message: str, failed_rules: list[str] | None = None) -> None:
        super().__init__(message)
        self.failed_rules = failed_rules or []


class ProviderError(AccountError):
    """A failure reported by the identity provider."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class ProviderAuthError(ProviderError):
    """A provider failure with a known code and fixed user-facing message."""


class EmailNotVerifiedError(AccountError):
    """Login reached a valid identity whose email is not yet verified."""

    code = "email-not-verified"

    def __init__(self) -> None:
        super().__init__("Please verify your email before logging in. Check your inbox for the verification link.")


class ReauthRequiredError(AccountError):
    """Identity deletion needs a fresh sign-in; the profile may already be gone."""

    code = "reauth-required"

    def __init__(self) -> None:
        super().__init__("For security reasons, please log out and log back in before deleting your account.")


class NotSignedInError(AccountError):
    """An operation needing a current identity was called with none."""

    code = "not-signed-in"

    def __init__(self) -> None:
        super().__init__("No account is signed in.")


class CredentialStoreError(Exception):
    """Raised by credential stores with a normalized provider code.

    Attributes:
        code: Normalized code such as ``"email-already-in-use"``.
        detail: Provider-supplied description, safe to show as a fallback.
    """

    def __init__(self, code: str, detail: str = "") -> None:
        super().__init__(f"{code}: {detail}" if detail else code)
        self.code = code
        self.detail = detail


def map_provider_error(exc: CredentialStoreError) -> ProviderError:
    """Translate a credential-store failure into the error shown to the user."""
    message = PROVIDER_AUTH_MESSAGES.get(exc.code)
    if message is not None:
        return ProviderAuthError(exc.code, message)
    return ProviderError(exc.code, exc.detail or GENERIC_PROVIDER_MESSAGE)
