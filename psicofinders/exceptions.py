"""Error types shared across the backend."""

from typing import Optional


class StoreNotConfiguredError(RuntimeError):
    """Raised when a request needs the database but DATABASE_URL is not set"""

    def __init__(self, message: str = "Missing DATABASE_URL"):
        super().__init__(message)


class IdentityProviderError(Exception):
    """Raised when the identity provider rejects a request or cannot be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class IdentityProviderNotConfiguredError(IdentityProviderError):
    """Raised when AUTH_URL / AUTH_ANON_KEY are missing"""

    def __init__(self, message: str = "Missing AUTH_URL or AUTH_ANON_KEY"):
        super().__init__(message)


class SignInError(Exception):
    """Raised when an auth callback or password sign-in cannot produce a session"""

    pass


class MissingFieldError(ValueError):
    """Raised by application intake for the first required field that is absent"""

    def __init__(self, field: str):
        super().__init__(f"Missing field: {field}")
        self.field = field
