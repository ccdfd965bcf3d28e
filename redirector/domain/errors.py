from __future__ import annotations

from typing import Any


class RedirectorError(Exception):
    status_code = 500

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class ValidationError(RedirectorError):
    status_code = 400


class BadPath(ValidationError):
    pass


class MissingField(ValidationError):
    pass


class AuthError(RedirectorError):
    status_code = 401


class Unauthenticated(AuthError):
    pass


class Forbidden(AuthError):
    status_code = 403


class ProviderError(AuthError):
    status_code = 400


class MissingCode(AuthError):
    status_code = 400


class NoAccount(AuthError):
    status_code = 403

    def __init__(self, email: str) -> None:
        super().__init__(f"no account is linked to {email}")
        self.email = email


class NotFoundError(RedirectorError):
    status_code = 404

    def __init__(self, route: str, available: list[str]) -> None:
        super().__init__(f"Not found: /{route}", route=route, available=available)
        self.route = route
        self.available = available


class UpstreamError(RedirectorError):
    status_code = 502


class StoreUnavailableError(UpstreamError):
    status_code = 503
