from __future__ import annotations

from enum import StrEnum


class LoginState(StrEnum):
    AWAITING_REDIRECT = "AWAITING_REDIRECT"
    AWAITING_CALLBACK = "AWAITING_CALLBACK"
    RESOLVED = "RESOLVED"
    FAILED = "FAILED"


LOGIN_ALLOWED_TRANSITIONS: dict[LoginState, set[LoginState]] = {
    LoginState.AWAITING_REDIRECT: {LoginState.AWAITING_CALLBACK},
    LoginState.AWAITING_CALLBACK: {LoginState.RESOLVED, LoginState.FAILED},
    LoginState.RESOLVED: set(),
    LoginState.FAILED: set(),
}


def can_login_transition(source: LoginState, target: LoginState) -> bool:
    return target in LOGIN_ALLOWED_TRANSITIONS.get(source, set())
