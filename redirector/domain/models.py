from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField


def now_utc() -> datetime:
    return datetime.now(UTC)


class AuthMethod(StrEnum):
    SESSION = "session"
    API_KEY = "api_key"


class HealthStatus(StrEnum):
    UP = "up"
    DOWN = "down"


class Route(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    target: str


class Identity(BaseModel):
    email: str
    tenant: str


class Session(BaseModel):
    session_id: str
    email: str
    tenant: str
    created_at: datetime = PydanticField(default_factory=now_utc)


class SessionRecord(BaseModel):
    email: str
    tenant: str
    created_at: datetime = PydanticField(default_factory=now_utc)


class AuthResult(BaseModel):
    tenant: str
    method: AuthMethod
    email: str | None = None
    session_id: str | None = None

    @property
    def actor(self) -> str:
        return self.email or self.method.value


class Resolution(BaseModel):
    tenant: str
    route: str | None = None
    target: str | None = None

    @property
    def is_landing(self) -> bool:
        return self.route is None


class RouteCreate(BaseModel):
    path: str = ""
    target: str = ""


class RouteRead(BaseModel):
    path: str
    target: str
    views: int = 0


class RouteListResponse(BaseModel):
    routes: list[RouteRead]


class RouteWriteResponse(BaseModel):
    success: bool = True
    path: str
    target: str


class RouteDeleteResponse(BaseModel):
    success: bool = True
    deleted: str


class AccountLinkRequest(BaseModel):
    email: str = ""
    tenant: str = ""


class AccountLinkResponse(BaseModel):
    success: bool = True
    email: str
    tenant: str


class AccountUnlinkResponse(BaseModel):
    success: bool = True
    deleted: str


class WhoAmIResponse(BaseModel):
    tenant: str
    email: str | None
    method: AuthMethod


class HealthRecord(BaseModel):
    name: str
    url: str
    status: HealthStatus
    checked_at: datetime = PydanticField(default_factory=now_utc)
    detail: str | None = None
