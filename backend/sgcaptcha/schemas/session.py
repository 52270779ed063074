from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SessionStatus(BaseModel):
    session_valid: bool
    last_solve_time: datetime | None = None
    cookie_count: int
    has_session_cookie: bool
    has_auth_cookie: bool
    state: str
    last_debug: dict[str, Any] | None = None


class SolveRequest(BaseModel):
    challenge: str = Field(..., min_length=1, max_length=512)
    max_attempts: int | None = Field(
        None, gt=0, le=50_000_000, description="Counter budget, server default if omitted"
    )


class SolveResponse(BaseModel):
    found: bool
    complexity: int
    solution: str | None = Field(None, description="Base64 of challenge || counter bytes")
    elapsed_ms: int | None = None
    attempts: int | None = None


class OriginRequest(BaseModel):
    origin: str | None = Field(None, description="Scheme and host; server default if omitted")


class LoginRequest(OriginRequest):
    username: str | None = None
    password: str | None = None


class FetchRequest(BaseModel):
    url: str = Field(..., min_length=1)


class FetchResponse(BaseModel):
    status_code: int
    url: str
    body: str


class SessionActionResponse(BaseModel):
    success: bool
    status: SessionStatus
