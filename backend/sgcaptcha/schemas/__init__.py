from sgcaptcha.schemas.session import (
    FetchRequest,
    FetchResponse,
    LoginRequest,
    OriginRequest,
    SessionActionResponse,
    SessionStatus,
    SolveRequest,
    SolveResponse,
)

__all__ = [
    "FetchRequest",
    "FetchResponse",
    "LoginRequest",
    "OriginRequest",
    "SessionActionResponse",
    "SessionStatus",
    "SolveRequest",
    "SolveResponse",
]
