import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from sgcaptcha.config import settings
from sgcaptcha.errors import MalformedChallenge
from sgcaptcha.middleware.rate_limit import limiter
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
from sgcaptcha.services.challenge_service import ProtocolState, origin_of
from sgcaptcha.services.pow_service import parse_complexity, solve_pow_async
from sgcaptcha.services.session_registry import SessionRegistry, get_registry

router = APIRouter()
logger = structlog.get_logger()


@router.post("/pow/solve", response_model=SolveResponse)
@limiter.limit(settings.rate_limit_solves)
async def solve_challenge(request: Request, solve_data: SolveRequest):
    """
    Solve a raw challenge string without touching any session.

    ``found`` is false when the attempt budget or deadline ran out.
    """
    try:
        complexity = parse_complexity(solve_data.challenge)
    except MalformedChallenge as e:
        raise HTTPException(status_code=422, detail=str(e))

    solution = await solve_pow_async(
        solve_data.challenge,
        solve_data.max_attempts,
        settings.pow_solve_deadline_seconds,
    )
    if solution is None:
        return SolveResponse(found=False, complexity=complexity)

    return SolveResponse(
        found=True,
        complexity=complexity,
        solution=solution.encoded,
        elapsed_ms=solution.elapsed_ms,
        attempts=solution.attempts,
    )


@router.post("/sessions/bypass", response_model=SessionActionResponse)
@limiter.limit(settings.rate_limit_bypass)
async def bypass_session(
    request: Request,
    origin_data: OriginRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    session = registry.get(origin_data.origin or settings.base_origin)
    success = await session.bypass_captcha()
    return SessionActionResponse(success=success, status=session.get_status())


@router.post("/sessions/login", response_model=SessionActionResponse)
async def login_session(
    login_data: LoginRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Log in on the origin's session, bypassing the challenge first if needed.

    Falls back to the configured credentials when the request has none.
    """
    username = login_data.username or settings.login_username
    password = login_data.password or settings.login_password
    if not username or not password:
        raise HTTPException(status_code=400, detail="No login credentials configured")

    session = registry.get(login_data.origin or settings.base_origin)
    success = await session.login(username, password)
    return SessionActionResponse(success=success, status=session.get_status())


@router.post("/sessions/fetch", response_model=FetchResponse)
async def fetch_through_session(
    fetch_data: FetchRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    session = registry.get(origin_of(fetch_data.url))
    response = await session.fetch_page(fetch_data.url)
    if response is None:
        raise HTTPException(status_code=502, detail="Fetch failed")

    return FetchResponse(
        status_code=response.status_code,
        url=str(response.url),
        body=response.text,
    )


@router.get("/sessions/status", response_model=SessionStatus)
async def session_status(
    origin: str | None = None,
    registry: SessionRegistry = Depends(get_registry),
):
    """Status of an origin's session; origins never used report a blank session."""
    session = registry.find(origin or settings.base_origin)
    if session is None:
        return SessionStatus(
            session_valid=False,
            cookie_count=0,
            has_session_cookie=False,
            has_auth_cookie=False,
            state=ProtocolState.UNCHALLENGED.value,
        )
    return session.get_status()


@router.post("/sessions/reset", response_model=SessionStatus)
async def reset_session(
    origin_data: OriginRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    session = registry.find(origin_data.origin or settings.base_origin)
    if session is None:
        raise HTTPException(status_code=404, detail="No session for this origin")

    session.reset_session()
    logger.info("captcha_session_reset", origin=session.base_origin)
    return session.get_status()
