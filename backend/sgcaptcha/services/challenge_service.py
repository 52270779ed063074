"""
SiteGround CAPTCHA bypass protocol.

Flow:
1. GET the origin root. A clean 200 without markers needs no bypass.
2. Follow the ``content="0;<url>"`` meta refresh to the challenge page
   (or read ``sgchallenge`` straight from the first page).
3. Solve the proof-of-work on a worker thread.
4. Submit ``sol`` and ``s`` to the submission path, following redirects.
5. A session cookie set by the submission means the session is established.
   Any older cookie of that name is dropped before submitting.

A ``CaptchaSession`` is owned by its caller and targets one origin.
"""

import asyncio
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from urllib.parse import quote, urljoin, urlsplit

import httpx
import structlog

from sgcaptcha.config import settings
from sgcaptcha.errors import CaptchaError, ChallengeParseError, SolutionNotFound, SubmissionRejected
from sgcaptcha.schemas.session import SessionStatus
from sgcaptcha.services import login_service
from sgcaptcha.services.http_client import SessionHttpClient
from sgcaptcha.services.page_parser import (
    CHALLENGE_MARKER,
    find_challenge,
    find_meta_refresh,
    find_script_challenge,
    is_challenge_response,
    parse_challenge_page,
)
from sgcaptcha.services.pow_service import Solution, parse_complexity, solve_pow_async

logger = structlog.get_logger()

BODY_PREVIEW_CHARS = 300


class ProtocolState(str, Enum):
    UNCHALLENGED = "unchallenged"
    CHALLENGE_DETECTED = "challenge_detected"
    SOLVING = "solving"
    SUBMITTING = "submitting"
    SESSION_ESTABLISHED = "session_established"
    FAILED = "failed"


def normalize_origin(origin: str) -> str:
    return origin.strip().rstrip("/")


def origin_of(url: str) -> str:
    """``scheme://host[:port]`` of a URL."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def build_submission_url(origin: str, submit_path: str, solution: Solution) -> str:
    """Append ``sol`` and ``s`` to the submission path."""
    base = submit_path if submit_path.startswith("http") else f"{origin}{submit_path}"
    sep = "&" if "?" in base else "?"
    sol = quote(solution.encoded, safe="")
    return f"{base}{sep}sol={sol}&s={solution.elapsed_ms}:{solution.attempts}"


def _preview(body: str) -> str:
    return body[:BODY_PREVIEW_CHARS].replace("\n", " ")


class CaptchaSession:
    """
    Bypass state for one origin: cookie jar, session flag, last solve time.

    Bypass runs are serialised by an internal lock. Everything else assumes a
    single flow of calls; use one session per origin for parallel scraping.
    """

    def __init__(
        self,
        base_origin: str | None = None,
        *,
        client: SessionHttpClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_origin = normalize_origin(base_origin or settings.base_origin)
        self.client = client or SessionHttpClient(transport=transport)
        self.session_valid = False
        self.last_solve_time: datetime | None = None
        self.last_debug: dict[str, Any] | None = None
        self.state = ProtocolState.UNCHALLENGED
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "CaptchaSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @property
    def cookies(self) -> dict[str, str]:
        return self.client.cookies

    @property
    def has_session_cookie(self) -> bool:
        return settings.session_cookie_name in self.cookies

    @property
    def has_auth_cookie(self) -> bool:
        return any(
            name.startswith(prefix)
            for name in self.cookies
            for prefix in settings.auth_cookie_prefixes
        )

    def invalidate(self, drop_session_cookie: bool = False) -> None:
        """Mark the session as needing a bypass before the next trusted fetch."""
        self.session_valid = False
        self.state = ProtocolState.UNCHALLENGED
        if drop_session_cookie:
            self.cookies.pop(settings.session_cookie_name, None)

    def _establish(self, solved: bool) -> None:
        self.session_valid = True
        self.state = ProtocolState.SESSION_ESTABLISHED
        if solved:
            self.last_solve_time = datetime.now(UTC)

    def _record_failure(self, error: Exception) -> None:
        self.session_valid = False
        self.state = ProtocolState.FAILED
        self.last_debug = {**(self.last_debug or {}), "error": str(error)}

    async def bypass_captcha(self, base_origin: str | None = None) -> bool:
        """
        Establish a session against an origin.

        Returns True when no challenge was served or the challenge was solved
        and accepted. Failures are logged and reported as False; the caller
        may retry later with a fresh challenge.
        """
        origin = normalize_origin(base_origin or self.base_origin)
        async with self._lock:
            try:
                return await self._bypass(origin)
            except CaptchaError as e:
                self._record_failure(e)
                logger.warning(
                    "captcha_bypass_failed",
                    origin=origin,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                return False

    async def _bypass(self, origin: str) -> bool:
        self.state = ProtocolState.UNCHALLENGED
        logger.info("captcha_bypass_started", origin=origin)

        initial = await self.client.request(f"{origin}/")
        body = initial.text
        self.last_debug = {
            "initial": {
                "status": initial.status_code,
                "body_length": len(body),
                "body_preview": _preview(body),
                "headers": list(initial.headers.keys()),
                "set_cookies": [
                    c.split(";", 1)[0] for c in initial.headers.get_list("set-cookie")
                ],
            }
        }
        logger.info(
            "captcha_initial_response",
            origin=origin,
            status_code=initial.status_code,
            body_length=len(body),
        )

        refresh_target = find_meta_refresh(body)
        direct = find_challenge(body)

        if refresh_target is None and direct is None:
            if initial.status_code == 200 and settings.challenge_header not in initial.headers:
                logger.info("captcha_not_required", origin=origin)
                self._establish(solved=False)
                return True
            if initial.status_code == 403:
                logger.warning("captcha_origin_blocked", origin=origin, status_code=403)
                self.last_debug["initial"]["blocked"] = True
            script_challenge = find_script_challenge(body)
            if script_challenge:
                logger.info("captcha_script_challenge_found", origin=origin)
                self.state = ProtocolState.CHALLENGE_DETECTED
                return await self._solve_and_submit(
                    script_challenge, settings.default_submit_path, origin
                )
            raise ChallengeParseError(f"No challenge found (status={initial.status_code})")

        self.state = ProtocolState.CHALLENGE_DETECTED
        if direct is not None:
            logger.info("captcha_challenge_inline", origin=origin)
            page = direct
        else:
            challenge_url = urljoin(f"{origin}/", refresh_target)
            challenge_response = await self.client.request(challenge_url)
            self.last_debug["challenge_page"] = {
                "url": challenge_url,
                "status": challenge_response.status_code,
                "body_length": len(challenge_response.text),
                "body_preview": _preview(challenge_response.text),
            }
            logger.info(
                "captcha_challenge_page_fetched",
                origin=origin,
                status_code=challenge_response.status_code,
            )
            page = parse_challenge_page(challenge_response.text)

        return await self._solve_and_submit(
            page.challenge, page.submit_path or settings.default_submit_path, origin
        )

    async def _solve_and_submit(self, challenge: str, submit_path: str, origin: str) -> bool:
        complexity = parse_complexity(challenge)
        self.state = ProtocolState.SOLVING
        logger.info("pow_solve_started", origin=origin, complexity=complexity)

        solution = await solve_pow_async(
            challenge,
            settings.pow_max_attempts,
            settings.pow_solve_deadline_seconds,
        )
        if solution is None:
            raise SolutionNotFound(f"No solution found for complexity {complexity}")

        logger.info(
            "pow_solved",
            origin=origin,
            complexity=complexity,
            elapsed_ms=solution.elapsed_ms,
            attempts=solution.attempts,
        )
        self.last_debug["solve"] = {
            "complexity": complexity,
            "elapsed_ms": solution.elapsed_ms,
            "attempts": solution.attempts,
        }

        self.state = ProtocolState.SUBMITTING
        # Only a cookie issued in answer to this submission proves acceptance
        self.cookies.pop(settings.session_cookie_name, None)
        submit_url = build_submission_url(origin, submit_path, solution)
        submit_response = await self.client.request_following_redirects(submit_url)
        self.last_debug["submit"] = {
            "status": submit_response.status_code,
            "cookies": list(self.cookies),
        }
        logger.info(
            "captcha_solution_submitted",
            origin=origin,
            status_code=submit_response.status_code,
        )

        if self.has_session_cookie:
            self._establish(solved=True)
            logger.info("captcha_session_established", origin=origin)
            return True

        # Some deployments accept the solution without issuing the cookie
        probe = await self.client.request(f"{origin}/")
        if (
            probe.status_code == 200
            and len(probe.text) > settings.unchallenged_min_body_length
            and CHALLENGE_MARKER not in probe.text
        ):
            self._establish(solved=True)
            logger.info("captcha_access_granted_without_cookie", origin=origin)
            return True

        raise SubmissionRejected("Solution submitted but no session cookie obtained")

    async def fetch_page(self, url: str) -> httpx.Response | None:
        """
        GET a page, re-solving the challenge once if it comes back.

        Returns None when the request fails or the re-bypass fails.
        """
        try:
            response = await self.client.request(url)
            challenged = is_challenge_response(
                response.text, response.headers, settings.challenge_header
            )
            if not challenged:
                return response

            logger.info("captcha_resolve_required", origin=origin_of(url))
            self.invalidate()
            if not await self.bypass_captcha(origin_of(url)):
                return None
            return await self.client.request(url)
        except CaptchaError as e:
            logger.error(
                "captcha_fetch_failed",
                origin=origin_of(url),
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    async def login(self, username: str, password: str, base_origin: str | None = None) -> bool:
        """Form login on top of the bypassed session. See ``login_service``."""
        origin = normalize_origin(base_origin or self.base_origin)
        return await login_service.wp_login(self, username, password, origin)

    def get_status(self) -> SessionStatus:
        return SessionStatus(
            session_valid=self.session_valid,
            last_solve_time=self.last_solve_time,
            cookie_count=len(self.cookies),
            has_session_cookie=self.has_session_cookie,
            has_auth_cookie=self.has_auth_cookie,
            state=self.state.value,
            last_debug=self.last_debug,
        )

    def reset_session(self) -> None:
        self.client.clear_cookies()
        self.session_valid = False
        self.last_solve_time = None
        self.last_debug = None
        self.state = ProtocolState.UNCHALLENGED
