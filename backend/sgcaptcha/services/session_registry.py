"""One CaptchaSession per origin for the hosting service."""

import httpx
import structlog

from sgcaptcha.services.challenge_service import CaptchaSession, normalize_origin

logger = structlog.get_logger()


class SessionRegistry:
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport
        self._sessions: dict[str, CaptchaSession] = {}

    def get(self, origin: str) -> CaptchaSession:
        """Return the session for an origin, creating it on first use."""
        key = normalize_origin(origin)
        session = self._sessions.get(key)
        if session is None:
            session = CaptchaSession(key, transport=self._transport)
            self._sessions[key] = session
            logger.info("captcha_session_created", origin=key)
        return session

    def find(self, origin: str) -> CaptchaSession | None:
        """Return the session for an origin without creating one."""
        return self._sessions.get(normalize_origin(origin))

    def sessions(self) -> list[CaptchaSession]:
        return list(self._sessions.values())

    async def close_all(self) -> None:
        for session in self._sessions.values():
            await session.aclose()
        self._sessions.clear()


registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    """Dependency for FastAPI endpoints."""
    return registry
