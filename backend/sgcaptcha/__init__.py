"""SiteGround proof-of-work CAPTCHA bypass.

Library entry points::

    async with CaptchaSession("https://example.org") as session:
        await session.bypass_captcha()
        await session.login(username, password)
        response = await session.fetch_page("https://example.org/members/")
"""

from sgcaptcha.services.challenge_service import CaptchaSession, ProtocolState
from sgcaptcha.services.pow_service import Solution, solve_pow, solve_pow_async

__all__ = [
    "CaptchaSession",
    "ProtocolState",
    "Solution",
    "solve_pow",
    "solve_pow_async",
]
