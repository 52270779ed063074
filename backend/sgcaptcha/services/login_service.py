"""WordPress form login on top of a bypassed session."""

from typing import TYPE_CHECKING
from urllib.parse import urlencode, urljoin

import structlog

from sgcaptcha.config import settings
from sgcaptcha.errors import CaptchaError
from sgcaptcha.services.page_parser import extract_login_error

if TYPE_CHECKING:
    from sgcaptcha.services.challenge_service import CaptchaSession

logger = structlog.get_logger()


def build_login_form(username: str, password: str, origin: str) -> str:
    return urlencode(
        {
            "log": username,
            "pwd": password,
            "wp-submit": "Log In",
            "redirect_to": f"{origin}/",
            "testcookie": "1",
        }
    )


async def wp_login(session: "CaptchaSession", username: str, password: str, origin: str) -> bool:
    """
    Log in through ``wp-login.php``.

    Runs the bypass first when the session is not valid. Success means an
    authenticated cookie landed in the jar or the form answered with a 302,
    in which case the redirect is followed to collect the final cookies.
    """
    if not session.session_valid:
        if not await session.bypass_captcha(origin):
            logger.warning("wp_login_aborted", origin=origin, reason="captcha_bypass_failed")
            return False

    try:
        logger.info("wp_login_started", origin=origin)
        # wp-login.php refuses the form unless its test cookie is echoed back
        session.cookies[settings.test_cookie_name] = settings.test_cookie_value

        response = await session.client.request(
            f"{origin}{settings.login_path}",
            method="POST",
            body=build_login_form(username, password, origin),
        )

        if session.has_auth_cookie or response.status_code == 302:
            location = response.headers.get("location")
            if location:
                await session.client.request_following_redirects(urljoin(f"{origin}/", location))
            logger.info("wp_login_succeeded", origin=origin, status_code=response.status_code)
            return True

        error_text = extract_login_error(response.text)
        logger.error(
            "wp_login_failed",
            origin=origin,
            status_code=response.status_code,
            login_error=error_text,
        )
        return False
    except CaptchaError as e:
        logger.error(
            "wp_login_failed",
            origin=origin,
            error_type=type(e).__name__,
            error=str(e),
        )
        return False
