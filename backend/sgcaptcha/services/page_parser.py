"""
Markup patterns for the challenge and login pages.

These regexes are tied to the origin's current HTML. When the site changes,
this module is the only place that should need updating.
"""

import html
import re
from dataclasses import dataclass
from typing import Mapping

from sgcaptcha.errors import ChallengeParseError

META_REFRESH_PATTERN = re.compile(r'content="0;([^"]+)"')
CHALLENGE_PATTERN = re.compile(r'sgchallenge="([^"]+)"')
SUBMIT_URL_PATTERN = re.compile(r'sgsubmit_url="([^"]+)"')
SCRIPT_CHALLENGE_PATTERN = re.compile(r"""challenge\s*[:=]\s*["']([^"']+)["']""")
LOGIN_ERROR_PATTERN = re.compile(r'id="login_error"[^>]*>(.*?)</div', re.DOTALL)
TAG_PATTERN = re.compile(r"<[^>]+>")

CHALLENGE_MARKER = "sgchallenge"


@dataclass(frozen=True)
class ChallengePage:
    challenge: str
    submit_path: str | None = None


def find_meta_refresh(body: str) -> str | None:
    """Target of a ``content="0;<url>"`` meta refresh, if any."""
    match = META_REFRESH_PATTERN.search(body)
    return html.unescape(match.group(1)) if match else None


def find_challenge(body: str) -> ChallengePage | None:
    """Challenge token and optional submit path embedded in a page."""
    match = CHALLENGE_PATTERN.search(body)
    if not match:
        return None
    submit = SUBMIT_URL_PATTERN.search(body)
    return ChallengePage(
        challenge=match.group(1),
        submit_path=html.unescape(submit.group(1)) if submit else None,
    )


def parse_challenge_page(body: str) -> ChallengePage:
    """Like ``find_challenge`` but the token is mandatory."""
    page = find_challenge(body)
    if page is None:
        raise ChallengeParseError("No sgchallenge in challenge page")
    return page


def find_script_challenge(body: str) -> str | None:
    """Challenge assigned in inline script (``challenge: "..."``)."""
    match = SCRIPT_CHALLENGE_PATTERN.search(body)
    return match.group(1) if match else None


def is_challenge_response(
    body: str, headers: Mapping[str, str], challenge_header: str = "sg-captcha"
) -> bool:
    """True when a response is the challenge interstitial rather than content."""
    return CHALLENGE_MARKER in body or challenge_header in headers


def extract_login_error(body: str) -> str | None:
    """Plain-text contents of the login form's error box, if present."""
    match = LOGIN_ERROR_PATTERN.search(body)
    if not match:
        return None
    text = html.unescape(TAG_PATTERN.sub("", match.group(1))).strip()
    return text or None
