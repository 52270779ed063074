"""Error kinds raised inside the captcha bypass flow.

The public session methods catch ``CaptchaError`` and degrade to ``False``
or ``None``; these exceptions only escape when the lower-level pieces
(solver, HTTP client, page parser) are used directly.
"""


class CaptchaError(RuntimeError):
    """Base class for every failure of the bypass subsystem."""


class MalformedChallenge(CaptchaError):
    """Challenge string has no integer complexity before the first colon."""

    def __init__(self, challenge: str):
        super().__init__(f"Malformed challenge: {challenge[:40]!r}")
        self.challenge = challenge


class SolutionNotFound(CaptchaError):
    """PoW search ran out of attempts, hit its deadline or was cancelled."""


class ChallengeParseError(CaptchaError):
    """Expected challenge markers are missing from a page."""


class SubmissionRejected(CaptchaError):
    """Solution was submitted but the origin issued no session cookie."""


class TooManyRedirects(CaptchaError):
    def __init__(self, url: str, max_redirects: int):
        super().__init__(f"Too many redirects ({max_redirects}) starting at {url}")
        self.url = url
        self.max_redirects = max_redirects


class RequestTimeout(CaptchaError):
    """Request exceeded its timeout. Transient."""


class NetworkError(CaptchaError):
    """Connection-level failure. Transient."""
