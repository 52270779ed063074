"""
Cookie-carrying HTTP client.

The client keeps its own name -> value jar instead of httpx's RFC cookie jar:
the origin sets cookies on paths and domains that a strict jar would refuse
to replay, and the protocol only ever needs the name=value pair.
"""

import re
from urllib.parse import urljoin

import httpx
import structlog

from sgcaptcha.config import settings
from sgcaptcha.errors import NetworkError, RequestTimeout, TooManyRedirects

logger = structlog.get_logger()

SET_COOKIE_PATTERN = re.compile(r"^([^=]+)=([^;]*)")

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def parse_set_cookie(header: str) -> tuple[str, str] | None:
    """Extract ``(name, value)`` from a Set-Cookie header, ignoring attributes."""
    match = SET_COOKIE_PATTERN.match(header)
    if not match:
        return None
    return match.group(1).strip(), match.group(2)


def default_headers() -> dict[str, str]:
    return {
        "User-Agent": settings.user_agent,
        "Accept": settings.accept,
        "Accept-Language": settings.accept_language,
        "Accept-Encoding": "identity",
        "Connection": "keep-alive",
    }


class SessionHttpClient:
    """
    HTTP client with a manual cookie jar and redirect following.

    One instance belongs to one logical session. Jar updates are not
    synchronised; callers sharing an instance across tasks must serialise.
    """

    def __init__(
        self,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = settings.request_timeout_seconds if timeout is None else timeout
        self.headers = default_headers()
        if headers:
            self.headers.update(headers)
        self.cookies: dict[str, str] = {}
        self._client = httpx.AsyncClient(
            follow_redirects=False,
            timeout=self.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "SessionHttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def cookie_header(self) -> str:
        return "; ".join(f"{name}={value}" for name, value in self.cookies.items())

    def clear_cookies(self) -> None:
        self.cookies.clear()

    def _store_cookies(self, response: httpx.Response) -> None:
        for header in response.headers.get_list("set-cookie"):
            parsed = parse_set_cookie(header)
            if parsed:
                name, value = parsed
                self.cookies[name] = value

    async def request(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: str | bytes | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """
        Send one request, replaying the jar and recording any Set-Cookie.

        Raises:
            RequestTimeout: the request exceeded its timeout.
            NetworkError: any other transport failure.
        """
        request_headers = dict(self.headers)
        cookie_str = self.cookie_header()
        if cookie_str:
            request_headers["Cookie"] = cookie_str
        if body is not None:
            request_headers["Content-Type"] = FORM_CONTENT_TYPE
        if headers:
            request_headers.update(headers)

        try:
            response = await self._client.request(
                method,
                url,
                headers=request_headers,
                content=body,
                timeout=self.timeout if timeout is None else timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("http_request_timeout", method=method, url=_strip_query(url))
            raise RequestTimeout(f"Request timeout: {method} {_strip_query(url)}") from e
        except httpx.RequestError as e:
            logger.warning(
                "http_request_error", method=method, url=_strip_query(url), error=str(e)
            )
            raise NetworkError(f"{type(e).__name__}: {e}") from e
        finally:
            # httpx keeps its own jar; ours is the only one that gets replayed
            self._client.cookies.clear()

        self._store_cookies(response)
        return response

    async def request_following_redirects(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: str | bytes | None = None,
        timeout: float | None = None,
        max_redirects: int | None = None,
    ) -> httpx.Response:
        """
        Send a request and follow up to ``max_redirects`` 3xx hops.

        Every hop after the first is a bodiless GET to ``Location`` resolved
        against the URL that produced it.

        Raises:
            TooManyRedirects: the chain is longer than ``max_redirects``.
        """
        if max_redirects is None:
            max_redirects = settings.max_redirects

        current_url = url
        for _hop in range(max_redirects + 1):
            response = await self.request(
                current_url, method=method, headers=headers, body=body, timeout=timeout
            )
            location = response.headers.get("location")
            if not (300 <= response.status_code < 400 and location):
                return response
            current_url = urljoin(current_url, location)
            method, body = "GET", None

        raise TooManyRedirects(url, max_redirects)


def _strip_query(url: str) -> str:
    return url.split("?", 1)[0]
