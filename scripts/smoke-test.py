#!/usr/bin/env python3
"""
Smoke test against a live SiteGround-protected origin.

Flow (default):
1. Bypass the PoW challenge on the origin root
2. Optional form login (--username/--password or LOGIN_USERNAME/LOGIN_PASSWORD)
3. Fetch each --path through the session and report status and size

Usage:
    ./scripts/smoke-test.py https://konesisrael.co.il
    ./scripts/smoke-test.py https://konesisrael.co.il --path /category/news/ --username me@x.org
"""

import argparse
import asyncio
import os
import sys
from datetime import datetime

from sgcaptcha.services.challenge_service import CaptchaSession

EXIT_BYPASS_FAILED = 2
EXIT_LOGIN_FAILED = 3
EXIT_FETCH_FAILED = 4


def log(msg: str) -> None:
    """Print timestamped log message."""
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SiteGround CAPTCHA bypass smoke test")
    parser.add_argument("origin", help="Origin to test, e.g. https://example.org")
    parser.add_argument("--path", action="append", default=[], help="Path to fetch (repeatable)")
    parser.add_argument("--username", default=os.environ.get("LOGIN_USERNAME"))
    parser.add_argument("--password", default=os.environ.get("LOGIN_PASSWORD"))
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    async with CaptchaSession(args.origin) as session:
        log(f"Step 1: bypass {session.base_origin}")
        if not await session.bypass_captcha():
            log(f"FAIL bypass: {session.get_status().last_debug}")
            return EXIT_BYPASS_FAILED
        status = session.get_status()
        solve = status.last_debug.get("solve")
        log(f"OK   session_cookie={status.has_session_cookie} solve={solve}")

        if args.username and args.password:
            log("Step 2: login")
            if not await session.login(args.username, args.password):
                log("FAIL login")
                return EXIT_LOGIN_FAILED
            log(f"OK   auth_cookie={session.get_status().has_auth_cookie}")
        else:
            log("Step 2: login skipped (no credentials)")

        for path in args.path or ["/"]:
            url = path if path.startswith("http") else f"{session.base_origin}{path}"
            response = await session.fetch_page(url)
            if response is None:
                log(f"FAIL fetch {url}")
                return EXIT_FETCH_FAILED
            log(f"OK   {response.status_code} {url} ({len(response.text)} chars)")

    return 0


def main() -> None:
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
