"""
SiteGround-style proof-of-work solver.

A challenge looks like ``complexity:timestamp:hex:hash:``. The solver looks for
a counter such that SHA-1(challenge || counter_bytes) has ``complexity``
leading zero bits, where ``counter_bytes`` is the shortest big-endian encoding
of the counter (1 to 4 bytes). The origin verifies the exact bytes, so the
width thresholds are part of the wire format.
"""

import asyncio
import base64
import hashlib
import re
import threading
import time
from dataclasses import dataclass

import structlog

from sgcaptcha.config import settings
from sgcaptcha.errors import MalformedChallenge

logger = structlog.get_logger()

# Candidates tried between checks of the cancel event and deadline
CANCEL_CHECK_INTERVAL = 4096

# ASCII digits only
COMPLEXITY_PATTERN = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class Solution:
    payload: bytes
    elapsed_ms: int
    attempts: int

    @property
    def encoded(self) -> str:
        """Base64 form of the payload, as submitted in the ``sol`` parameter."""
        return base64.b64encode(self.payload).decode("ascii")


def parse_complexity(challenge: str) -> int:
    """Return the integer complexity that prefixes a challenge string."""
    head = challenge.split(":", 1)[0].strip()
    if not COMPLEXITY_PATTERN.fullmatch(head):
        raise MalformedChallenge(challenge)
    return int(head)


def compute_mask(complexity: int) -> int:
    """32-bit mask selecting the leading ``complexity`` bits of a hash word.

    Complexity 32 and above yields 0, so the very first hash passes. The
    browser solver behaves the same way.
    """
    if complexity >= 32:
        return 0
    return (0xFFFFFFFF << (32 - complexity)) & 0xFFFFFFFF


def encode_counter(counter: int) -> bytes:
    """Minimal big-endian encoding: 1 byte up to 255, 2 up to 65535, 3 up to 16777215, else 4."""
    if counter > 0xFFFFFF:
        width = 4
    elif counter > 0xFFFF:
        width = 3
    elif counter > 0xFF:
        width = 2
    else:
        width = 1
    return counter.to_bytes(width, "big")


def solve_pow(
    challenge: str,
    max_attempts: int | None = None,
    *,
    cancel_event: threading.Event | None = None,
    deadline: float | None = None,
) -> Solution | None:
    """
    Brute-force the counter for a challenge.

    Args:
        challenge: Raw challenge string from the origin.
        max_attempts: Counter budget; defaults to ``settings.pow_max_attempts``.
        cancel_event: Stops the search when set.
        deadline: ``time.monotonic()`` value after which the search stops.

    Returns:
        The winning Solution, or None when the budget ran out, the deadline
        passed or the search was cancelled. None is routine: ask the origin
        for a fresh challenge and retry.

    Raises:
        MalformedChallenge: complexity prefix is not a non-negative integer.
    """
    complexity = parse_complexity(challenge)
    mask = compute_mask(complexity)
    base = challenge.encode("utf-8")
    if max_attempts is None:
        max_attempts = settings.pow_max_attempts

    sha1 = hashlib.sha1
    start = time.monotonic()
    counter = 0
    while counter < max_attempts:
        if counter % CANCEL_CHECK_INTERVAL == 0 and counter:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("pow_cancelled", complexity=complexity, attempts=counter)
                return None
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning("pow_deadline_exceeded", complexity=complexity, attempts=counter)
                return None

        payload = base + encode_counter(counter)
        if int.from_bytes(sha1(payload).digest()[:4], "big") & mask == 0:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            return Solution(payload=payload, elapsed_ms=elapsed_ms, attempts=counter)
        counter += 1

    logger.warning("pow_attempts_exhausted", complexity=complexity, max_attempts=max_attempts)
    return None


async def solve_pow_async(
    challenge: str,
    max_attempts: int | None = None,
    deadline_seconds: float | None = None,
) -> Solution | None:
    """Run ``solve_pow`` on a worker thread so the event loop keeps serving I/O.

    Cancelling the awaiting task stops the worker at its next check.
    """
    cancel_event = threading.Event()
    deadline = None
    if deadline_seconds is not None:
        deadline = time.monotonic() + deadline_seconds

    try:
        return await asyncio.to_thread(
            solve_pow,
            challenge,
            max_attempts,
            cancel_event=cancel_event,
            deadline=deadline,
        )
    except asyncio.CancelledError:
        cancel_event.set()
        raise
