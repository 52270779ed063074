from slowapi import Limiter
from starlette.requests import Request


def get_caller_key(request: Request) -> str:
    """Rate-limit key for a caller of the solve and bypass endpoints.

    Collaborators normally sit behind the same reverse proxy, so the first
    X-Forwarded-For hop identifies them. Direct calls fall back to the peer.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# Every solve pins a worker thread at 100% CPU
limiter = Limiter(key_func=get_caller_key)
