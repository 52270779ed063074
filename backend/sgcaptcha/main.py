from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from sgcaptcha.logging_config import setup_logging
from sgcaptcha.middleware.logging import LoggingMiddleware
from sgcaptcha.middleware.rate_limit import limiter
from sgcaptcha.routers import sessions
from sgcaptcha.scheduler import shutdown_scheduler, start_scheduler
from sgcaptcha.services.session_registry import registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the keep-alive scheduler; close every session on the way out."""
    setup_logging()
    start_scheduler(registry)
    yield
    shutdown_scheduler()
    await registry.close_all()


app = FastAPI(
    title="sgcaptcha",
    description="SiteGround proof-of-work CAPTCHA bypass and session service",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(LoggingMiddleware)

# Routers
app.include_router(sessions.router, prefix="/api/v1", tags=["sessions"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
