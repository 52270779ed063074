"""Tests for the session keep-alive job."""

from datetime import UTC, datetime, timedelta

import pytest

from sgcaptcha import scheduler as scheduler_module
from sgcaptcha.services.session_registry import SessionRegistry
from tests.test_utils import ORIGIN, FakeOrigin


@pytest.mark.asyncio
async def test_refresh_resolves_stale_sessions():
    """Test sessions past their max age are solved again."""
    origin = FakeOrigin()
    registry = SessionRegistry(transport=origin.transport)
    session = registry.get(ORIGIN)
    await session.bypass_captcha()
    stale = datetime.now(UTC) - timedelta(hours=2)
    session.last_solve_time = stale

    refreshed = await scheduler_module.refresh_sessions(registry)

    assert refreshed == 1
    assert session.session_valid is True
    assert session.last_solve_time > stale
    assert len(origin.submissions) == 2
    await registry.close_all()


@pytest.mark.asyncio
async def test_refresh_skips_fresh_and_unsolved_sessions():
    """Test fresh and never-solved sessions are left alone."""
    origin = FakeOrigin()
    registry = SessionRegistry(transport=origin.transport)
    fresh = registry.get(ORIGIN)
    await fresh.bypass_captcha()
    registry.get("https://never-solved.test")

    refreshed = await scheduler_module.refresh_sessions(registry)

    assert refreshed == 0
    assert len(origin.submissions) == 1
    await registry.close_all()


@pytest.mark.asyncio
async def test_refresh_failure_is_not_raised():
    """Test a failed refresh is logged, not raised."""
    origin = FakeOrigin()
    registry = SessionRegistry(transport=origin.transport)
    session = registry.get(ORIGIN)
    await session.bypass_captcha()
    session.last_solve_time = datetime.now(UTC) - timedelta(hours=2)
    origin.accept_solutions = False

    assert await scheduler_module.refresh_sessions(registry) == 0
    assert session.session_valid is False
    await registry.close_all()


def test_start_scheduler_disabled(monkeypatch):
    """Test no scheduler starts when refresh is disabled."""
    monkeypatch.setattr(scheduler_module.settings, "session_refresh_enabled", False)
    scheduler_module.start_scheduler(SessionRegistry())
    assert scheduler_module.scheduler is None


@pytest.mark.asyncio
async def test_start_and_shutdown_scheduler(monkeypatch):
    """Test the refresh job is registered and shut down."""
    monkeypatch.setattr(scheduler_module.settings, "session_refresh_enabled", True)
    scheduler_module.start_scheduler(SessionRegistry())
    try:
        job = scheduler_module.scheduler.get_job("refresh_captcha_sessions")
        assert job is not None
    finally:
        scheduler_module.shutdown_scheduler()
    assert scheduler_module.scheduler is None
