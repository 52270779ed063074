"""Tests for settings parsing."""

from sgcaptcha.config import Settings


def test_defaults():
    """Test the protocol defaults."""
    config = Settings()
    assert config.session_cookie_name == "_I_"
    assert config.max_redirects == 5
    assert config.pow_max_attempts == 50_000_000
    assert config.request_timeout_seconds == 20.0


def test_auth_cookie_prefixes_from_comma_string():
    """Test a comma separated prefix list is split and trimmed."""
    config = Settings(auth_cookie_prefixes="wordpress_logged_in, wordpress_sec ,")
    assert config.auth_cookie_prefixes == ["wordpress_logged_in", "wordpress_sec"]


def test_auth_cookie_prefixes_from_env(monkeypatch):
    """Test prefixes are read from the environment."""
    monkeypatch.setenv("AUTH_COOKIE_PREFIXES", "wp_session")
    assert Settings().auth_cookie_prefixes == ["wp_session"]


def test_solve_deadline_can_be_disabled():
    assert Settings(pow_solve_deadline_seconds=None).pow_solve_deadline_seconds is None
