from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Target
    base_origin: str = "https://konesisrael.co.il"

    # HTTP client
    request_timeout_seconds: float = 20.0
    max_redirects: int = 5
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
    accept_language: str = "he-IL,he;q=0.9,en;q=0.8"

    # Proof of Work
    pow_max_attempts: int = 50_000_000
    pow_solve_deadline_seconds: float | None = 120.0

    # Challenge protocol markers
    session_cookie_name: str = "_I_"
    challenge_header: str = "sg-captcha"
    default_submit_path: str = "/.well-known/sgcaptcha/?r=%2F"
    unchallenged_min_body_length: int = 5000

    # Login
    login_path: str = "/wp-login.php"
    login_username: str | None = None
    login_password: str | None = None
    auth_cookie_prefixes: list[str] | str = ["wordpress_logged_in", "wordpress_sec"]
    test_cookie_name: str = "wordpress_test_cookie"
    test_cookie_value: str = "WP+Cookie+check"

    # Session keep-alive
    session_refresh_enabled: bool = True
    session_refresh_interval_minutes: int = 5
    session_max_age_minutes: int = 30

    # Rate Limiting
    rate_limit_solves: str = "5/minute"
    rate_limit_bypass: str = "5/minute"

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator("auth_cookie_prefixes", mode="before")
    @classmethod
    def parse_auth_cookie_prefixes(cls, v):
        """Parse cookie prefixes from comma-separated string or list."""
        if isinstance(v, str):
            return [prefix.strip() for prefix in v.split(",") if prefix.strip()]
        return v


settings = Settings()
