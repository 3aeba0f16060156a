"""Configuration management for the dashboard service."""

from typing import Optional
from pydantic_settings import BaseSettings


REQUIRED_VARS = [
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "SESSION_SECRET",
]


class Config(BaseSettings):
    """Application configuration from environment variables."""

    # Required
    supabase_url: str
    supabase_key: str
    session_secret: str

    # Optional
    log_level: str = "INFO"
    timezone: str = "Europe/London"
    page_size: int = 20
    preferences_path: str = ".dashboard_state.json"
    groups_file: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8000
    https_only: bool = False

    model_config = {"env_file": ".env", "case_sensitive": False, "extra": "ignore"}


def validate_config() -> Config:
    """Load and validate configuration from environment.

    Raises ValueError with descriptive message listing ALL missing
    required variables (not just the first one).
    """
    try:
        return Config()  # type: ignore[call-arg]
    except Exception as exc:
        missing = []
        err_str = str(exc)
        for var in REQUIRED_VARS:
            if var.lower() in err_str.lower():
                missing.append(var)
        if missing:
            names = ", ".join(missing)
            raise ValueError(
                f"Missing required environment variable(s): {names}. "
                "Please set them in your .env file or environment."
            ) from exc
        raise


def load_config() -> Config:
    """Load configuration from environment (startup entry point)."""
    return validate_config()
