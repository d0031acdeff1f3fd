# Project Vault - Configuration
#
# Settings come from environment variables. A `.env` file in the working
# directory is loaded first (python-dotenv) without overriding variables
# that are already set in the process environment.

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "PROJECTVAULT_"

DEFAULT_DB_PATH = "data/projectvault.db"
DEFAULT_AUDIT_LOG_DIR = "audit_logs"
DEFAULT_KDF_ITERATIONS = 600_000  # OWASP 2023 for PBKDF2-SHA256
DEFAULT_MIN_PASSWORD_LENGTH = 8
MIN_API_TOKEN_LENGTH = 16


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""


@dataclass(frozen=True)
class VaultSettings:
    """Resolved runtime settings."""

    db_path: Path = Path(DEFAULT_DB_PATH)
    audit_log_dir: Path = Path(DEFAULT_AUDIT_LOG_DIR)
    kdf_iterations: int = DEFAULT_KDF_ITERATIONS
    min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH
    archive_password: Optional[str] = None
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    api_token: Optional[str] = None


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{ENV_PREFIX}{name} must be positive, got {value}")
    return value


def _api_token() -> Optional[str]:
    token = os.getenv(ENV_PREFIX + "API_TOKEN") or None
    if token is not None and len(token) < MIN_API_TOKEN_LENGTH:
        raise ConfigError(
            f"{ENV_PREFIX}API_TOKEN must be at least {MIN_API_TOKEN_LENGTH} characters"
        )
    return token


def load_settings(env_file: Optional[Path] = None) -> VaultSettings:
    """Read settings from the environment (and `.env`, if present)."""
    load_dotenv(dotenv_path=env_file, override=False)
    return VaultSettings(
        db_path=Path(os.getenv(ENV_PREFIX + "DB_PATH", DEFAULT_DB_PATH)),
        audit_log_dir=Path(os.getenv(ENV_PREFIX + "AUDIT_LOG_DIR", DEFAULT_AUDIT_LOG_DIR)),
        kdf_iterations=_int_env("KDF_ITERATIONS", DEFAULT_KDF_ITERATIONS),
        min_password_length=_int_env("MIN_PASSWORD_LENGTH", DEFAULT_MIN_PASSWORD_LENGTH),
        archive_password=os.getenv(ENV_PREFIX + "ARCHIVE_PASSWORD") or None,
        api_host=os.getenv(ENV_PREFIX + "API_HOST", "127.0.0.1"),
        api_port=_int_env("API_PORT", 8000),
        api_token=_api_token(),
    )


# ── Singleton ────────────────────────────────────────────────────────

_settings: Optional[VaultSettings] = None


def get_settings() -> VaultSettings:
    """Get or create the singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def set_settings(settings: Optional[VaultSettings]) -> None:
    """Replace the singleton (for testing)."""
    global _settings
    _settings = settings
