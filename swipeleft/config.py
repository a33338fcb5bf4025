import json
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from swipeleft.constants import DEFAULT_API_BASE_URL, DEFAULT_POOL_SIZE, DEFAULT_REQUEST_TIMEOUT, MAX_POOL_SIZE
from swipeleft.logging import get_logger
from swipeleft.sources.base import SortKey

SWIPELEFT_DIR = Path.home() / ".swipeleft"
SETTINGS_PATH = SWIPELEFT_DIR / "settings.json"

_logger = get_logger(__name__)


def load_user_settings() -> dict:
    if not SETTINGS_PATH.exists():
        return {}
    try:
        return json.loads(SETTINGS_PATH.read_text())
    except (json.JSONDecodeError, OSError):
        _logger.warning("Failed to load user settings", exc_info=True)
        return {}


def save_user_settings(settings: dict) -> None:
    SWIPELEFT_DIR.mkdir(exist_ok=True)
    SETTINGS_PATH.write_text(json.dumps(settings, indent=2))


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SWIPELEFT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        populate_by_name=True,
    )

    # Selection
    pool_size: int = DEFAULT_POOL_SIZE
    sort_key: SortKey = SortKey.CREATION_DATE_DESC
    library_path: Path | None = None

    # Local store
    db_path: Path = Field(default_factory=lambda: SWIPELEFT_DIR / "swipeleft.db")

    # Remote store (optional)
    remote: bool = False
    api_base_url: str = DEFAULT_API_BASE_URL
    api_token: str | None = Field(default=None, alias="SWIPELEFT_API_TOKEN")
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    log_level: str = "INFO"

    @field_validator("pool_size")
    @classmethod
    def _validate_pool_size(cls, v: int) -> int:
        if not 1 <= v <= MAX_POOL_SIZE:
            raise ValueError(f"pool_size must be 1-{MAX_POOL_SIZE}, got {v}")
        return v

    @field_validator("request_timeout")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"request_timeout must be positive, got {v}")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        level = str(v).upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("api_base_url")
    @classmethod
    def _validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"api_base_url must be an http(s) URL, got {v}")
        return v


PERSIST_KEYS = frozenset(
    {
        "pool_size",
        "sort_key",
        "library_path",
        "db_path",
        "remote",
        "api_base_url",
        "request_timeout",
        "log_level",
    }
)


def get_config() -> Config:
    settings = load_user_settings()
    # init args (settings.json) > env vars > defaults
    overrides = {k: settings[k] for k in PERSIST_KEYS if k in settings}
    return Config(**overrides)  # type: ignore - pydantic handles validation
