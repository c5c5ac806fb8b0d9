import os
import log
from dataclasses import dataclass
from dotenv import load_dotenv

# Load .env file into environment
load_dotenv()

ONE_YEAR_SECONDS = 365 * 24 * 60 * 60


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class CookieConfig:
    """Settings for the cookie that carries an anonymous user's id."""
    name: str = "ab-uid"
    path: str = "/"
    max_age: int = ONE_YEAR_SECONDS
    domain: str | None = None
    secure: bool = False
    samesite: str = "lax"


class Config:
    def __init__(self):
        self.storage_backend = os.getenv("STORAGE_BACKEND", "sql")
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./experimentation.db")
        # empty VALKEY_HOST disables the cache layer
        self.valkey_host = os.getenv("VALKEY_HOST", "")
        self.valkey_port = int(os.getenv("VALKEY_PORT", 6379))
        self.log_level = os.getenv("LOG_LEVEL", default="INFO")
        self.log_file = os.getenv("LOG_FILE", "experiment_service.log")
        self.valid_tokens = [t.strip() for t in os.getenv("VALID_TOKENS", "").split(",") if t.strip()]
        self.cookie = CookieConfig(
            name=os.getenv("COOKIE_NAME", "ab-uid"),
            path=os.getenv("COOKIE_PATH", "/"),
            max_age=int(os.getenv("COOKIE_MAX_AGE", ONE_YEAR_SECONDS)),
            domain=os.getenv("COOKIE_DOMAIN") or None,
            secure=_env_bool("COOKIE_SECURE"),
            samesite=os.getenv("COOKIE_SAMESITE", "lax"),
        )

        # Call setup_logging when the application starts
        log.setup_logging(self.log_level, self.log_file)

    def __repr__(self):
        return (f"<Settings storage={self.storage_backend} valkey={self.valkey_host}:{self.valkey_port} "
                f"loglevel={self.log_level} cookie={self.cookie.name}>")

config = Config()
