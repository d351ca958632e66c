# config.py
from functools import lru_cache
from pathlib import Path

from cryptography.fernet import Fernet
from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent
ENV_PATH = BASE_DIR / ".env"

load_dotenv(ENV_PATH)


def _default_session_file() -> str:
    return str(Path.home() / ".campus_complaints" / "session.json")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=ENV_PATH,
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    firebase_api_key: str = ""
    firebase_credentials: str = "firebase_key.json"
    session_file: str = Field(default_factory=_default_session_file, validation_alias="CAMPUS_SESSION_FILE")
    # Fernet key; without it the sign-in is not remembered between runs
    session_key: str = Field("", validation_alias="CAMPUS_SESSION_KEY")
    http_timeout: float = Field(10.0, gt=0, validation_alias="CAMPUS_HTTP_TIMEOUT")
    toast_ms: int = Field(3000, gt=0, validation_alias="CAMPUS_TOAST_MS")
    theme: str = Field("cosmo", validation_alias="CAMPUS_THEME")
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("session_key")
    @classmethod
    def check_session_key(cls, v: str) -> str:
        if v:
            Fernet(v.encode())  # ValueError for a malformed key
        return v

    @property
    def encryption_key(self) -> bytes:
        if not self.session_key:
            raise ValueError("CAMPUS_SESSION_KEY must be set to remember sign-ins")
        return self.session_key.encode()


@lru_cache
def get_settings() -> Settings:
    """Built once per process; a bad value fails here with a ValidationError."""
    return Settings()
