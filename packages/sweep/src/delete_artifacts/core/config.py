from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

LogFormat = Literal["json", "console"]

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_PAGE_SIZE = 100
DEFAULT_PAGE_TIMEOUT_S = 30.0
DEFAULT_RUN_TIMEOUT_S = 120.0


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DELETE_ARTIFACTS_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    github_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("DELETE_ARTIFACTS_GITHUB_TOKEN", "GITHUB_TOKEN"),
    )
    api_url: str = Field(default=DEFAULT_API_URL)
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("DELETE_ARTIFACTS_LOG_LEVEL", "LOG_LEVEL"),
    )
    log_format: LogFormat = Field(default="console")
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=100)
    page_timeout_s: float = Field(default=DEFAULT_PAGE_TIMEOUT_S, gt=0)
    run_timeout_s: float = Field(default=DEFAULT_RUN_TIMEOUT_S, gt=0)
    max_attempts: int = Field(default=3, ge=1)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    return Settings()
