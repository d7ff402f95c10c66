from pydantic import AnyUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal

class Settings(BaseSettings):
    ENV: str = "dev"
    SERVICE_PORT: int = 8080
    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"
    # Where server log lines come from: "process" spawns START_SCRIPT,
    # "file" reads LOG_FILE, "none" serves the API only
    SOURCE_MODE: Literal["none", "process", "file"] = "none"
    START_SCRIPT: str | None = None
    LOG_FILE: str | None = None
    FOLLOW_LOG_FILE: bool = False
    # Raw server output is copied here when set
    ARCHIVE_DIR: str | None = None
    # Notification sink selection: "memory", "redis" or "discord"
    SINK_ADAPTER: Literal["memory", "redis", "discord"] = "memory"
    SINK_BUFFER_SIZE: int = 1000
    REDIS_URL: AnyUrl | None = None
    DISCORD_WEBHOOK_URL: str | None = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
