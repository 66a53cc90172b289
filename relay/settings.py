from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RELAY_", env_file=".env", extra="ignore")

    PROJECT_NAME: str = "Status Relay"
    LOG_LEVEL: str = "INFO"

    TASK_NAME: str = "hello-world"
    DEFAULT_PAYLOAD: str = "James"
    HELLO_WORLD_DELAY_SECONDS: float = 5.0

    # How long a finished run stays subscribable in the in-process job system.
    RUN_RETENTION_SECONDS: float = 300.0

    # None keeps a stalled stream open indefinitely.
    STREAM_IDLE_TIMEOUT_SECONDS: Optional[float] = None


settings = Settings()
