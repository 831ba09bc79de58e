from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Nodegate Admission Service"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    admin_api_key: str = "dev-admin-key"
    nodes_config_path: str = "./nodes.json"
    command_queue_maxsize: int = 1024

    # PoC cadence constants; not derived from chain state here.
    auto_test_threshold_sec: int = 3600
    poc_urgent_window_sec: int = 600
    block_time_seconds: float = 6.0

    request_timeout_sec: float = 30.0
    failure_notify_timeout_sec: float = 5.0
    node_test_timeout_sec: float = 600.0
    run_sample_inference: bool = True
    notify_node_on_failure: bool = True
    sample_prompt: str = "Hello, how are you?"
    sample_max_tokens: int = 10
    model_dtype: str = "float16"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str | None) -> str:
        if value is None:
            return "INFO"
        return str(value).strip().upper() or "INFO"

    @field_validator("failure_notify_timeout_sec", "request_timeout_sec", "node_test_timeout_sec")
    @classmethod
    def positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
