"""Runtime configuration loaded from the environment."""
import os
from datetime import time
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Pipeline settings. Every field can be overridden by an environment variable."""

    anthropic_api_key: str = ""
    model: str = "claude-haiku-4-5"
    temperature: float = Field(default=0.3, ge=0.0, le=1.0)
    max_output_tokens: int = Field(default=1024, gt=0)
    summary_max_tokens: int = Field(default=3000, gt=0)
    max_retries: int = Field(default=3, ge=0)
    request_timeout: float = Field(default=60.0, gt=0)

    cache_ttl_hours: int = Field(default=24, gt=0)
    cache_dir: Path | None = None

    similarity_threshold: float = Field(default=0.70, ge=0.0, le=1.0)

    sweep_batch_size: int = Field(default=50, gt=0)
    sweep_interval_minutes: int = Field(default=5, gt=0)
    sweep_item_delay: float = Field(default=1.0, ge=0)
    summary_item_delay: float = Field(default=2.0, ge=0)
    summary_sample_size: int = Field(default=50, gt=0)
    daily_summary_time: time = time(2, 0)
    topic_summary_time: time = time(3, 0)
    summarize_topics_daily: bool = True

    worker_count: int = Field(default=2, gt=0)
    job_max_attempts: int = Field(default=3, gt=0)
    job_retry_delay: float = Field(default=60.0, ge=0)

    price_per_1k_input: float = Field(default=0.03, ge=0)
    price_per_1k_output: float = Field(default=0.06, ge=0)

    log_level: str = "INFO"
    log_format: str = "text"

    @field_validator("daily_summary_time", "topic_summary_time", mode="before")
    @classmethod
    def _parse_time_of_day(cls, value):
        if isinstance(value, str):
            return time.fromisoformat(value.strip())
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        if value not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        return value


_ENV_FIELDS = {
    "anthropic_api_key": "ANTHROPIC_API_KEY",
    "model": "MODEL",
    "temperature": "TEMPERATURE",
    "max_output_tokens": "MAX_OUTPUT_TOKENS",
    "summary_max_tokens": "SUMMARY_MAX_TOKENS",
    "max_retries": "MAX_RETRIES",
    "request_timeout": "REQUEST_TIMEOUT",
    "cache_ttl_hours": "CACHE_TTL_HOURS",
    "cache_dir": "CACHE_DIR",
    "similarity_threshold": "SIMILARITY_THRESHOLD",
    "sweep_batch_size": "SWEEP_BATCH_SIZE",
    "sweep_interval_minutes": "SWEEP_INTERVAL_MINUTES",
    "sweep_item_delay": "SWEEP_ITEM_DELAY",
    "summary_item_delay": "SUMMARY_ITEM_DELAY",
    "summary_sample_size": "SUMMARY_SAMPLE_SIZE",
    "daily_summary_time": "DAILY_SUMMARY_TIME",
    "topic_summary_time": "TOPIC_SUMMARY_TIME",
    "worker_count": "WORKER_COUNT",
    "job_max_attempts": "JOB_MAX_ATTEMPTS",
    "job_retry_delay": "JOB_RETRY_DELAY",
    "price_per_1k_input": "PRICE_PER_1K_INPUT",
    "price_per_1k_output": "PRICE_PER_1K_OUTPUT",
    "log_level": "LOG_LEVEL",
    "log_format": "LOG_FORMAT",
}


def load_settings(**overrides) -> Settings:
    """Build settings from environment variables, then apply explicit overrides."""
    values = {}
    for field, env_name in _ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw is not None and raw != "":
            values[field] = raw
    values["summarize_topics_daily"] = _env_bool("SUMMARIZE_TOPICS_DAILY", True)
    values.update(overrides)
    return Settings(**values)
