from pydantic import BaseModel, Field
from functools import lru_cache
from dotenv import load_dotenv
import os

load_dotenv()


def _env(name: str, default: str):
    return Field(default_factory=lambda: os.getenv(name, default))


class Settings(BaseModel):
    api_base_url: str = _env("API_BASE_URL", "http://localhost:8000")
    public_base_url: str = _env("PUBLIC_BASE_URL", "http://localhost:8000")
    data_dir: str = _env("REELS_DATA_DIR", "data")
    log_level: str = _env("LOG_LEVEL", "INFO")
    log_format: str = _env("LOG_FORMAT", "text")
    page_size_default: int = 10
    page_size_max: int = 50
    request_timeout: float = 10.0
    load_more_threshold: float = 0.8
    active_ratio_threshold: float = 0.5
    comment_max_length: int = 500
    verification_ttl_hours: int = 24
    session_max_age_days: int = 30


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
