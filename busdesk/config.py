from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    api_url: str = "http://127.0.0.1:8000/api"
    secret_key: str = "dev-secret-key-change-in-production"
    algorithm: str = "HS256"
    session_max_age_minutes: int = 120

    # Seconds; an expired request counts as a failed fetch
    request_timeout: float = 15.0

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "testserver"]
    log_level: str = "INFO"
    login_rate_limit: str = "5/minute"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
