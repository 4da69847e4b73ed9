from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Code Practice Grader"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    API_V1_PREFIX: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Session storage: "memory" or "redis"
    SESSION_STORE: str = "memory"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Gemini AI - Optional with empty default
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"

    # Judge0 execution service
    JUDGE0_API_URL: str = "https://judge0-ce.p.rapidapi.com"
    JUDGE0_API_KEY: str = ""  # X-RapidAPI-Key
    JUDGE0_API_HOST: str = "judge0-ce.p.rapidapi.com"  # X-RapidAPI-Host
    JUDGE0_AUTH_TOKEN: Optional[str] = None  # self-hosted X-Auth-Token

    # Fixed sandbox limits sent with every submission
    JUDGE0_CPU_TIME_LIMIT: float = 2.0  # seconds
    JUDGE0_MEMORY_LIMIT: int = 128000  # kilobytes
    JUDGE0_WALL_TIME_LIMIT: float = 5.0  # seconds

    # Polling / retries
    JUDGE0_POLL_INTERVAL: float = 1.0  # seconds
    JUDGE0_MAX_POLL_ATTEMPTS: int = 30
    JUDGE0_SUBMIT_RETRIES: int = 3
    JUDGE0_RETRY_DELAY: float = 0.5  # seconds, doubled per attempt
    JUDGE0_REQUEST_TIMEOUT: float = 30.0
    JUDGE0_POLL_CONCURRENCY: int = 1  # 1 = poll batch tokens one by one
    JUDGE0_SEQUENTIAL_FALLBACK: bool = True

    # Practice rules
    MAX_CODE_SIZE: int = 1_000_000  # characters
    MAX_HINTS_PER_QUESTION: int = 3

    # Learning analytics export - Optional
    LEARNING_ANALYTICS_URL: str = ""
    LEARNING_ANALYTICS_TOKEN: str = ""
    ANALYTICS_MAX_ATTEMPTS: int = 5
    ANALYTICS_BASE_DELAY: float = 30.0  # seconds
    ANALYTICS_MAX_DELAY: float = 300.0  # seconds

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env

@lru_cache()
def get_settings() -> Settings:
    return Settings()
