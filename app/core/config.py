from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    DEBUG: bool = False
    DATABASE_URL: str = "sqlite+aiosqlite:///./notes.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    ALLOWED_ORIGINS: str = "*"  # comma-separated
    LOG_LEVEL: str = "INFO"

    # Client side
    API_BASE_URL: str = "http://localhost:8000/api/v1"
    AUTOSAVE_DELAY_SECONDS: float = 2.0
    DEFAULT_NOTE_TITLE: str = "Untitled Note"
    AVAILABLE_TAGS: List[str] = ["Work", "Personal", "Learning", "Ideas", "Other"]  # JSON list in env

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = [".env"]
        case_sensitive = True


settings = Settings()
