from pydantic_settings import BaseSettings
from typing import Optional, List
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    DB_USER: str = os.getenv("DB_USER", "root")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: str = os.getenv("DB_PORT", "3306")
    DB_NAME: str = os.getenv("DB_NAME", "treasure_hunt")
    # Overrides the composed MySQL URL when set (e.g. sqlite+aiosqlite:///./hunt.db)
    DATABASE_URL: Optional[str] = None

    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 12 * 60
    BCRYPT_ROUNDS: int = 12
    # Lets the first admin be registered without an admin session; unset disables it
    ADMIN_REGISTRATION_KEY: Optional[str] = None

    # Normal questions answered per unlocked bonus question
    BONUS_MILESTONE: int = 15
    ENFORCE_BONUS_MILESTONES: bool = True

    UPLOAD_DIR: str = "uploads"
    IMAGE_BASE_URL: str = "/uploads"
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024

    RESULTS_CACHE_TTL: float = 2.0
    EVENT_END_TIME: Optional[str] = None

    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    @property
    def ASYNC_DATABASE_URL(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
