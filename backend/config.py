# backend/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    DATABASE_URL: str = "sqlite:///./database_acessae.db"

    # Public frontend URL, used for CORS and for password reset links
    FRONTEND_URL: str = "http://localhost:3000"

    # Upload root for review photos; resolved by utils.storage when unset
    UPLOAD_DIR: Optional[str] = None

    RESET_TOKEN_EXPIRE_MINUTES: int = 60
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=str(env_path), extra="ignore")

settings = Settings()
