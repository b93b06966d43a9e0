from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    SECRET_KEY: str = "change-this-secret"
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # stock management
    LOW_STOCK_THRESHOLD: int = 10
    STOCK_ATOMIC_UPDATES: bool = False
    STOCK_LOCK_TIMEOUT_SECONDS: int = 10

    # auth sessions
    SESSION_TTL_SECONDS: int = 3600
    SESSION_SWEEP_SECONDS: int = 60

    # menu images
    BLOB_STORAGE_DIR: str = "./blobs"
    BLOB_PUBLIC_BASE_URL: str = "http://127.0.0.1:8000/blobs"
    IMAGE_CACHE_CONTROL: str = "public,max-age=31536000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
