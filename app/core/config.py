"""
Configuration settings for the application
"""

import os
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""
    
    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./frameit.db")
    USE_FIREBASE: bool = os.getenv("USE_FIREBASE", "false").lower() in ("1", "true", "yes")
    FIREBASE_CREDENTIALS_JSON: str | None = os.getenv("FIREBASE_CREDENTIALS_JSON")
    FIREBASE_CREDENTIALS_FILE: str | None = os.getenv("FIREBASE_CREDENTIALS_FILE")
    FIREBASE_CREDENTIALS_B64: str | None = os.getenv("FIREBASE_CREDENTIALS_B64")
    FIREBASE_STORAGE_BUCKET: str | None = os.getenv("FIREBASE_STORAGE_BUCKET")
    
    # Security
    ADMIN_TOKEN: str = os.getenv("ADMIN_TOKEN", "admin_token_123")
    
    # Application
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    
    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
    ]
    
    # File limits
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    MAX_PHOTOS_PER_ATTENDEE: int = 5
    
    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 30

    # Access credentials
    ACCESS_CODE_MIN: int = 1000
    ACCESS_CODE_MAX: int = 9999
    QR_CODE_SIZE: int = 300  # pixels
    ACCESS_GRANT_TTL_SECONDS: int = 24 * 60 * 60
    ACCESS_COOKIE_NAME: str = "frameit_access"

    # Events
    DEFAULT_EVENT_CAPACITY: int = 30

    # Optimistic concurrency
    MAX_WRITE_RETRIES: int = 10
    
    class Config:
        env_file = ".env"

settings = Settings()
