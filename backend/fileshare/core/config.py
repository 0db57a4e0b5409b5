import logging
import os
from typing import List
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Explicitly load .env file before defining Settings
env_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env")
load_dotenv(env_path)

class Settings(BaseSettings):
    PROJECT_NAME: str = "FileShare"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Database
    SQLALCHEMY_DATABASE_URI: str = "sqlite:///./fileshare.db"
    SQLITE_BUSY_TIMEOUT: float = 30.0

    # Security
    SECRET_KEY: str = "YOUR_SECRET_KEY_HERE"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080
    BCRYPT_ROUNDS: int = 12

    # Sharing
    BASE_URL: str = "http://127.0.0.1:8899"
    SHARE_PATH: str = "/share"
    SHARE_TOKEN_BYTES: int = 16
    # Collapse not-found/expired/limit rejections into one public message
    STRICT_SHARE_ERRORS: bool = False

    # Accounts and housekeeping
    DEFAULT_QUOTA_BYTES: int = 1073741824
    AUDIT_LOG_RETENTION_DAYS: int = 90

    # Storage
    UPLOAD_DIR: str = os.path.join(os.getcwd(), "upload_storage")
    # List of paths for virtual disk storage. Comma separated string in env, parsed to list.
    STORAGE_PATHS_STR: str = ""

    @property
    def STORAGE_PATHS(self) -> List[str]:
        paths = [self.UPLOAD_DIR]
        if self.STORAGE_PATHS_STR:
            # Handle potential quote wrapping from env file parsing
            raw_str = self.STORAGE_PATHS_STR.strip('"\'')
            extra_paths = [p.strip() for p in raw_str.split(",") if p.strip()]
            paths.extend(extra_paths)
        return paths

    class Config:
        case_sensitive = True

settings = Settings()


def ensure_storage_paths() -> None:
    for path in settings.STORAGE_PATHS:
        if not os.path.exists(path):
            try:
                os.makedirs(path)
            except OSError as e:
                logger.warning("Could not create storage path %s: %s", path, e)
