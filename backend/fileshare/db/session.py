from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from fileshare.core.config import settings


def sqlite_connect_args(uri: str) -> Dict[str, Any]:
    # SQLite specific configuration for multi-threading
    if not uri.startswith("sqlite"):
        return {}
    return {"check_same_thread": False, "timeout": settings.SQLITE_BUSY_TIMEOUT}


engine = create_engine(
    settings.SQLALCHEMY_DATABASE_URI,
    pool_pre_ping=True,
    connect_args=sqlite_connect_args(settings.SQLALCHEMY_DATABASE_URI)
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
