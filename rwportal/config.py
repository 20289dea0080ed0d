# rwportal/config.py
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .core.errors import ConfigurationError

Base = declarative_base()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="RWPORTAL_", extra="ignore")

    # --- Database ---
    database_url: str = "sqlite:///rwportal.db"
    database_echo: bool = False

    # --- Security / JWT ---
    jwt_secret: str = "dev-secret-please-change"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 24 hours

    # --- CORS ---
    cors_origins: List[str] = ["http://localhost:3000"]

    # --- Dues ---
    # Households without a zone are billed as members of this zone.
    default_zone_name: Optional[str] = "Timur"
    skipped_preview_limit: int = 10

    # --- Logging ---
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()


class Database:
    """Engine and session factory for one configured store."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        url = (settings.database_url or "").strip()
        if not url:
            raise ConfigurationError("database_url is not configured")
        engine = create_engine(
            url,
            echo=settings.database_echo,
            connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
        )
        return cls(engine)

    def create_all(self) -> None:
        # Import models so every table registers with Base metadata.
        from .models import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.session_factory()

    def dispose(self) -> None:
        self.engine.dispose()
