"""
Configuration settings for the Demo Entity service
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ("postgres", "memory")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime configuration, read from the environment"""

    database_url: Optional[str] = None
    repository_backend: str = "postgres"

    # Connection pool
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_command_timeout: float = 60

    # Rows fetched per round trip while streaming find_all results
    stream_prefetch: int = 50

    # Apply versioned migrations on startup (Flyway-style)
    run_migrations: bool = True

    port: int = 8080
    log_level: str = "INFO"

    allowed_origins: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables"""
        origins = os.getenv("ALLOWED_ORIGINS", "")
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            repository_backend=os.getenv("REPOSITORY_BACKEND", "postgres").strip().lower(),
            db_pool_min_size=int(os.getenv("DB_POOL_MIN_SIZE", 2)),
            db_pool_max_size=int(os.getenv("DB_POOL_MAX_SIZE", 10)),
            db_command_timeout=float(os.getenv("DB_COMMAND_TIMEOUT", 60)),
            stream_prefetch=int(os.getenv("STREAM_PREFETCH", 50)),
            run_migrations=_env_bool("RUN_MIGRATIONS", True),
            port=int(os.getenv("PORT", 8080)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            allowed_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
        )

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors"""
        errors = []

        if self.repository_backend not in SUPPORTED_BACKENDS:
            errors.append(
                f"REPOSITORY_BACKEND must be one of {', '.join(SUPPORTED_BACKENDS)}, "
                f"got '{self.repository_backend}'"
            )
        if self.repository_backend == "postgres" and not self.database_url:
            errors.append("DATABASE_URL environment variable is required for the postgres backend")
        if self.db_pool_min_size < 0 or self.db_pool_max_size < 1:
            errors.append("DB_POOL_MIN_SIZE must be >= 0 and DB_POOL_MAX_SIZE >= 1")
        elif self.db_pool_min_size > self.db_pool_max_size:
            errors.append("DB_POOL_MIN_SIZE cannot exceed DB_POOL_MAX_SIZE")
        if self.stream_prefetch < 1:
            errors.append("STREAM_PREFETCH must be >= 1")

        return errors


def get_settings() -> Settings:
    """Get validated settings from the environment"""
    settings = Settings.from_env()
    errors = settings.validate()

    if errors:
        raise ValueError(f"Configuration errors: {', '.join(errors)}")

    logger.info(f"Repository backend: {settings.repository_backend}")
    return settings
