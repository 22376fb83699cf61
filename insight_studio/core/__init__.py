"""Core utilities and configuration."""

from insight_studio.core.config import Settings, get_settings
from insight_studio.core.database import Base, db_manager, get_session, transaction
from insight_studio.core.logging import (
    analysis_logger,
    claude_logger,
    db_logger,
    get_logger,
    redis_logger,
    setup_logging,
)
from insight_studio.core.redis import get_redis, redis_manager

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "db_manager",
    "get_session",
    "transaction",
    # Logging
    "analysis_logger",
    "claude_logger",
    "db_logger",
    "get_logger",
    "redis_logger",
    "setup_logging",
    # Redis
    "get_redis",
    "redis_manager",
]
