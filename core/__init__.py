"""
Core utilities and configuration for the order reconciliation service.

Modules:
    config: Application configuration and environment variable management
    database: Async engine and session management for the record store
    exceptions: Exception taxonomy shared by every pipeline phase
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import LoadError, ValidationError
    from core.logging import setup_logging
"""

from core.config import settings
from core.exceptions import (
    ETLException,
    ValidationError,
    RetryExhaustedError,
    LoadError,
    MergeError,
    RunStateError,
    CorrectionError,
    StagingRowNotFoundError,
)
from core.logging import setup_logging

__all__ = [
    "settings",
    "setup_logging",
    # Exceptions
    "ETLException",
    "ValidationError",
    "RetryExhaustedError",
    "LoadError",
    "MergeError",
    "RunStateError",
    "CorrectionError",
    "StagingRowNotFoundError",
]
