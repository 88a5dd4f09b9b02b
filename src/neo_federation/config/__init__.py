"""Configuration module for neo-federation."""

from .constants import (
    Capability,
    StorageIdFormat,
    ProviderTypes,
    PaginationDefaults,
    DatabaseSchemas,
    DatabaseTables,
)
from .logging_config import (
    setup_logging,
    LogVerbosity,
    LogFormat,
    LoggingConfig,
)
from .settings import FederationSettings, get_settings

__all__ = [
    # Constants
    "Capability",
    "StorageIdFormat",
    "ProviderTypes",
    "PaginationDefaults",
    "DatabaseSchemas",
    "DatabaseTables",

    # Logging
    "setup_logging",
    "LogVerbosity",
    "LogFormat",
    "LoggingConfig",

    # Settings
    "FederationSettings",
    "get_settings",
]
