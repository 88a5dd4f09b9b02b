"""Constants and enums for neo-federation.

Capability names, storage id format constants and default tuning values
shared by the router, the registry and the bundled backends.
"""

from enum import Enum
from typing import Final


class Capability(str, Enum):
    """Closed set of capabilities a user storage backend can declare."""

    LOOKUP = "lookup"
    QUERY = "query"
    REGISTRATION = "registration"
    IMPORT_VALIDATION = "import_validation"
    CACHE_HOOK = "cache_hook"
    LIFECYCLE = "lifecycle"


class StorageIdFormat:
    """Composite user id wire format: ``f:<provider id>:<external id>``."""

    PREFIX: Final[str] = "f"
    SEPARATOR: Final[str] = ":"


class ProviderTypes:
    """Component provider types understood by the router."""

    USER_STORAGE: Final[str] = "user-storage"


class PaginationDefaults:
    """Defaults for the cross-provider merge window."""

    SKIP_BATCH_SIZE: Final[int] = 50


class DatabaseSchemas:
    """Database schema names."""

    ADMIN: Final[str] = "admin"
    TENANT_PREFIX: Final[str] = "tenant_"


class DatabaseTables:
    """Tables read by the descriptor repository."""

    USER_STORAGE_PROVIDERS: Final[str] = "user_storage_providers"
