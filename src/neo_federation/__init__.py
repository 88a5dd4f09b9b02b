"""Neo-Federation - federated user storage routing for the NeoMultiTenant platform.

Routes user directory operations across a realm's local user store and its
external user storage backends (remote directories, legacy databases), with
cross-backend pagination, import revalidation and lifecycle fan-out.
"""

# Initialize logging configuration on import
from .config.logging_config import setup_logging
setup_logging()

from .__version__ import __version__

from .config import Capability, FederationSettings, get_settings

from .core.exceptions import (
    NeoFederationError,
    ConfigurationError,
    ProviderRegistrationError,
    DescriptorNotFoundError,
    ProviderResolutionError,
    CapabilityMissingError,
    FederatedUserInvalidError,
    BackendOperationError,
    UserAlreadyExistsError,
    get_http_status_code,
    create_error_response,
)

from .core.value_objects import RealmId, StorageId

from .features.storage import (
    FederationContext,
    BackendDescriptor,
    UserRecord,
    UserStorageProvider,
    UserStorageProviderFactory,
    ProviderRegistry,
    UserStorageManager,
)

__all__ = [
    "__version__",

    # Config
    "Capability",
    "FederationSettings",
    "get_settings",

    # Exceptions
    "NeoFederationError",
    "ConfigurationError",
    "ProviderRegistrationError",
    "DescriptorNotFoundError",
    "ProviderResolutionError",
    "CapabilityMissingError",
    "FederatedUserInvalidError",
    "BackendOperationError",
    "UserAlreadyExistsError",
    "get_http_status_code",
    "create_error_response",

    # Value objects
    "RealmId",
    "StorageId",

    # User storage
    "FederationContext",
    "BackendDescriptor",
    "UserRecord",
    "UserStorageProvider",
    "UserStorageProviderFactory",
    "ProviderRegistry",
    "UserStorageManager",
]
