"""Federated user storage.

Routes directory operations across the local user store and the external
user storage backends configured in a realm.
"""

from .entities import (
    FederationContext,
    BackendDescriptor,
    UserRecord,
    CachedUser,
    FederatedIdentity,
    UserConsent,
    GroupRef,
    RoleRef,
    ClientRef,
    ComponentRef,
    UserStorageProvider,
    UserStorageProviderFactory,
    LocalUserStore,
    FederatedAttributeStore,
    DescriptorSource,
)
from .services import (
    ProviderRegistry,
    PaginatedQueryEngine,
    ImportValidationService,
    LifecycleFanOutService,
    UserStorageManager,
)
from .repositories import (
    InMemoryDescriptorRepository,
    PostgresDescriptorRepository,
    InMemoryLocalUserStore,
    InMemoryFederatedAttributeStore,
)
from .adapters import KeycloakUserStorageAdapter, KeycloakUserStorageProviderFactory
from .dependencies import FederationDependencies, federation_exception_handler

__all__ = [
    # Entities
    "FederationContext",
    "BackendDescriptor",
    "UserRecord",
    "CachedUser",
    "FederatedIdentity",
    "UserConsent",
    "GroupRef",
    "RoleRef",
    "ClientRef",
    "ComponentRef",

    # Protocols
    "UserStorageProvider",
    "UserStorageProviderFactory",
    "LocalUserStore",
    "FederatedAttributeStore",
    "DescriptorSource",

    # Services
    "ProviderRegistry",
    "PaginatedQueryEngine",
    "ImportValidationService",
    "LifecycleFanOutService",
    "UserStorageManager",

    # Repositories
    "InMemoryDescriptorRepository",
    "PostgresDescriptorRepository",
    "InMemoryLocalUserStore",
    "InMemoryFederatedAttributeStore",

    # Adapters
    "KeycloakUserStorageAdapter",
    "KeycloakUserStorageProviderFactory",

    # FastAPI
    "FederationDependencies",
    "federation_exception_handler",
]
