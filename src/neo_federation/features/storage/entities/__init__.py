"""User storage domain entities and protocols."""

from .context import FederationContext
from .descriptor import BackendDescriptor
from .references import ClientRef, ComponentRef, GroupRef, RoleRef
from .user import CachedUser, FederatedIdentity, UserConsent, UserRecord
from .protocols import (
    UserStorageProvider,
    UserStorageProviderFactory,
    UserLookupProvider,
    UserQueryProvider,
    UserRegistrationProvider,
    ImportedUserValidation,
    OnUserCache,
    LocalUserStore,
    FederatedAttributeStore,
    DescriptorSource,
)

__all__ = [
    "FederationContext",
    "BackendDescriptor",
    "ClientRef",
    "ComponentRef",
    "GroupRef",
    "RoleRef",
    "CachedUser",
    "FederatedIdentity",
    "UserConsent",
    "UserRecord",
    "UserStorageProvider",
    "UserStorageProviderFactory",
    "UserLookupProvider",
    "UserQueryProvider",
    "UserRegistrationProvider",
    "ImportedUserValidation",
    "OnUserCache",
    "LocalUserStore",
    "FederatedAttributeStore",
    "DescriptorSource",
]
