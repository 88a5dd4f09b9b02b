"""User storage protocols for neo-federation.

Capability contracts consumed by the router. A backend implements any subset
of the capability protocols and declares that subset on its factory; the
router dispatches on the declared set only.
"""

from abc import ABC, abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    FrozenSet,
    List,
    Optional,
    Protocol,
    Set,
    runtime_checkable,
)

from ....config.constants import Capability
from ....core.value_objects import RealmId
from .descriptor import BackendDescriptor
from .references import ClientRef, ComponentRef, GroupRef, RoleRef
from .user import CachedUser, FederatedIdentity, UserConsent, UserRecord

if TYPE_CHECKING:
    from .context import FederationContext


class UserStorageProvider(ABC):
    """Base class of every backend adapter instance.

    Instances are bound to one descriptor and live for one federation
    context. Lifecycle hooks default to no-ops.
    """

    def __init__(self, descriptor: BackendDescriptor):
        self.descriptor = descriptor

    @property
    def provider_id(self) -> str:
        """Descriptor id this instance is bound to."""
        return self.descriptor.id

    async def close(self) -> None:
        """Release backend resources."""
        return None

    async def pre_remove_realm(self, realm: RealmId) -> None:
        return None

    async def pre_remove_group(self, realm: RealmId, group: GroupRef) -> None:
        return None

    async def pre_remove_role(self, realm: RealmId, role: RoleRef) -> None:
        return None

    async def pre_remove_client(self, realm: RealmId, client: ClientRef) -> None:
        return None

    async def pre_remove_component(self, realm: RealmId, component: ComponentRef) -> None:
        return None


class UserStorageProviderFactory(ABC):
    """Creates adapter instances for descriptors naming ``provider_id``.

    ``capabilities`` is the closed set of capabilities instances implement;
    it is read once when the factory is registered.
    """

    provider_id: str = ""
    capabilities: FrozenSet[Capability] = frozenset()

    @abstractmethod
    def create(self, context: "FederationContext", descriptor: BackendDescriptor) -> UserStorageProvider:
        """Create an adapter bound to ``descriptor``."""
        ...

    def validate_config(self, descriptor: BackendDescriptor) -> None:
        """Validate descriptor configuration; raise ConfigurationError when invalid."""
        return None


@runtime_checkable
class UserLookupProvider(Protocol):
    """Capability LOOKUP."""

    @abstractmethod
    async def get_user_by_id(self, realm: RealmId, user_id: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def get_user_by_username(self, realm: RealmId, username: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def get_user_by_email(self, realm: RealmId, email: str) -> Optional[UserRecord]:
        ...


@runtime_checkable
class UserQueryProvider(Protocol):
    """Capability QUERY.

    ``max_results`` of ``None`` means no upper bound.
    """

    @abstractmethod
    async def get_users_count(self, realm: RealmId) -> int:
        ...

    @abstractmethod
    async def get_users(
        self, realm: RealmId, first_result: int, max_results: Optional[int]
    ) -> List[UserRecord]:
        ...

    @abstractmethod
    async def search_for_user(
        self, realm: RealmId, search: str, first_result: int, max_results: Optional[int]
    ) -> List[UserRecord]:
        ...

    @abstractmethod
    async def search_for_user_by_attributes(
        self,
        realm: RealmId,
        attributes: Dict[str, str],
        first_result: int,
        max_results: Optional[int],
    ) -> List[UserRecord]:
        ...

    @abstractmethod
    async def search_for_user_by_user_attribute(
        self, realm: RealmId, name: str, value: str
    ) -> List[UserRecord]:
        ...

    @abstractmethod
    async def get_group_members(
        self, realm: RealmId, group: GroupRef, first_result: int, max_results: Optional[int]
    ) -> List[UserRecord]:
        ...


@runtime_checkable
class UserRegistrationProvider(Protocol):
    """Capability REGISTRATION."""

    @abstractmethod
    async def add_user(self, realm: RealmId, username: str) -> UserRecord:
        ...

    @abstractmethod
    async def remove_user(self, realm: RealmId, user: UserRecord) -> bool:
        ...

    @abstractmethod
    async def grant_to_all_users(self, realm: RealmId, role: RoleRef) -> None:
        ...


@runtime_checkable
class ImportedUserValidation(Protocol):
    """Capability IMPORT_VALIDATION.

    Returns a refreshed record, the record marked disabled, the record
    unchanged, or ``None`` when the import is no longer valid.
    """

    @abstractmethod
    async def validate(self, realm: RealmId, user: UserRecord) -> Optional[UserRecord]:
        ...


@runtime_checkable
class OnUserCache(Protocol):
    """Capability CACHE_HOOK."""

    @abstractmethod
    async def on_cache(self, realm: RealmId, cached: CachedUser, delegate: UserRecord) -> None:
        ...


@runtime_checkable
class LocalUserStore(Protocol):
    """Primary local user store.

    Always present; never registered through a factory. ``capabilities``
    tells the router which optional hooks (CACHE_HOOK) it implements.
    """

    capabilities: FrozenSet[Capability]

    # Lookup
    @abstractmethod
    async def get_user_by_id(self, realm: RealmId, user_id: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def get_user_by_username(self, realm: RealmId, username: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def get_user_by_email(self, realm: RealmId, email: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def get_user_by_federated_identity(
        self, realm: RealmId, identity: FederatedIdentity
    ) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def get_service_account(self, realm: RealmId, client: ClientRef) -> Optional[UserRecord]:
        ...

    # Query
    @abstractmethod
    async def get_users_count(self, realm: RealmId) -> int:
        ...

    @abstractmethod
    async def get_users(
        self,
        realm: RealmId,
        first_result: int,
        max_results: Optional[int],
        include_service_accounts: bool = False,
    ) -> List[UserRecord]:
        ...

    @abstractmethod
    async def search_for_user(
        self, realm: RealmId, search: str, first_result: int, max_results: Optional[int]
    ) -> List[UserRecord]:
        ...

    @abstractmethod
    async def search_for_user_by_attributes(
        self,
        realm: RealmId,
        attributes: Dict[str, str],
        first_result: int,
        max_results: Optional[int],
    ) -> List[UserRecord]:
        ...

    @abstractmethod
    async def search_for_user_by_user_attribute(
        self, realm: RealmId, name: str, value: str
    ) -> List[UserRecord]:
        ...

    @abstractmethod
    async def get_group_members(
        self, realm: RealmId, group: GroupRef, first_result: int, max_results: Optional[int]
    ) -> List[UserRecord]:
        ...

    # Registration
    @abstractmethod
    async def add_user(
        self,
        realm: RealmId,
        username: str,
        user_id: Optional[str] = None,
        add_default_roles: bool = True,
        add_default_required_actions: bool = True,
    ) -> UserRecord:
        ...

    @abstractmethod
    async def remove_user(self, realm: RealmId, user: UserRecord) -> bool:
        ...

    @abstractmethod
    async def grant_to_all_users(self, realm: RealmId, role: RoleRef) -> None:
        ...

    # Federated identities
    @abstractmethod
    async def add_federated_identity(
        self, realm: RealmId, user: UserRecord, identity: FederatedIdentity
    ) -> None:
        ...

    @abstractmethod
    async def update_federated_identity(
        self, realm: RealmId, user: UserRecord, identity: FederatedIdentity
    ) -> None:
        ...

    @abstractmethod
    async def remove_federated_identity(
        self, realm: RealmId, user: UserRecord, identity_provider: str
    ) -> bool:
        ...

    @abstractmethod
    async def get_federated_identities(
        self, realm: RealmId, user: UserRecord
    ) -> Set[FederatedIdentity]:
        ...

    @abstractmethod
    async def get_federated_identity(
        self, realm: RealmId, user: UserRecord, identity_provider: str
    ) -> Optional[FederatedIdentity]:
        ...

    # Consents
    @abstractmethod
    async def add_consent(self, realm: RealmId, user: UserRecord, consent: UserConsent) -> None:
        ...

    @abstractmethod
    async def get_consent_by_client(
        self, realm: RealmId, user: UserRecord, client_id: str
    ) -> Optional[UserConsent]:
        ...

    @abstractmethod
    async def get_consents(self, realm: RealmId, user: UserRecord) -> List[UserConsent]:
        ...

    @abstractmethod
    async def update_consent(self, realm: RealmId, user: UserRecord, consent: UserConsent) -> None:
        ...

    @abstractmethod
    async def revoke_consent_for_client(
        self, realm: RealmId, user: UserRecord, client_id: str
    ) -> bool:
        ...

    # Cleanup
    @abstractmethod
    async def pre_remove_realm(self, realm: RealmId) -> None:
        ...

    @abstractmethod
    async def pre_remove_group(self, realm: RealmId, group: GroupRef) -> None:
        ...

    @abstractmethod
    async def pre_remove_role(self, realm: RealmId, role: RoleRef) -> None:
        ...

    @abstractmethod
    async def pre_remove_client(self, realm: RealmId, client: ClientRef) -> None:
        ...

    @abstractmethod
    async def pre_remove_component(self, realm: RealmId, component: ComponentRef) -> None:
        ...

    @abstractmethod
    async def pre_remove_descriptor(self, realm: RealmId, descriptor: BackendDescriptor) -> None:
        ...


@runtime_checkable
class FederatedAttributeStore(Protocol):
    """Supplementary per-user data for users whose primary record is external.

    Keyed by ``(realm, user id)`` regardless of which backend owns the user.
    """

    # Attributes
    @abstractmethod
    async def set_attribute(
        self, realm: RealmId, user_id: str, name: str, values: List[str]
    ) -> None:
        ...

    @abstractmethod
    async def get_attributes(self, realm: RealmId, user_id: str) -> Dict[str, List[str]]:
        ...

    @abstractmethod
    async def remove_attribute(self, realm: RealmId, user_id: str, name: str) -> None:
        ...

    @abstractmethod
    async def get_users_by_user_attribute(
        self, realm: RealmId, name: str, value: str
    ) -> List[str]:
        ...

    # Group membership
    @abstractmethod
    async def join_group(self, realm: RealmId, user_id: str, group: GroupRef) -> None:
        ...

    @abstractmethod
    async def leave_group(self, realm: RealmId, user_id: str, group: GroupRef) -> None:
        ...

    @abstractmethod
    async def get_membership(
        self, realm: RealmId, group: GroupRef, first_result: int, max_results: Optional[int]
    ) -> List[str]:
        ...

    # Federated identities
    @abstractmethod
    async def add_federated_identity(
        self, realm: RealmId, user_id: str, identity: FederatedIdentity
    ) -> None:
        ...

    @abstractmethod
    async def update_federated_identity(
        self, realm: RealmId, user_id: str, identity: FederatedIdentity
    ) -> None:
        ...

    @abstractmethod
    async def remove_federated_identity(
        self, realm: RealmId, user_id: str, identity_provider: str
    ) -> bool:
        ...

    @abstractmethod
    async def get_federated_identities(
        self, realm: RealmId, user_id: str
    ) -> Set[FederatedIdentity]:
        ...

    @abstractmethod
    async def get_federated_identity(
        self, realm: RealmId, user_id: str, identity_provider: str
    ) -> Optional[FederatedIdentity]:
        ...

    @abstractmethod
    async def get_user_by_federated_identity(
        self, realm: RealmId, identity: FederatedIdentity
    ) -> Optional[str]:
        ...

    # Consents
    @abstractmethod
    async def add_consent(self, realm: RealmId, user_id: str, consent: UserConsent) -> None:
        ...

    @abstractmethod
    async def get_consent_by_client(
        self, realm: RealmId, user_id: str, client_id: str
    ) -> Optional[UserConsent]:
        ...

    @abstractmethod
    async def get_consents(self, realm: RealmId, user_id: str) -> List[UserConsent]:
        ...

    @abstractmethod
    async def update_consent(self, realm: RealmId, user_id: str, consent: UserConsent) -> None:
        ...

    @abstractmethod
    async def revoke_consent_for_client(
        self, realm: RealmId, user_id: str, client_id: str
    ) -> bool:
        ...

    # Cleanup
    @abstractmethod
    async def pre_remove_user(self, realm: RealmId, user_id: str) -> None:
        ...

    @abstractmethod
    async def pre_remove_realm(self, realm: RealmId) -> None:
        ...

    @abstractmethod
    async def pre_remove_group(self, realm: RealmId, group: GroupRef) -> None:
        ...

    @abstractmethod
    async def pre_remove_role(self, realm: RealmId, role: RoleRef) -> None:
        ...

    @abstractmethod
    async def pre_remove_client(self, realm: RealmId, client: ClientRef) -> None:
        ...

    @abstractmethod
    async def pre_remove_component(self, realm: RealmId, component: ComponentRef) -> None:
        ...

    @abstractmethod
    async def pre_remove_descriptor(self, realm: RealmId, descriptor: BackendDescriptor) -> None:
        ...


@runtime_checkable
class DescriptorSource(Protocol):
    """Read-only access to the backend descriptors configured in a realm."""

    @abstractmethod
    async def list_descriptors(self, realm: RealmId) -> List[BackendDescriptor]:
        """Descriptors of the realm, in merge and fan-out order."""
        ...

    @abstractmethod
    async def get_descriptor(self, realm: RealmId, descriptor_id: str) -> Optional[BackendDescriptor]:
        ...
