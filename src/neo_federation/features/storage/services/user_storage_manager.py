"""Federated user storage router.

``UserStorageManager`` is the single directory interface callers use. It
decides, per operation, whether the local store, one owning backend, every
backend, or the federated attribute store answers, and revalidates imported
records on every read.

Every operation takes the acting federation context and realm explicitly.
"""

import logging
from typing import Dict, List, Optional, Set

from ....config.constants import Capability
from ....core.exceptions import (
    CapabilityMissingError,
    ConfigurationError,
    FederatedUserInvalidError,
)
from ....core.value_objects import RealmId, StorageId
from ..entities.context import FederationContext
from ..entities.descriptor import BackendDescriptor
from ..entities.protocols import (
    FederatedAttributeStore,
    LocalUserStore,
    UserStorageProvider,
)
from ..entities.references import ClientRef, ComponentRef, GroupRef, RoleRef
from ..entities.user import CachedUser, FederatedIdentity, UserConsent, UserRecord
from .import_validation import ImportValidationService
from .lifecycle_service import LifecycleFanOutService
from .paginated_query import (
    AttributeSearchQuery,
    GroupMembersQuery,
    PagedQuery,
    PaginatedQueryEngine,
    SearchQuery,
    UserAttributeQuery,
    UserListQuery,
)
from .provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)


class UserStorageManager:
    """Routes directory operations across the local store and user storage backends."""

    def __init__(
        self,
        registry: ProviderRegistry,
        local_store: LocalUserStore,
        federated_store: Optional[FederatedAttributeStore] = None,
        batch_size: Optional[int] = None,
    ):
        if not local_store:
            raise ValueError("Local user store is required")
        self.registry = registry
        self.local_store = local_store
        self.federated_store = federated_store
        self.import_validation = ImportValidationService(registry)
        self.query_engine = PaginatedQueryEngine(registry, local_store, federated_store, batch_size)
        self.lifecycle = LifecycleFanOutService(registry, local_store, federated_store)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_user_by_id(
        self, context: FederationContext, realm: RealmId, user_id: str
    ) -> Optional[UserRecord]:
        user = await self._lookup_by_id(context, realm, user_id)
        return await self.import_validation.validate(context, realm, user)

    async def get_user_by_username(
        self, context: FederationContext, realm: RealmId, username: str
    ) -> Optional[UserRecord]:
        """Local store first, then each lookup-capable backend in order."""
        user = await self.local_store.get_user_by_username(realm, username)
        if user is not None:
            return await self.import_validation.validate(context, realm, user)

        for provider in await self.registry.resolve_by_capability(context, realm, Capability.LOOKUP):
            user = await provider.get_user_by_username(realm, username)
            if user is not None:
                return await self.import_validation.validate(context, realm, user)
        return None

    async def get_user_by_email(
        self, context: FederationContext, realm: RealmId, email: str
    ) -> Optional[UserRecord]:
        """Local store first, then each lookup-capable backend in order."""
        user = await self.local_store.get_user_by_email(realm, email)
        if user is not None:
            return await self.import_validation.validate(context, realm, user)

        for provider in await self.registry.resolve_by_capability(context, realm, Capability.LOOKUP):
            user = await provider.get_user_by_email(realm, email)
            if user is not None:
                return await self.import_validation.validate(context, realm, user)
        return None

    async def get_user_by_federated_identity(
        self, context: FederationContext, realm: RealmId, identity: FederatedIdentity
    ) -> Optional[UserRecord]:
        user = await self.local_store.get_user_by_federated_identity(realm, identity)
        if user is not None:
            return await self.import_validation.validate(context, realm, user)

        if self.federated_store is None:
            return None
        user_id = await self.federated_store.get_user_by_federated_identity(realm, identity)
        if user_id is None:
            return None
        return await self.get_user_by_id(context, realm, user_id)

    async def get_service_account(
        self, context: FederationContext, realm: RealmId, client: ClientRef
    ) -> Optional[UserRecord]:
        user = await self.local_store.get_service_account(realm, client)
        return await self.import_validation.validate(context, realm, user)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    async def get_users(
        self,
        context: FederationContext,
        realm: RealmId,
        first_result: int = 0,
        max_results: Optional[int] = None,
        include_service_accounts: bool = False,
    ) -> List[UserRecord]:
        query = UserListQuery(realm, include_service_accounts)
        return await self._query(context, realm, query, first_result, max_results)

    async def get_users_count(self, context: FederationContext, realm: RealmId) -> int:
        """Local count plus the count of every query-capable backend."""
        size = await self.local_store.get_users_count(realm)
        for provider in await self.registry.resolve_by_capability(context, realm, Capability.QUERY):
            size += await provider.get_users_count(realm)
        return size

    async def search_for_user(
        self,
        context: FederationContext,
        realm: RealmId,
        search: str,
        first_result: int = 0,
        max_results: Optional[int] = None,
    ) -> List[UserRecord]:
        return await self._query(context, realm, SearchQuery(realm, search), first_result, max_results)

    async def search_for_user_by_attributes(
        self,
        context: FederationContext,
        realm: RealmId,
        attributes: Dict[str, str],
        first_result: int = 0,
        max_results: Optional[int] = None,
    ) -> List[UserRecord]:
        query = AttributeSearchQuery(realm, attributes)
        return await self._query(context, realm, query, first_result, max_results)

    async def search_for_user_by_user_attribute(
        self, context: FederationContext, realm: RealmId, name: str, value: str
    ) -> List[UserRecord]:
        query = UserAttributeQuery(realm, name, value, self._resolver(context, realm))
        return await self._query(context, realm, query, 0, None)

    async def get_group_members(
        self,
        context: FederationContext,
        realm: RealmId,
        group: GroupRef,
        first_result: int = 0,
        max_results: Optional[int] = None,
    ) -> List[UserRecord]:
        query = GroupMembersQuery(realm, group, self._resolver(context, realm))
        return await self._query(context, realm, query, first_result, max_results)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def add_user(
        self,
        context: FederationContext,
        realm: RealmId,
        username: str,
        user_id: Optional[str] = None,
        add_default_roles: bool = True,
        add_default_required_actions: bool = True,
    ) -> UserRecord:
        """Create a user.

        An explicit ``user_id`` always creates a local user. Otherwise the
        first registration-capable backend creates it, falling back to the
        local store.
        """
        if user_id is not None:
            return await self.local_store.add_user(
                realm, username.lower(), user_id, add_default_roles, add_default_required_actions
            )

        registrars = await self.registry.resolve_by_capability(context, realm, Capability.REGISTRATION)
        if registrars:
            logger.debug(f"Registering {username} with storage provider '{registrars[0].provider_id}'")
            return await registrars[0].add_user(realm, username)
        return await self.local_store.add_user(
            realm, username.lower(), None, add_default_roles, add_default_required_actions
        )

    async def remove_user(self, context: FederationContext, realm: RealmId, user: UserRecord) -> bool:
        """Remove a user through its owner.

        The owner is resolved before anything is deleted, so a missing or
        non-registering owner leaves the federated data intact. Federated data
        is then dropped ahead of the owner's removal.
        """
        self._require_user(user)
        storage_id = StorageId.for_user(user)
        provider = None
        if not storage_id.is_local:
            provider = await self._resolve_owner(context, realm, storage_id, Capability.REGISTRATION)

        if self.federated_store is not None:
            await self.federated_store.pre_remove_user(realm, user.id)

        if provider is None:
            return await self.local_store.remove_user(realm, user)
        return await provider.remove_user(realm, user)

    async def grant_to_all_users(self, context: FederationContext, realm: RealmId, role: RoleRef) -> None:
        await self.lifecycle.grant_to_all_users(context, realm, role)

    # ------------------------------------------------------------------
    # Federated identities
    # ------------------------------------------------------------------

    async def add_federated_identity(
        self, context: FederationContext, realm: RealmId, user: UserRecord, identity: FederatedIdentity
    ) -> None:
        self._require_user(user)
        if StorageId.is_local_storage(user):
            await self.local_store.add_federated_identity(realm, user, identity)
        else:
            await self._require_federated_store().add_federated_identity(realm, user.id, identity)

    async def update_federated_identity(
        self, context: FederationContext, realm: RealmId, user: UserRecord, identity: FederatedIdentity
    ) -> None:
        self._require_user(user)
        if StorageId.is_local_storage(user):
            await self.local_store.update_federated_identity(realm, user, identity)
        else:
            await self._require_federated_store().update_federated_identity(realm, user.id, identity)

    async def remove_federated_identity(
        self, context: FederationContext, realm: RealmId, user: UserRecord, identity_provider: str
    ) -> bool:
        self._require_user(user)
        if StorageId.is_local_storage(user):
            return await self.local_store.remove_federated_identity(realm, user, identity_provider)
        return await self._require_federated_store().remove_federated_identity(
            realm, user.id, identity_provider
        )

    async def get_federated_identities(
        self, context: FederationContext, realm: RealmId, user: UserRecord
    ) -> Set[FederatedIdentity]:
        """Identities held locally and in the federated attribute store."""
        self._require_user(user)
        identities: Set[FederatedIdentity] = set()
        if StorageId.is_local_storage(user):
            identities.update(await self.local_store.get_federated_identities(realm, user))
        if self.federated_store is not None:
            identities.update(await self.federated_store.get_federated_identities(realm, user.id))
        return identities

    async def get_federated_identity(
        self, context: FederationContext, realm: RealmId, user: UserRecord, identity_provider: str
    ) -> Optional[FederatedIdentity]:
        self._require_user(user)
        if StorageId.is_local_storage(user):
            identity = await self.local_store.get_federated_identity(realm, user, identity_provider)
            if identity is not None:
                return identity
        if self.federated_store is None:
            return None
        return await self.federated_store.get_federated_identity(realm, user.id, identity_provider)

    # ------------------------------------------------------------------
    # Consents
    # ------------------------------------------------------------------

    async def add_consent(
        self, context: FederationContext, realm: RealmId, user: UserRecord, consent: UserConsent
    ) -> None:
        self._require_user(user)
        if StorageId.is_local_storage(user):
            await self.local_store.add_consent(realm, user, consent)
        else:
            await self._require_federated_store().add_consent(realm, user.id, consent)

    async def get_consent_by_client(
        self, context: FederationContext, realm: RealmId, user: UserRecord, client_id: str
    ) -> Optional[UserConsent]:
        self._require_user(user)
        if StorageId.is_local_storage(user):
            return await self.local_store.get_consent_by_client(realm, user, client_id)
        return await self._require_federated_store().get_consent_by_client(realm, user.id, client_id)

    async def get_consents(
        self, context: FederationContext, realm: RealmId, user: UserRecord
    ) -> List[UserConsent]:
        self._require_user(user)
        if StorageId.is_local_storage(user):
            return await self.local_store.get_consents(realm, user)
        return await self._require_federated_store().get_consents(realm, user.id)

    async def update_consent(
        self, context: FederationContext, realm: RealmId, user: UserRecord, consent: UserConsent
    ) -> None:
        self._require_user(user)
        if StorageId.is_local_storage(user):
            await self.local_store.update_consent(realm, user, consent)
        else:
            await self._require_federated_store().update_consent(realm, user.id, consent)

    async def revoke_consent_for_client(
        self, context: FederationContext, realm: RealmId, user: UserRecord, client_id: str
    ) -> bool:
        self._require_user(user)
        if StorageId.is_local_storage(user):
            return await self.local_store.revoke_consent_for_client(realm, user, client_id)
        return await self._require_federated_store().revoke_consent_for_client(realm, user.id, client_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def pre_remove_realm(self, context: FederationContext, realm: RealmId) -> None:
        await self.lifecycle.pre_remove_realm(context, realm)

    async def pre_remove_group(self, context: FederationContext, realm: RealmId, group: GroupRef) -> None:
        await self.lifecycle.pre_remove_group(context, realm, group)

    async def pre_remove_role(self, context: FederationContext, realm: RealmId, role: RoleRef) -> None:
        await self.lifecycle.pre_remove_role(context, realm, role)

    async def pre_remove_client(self, context: FederationContext, realm: RealmId, client: ClientRef) -> None:
        await self.lifecycle.pre_remove_client(context, realm, client)

    async def pre_remove_component(
        self, context: FederationContext, realm: RealmId, component: ComponentRef
    ) -> None:
        await self.lifecycle.pre_remove_component(context, realm, component)

    async def pre_remove_descriptor(
        self, context: FederationContext, realm: RealmId, descriptor: BackendDescriptor
    ) -> None:
        await self.lifecycle.pre_remove_descriptor(context, realm, descriptor)

    async def on_cache(
        self, context: FederationContext, realm: RealmId, cached: CachedUser, delegate: UserRecord
    ) -> None:
        await self.lifecycle.on_cache(context, realm, cached, delegate)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _query(
        self,
        context: FederationContext,
        realm: RealmId,
        query: PagedQuery,
        first_result: int,
        max_results: Optional[int],
    ) -> List[UserRecord]:
        users = await self.query_engine.execute(context, query, first_result, max_results)
        return await self.import_validation.validate_many(context, realm, users)

    async def _lookup_by_id(
        self, context: FederationContext, realm: RealmId, user_id: str
    ) -> Optional[UserRecord]:
        """Fetch a user from its owner without revalidating it."""
        storage_id = StorageId.decode(user_id)
        if storage_id.is_local:
            return await self.local_store.get_user_by_id(realm, user_id)
        provider = await self._resolve_owner(context, realm, storage_id, Capability.LOOKUP)
        return await provider.get_user_by_id(realm, user_id)

    def _resolver(self, context: FederationContext, realm: RealmId):
        async def resolve(user_id: str) -> Optional[UserRecord]:
            return await self._lookup_by_id(context, realm, user_id)
        return resolve

    async def _resolve_owner(
        self,
        context: FederationContext,
        realm: RealmId,
        storage_id: StorageId,
        capability: Capability,
    ) -> UserStorageProvider:
        provider = await self.registry.resolve_by_id(context, realm, storage_id.provider_id)
        if not self.registry.instance_supports(provider, capability):
            raise CapabilityMissingError(storage_id.provider_id, capability.value)
        return provider

    def _require_federated_store(self) -> FederatedAttributeStore:
        if self.federated_store is None:
            raise ConfigurationError("No federated attribute store configured")
        return self.federated_store

    @staticmethod
    def _require_user(user: Optional[UserRecord]) -> None:
        if user is None:
            raise FederatedUserInvalidError()
