"""Lifecycle fan-out across user storage backends.

Realm-, group-, role-, client- and component-scoped cleanup is broadcast sequentially
to the local store, the active backends and the federated attribute store.
There is no rollback: when a target fails, earlier targets keep their
changes and the failure propagates to the caller.
"""

import logging
from typing import Optional

from ....config.constants import Capability
from ....config.settings import get_settings
from ....core.exceptions import ProviderResolutionError
from ....core.value_objects import RealmId, StorageId
from ..entities.context import FederationContext
from ..entities.descriptor import BackendDescriptor
from ..entities.protocols import FederatedAttributeStore, LocalUserStore
from ..entities.references import ClientRef, ComponentRef, GroupRef, RoleRef
from ..entities.user import CachedUser, UserRecord
from .provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)


class LifecycleFanOutService:
    """Broadcasts cleanup and bulk operations to every relevant backend."""

    def __init__(
        self,
        registry: ProviderRegistry,
        local_store: LocalUserStore,
        federated_store: Optional[FederatedAttributeStore] = None,
        user_storage_provider_type: Optional[str] = None,
    ):
        self.registry = registry
        self.local_store = local_store
        self.federated_store = federated_store
        self.user_storage_provider_type = (
            user_storage_provider_type or get_settings().user_storage_provider_type
        )

    async def pre_remove_realm(self, context: FederationContext, realm: RealmId) -> None:
        """Local store, then every lifecycle-capable backend, then the federated store."""
        logger.info(f"Broadcasting realm removal for {realm.value}")
        await self.local_store.pre_remove_realm(realm)
        for provider in await self.registry.resolve_by_capability(context, realm, Capability.LIFECYCLE):
            await provider.pre_remove_realm(realm)
        if self.federated_store is not None:
            await self.federated_store.pre_remove_realm(realm)

    async def pre_remove_group(self, context: FederationContext, realm: RealmId, group: GroupRef) -> None:
        await self.local_store.pre_remove_group(realm, group)
        for provider in await self.registry.resolve_by_capability(context, realm, Capability.LIFECYCLE):
            await provider.pre_remove_group(realm, group)
        if self.federated_store is not None:
            await self.federated_store.pre_remove_group(realm, group)

    async def pre_remove_role(self, context: FederationContext, realm: RealmId, role: RoleRef) -> None:
        await self.local_store.pre_remove_role(realm, role)
        for provider in await self.registry.resolve_by_capability(context, realm, Capability.LIFECYCLE):
            await provider.pre_remove_role(realm, role)
        if self.federated_store is not None:
            await self.federated_store.pre_remove_role(realm, role)

    async def pre_remove_client(self, context: FederationContext, realm: RealmId, client: ClientRef) -> None:
        await self.local_store.pre_remove_client(realm, client)
        for provider in await self.registry.resolve_by_capability(context, realm, Capability.LIFECYCLE):
            await provider.pre_remove_client(realm, client)
        if self.federated_store is not None:
            await self.federated_store.pre_remove_client(realm, client)

    async def pre_remove_component(
        self, context: FederationContext, realm: RealmId, component: ComponentRef
    ) -> None:
        """Clean up after a component; only user storage components are relevant."""
        if component.provider_type != self.user_storage_provider_type:
            return
        await self.local_store.pre_remove_component(realm, component)
        for provider in await self.registry.resolve_by_capability(context, realm, Capability.LIFECYCLE):
            await provider.pre_remove_component(realm, component)
        if self.federated_store is not None:
            await self.federated_store.pre_remove_component(realm, component)

    async def pre_remove_descriptor(
        self, context: FederationContext, realm: RealmId, descriptor: BackendDescriptor
    ) -> None:
        """Drop federated data and local import links of a descriptor being removed.

        The context's adapter instance for the descriptor, if any, is closed.
        """
        logger.info(f"Removing storage provider '{descriptor.id}' from realm {realm.value}")
        if self.federated_store is not None:
            await self.federated_store.pre_remove_descriptor(realm, descriptor)
        await self.local_store.pre_remove_descriptor(realm, descriptor)

        instance = context.evict_instance(descriptor.id)
        if instance is not None:
            context.delist(instance)
            await instance.close()

    async def grant_to_all_users(self, context: FederationContext, realm: RealmId, role: RoleRef) -> None:
        """Local store, then every registration-capable backend."""
        await self.local_store.grant_to_all_users(realm, role)
        for provider in await self.registry.resolve_by_capability(context, realm, Capability.REGISTRATION):
            await provider.grant_to_all_users(realm, role)

    async def on_cache(
        self,
        context: FederationContext,
        realm: RealmId,
        cached: CachedUser,
        delegate: UserRecord,
    ) -> None:
        """Route a cache event to the hook of whoever owns the user; no-op without one."""
        provider_id = StorageId.resolve_provider_id(cached.id)
        if provider_id is None:
            if Capability.CACHE_HOOK in self.local_store.capabilities:
                await self.local_store.on_cache(realm, cached, delegate)
            return

        try:
            provider = await self.registry.find_by_id(context, realm, provider_id)
        except ProviderResolutionError as e:
            logger.warning(f"Skipping cache hook for {cached.id}: {e.message}")
            return

        if provider is not None and self.registry.instance_supports(provider, Capability.CACHE_HOOK):
            await provider.on_cache(realm, cached, delegate)
