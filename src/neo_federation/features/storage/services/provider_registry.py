"""User storage provider registry.

Resolves the backend descriptors configured in a realm to adapter instances,
caching each instance in the federation context that created it.
"""

import logging
from typing import Dict, FrozenSet, List, Optional

from ....config.constants import Capability
from ....core.exceptions import (
    ProviderRegistrationError,
    ProviderResolutionError,
)
from ....core.value_objects import RealmId
from ..entities.context import FederationContext
from ..entities.descriptor import BackendDescriptor
from ..entities.protocols import (
    DescriptorSource,
    UserStorageProvider,
    UserStorageProviderFactory,
)

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry of backend factories and per-context adapter instances."""

    def __init__(
        self,
        descriptor_source: DescriptorSource,
        factories: Optional[List[UserStorageProviderFactory]] = None,
    ):
        if not descriptor_source:
            raise ValueError("Descriptor source is required")
        self.descriptor_source = descriptor_source
        self._factories: Dict[str, UserStorageProviderFactory] = {}
        self._capabilities: Dict[str, FrozenSet[Capability]] = {}
        for factory in factories or []:
            self.register_factory(factory)

    def register_factory(self, factory: UserStorageProviderFactory) -> None:
        """Register a backend factory and freeze its declared capabilities."""
        provider_id = factory.provider_id
        if not provider_id:
            raise ProviderRegistrationError(
                f"Factory {type(factory).__name__} does not declare a provider_id"
            )
        if provider_id in self._factories:
            raise ProviderRegistrationError(
                f"Storage provider factory already registered: {provider_id}",
                details={"provider_id": provider_id},
            )

        capabilities = frozenset(Capability(c) for c in factory.capabilities)
        self._factories[provider_id] = factory
        self._capabilities[provider_id] = capabilities
        logger.info(
            f"Registered storage provider factory '{provider_id}' "
            f"with capabilities {sorted(c.value for c in capabilities)}"
        )

    def get_factory(self, provider_id: str) -> Optional[UserStorageProviderFactory]:
        return self._factories.get(provider_id)

    @property
    def factory_ids(self) -> List[str]:
        return list(self._factories)

    def capabilities_of(self, descriptor: BackendDescriptor) -> FrozenSet[Capability]:
        """Capabilities declared by the factory a descriptor names."""
        if descriptor.provider_id not in self._capabilities:
            raise ProviderResolutionError(
                f"Could not find storage provider factory for: {descriptor.provider_id}",
                provider_id=descriptor.id,
                details={"factory": descriptor.provider_id},
            )
        return self._capabilities[descriptor.provider_id]

    def descriptor_supports(self, descriptor: BackendDescriptor, capability: Capability) -> bool:
        return capability in self.capabilities_of(descriptor)

    def instance_supports(self, provider: UserStorageProvider, capability: Capability) -> bool:
        return self.descriptor_supports(provider.descriptor, capability)

    async def supports(self, realm: RealmId, descriptor_id: str, capability: Capability) -> bool:
        """True when the realm has a descriptor ``descriptor_id`` whose factory declares ``capability``."""
        descriptor = await self.find_descriptor(realm, descriptor_id)
        if descriptor is None:
            return False
        return self.descriptor_supports(descriptor, capability)

    async def list_descriptors(self, realm: RealmId) -> List[BackendDescriptor]:
        """Descriptors configured in the realm, in realm order."""
        descriptors = await self.descriptor_source.list_descriptors(realm)
        return sorted(descriptors, key=lambda d: d.sort_key)

    async def list_active_descriptors(
        self, realm: RealmId, capability: Optional[Capability] = None
    ) -> List[BackendDescriptor]:
        """Enabled descriptors, optionally filtered by a declared capability."""
        active = []
        for descriptor in await self.list_descriptors(realm):
            if not descriptor.enabled:
                continue
            if capability is not None and not self.descriptor_supports(descriptor, capability):
                continue
            active.append(descriptor)
        return active

    async def resolve_by_capability(
        self,
        context: FederationContext,
        realm: RealmId,
        capability: Capability,
    ) -> List[UserStorageProvider]:
        """Instantiate every active backend declaring ``capability``."""
        descriptors = await self.list_active_descriptors(realm, capability)
        return [self.get_instance(context, descriptor) for descriptor in descriptors]

    async def has_capability(self, realm: RealmId, capability: Capability) -> bool:
        """True when at least one active backend declares ``capability``."""
        return bool(await self.list_active_descriptors(realm, capability))

    async def find_by_id(
        self,
        context: FederationContext,
        realm: RealmId,
        descriptor_id: str,
    ) -> Optional[UserStorageProvider]:
        """Resolve a backend by descriptor id; None when no such descriptor exists.

        A descriptor naming an unregistered factory still raises.
        """
        cached = context.get_instance(descriptor_id)
        if cached is not None:
            return cached

        descriptor = await self.find_descriptor(realm, descriptor_id)
        if descriptor is None:
            return None
        return self.get_instance(context, descriptor)

    async def resolve_by_id(
        self,
        context: FederationContext,
        realm: RealmId,
        descriptor_id: str,
    ) -> UserStorageProvider:
        """Resolve the backend owning ``descriptor_id``; raise when it cannot be found."""
        provider = await self.find_by_id(context, realm, descriptor_id)
        if provider is None:
            raise ProviderResolutionError(
                f"Could not resolve storage provider: {descriptor_id}",
                provider_id=descriptor_id,
                details={"realm": realm.value},
            )
        return provider

    async def find_descriptor(self, realm: RealmId, descriptor_id: str) -> Optional[BackendDescriptor]:
        return await self.descriptor_source.get_descriptor(realm, descriptor_id)

    def get_instance(
        self,
        context: FederationContext,
        descriptor: BackendDescriptor,
    ) -> UserStorageProvider:
        """Return the context's instance for ``descriptor``, creating it on first use."""
        instance = context.get_instance(descriptor.id)
        if instance is not None:
            return instance

        factory = self.get_factory(descriptor.provider_id)
        if factory is None:
            raise ProviderResolutionError(
                f"Could not find storage provider factory for: {descriptor.provider_id}",
                provider_id=descriptor.id,
                details={"factory": descriptor.provider_id},
            )

        instance = factory.create(context, descriptor)
        context.enlist_for_close(instance)
        context.set_instance(descriptor.id, instance)
        logger.debug(
            f"Created storage provider '{descriptor.id}' ({descriptor.provider_id}) "
            f"for context {context.request_id}"
        )
        return instance
