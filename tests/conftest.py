"""Pytest configuration and fixtures for neo-federation tests."""

from typing import Callable, Dict, List, Optional

import pytest

from neo_federation.config.constants import Capability
from neo_federation.core.value_objects import RealmId, StorageId
from neo_federation.features.storage.entities import (
    BackendDescriptor,
    FederationContext,
    UserRecord,
    UserStorageProvider,
    UserStorageProviderFactory,
)
from neo_federation.features.storage.repositories import (
    InMemoryDescriptorRepository,
    InMemoryFederatedAttributeStore,
    InMemoryLocalUserStore,
)
from neo_federation.features.storage.services import ProviderRegistry, UserStorageManager


class RecordingBackend(UserStorageProvider):
    """Backend serving a fixed user list and journaling every call."""

    def __init__(
        self,
        descriptor: BackendDescriptor,
        journal: List[tuple],
        users: List[UserRecord],
        validator: Optional[Callable[[UserRecord], Optional[UserRecord]]] = None,
    ):
        super().__init__(descriptor)
        self.journal = journal
        self.users = [u.copy() for u in users]
        self.validator = validator
        self.closed = False

    def _log(self, operation: str, *args):
        self.journal.append((self.provider_id, operation) + args)

    def _window(self, users, first_result, max_results):
        if max_results is None:
            return users[first_result:]
        return users[first_result:first_result + max_results]

    async def get_user_by_id(self, realm, user_id):
        self._log("get_user_by_id", user_id)
        return next((u.copy() for u in self.users if u.id == user_id), None)

    async def get_user_by_username(self, realm, username):
        self._log("get_user_by_username", username)
        return next((u.copy() for u in self.users if u.username == username), None)

    async def get_user_by_email(self, realm, email):
        self._log("get_user_by_email", email)
        return next((u.copy() for u in self.users if u.email == email), None)

    async def get_users_count(self, realm):
        self._log("get_users_count")
        return len(self.users)

    async def get_users(self, realm, first_result, max_results):
        self._log("get_users", first_result, max_results)
        return self._window(self.users, first_result, max_results)

    async def search_for_user(self, realm, search, first_result, max_results):
        self._log("search_for_user", search, first_result, max_results)
        matches = [u for u in self.users if search in u.username]
        return self._window(matches, first_result, max_results)

    async def search_for_user_by_attributes(self, realm, attributes, first_result, max_results):
        self._log("search_for_user_by_attributes", first_result, max_results)
        matches = [u for u in self.users if attributes.get("email") == u.email]
        return self._window(matches, first_result, max_results)

    async def search_for_user_by_user_attribute(self, realm, name, value):
        self._log("search_for_user_by_user_attribute", name, value)
        return [u for u in self.users if value in u.attributes.get(name, [])]

    async def get_group_members(self, realm, group, first_result, max_results):
        self._log("get_group_members", group.id, first_result, max_results)
        return []

    async def add_user(self, realm, username):
        self._log("add_user", username)
        user = UserRecord(id=StorageId.encode(self.provider_id, username), username=username)
        self.users.append(user)
        return user

    async def remove_user(self, realm, user):
        self._log("remove_user", user.id)
        before = len(self.users)
        self.users = [u for u in self.users if u.id != user.id]
        return len(self.users) < before

    async def grant_to_all_users(self, realm, role):
        self._log("grant_to_all_users", role.id)

    async def validate(self, realm, user):
        self._log("validate", user.id)
        return self.validator(user) if self.validator else user

    async def on_cache(self, realm, cached, delegate):
        self._log("on_cache", cached.id)

    async def pre_remove_realm(self, realm):
        self._log("pre_remove_realm")

    async def pre_remove_group(self, realm, group):
        self._log("pre_remove_group", group.id)

    async def pre_remove_role(self, realm, role):
        self._log("pre_remove_role", role.id)

    async def pre_remove_client(self, realm, client):
        self._log("pre_remove_client", client.id)

    async def pre_remove_component(self, realm, component):
        self._log("pre_remove_component", component.id)

    async def close(self):
        self.closed = True
        self._log("close")


class RecordingFactory(UserStorageProviderFactory):
    """Factory declaring an arbitrary capability set."""

    def __init__(
        self,
        provider_id: str,
        capabilities,
        journal: List[tuple],
        users: Optional[Dict[str, List[UserRecord]]] = None,
        validator=None,
    ):
        self.provider_id = provider_id
        self.capabilities = frozenset(capabilities)
        self.journal = journal
        self.users = users or {}
        self.validator = validator
        self.created: List[RecordingBackend] = []

    def create(self, context, descriptor):
        backend = RecordingBackend(descriptor, self.journal, self.users.get(descriptor.id, []), self.validator)
        self.created.append(backend)
        return backend


ALL_CAPABILITIES = frozenset(Capability)


@pytest.fixture
def realm():
    """Realm used by every test."""
    return RealmId("acme")


@pytest.fixture
def context():
    """Fresh federation context."""
    return FederationContext(request_id="req-1")


@pytest.fixture
def journal():
    """Ordered record of backend calls."""
    return []


@pytest.fixture
def descriptor_repository():
    return InMemoryDescriptorRepository()


@pytest.fixture
def local_store():
    return InMemoryLocalUserStore()


@pytest.fixture
def federated_store():
    return InMemoryFederatedAttributeStore()


@pytest.fixture
def registry(descriptor_repository):
    return ProviderRegistry(descriptor_repository)


@pytest.fixture
def manager(registry, local_store, federated_store):
    return UserStorageManager(registry, local_store, federated_store, batch_size=50)


@pytest.fixture
def make_users():
    """Build tagged users ``f:<descriptor>:<name>`` in the given order."""
    def _make(descriptor_id: str, *names: str) -> List[UserRecord]:
        return [
            UserRecord(id=StorageId.encode(descriptor_id, name), username=name, email=f"{name}@example.com")
            for name in names
        ]
    return _make


@pytest.fixture
def make_factory(journal):
    """Build a recording factory; ``users`` maps descriptor id to its users."""
    def _make(provider_id: str, capabilities=ALL_CAPABILITIES, users=None, validator=None) -> RecordingFactory:
        return RecordingFactory(provider_id, capabilities, journal, users, validator)
    return _make


@pytest.fixture
def add_backend(descriptor_repository, realm):
    """Configure a descriptor in the test realm."""
    async def _add(descriptor_id: str, provider_id: str, priority: int = 0, enabled: bool = True, **config):
        descriptor = BackendDescriptor(
            id=descriptor_id,
            provider_id=provider_id,
            name=descriptor_id,
            priority=priority,
            enabled=enabled,
            config=config,
            realm_id=realm.value,
        )
        await descriptor_repository.add_descriptor(realm, descriptor)
        return descriptor
    return _add
