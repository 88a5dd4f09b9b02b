"""Tests for the Keycloak user storage backend."""

from unittest.mock import AsyncMock

import pytest
from keycloak.exceptions import KeycloakDeleteError, KeycloakGetError, KeycloakPostError

from neo_federation.config.constants import Capability
from neo_federation.core.exceptions import (
    BackendOperationError,
    ConfigurationError,
    UserAlreadyExistsError,
)
from neo_federation.features.storage.adapters import (
    KeycloakUserStorageAdapter,
    KeycloakUserStorageProviderFactory,
)
from neo_federation.features.storage.entities import BackendDescriptor, GroupRef, RoleRef, UserRecord


@pytest.fixture
def descriptor():
    return BackendDescriptor(
        id="corp",
        provider_id="keycloak",
        config={
            "server_url": "https://kc.example.com/auth/",
            "realm_name": "corporate",
            "client_secret": "secret",
        },
    )


@pytest.fixture
def admin_client():
    """Mock KeycloakAdmin exposing the async API."""
    client = AsyncMock()
    client.a_get_users = AsyncMock(return_value=[])
    return client


@pytest.fixture
def adapter(descriptor, admin_client):
    return KeycloakUserStorageAdapter(descriptor, admin_client=admin_client)


def _representation(user_id, username, **extra):
    representation = {
        "id": user_id,
        "username": username,
        "email": f"{username}@corp.example.com",
        "enabled": True,
        "emailVerified": True,
        "firstName": username.title(),
        "createdTimestamp": 1700000000000,
    }
    representation.update(extra)
    return representation


class TestKeycloakLookup:

    def test_server_url_normalized(self, adapter):
        assert adapter.server_url == "https://kc.example.com"
        assert adapter.realm_name == "corporate"

    def test_connection_options_from_descriptor(self, descriptor):
        descriptor.config.update({"timeout": "5", "verify": "/etc/ssl/corp-ca.pem"})

        adapter = KeycloakUserStorageAdapter(descriptor)

        assert adapter.timeout == 5
        assert adapter.verify == "/etc/ssl/corp-ca.pem"

    def test_explicit_connection_options_win(self, descriptor):
        descriptor.config["timeout"] = 5

        adapter = KeycloakUserStorageAdapter(descriptor, timeout=60, verify=False)

        assert adapter.timeout == 60
        assert adapter.verify is False

    @pytest.mark.asyncio
    async def test_user_ids_are_tagged(self, adapter, admin_client, realm):
        admin_client.a_get_user.return_value = _representation("kc-1", "john", attributes={"dept": ["eng"]})

        user = await adapter.get_user_by_id(realm, "f:corp:kc-1")

        admin_client.a_get_user.assert_awaited_once_with("kc-1")
        assert user.id == "f:corp:kc-1"
        assert user.first_name == "John"
        assert user.email_verified is True
        assert user.attributes == {"dept": ["eng"]}
        assert user.created_at.year == 2023

    @pytest.mark.asyncio
    async def test_missing_user(self, adapter, admin_client, realm):
        admin_client.a_get_user.side_effect = KeycloakGetError(error_message="not found", response_code=404)

        assert await adapter.get_user_by_id(realm, "f:corp:kc-1") is None

    @pytest.mark.asyncio
    async def test_failure_wrapped(self, adapter, admin_client, realm):
        admin_client.a_get_user.side_effect = KeycloakGetError(error_message="boom", response_code=500)

        with pytest.raises(BackendOperationError):
            await adapter.get_user_by_id(realm, "f:corp:kc-1")

    @pytest.mark.asyncio
    async def test_username_lookup_is_exact(self, adapter, admin_client, realm):
        admin_client.a_get_users.return_value = [_representation("kc-1", "john")]

        user = await adapter.get_user_by_username(realm, "john")

        admin_client.a_get_users.assert_awaited_once_with({"username": "john", "exact": True})
        assert user.username == "john"


class TestKeycloakQueries:

    @pytest.mark.asyncio
    async def test_windowed_query(self, adapter, admin_client, realm):
        await adapter.get_users(realm, 10, 5)

        admin_client.a_get_users.assert_awaited_once_with({"first": 10, "max": 5})

    @pytest.mark.asyncio
    async def test_unbounded_query_reads_all_and_slices(self, adapter, admin_client, realm):
        admin_client.a_get_users.return_value = [_representation(f"kc-{i}", f"user{i}") for i in range(4)]

        users = await adapter.search_for_user(realm, "user", 1, None)

        admin_client.a_get_users.assert_awaited_once_with({"search": "user"})
        assert [u.username for u in users] == ["user1", "user2", "user3"]

    @pytest.mark.asyncio
    async def test_attribute_search_maps_fields(self, adapter, admin_client, realm):
        await adapter.search_for_user_by_attributes(realm, {"first": "John", "dept": "eng"}, 0, 10)

        admin_client.a_get_users.assert_awaited_once_with(
            {"firstName": "John", "q": "dept:eng", "first": 0, "max": 10}
        )

    @pytest.mark.asyncio
    async def test_user_attribute_search(self, adapter, admin_client, realm):
        await adapter.search_for_user_by_user_attribute(realm, "dept", "eng")

        admin_client.a_get_users.assert_awaited_once_with({"q": "dept:eng"})

    @pytest.mark.asyncio
    async def test_count(self, adapter, admin_client, realm):
        admin_client.a_users_count.return_value = 42

        assert await adapter.get_users_count(realm) == 42

    @pytest.mark.asyncio
    async def test_group_members(self, adapter, admin_client, realm):
        admin_client.a_get_group_members.return_value = [_representation("kc-1", "john")]

        users = await adapter.get_group_members(realm, GroupRef("g1"), 0, 20)

        admin_client.a_get_group_members.assert_awaited_once_with("g1", {"first": 0, "max": 20})
        assert [u.id for u in users] == ["f:corp:kc-1"]


class TestKeycloakRegistration:

    @pytest.mark.asyncio
    async def test_add_user(self, adapter, admin_client, realm):
        admin_client.a_create_user.return_value = "kc-9"

        user = await adapter.add_user(realm, "mary")

        admin_client.a_create_user.assert_awaited_once_with({"username": "mary", "enabled": True}, exist_ok=False)
        assert user.id == "f:corp:kc-9"

    @pytest.mark.asyncio
    async def test_add_existing_user(self, adapter, admin_client, realm):
        admin_client.a_create_user.side_effect = KeycloakPostError(error_message="exists", response_code=409)

        with pytest.raises(UserAlreadyExistsError):
            await adapter.add_user(realm, "mary")

    @pytest.mark.asyncio
    async def test_remove_user(self, adapter, admin_client, realm):
        assert await adapter.remove_user(realm, UserRecord(id="f:corp:kc-9", username="mary"))
        admin_client.a_delete_user.assert_awaited_once_with("kc-9")

    @pytest.mark.asyncio
    async def test_remove_missing_user(self, adapter, admin_client, realm):
        admin_client.a_delete_user.side_effect = KeycloakDeleteError(error_message="gone", response_code=404)

        assert not await adapter.remove_user(realm, UserRecord(id="f:corp:kc-9", username="mary"))

    @pytest.mark.asyncio
    async def test_grant_realm_role_to_all_users(self, adapter, admin_client, realm):
        role = {"id": "r1", "name": "member"}
        admin_client.a_get_realm_role.return_value = role
        admin_client.a_get_users.return_value = [_representation("kc-1", "a"), _representation("kc-2", "b")]

        await adapter.grant_to_all_users(realm, RoleRef("r1", "member"))

        assert [c.args for c in admin_client.a_assign_realm_roles.await_args_list] == [
            ("kc-1", [role]),
            ("kc-2", [role]),
        ]

    @pytest.mark.asyncio
    async def test_grant_client_role(self, adapter, admin_client, realm):
        role = {"id": "r2", "name": "viewer"}
        admin_client.a_get_client_role.return_value = role
        admin_client.a_get_users.return_value = [_representation("kc-1", "a")]

        await adapter.grant_to_all_users(realm, RoleRef("r2", "viewer", client_id="app-uuid"))

        admin_client.a_assign_client_role.assert_awaited_once_with("kc-1", "app-uuid", [role])


class TestKeycloakFactory:

    def test_declared_capabilities(self):
        factory = KeycloakUserStorageProviderFactory()
        assert factory.provider_id == "keycloak"
        assert factory.capabilities == {Capability.LOOKUP, Capability.QUERY, Capability.REGISTRATION}

    def test_create(self, descriptor, context):
        adapter = KeycloakUserStorageProviderFactory().create(context, descriptor)

        assert isinstance(adapter, KeycloakUserStorageAdapter)
        assert adapter.provider_id == "corp"

    @pytest.mark.parametrize("config", [
        {"realm_name": "corporate", "client_secret": "s"},
        {"server_url": "https://kc", "client_secret": "s"},
        {"server_url": "https://kc", "realm_name": "corporate", "username": "admin"},
    ])
    def test_invalid_config_rejected(self, config):
        descriptor = BackendDescriptor(id="corp", provider_id="keycloak", config=config)

        with pytest.raises(ConfigurationError):
            KeycloakUserStorageProviderFactory().validate_config(descriptor)

    def test_password_credentials_accepted(self):
        descriptor = BackendDescriptor(id="corp", provider_id="keycloak", config={
            "server_url": "https://kc", "realm_name": "corporate", "username": "admin", "password": "pw",
        })

        KeycloakUserStorageProviderFactory().validate_config(descriptor)
