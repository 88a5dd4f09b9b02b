"""Tests for the in-memory local and federated stores."""

import pytest

from neo_federation.core.exceptions import UserAlreadyExistsError
from neo_federation.features.storage.entities import (
    BackendDescriptor,
    ClientRef,
    ComponentRef,
    GroupRef,
    RoleRef,
    UserConsent,
    UserRecord,
)


class TestInMemoryLocalUserStore:

    @pytest.mark.asyncio
    async def test_duplicate_username_rejected(self, local_store, realm):
        await local_store.add_user(realm, "john")

        with pytest.raises(UserAlreadyExistsError):
            await local_store.add_user(realm, "JOHN")

    @pytest.mark.asyncio
    async def test_service_accounts_hidden_by_default(self, local_store, realm):
        await local_store.save_user(realm, UserRecord(id="u1", username="john"))
        await local_store.save_user(realm, UserRecord(id="sa", username="sa-app", service_account_client_link="c1"))

        assert [u.id for u in await local_store.get_users(realm, 0, None)] == ["u1"]
        assert [u.id for u in await local_store.get_users(realm, 0, None, True)] == ["u1", "sa"]

    @pytest.mark.asyncio
    async def test_returns_copies(self, local_store, realm):
        await local_store.save_user(realm, UserRecord(id="u1", username="john", attributes={"dept": ["eng"]}))

        user = await local_store.get_user_by_id(realm, "u1")
        user.attributes["dept"].append("ops")

        assert (await local_store.get_user_by_id(realm, "u1")).attributes == {"dept": ["eng"]}

    @pytest.mark.asyncio
    async def test_grant_and_role_cleanup(self, local_store, realm):
        user = await local_store.save_user(realm, UserRecord(id="u1", username="john"))

        await local_store.grant_to_all_users(realm, RoleRef("r1"))
        assert await local_store.get_role_grants(realm, user) == {"r1"}

        await local_store.pre_remove_role(realm, RoleRef("r1"))
        assert await local_store.get_role_grants(realm, user) == set()

    @pytest.mark.asyncio
    async def test_client_removal_revokes_consents(self, local_store, realm):
        user = await local_store.save_user(realm, UserRecord(id="u1", username="john"))
        await local_store.add_consent(realm, user, UserConsent("c1", {"openid"}))

        await local_store.pre_remove_client(realm, ClientRef("c1"))

        assert await local_store.get_consents(realm, user) == []

    @pytest.mark.asyncio
    async def test_component_removal_drops_imports(self, local_store, realm):
        await local_store.save_user(realm, UserRecord(id="u1", username="john", federation_link="ldap1"))

        await local_store.pre_remove_component(realm, ComponentRef("ldap1", "user-storage"))

        assert await local_store.get_users_count(realm) == 0


class TestInMemoryFederatedAttributeStore:

    @pytest.mark.asyncio
    async def test_membership_window(self, federated_store, realm):
        group = GroupRef("g1")
        for user_id in ("f:a:1", "f:a:2", "f:a:3"):
            await federated_store.join_group(realm, user_id, group)
        await federated_store.leave_group(realm, "f:a:2", group)

        assert await federated_store.get_membership(realm, group, 0, None) == ["f:a:1", "f:a:3"]
        assert await federated_store.get_membership(realm, group, 1, 1) == ["f:a:3"]

    @pytest.mark.asyncio
    async def test_attribute_lookup(self, federated_store, realm):
        await federated_store.set_attribute(realm, "f:a:1", "dept", ["eng", "ops"])
        await federated_store.set_attribute(realm, "f:a:2", "dept", ["sales"])

        assert await federated_store.get_users_by_user_attribute(realm, "dept", "ops") == ["f:a:1"]

        await federated_store.remove_attribute(realm, "f:a:1", "dept")
        assert await federated_store.get_attributes(realm, "f:a:1") == {}

    @pytest.mark.asyncio
    async def test_descriptor_removal_only_touches_its_users(self, federated_store, realm):
        group = GroupRef("g1")
        await federated_store.join_group(realm, "f:ldap1:1", group)
        await federated_store.join_group(realm, "f:ldap2:1", group)
        await federated_store.grant_role(realm, "f:ldap1:1", RoleRef("r1"))

        await federated_store.pre_remove_descriptor(realm, BackendDescriptor(id="ldap1", provider_id="ldap"))

        assert await federated_store.get_membership(realm, group, 0, None) == ["f:ldap2:1"]
        assert await federated_store.get_role_grants(realm, "f:ldap1:1") == set()

    @pytest.mark.asyncio
    async def test_pre_remove_user(self, federated_store, realm):
        await federated_store.add_consent(realm, "f:a:1", UserConsent("c1"))
        await federated_store.join_group(realm, "f:a:1", GroupRef("g1"))

        await federated_store.pre_remove_user(realm, "f:a:1")

        assert await federated_store.get_consents(realm, "f:a:1") == []
        assert await federated_store.get_membership(realm, GroupRef("g1"), 0, None) == []
