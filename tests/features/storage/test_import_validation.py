"""Tests for revalidation of imported users."""

import pytest

from neo_federation.config.constants import Capability
from neo_federation.features.storage.entities import UserRecord
from neo_federation.features.storage.services import ImportValidationService


def _imported(user_id, link="ldap1"):
    return UserRecord(id=user_id, username=user_id, federation_link=link)


class TestImportValidation:

    @pytest.mark.asyncio
    async def test_unlinked_user_untouched(self, registry, context, realm, journal):
        user = UserRecord(id="u1", username="u1")

        result = await ImportValidationService(registry).validate(context, realm, user)

        assert result is user
        assert journal == []

    @pytest.mark.asyncio
    async def test_none_passes_through(self, registry, context, realm):
        assert await ImportValidationService(registry).validate(context, realm, None) is None

    @pytest.mark.asyncio
    async def test_owner_refreshes_record(self, registry, context, realm, make_factory, add_backend):
        registry.register_factory(make_factory(
            "ldap", {Capability.IMPORT_VALIDATION}, validator=lambda u: u.copy(email="fresh@example.com")
        ))
        await add_backend("ldap1", "ldap")

        result = await ImportValidationService(registry).validate(context, realm, _imported("u1"))

        assert result.email == "fresh@example.com"

    @pytest.mark.asyncio
    async def test_owner_can_disable_record(self, registry, context, realm, make_factory, add_backend):
        registry.register_factory(make_factory(
            "ldap", {Capability.IMPORT_VALIDATION}, validator=lambda u: u.copy(enabled=False)
        ))
        await add_backend("ldap1", "ldap")

        result = await ImportValidationService(registry).validate(context, realm, _imported("u1"))

        assert result.enabled is False

    @pytest.mark.asyncio
    async def test_owner_without_capability_skipped(
        self, registry, context, realm, make_factory, add_backend, journal
    ):
        registry.register_factory(make_factory("ldap", {Capability.LOOKUP}))
        await add_backend("ldap1", "ldap")
        user = _imported("u1")

        assert await ImportValidationService(registry).validate(context, realm, user) is user
        assert journal == []

    @pytest.mark.asyncio
    async def test_missing_owner_skipped(self, registry, context, realm):
        user = _imported("u1", link="gone")

        assert await ImportValidationService(registry).validate(context, realm, user) is user

    @pytest.mark.asyncio
    async def test_unresolvable_owner_skipped(self, registry, context, realm, add_backend):
        await add_backend("ldap1", "not-installed")
        user = _imported("u1")

        assert await ImportValidationService(registry).validate(context, realm, user) is user

    @pytest.mark.asyncio
    async def test_validate_many_drops_invalidated(
        self, registry, context, realm, make_factory, add_backend, journal
    ):
        registry.register_factory(make_factory(
            "ldap", {Capability.IMPORT_VALIDATION}, validator=lambda u: None if u.id == "u2" else u
        ))
        await add_backend("ldap1", "ldap")
        users = [_imported("u1"), _imported("u2"), UserRecord(id="u3", username="u3")]

        result = await ImportValidationService(registry).validate_many(context, realm, users)

        assert [u.id for u in result] == ["u1", "u3"]
        assert journal == [("ldap1", "validate", "u1"), ("ldap1", "validate", "u2")]
