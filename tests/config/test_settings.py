"""Tests for runtime settings."""

import pytest
from pydantic import ValidationError

from neo_federation.config.constants import PaginationDefaults, ProviderTypes
from neo_federation.config.settings import FederationSettings


class TestFederationSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("FEDERATION_SKIP_BATCH_SIZE", raising=False)
        settings = FederationSettings(_env_file=None)
        assert settings.skip_batch_size == PaginationDefaults.SKIP_BATCH_SIZE == 50
        assert settings.user_storage_provider_type == ProviderTypes.USER_STORAGE
        assert settings.descriptor_schema == "admin"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("FEDERATION_SKIP_BATCH_SIZE", "10")
        assert FederationSettings(_env_file=None).skip_batch_size == 10

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            FederationSettings(_env_file=None, skip_batch_size=0)

    def test_tenant_schema_accepted(self):
        assert FederationSettings(_env_file=None, descriptor_schema="tenant_acme").descriptor_schema == "tenant_acme"

    def test_unknown_schema_rejected(self):
        with pytest.raises(ValidationError):
            FederationSettings(_env_file=None, descriptor_schema="public")
