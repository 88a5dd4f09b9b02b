"""Tests for the exception hierarchy and HTTP mapping."""

from neo_federation.core.exceptions import (
    BackendOperationError,
    CapabilityMissingError,
    ConfigurationError,
    FederatedUserInvalidError,
    NeoFederationError,
    ProviderRegistrationError,
    ProviderResolutionError,
    UserAlreadyExistsError,
    create_error_response,
    get_http_status_code,
)


class TestExceptions:

    def test_error_code_defaults_to_class_name(self):
        error = BackendOperationError("boom")
        assert error.error_code == "BackendOperationError"
        assert error.details == {}

    def test_explicit_error_code_and_message(self):
        error = NeoFederationError("ldap1 unreachable", error_code="LDAP_DOWN", details={"provider_id": "ldap1"})
        assert str(error) == "ldap1 unreachable"
        assert error.error_code == "LDAP_DOWN"
        assert create_error_response(error)["error"]["type"] == "NeoFederationError"

    def test_capability_missing_details(self):
        error = CapabilityMissingError("ldap1", "registration")
        assert error.provider_id == "ldap1"
        assert error.capability == "registration"
        assert "ldap1" in error.message
        assert error.details == {"provider_id": "ldap1", "capability": "registration"}

    def test_provider_resolution_keeps_details(self):
        error = ProviderResolutionError("missing", provider_id="ldap1", details={"realm": "acme"})
        assert error.details == {"realm": "acme", "provider_id": "ldap1"}

    def test_federated_user_invalid_default_message(self):
        assert FederatedUserInvalidError().message == "Federated user no longer valid"

    def test_registration_error_is_configuration_error(self):
        assert isinstance(ProviderRegistrationError("dup"), ConfigurationError)


class TestHttpMapping:

    def test_mapped_statuses(self):
        assert get_http_status_code(FederatedUserInvalidError()) == 400
        assert get_http_status_code(ProviderResolutionError("x")) == 404
        assert get_http_status_code(UserAlreadyExistsError("x")) == 409
        assert get_http_status_code(CapabilityMissingError("a", "b")) == 422
        assert get_http_status_code(BackendOperationError("x")) == 502

    def test_unmapped_defaults_to_500(self):
        assert get_http_status_code(NeoFederationError("x")) == 500
        assert get_http_status_code(RuntimeError("x")) == 500

    def test_error_response(self):
        response = create_error_response(UserAlreadyExistsError("taken", details={"username": "john"}))
        assert response["error"]["code"] == "UserAlreadyExistsError"
        assert response["error"]["message"] == "taken"
        assert response["error"]["details"] == {"username": "john"}
