"""Federation-specific exceptions for neo-federation.

Errors raised while routing directory operations across user storage
backends.
"""

from typing import Optional

from .base import NeoFederationError


class ConfigurationError(NeoFederationError):
    """Raised when there's a configuration issue."""
    pass


class ProviderRegistrationError(ConfigurationError):
    """Raised when a backend factory cannot be registered."""
    pass


class DescriptorNotFoundError(NeoFederationError):
    """Raised when a backend descriptor does not exist in a realm."""
    pass


class ProviderResolutionError(NeoFederationError):
    """Raised when a descriptor or its backend factory cannot be resolved.

    Routing to a missing owner is never retried or redirected, so this
    error always aborts the triggering operation.
    """

    def __init__(self, message: str, provider_id: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if provider_id is not None:
            details.setdefault("provider_id", provider_id)
        super().__init__(message, details=details, **kwargs)
        self.provider_id = provider_id


class CapabilityMissingError(NeoFederationError):
    """Raised when a required capability is not implemented by the owning backend."""

    def __init__(self, provider_id: str, capability: str, **kwargs):
        super().__init__(
            f"Storage provider '{provider_id}' does not support {capability}",
            details={"provider_id": provider_id, "capability": capability},
            **kwargs
        )
        self.provider_id = provider_id
        self.capability = capability


class FederatedUserInvalidError(NeoFederationError):
    """Raised when an identity-linked operation receives no user."""

    def __init__(self, message: str = "Federated user no longer valid", **kwargs):
        super().__init__(message, **kwargs)


class BackendOperationError(NeoFederationError):
    """Raised by bundled backends when the underlying directory call fails."""
    pass


class UserAlreadyExistsError(NeoFederationError):
    """Raised when a username or id is already taken in a realm."""
    pass
