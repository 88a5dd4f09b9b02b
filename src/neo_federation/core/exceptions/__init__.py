"""Exceptions module for neo-federation.

This module provides the complete exception hierarchy for neo-federation.
"""

from .base import (
    NeoFederationError,
    get_http_status_code,
    create_error_response,
)

from .federation import (
    ConfigurationError,
    ProviderRegistrationError,
    DescriptorNotFoundError,
    ProviderResolutionError,
    CapabilityMissingError,
    FederatedUserInvalidError,
    BackendOperationError,
    UserAlreadyExistsError,
)

from .http_mapping import HTTP_STATUS_MAP

__all__ = [
    # Base
    "NeoFederationError",
    "get_http_status_code",
    "create_error_response",

    # Federation
    "ConfigurationError",
    "ProviderRegistrationError",
    "DescriptorNotFoundError",
    "ProviderResolutionError",
    "CapabilityMissingError",
    "FederatedUserInvalidError",
    "BackendOperationError",
    "UserAlreadyExistsError",

    # Mapping
    "HTTP_STATUS_MAP",
]
