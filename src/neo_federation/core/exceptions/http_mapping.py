"""HTTP status code mapping for exceptions."""

from typing import Dict, Type

from .base import NeoFederationError
from .federation import (
    BackendOperationError,
    CapabilityMissingError,
    ConfigurationError,
    DescriptorNotFoundError,
    FederatedUserInvalidError,
    ProviderRegistrationError,
    ProviderResolutionError,
    UserAlreadyExistsError,
)


HTTP_STATUS_MAP: Dict[Type[Exception], int] = {
    # 400 Bad Request
    FederatedUserInvalidError: 400,

    # 404 Not Found
    DescriptorNotFoundError: 404,
    ProviderResolutionError: 404,

    # 409 Conflict
    UserAlreadyExistsError: 409,

    # 422 Unprocessable Entity
    CapabilityMissingError: 422,

    # 500 Internal Server Error
    ConfigurationError: 500,
    ProviderRegistrationError: 500,

    # 502 Bad Gateway
    BackendOperationError: 502,
}


def get_http_status_code(exception: Exception) -> int:
    """Get HTTP status code for an exception, walking its class hierarchy."""
    for exc_type in type(exception).__mro__:
        if exc_type in HTTP_STATUS_MAP:
            return HTTP_STATUS_MAP[exc_type]
        if exc_type is NeoFederationError:
            break
    return 500
