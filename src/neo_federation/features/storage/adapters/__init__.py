"""User storage backend adapters."""

from .keycloak_adapter import KeycloakUserStorageAdapter, KeycloakUserStorageProviderFactory

__all__ = [
    "KeycloakUserStorageAdapter",
    "KeycloakUserStorageProviderFactory",
]
