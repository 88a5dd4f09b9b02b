"""User storage repositories."""

from .descriptor_repository import InMemoryDescriptorRepository, PostgresDescriptorRepository
from .memory_local_store import InMemoryLocalUserStore
from .memory_federated_store import InMemoryFederatedAttributeStore

__all__ = [
    "InMemoryDescriptorRepository",
    "PostgresDescriptorRepository",
    "InMemoryLocalUserStore",
    "InMemoryFederatedAttributeStore",
]
