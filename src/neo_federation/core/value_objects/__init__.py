"""Value objects for neo-federation."""

from .identifiers import RealmId, StorageId

__all__ = ["RealmId", "StorageId"]
