"""Backend descriptor entity.

A descriptor is the realm-scoped configuration entry naming and configuring
one user storage backend. Descriptors are managed by realm administration
and are read-only to the router.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ....config.constants import ProviderTypes, StorageIdFormat


@dataclass(frozen=True)
class BackendDescriptor:
    """Configuration of one user storage backend in a realm.

    ``provider_id`` names the backend factory; ``id`` is the descriptor's own
    identifier and is the tag carried by composite user ids.
    """

    id: str
    provider_id: str
    name: str = ""
    priority: int = 0
    enabled: bool = True
    config: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    provider_type: str = ProviderTypes.USER_STORAGE
    realm_id: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Descriptor ID must be a non-empty string")
        if StorageIdFormat.SEPARATOR in self.id:
            raise ValueError(
                f"Descriptor ID must not contain '{StorageIdFormat.SEPARATOR}': {self.id}"
            )
        if not self.provider_id:
            raise ValueError("Descriptor provider_id must be a non-empty string")

    @property
    def sort_key(self):
        """Deterministic merge and fan-out order."""
        return (self.priority, self.name, self.id)

    def get_config(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)
