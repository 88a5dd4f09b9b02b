"""References to realm objects targeted by membership queries and cleanup."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class GroupRef:
    """Realm group."""
    id: str
    name: Optional[str] = None


@dataclass(frozen=True)
class RoleRef:
    """Realm or client role."""
    id: str
    name: Optional[str] = None
    client_id: Optional[str] = None

    @property
    def is_client_role(self) -> bool:
        return self.client_id is not None


@dataclass(frozen=True)
class ClientRef:
    """Realm client."""
    id: str
    client_id: Optional[str] = None


@dataclass(frozen=True)
class ComponentRef:
    """Realm component being removed; only user storage components are routed."""
    id: str
    provider_type: str
    provider_id: Optional[str] = field(default=None, compare=False)
