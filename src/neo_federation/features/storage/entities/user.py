"""User domain entities.

This module defines the user record routed by the federation layer and the
supplementary records kept per user (federated identities, consents).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from ....core.value_objects import StorageId


@dataclass
class UserRecord:
    """User record as seen by directory callers.

    The record may be held by the local store, proxied from an external
    backend (tagged ``id``), or stored locally as an import of an external
    identity (``federation_link`` set).
    """

    id: str
    username: str
    email: Optional[str] = None
    federation_link: Optional[str] = None
    enabled: bool = True
    email_verified: bool = False
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    service_account_client_link: Optional[str] = None
    attributes: Dict[str, List[str]] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def storage_id(self) -> StorageId:
        return StorageId.decode(self.id)

    @property
    def is_local(self) -> bool:
        """True when the record is owned by the local store."""
        return self.storage_id.is_local

    @property
    def is_import_linked(self) -> bool:
        """True when the record is a local copy of an external identity."""
        return self.federation_link is not None

    @property
    def is_service_account(self) -> bool:
        return self.service_account_client_link is not None

    def copy(self, **changes: Any) -> "UserRecord":
        """Return a copy with the given fields replaced."""
        changes.setdefault("attributes", {k: list(v) for k, v in self.attributes.items()})
        return replace(self, **changes)


@dataclass
class CachedUser:
    """Cache-layer copy of a user.

    ``cached_with`` lets cache hooks stash backend-specific data next to the
    cached record.
    """

    user: UserRecord
    realm_id: str
    cached_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cached_with: Dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.user.id


@dataclass(frozen=True)
class FederatedIdentity:
    """Link between a user and an identity at an external identity provider."""

    identity_provider: str
    user_id: str
    user_name: Optional[str] = None
    token: Optional[str] = None


@dataclass
class UserConsent:
    """Scopes a user granted to a client."""

    client_id: str
    granted_scopes: Set[str] = field(default_factory=set)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
