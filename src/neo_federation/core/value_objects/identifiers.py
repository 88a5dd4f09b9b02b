"""Value objects for identifiers in neo-federation.

``StorageId`` is the composite user identifier that states whether a user is
held by the local store or owned by a named user storage backend.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

from ...config.constants import StorageIdFormat


_TAG = StorageIdFormat.PREFIX + StorageIdFormat.SEPARATOR


@dataclass(frozen=True)
class RealmId:
    """Realm identifier value object with basic validation."""
    value: str

    def __post_init__(self):
        if not self.value or not isinstance(self.value, str):
            raise ValueError("Realm ID must be a non-empty string")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class StorageId:
    """Composite user identifier.

    ``provider_id`` is the id of the backend descriptor owning the user, or
    ``None`` for users held by the local store. Tagged ids are opaque outside
    the owning backend: the router only reads the tag and never interprets
    ``external_id``.
    """
    provider_id: Optional[str]
    external_id: str

    @property
    def id(self) -> str:
        """Encoded wire form of this identifier."""
        if self.provider_id is None:
            return self.external_id
        return self.encode(self.provider_id, self.external_id)

    @property
    def is_local(self) -> bool:
        return self.provider_id is None

    @staticmethod
    def encode(provider_id: str, external_id: str) -> str:
        """Encode a backend-owned id as ``f:<provider_id>:<external_id>``."""
        if not provider_id:
            raise ValueError("Provider ID must be a non-empty string")
        if StorageIdFormat.SEPARATOR in provider_id:
            raise ValueError(
                f"Provider ID must not contain '{StorageIdFormat.SEPARATOR}': {provider_id}"
            )
        if external_id is None:
            raise ValueError("External ID is required")
        return f"{_TAG}{provider_id}{StorageIdFormat.SEPARATOR}{external_id}"

    @classmethod
    def decode(cls, user_id: str) -> "StorageId":
        """Decode a wire id; anything without a complete tag is local."""
        if user_id is None:
            raise ValueError("User ID is required")
        if not user_id.startswith(_TAG):
            return cls(provider_id=None, external_id=user_id)

        remainder = user_id[len(_TAG):]
        provider_id, sep, external_id = remainder.partition(StorageIdFormat.SEPARATOR)
        if not sep or not provider_id:
            return cls(provider_id=None, external_id=user_id)
        return cls(provider_id=provider_id, external_id=external_id)

    @classmethod
    def for_user(cls, user: Union[str, Any]) -> "StorageId":
        """Decode the id of a user record (or a raw id string)."""
        user_id = user if isinstance(user, str) else user.id
        return cls.decode(user_id)

    @classmethod
    def is_local_storage(cls, user: Union[str, Any]) -> bool:
        return cls.for_user(user).is_local

    @classmethod
    def resolve_provider_id(cls, user: Union[str, Any]) -> Optional[str]:
        return cls.for_user(user).provider_id

    @classmethod
    def external_id_of(cls, user: Union[str, Any]) -> str:
        return cls.for_user(user).external_id

    def __str__(self) -> str:
        return self.id
