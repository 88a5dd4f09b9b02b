"""User storage services."""

from .provider_registry import ProviderRegistry
from .paginated_query import (
    PagedQuery,
    PaginatedQueryEngine,
    UserListQuery,
    SearchQuery,
    AttributeSearchQuery,
    UserAttributeQuery,
    GroupMembersQuery,
)
from .import_validation import ImportValidationService
from .lifecycle_service import LifecycleFanOutService
from .user_storage_manager import UserStorageManager

__all__ = [
    "ProviderRegistry",
    "PagedQuery",
    "PaginatedQueryEngine",
    "UserListQuery",
    "SearchQuery",
    "AttributeSearchQuery",
    "UserAttributeQuery",
    "GroupMembersQuery",
    "ImportValidationService",
    "LifecycleFanOutService",
    "UserStorageManager",
]
