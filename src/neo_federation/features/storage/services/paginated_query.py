"""Cross-provider pagination.

Executes one logical user query with a global ``(first_result, max_results)``
window over the ordered provider list
``[local store, query-capable adapters..., federated attribute store]``,
where each provider only understands its own offsets.
"""

import logging
from abc import ABC
from typing import Awaitable, Callable, Dict, List, Optional

from ....config.constants import Capability
from ....config.settings import get_settings
from ....core.value_objects import RealmId
from ..entities.context import FederationContext
from ..entities.protocols import (
    FederatedAttributeStore,
    LocalUserStore,
    UserStorageProvider,
)
from ..entities.references import GroupRef
from ..entities.user import UserRecord
from .provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)

# (first_result, max_results) -> one page of that provider's natural order
PageReader = Callable[[int, Optional[int]], Awaitable[List[UserRecord]]]

# Resolves a user id held by the federated attribute store to a record
UserResolver = Callable[[str], Awaitable[Optional[UserRecord]]]


def slice_window(items: List, first_result: int, max_results: Optional[int]) -> List:
    if max_results is None:
        return items[first_result:]
    return items[first_result:first_result + max_results]


class PagedQuery(ABC):
    """One logical user query.

    Each ``for_*`` method binds a page reader for one kind of provider, or
    returns None when that kind of provider cannot answer the query.
    """

    name = "query"

    def __init__(self, realm: RealmId):
        self.realm = realm

    def for_local(self, store: LocalUserStore) -> Optional[PageReader]:
        return None

    def for_adapter(self, adapter: UserStorageProvider) -> Optional[PageReader]:
        return None

    def for_federated_store(self, store: FederatedAttributeStore) -> Optional[PageReader]:
        return None


class UserListQuery(PagedQuery):
    """All users of the realm."""

    name = "get_users"

    def __init__(self, realm: RealmId, include_service_accounts: bool = False):
        super().__init__(realm)
        self.include_service_accounts = include_service_accounts

    def for_local(self, store):
        async def read(first, maximum):
            return await store.get_users(self.realm, first, maximum, self.include_service_accounts)
        return read

    def for_adapter(self, adapter):
        async def read(first, maximum):
            return await adapter.get_users(self.realm, first, maximum)
        return read


class SearchQuery(PagedQuery):
    """Free-text search over username, email, first and last name."""

    name = "search_for_user"

    def __init__(self, realm: RealmId, search: str):
        super().__init__(realm)
        self.search = search

    def for_local(self, store):
        async def read(first, maximum):
            return await store.search_for_user(self.realm, self.search, first, maximum)
        return read

    def for_adapter(self, adapter):
        async def read(first, maximum):
            return await adapter.search_for_user(self.realm, self.search, first, maximum)
        return read


class AttributeSearchQuery(PagedQuery):
    """Search by a map of well-known attributes (username, email, first, last)."""

    name = "search_for_user_by_attributes"

    def __init__(self, realm: RealmId, attributes: Dict[str, str]):
        super().__init__(realm)
        self.attributes = dict(attributes)

    def for_local(self, store):
        async def read(first, maximum):
            return await store.search_for_user_by_attributes(self.realm, self.attributes, first, maximum)
        return read

    def for_adapter(self, adapter):
        async def read(first, maximum):
            return await adapter.search_for_user_by_attributes(self.realm, self.attributes, first, maximum)
        return read


class _ResolvingQuery(PagedQuery):
    """Query whose federated-store contribution is a list of user ids."""

    def __init__(self, realm: RealmId, resolve_user: UserResolver):
        super().__init__(realm)
        self.resolve_user = resolve_user

    async def _resolve_all(self, user_ids: List[str]) -> List[UserRecord]:
        users = []
        for user_id in user_ids:
            user = await self.resolve_user(user_id)
            if user is not None:
                users.append(user)
        return users


class UserAttributeQuery(_ResolvingQuery):
    """Users holding ``name == value`` as a custom attribute.

    Providers answer this query unpaged, so each reader applies the window
    to the provider's full answer.
    """

    name = "search_for_user_by_user_attribute"

    def __init__(self, realm: RealmId, attr_name: str, attr_value: str, resolve_user: UserResolver):
        super().__init__(realm, resolve_user)
        self.attr_name = attr_name
        self.attr_value = attr_value

    def for_local(self, store):
        async def read(first, maximum):
            users = await store.search_for_user_by_user_attribute(self.realm, self.attr_name, self.attr_value)
            return slice_window(users, first, maximum)
        return read

    def for_adapter(self, adapter):
        async def read(first, maximum):
            users = await adapter.search_for_user_by_user_attribute(self.realm, self.attr_name, self.attr_value)
            return slice_window(users, first, maximum)
        return read

    def for_federated_store(self, store):
        async def read(first, maximum):
            user_ids = await store.get_users_by_user_attribute(self.realm, self.attr_name, self.attr_value)
            return await self._resolve_all(slice_window(user_ids, first, maximum))
        return read


class GroupMembersQuery(_ResolvingQuery):
    """Members of a group."""

    name = "get_group_members"

    def __init__(self, realm: RealmId, group: GroupRef, resolve_user: UserResolver):
        super().__init__(realm, resolve_user)
        self.group = group

    def for_local(self, store):
        async def read(first, maximum):
            return await store.get_group_members(self.realm, self.group, first, maximum)
        return read

    def for_adapter(self, adapter):
        async def read(first, maximum):
            return await adapter.get_group_members(self.realm, self.group, first, maximum)
        return read

    def for_federated_store(self, store):
        async def read(first, maximum):
            user_ids = await store.get_membership(self.realm, self.group, first, maximum)
            return await self._resolve_all(user_ids)
        return read


class PaginatedQueryEngine:
    """Merges one windowed query across the local store and every query-capable backend."""

    def __init__(
        self,
        registry: ProviderRegistry,
        local_store: LocalUserStore,
        federated_store: Optional[FederatedAttributeStore] = None,
        batch_size: Optional[int] = None,
    ):
        self.registry = registry
        self.local_store = local_store
        self.federated_store = federated_store
        self.batch_size = batch_size if batch_size is not None else get_settings().skip_batch_size
        if self.batch_size < 1:
            raise ValueError("Batch size must be a positive integer")

    async def execute(
        self,
        context: FederationContext,
        query: PagedQuery,
        first_result: Optional[int] = 0,
        max_results: Optional[int] = None,
    ) -> List[UserRecord]:
        """Run ``query`` over the realm's providers within the global window.

        ``max_results`` of ``None`` (or a negative value) reads everything.
        """
        if max_results == 0:
            return []
        first_result = max(first_result or 0, 0)
        if max_results is not None and max_results < 0:
            max_results = None

        adapters = await self.registry.resolve_by_capability(context, query.realm, Capability.QUERY)
        local_reader = query.for_local(self.local_store)

        if not adapters:
            if local_reader is None:
                return []
            return list(await local_reader(first_result, max_results))

        readers: List[PageReader] = [local_reader]
        readers.extend(query.for_adapter(adapter) for adapter in adapters)
        if self.federated_store is not None:
            readers.append(query.for_federated_store(self.federated_store))

        logger.debug(
            f"Merging {query.name} over {len(readers)} providers "
            f"(first={first_result}, max={max_results})"
        )
        return await self.merge([r for r in readers if r is not None], first_result, max_results)

    async def merge(
        self,
        readers: List[PageReader],
        first_result: int,
        max_results: Optional[int],
    ) -> List[UserRecord]:
        """Concatenate provider pages, skipping ``first_result`` rows overall."""
        results: List[UserRecord] = []
        left_to_skip = first_result
        left_to_read = max_results

        for reader in readers:
            if left_to_read == 0:
                break

            index = 0
            exhausted = False
            while left_to_skip > 0:
                to_read = min(self.batch_size, left_to_skip)
                batch = await reader(index, to_read)
                left_to_skip -= len(batch)
                index += len(batch)
                if len(batch) < to_read:
                    exhausted = True
                    break
            if exhausted:
                continue

            page = await reader(index, left_to_read)
            if left_to_read is not None:
                page = page[:left_to_read]
                left_to_read -= len(page)
            results.extend(page)

        return results
