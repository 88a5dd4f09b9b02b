"""In-memory local user store.

Reference LocalUserStore for development and tests. Users are kept per
realm in insertion order, which is the store's natural query order.
"""

import logging
import uuid
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from ....config.constants import Capability
from ....core.exceptions import UserAlreadyExistsError
from ....core.value_objects import RealmId
from ..entities.descriptor import BackendDescriptor
from ..entities.protocols import LocalUserStore
from ..entities.references import ClientRef, ComponentRef, GroupRef, RoleRef
from ..entities.user import CachedUser, FederatedIdentity, UserConsent, UserRecord
from ..services.paginated_query import slice_window

logger = logging.getLogger(__name__)

# Attribute-map search keys mapped to record fields
SEARCH_FIELDS = {
    "username": "username",
    "email": "email",
    "first": "first_name",
    "last": "last_name",
}

_UserKey = Tuple[str, str]


class InMemoryLocalUserStore(LocalUserStore):
    """Dictionary-backed local store."""

    def __init__(self, cache_hook: bool = False):
        self.capabilities: FrozenSet[Capability] = (
            frozenset({Capability.CACHE_HOOK}) if cache_hook else frozenset()
        )
        self._users: Dict[str, Dict[str, UserRecord]] = {}  # realm -> user id -> user
        self._identities: Dict[_UserKey, Dict[str, FederatedIdentity]] = {}
        self._consents: Dict[_UserKey, Dict[str, UserConsent]] = {}
        self._groups: Dict[Tuple[str, str], List[str]] = {}  # (realm, group id) -> user ids
        self._roles: Dict[_UserKey, Set[str]] = {}

    # Lookup

    async def get_user_by_id(self, realm: RealmId, user_id: str) -> Optional[UserRecord]:
        user = self._realm_users(realm).get(user_id)
        return user.copy() if user else None

    async def get_user_by_username(self, realm: RealmId, username: str) -> Optional[UserRecord]:
        username = username.lower()
        return self._first(realm, lambda u: u.username.lower() == username)

    async def get_user_by_email(self, realm: RealmId, email: str) -> Optional[UserRecord]:
        email = email.lower()
        return self._first(realm, lambda u: (u.email or "").lower() == email)

    async def get_user_by_federated_identity(
        self, realm: RealmId, identity: FederatedIdentity
    ) -> Optional[UserRecord]:
        for (realm_id, user_id), links in self._identities.items():
            if realm_id != realm.value:
                continue
            link = links.get(identity.identity_provider)
            if link is not None and link.user_id == identity.user_id:
                return await self.get_user_by_id(realm, user_id)
        return None

    async def get_service_account(self, realm: RealmId, client: ClientRef) -> Optional[UserRecord]:
        return self._first(realm, lambda u: u.service_account_client_link == client.id)

    # Query

    async def get_users_count(self, realm: RealmId) -> int:
        return len(self._realm_users(realm))

    async def get_users(
        self,
        realm: RealmId,
        first_result: int,
        max_results: Optional[int],
        include_service_accounts: bool = False,
    ) -> List[UserRecord]:
        users = [
            u for u in self._realm_users(realm).values()
            if include_service_accounts or not u.is_service_account
        ]
        return self._copies(slice_window(users, first_result, max_results))

    async def search_for_user(
        self, realm: RealmId, search: str, first_result: int, max_results: Optional[int]
    ) -> List[UserRecord]:
        term = search.strip().lower()
        users = [
            u for u in self._realm_users(realm).values()
            if not u.is_service_account and any(
                term in (value or "").lower()
                for value in (u.username, u.email, u.first_name, u.last_name)
            )
        ]
        return self._copies(slice_window(users, first_result, max_results))

    async def search_for_user_by_attributes(
        self,
        realm: RealmId,
        attributes: Dict[str, str],
        first_result: int,
        max_results: Optional[int],
    ) -> List[UserRecord]:
        def matches(user: UserRecord) -> bool:
            for key, value in attributes.items():
                field_name = SEARCH_FIELDS.get(key)
                if field_name is None:
                    if value not in user.attributes.get(key, []):
                        return False
                elif value.lower() not in (getattr(user, field_name) or "").lower():
                    return False
            return True

        users = [u for u in self._realm_users(realm).values() if not u.is_service_account and matches(u)]
        return self._copies(slice_window(users, first_result, max_results))

    async def search_for_user_by_user_attribute(
        self, realm: RealmId, name: str, value: str
    ) -> List[UserRecord]:
        return self._copies(
            u for u in self._realm_users(realm).values() if value in u.attributes.get(name, [])
        )

    async def get_group_members(
        self, realm: RealmId, group: GroupRef, first_result: int, max_results: Optional[int]
    ) -> List[UserRecord]:
        member_ids = self._groups.get((realm.value, group.id), [])
        users = self._realm_users(realm)
        members = [users[user_id] for user_id in member_ids if user_id in users]
        return self._copies(slice_window(members, first_result, max_results))

    # Registration

    async def add_user(
        self,
        realm: RealmId,
        username: str,
        user_id: Optional[str] = None,
        add_default_roles: bool = True,
        add_default_required_actions: bool = True,
    ) -> UserRecord:
        user = UserRecord(id=user_id or str(uuid.uuid4()), username=username)
        return await self.save_user(realm, user)

    async def save_user(self, realm: RealmId, user: UserRecord) -> UserRecord:
        """Store a fully populated record (imports, fixtures)."""
        users = self._realm_users(realm, create=True)
        if user.id in users:
            raise UserAlreadyExistsError(f"User {user.id} already exists in {realm.value}")
        if await self.get_user_by_username(realm, user.username) is not None:
            raise UserAlreadyExistsError(f"Username {user.username} already exists in {realm.value}")
        users[user.id] = user.copy()
        logger.debug(f"Stored local user {user.username} ({user.id}) in {realm.value}")
        return user.copy()

    async def remove_user(self, realm: RealmId, user: UserRecord) -> bool:
        removed = self._realm_users(realm).pop(user.id, None)
        if removed is None:
            return False
        key = (realm.value, user.id)
        self._identities.pop(key, None)
        self._consents.pop(key, None)
        self._roles.pop(key, None)
        for (realm_id, _), members in self._groups.items():
            if realm_id == realm.value and user.id in members:
                members.remove(user.id)
        return True

    async def grant_to_all_users(self, realm: RealmId, role: RoleRef) -> None:
        for user_id in self._realm_users(realm):
            self._roles.setdefault((realm.value, user_id), set()).add(role.id)

    async def join_group(self, realm: RealmId, user: UserRecord, group: GroupRef) -> None:
        members = self._groups.setdefault((realm.value, group.id), [])
        if user.id not in members:
            members.append(user.id)

    async def get_role_grants(self, realm: RealmId, user: UserRecord) -> Set[str]:
        return set(self._roles.get((realm.value, user.id), set()))

    # Federated identities

    async def add_federated_identity(
        self, realm: RealmId, user: UserRecord, identity: FederatedIdentity
    ) -> None:
        self._identities.setdefault((realm.value, user.id), {})[identity.identity_provider] = identity

    async def update_federated_identity(
        self, realm: RealmId, user: UserRecord, identity: FederatedIdentity
    ) -> None:
        links = self._identities.get((realm.value, user.id), {})
        if identity.identity_provider in links:
            links[identity.identity_provider] = identity

    async def remove_federated_identity(
        self, realm: RealmId, user: UserRecord, identity_provider: str
    ) -> bool:
        links = self._identities.get((realm.value, user.id), {})
        return links.pop(identity_provider, None) is not None

    async def get_federated_identities(
        self, realm: RealmId, user: UserRecord
    ) -> Set[FederatedIdentity]:
        return set(self._identities.get((realm.value, user.id), {}).values())

    async def get_federated_identity(
        self, realm: RealmId, user: UserRecord, identity_provider: str
    ) -> Optional[FederatedIdentity]:
        return self._identities.get((realm.value, user.id), {}).get(identity_provider)

    # Consents

    async def add_consent(self, realm: RealmId, user: UserRecord, consent: UserConsent) -> None:
        self._consents.setdefault((realm.value, user.id), {})[consent.client_id] = consent

    async def get_consent_by_client(
        self, realm: RealmId, user: UserRecord, client_id: str
    ) -> Optional[UserConsent]:
        return self._consents.get((realm.value, user.id), {}).get(client_id)

    async def get_consents(self, realm: RealmId, user: UserRecord) -> List[UserConsent]:
        return list(self._consents.get((realm.value, user.id), {}).values())

    async def update_consent(self, realm: RealmId, user: UserRecord, consent: UserConsent) -> None:
        consents = self._consents.get((realm.value, user.id), {})
        if consent.client_id in consents:
            consents[consent.client_id] = consent

    async def revoke_consent_for_client(
        self, realm: RealmId, user: UserRecord, client_id: str
    ) -> bool:
        return self._consents.get((realm.value, user.id), {}).pop(client_id, None) is not None

    # Cache hook

    async def on_cache(self, realm: RealmId, cached: CachedUser, delegate: UserRecord) -> None:
        cached.cached_with["local.federation_link"] = delegate.federation_link

    # Cleanup

    async def pre_remove_realm(self, realm: RealmId) -> None:
        self._users.pop(realm.value, None)
        for index in (self._identities, self._consents, self._groups, self._roles):
            for key in [k for k in index if k[0] == realm.value]:
                del index[key]

    async def pre_remove_group(self, realm: RealmId, group: GroupRef) -> None:
        self._groups.pop((realm.value, group.id), None)

    async def pre_remove_role(self, realm: RealmId, role: RoleRef) -> None:
        for (realm_id, _), roles in self._roles.items():
            if realm_id == realm.value:
                roles.discard(role.id)

    async def pre_remove_client(self, realm: RealmId, client: ClientRef) -> None:
        for (realm_id, _), consents in self._consents.items():
            if realm_id == realm.value:
                consents.pop(client.id, None)

    async def pre_remove_component(self, realm: RealmId, component: ComponentRef) -> None:
        await self._remove_imported_users(realm, component.id)

    async def pre_remove_descriptor(self, realm: RealmId, descriptor: BackendDescriptor) -> None:
        await self._remove_imported_users(realm, descriptor.id)

    # Internals

    async def _remove_imported_users(self, realm: RealmId, link: str) -> None:
        imported = [u for u in self._realm_users(realm).values() if u.federation_link == link]
        for user in imported:
            await self.remove_user(realm, user)
        if imported:
            logger.info(f"Removed {len(imported)} users imported from '{link}' in {realm.value}")

    def _realm_users(self, realm: RealmId, create: bool = False) -> Dict[str, UserRecord]:
        if create:
            return self._users.setdefault(realm.value, {})
        return self._users.get(realm.value, {})

    def _first(self, realm: RealmId, predicate) -> Optional[UserRecord]:
        for user in self._realm_users(realm).values():
            if predicate(user):
                return user.copy()
        return None

    @staticmethod
    def _copies(users: Iterable[UserRecord]) -> List[UserRecord]:
        return [u.copy() for u in users]
