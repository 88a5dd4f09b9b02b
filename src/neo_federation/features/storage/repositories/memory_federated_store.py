"""In-memory federated attribute store.

Holds supplementary data (attributes, group membership, identity links,
consents) for users whose primary record lives in an external backend.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Set, Tuple

from ....core.value_objects import RealmId, StorageId
from ..entities.descriptor import BackendDescriptor
from ..entities.protocols import FederatedAttributeStore
from ..entities.references import ClientRef, ComponentRef, GroupRef, RoleRef
from ..entities.user import FederatedIdentity, UserConsent
from ..services.paginated_query import slice_window

logger = logging.getLogger(__name__)

_UserKey = Tuple[str, str]


class InMemoryFederatedAttributeStore(FederatedAttributeStore):
    """Dictionary-backed federated attribute store keyed by ``(realm, user id)``."""

    def __init__(self):
        self._attributes: Dict[_UserKey, Dict[str, List[str]]] = {}
        self._groups: Dict[Tuple[str, str], List[str]] = {}  # (realm, group id) -> user ids
        self._identities: Dict[_UserKey, Dict[str, FederatedIdentity]] = {}
        self._consents: Dict[_UserKey, Dict[str, UserConsent]] = {}
        self._roles: Dict[_UserKey, Set[str]] = {}
        self._lock = asyncio.Lock()

    # Attributes

    async def set_attribute(
        self, realm: RealmId, user_id: str, name: str, values: List[str]
    ) -> None:
        async with self._lock:
            self._attributes.setdefault((realm.value, user_id), {})[name] = list(values)

    async def get_attributes(self, realm: RealmId, user_id: str) -> Dict[str, List[str]]:
        attributes = self._attributes.get((realm.value, user_id), {})
        return {name: list(values) for name, values in attributes.items()}

    async def remove_attribute(self, realm: RealmId, user_id: str, name: str) -> None:
        async with self._lock:
            self._attributes.get((realm.value, user_id), {}).pop(name, None)

    async def get_users_by_user_attribute(
        self, realm: RealmId, name: str, value: str
    ) -> List[str]:
        return [
            user_id for (realm_id, user_id), attributes in self._attributes.items()
            if realm_id == realm.value and value in attributes.get(name, [])
        ]

    # Group membership

    async def join_group(self, realm: RealmId, user_id: str, group: GroupRef) -> None:
        async with self._lock:
            members = self._groups.setdefault((realm.value, group.id), [])
            if user_id not in members:
                members.append(user_id)

    async def leave_group(self, realm: RealmId, user_id: str, group: GroupRef) -> None:
        async with self._lock:
            members = self._groups.get((realm.value, group.id), [])
            if user_id in members:
                members.remove(user_id)

    async def get_membership(
        self, realm: RealmId, group: GroupRef, first_result: int, max_results: Optional[int]
    ) -> List[str]:
        members = self._groups.get((realm.value, group.id), [])
        return slice_window(list(members), first_result, max_results)

    # Role grants

    async def grant_role(self, realm: RealmId, user_id: str, role: RoleRef) -> None:
        async with self._lock:
            self._roles.setdefault((realm.value, user_id), set()).add(role.id)

    async def get_role_grants(self, realm: RealmId, user_id: str) -> Set[str]:
        return set(self._roles.get((realm.value, user_id), set()))

    # Federated identities

    async def add_federated_identity(
        self, realm: RealmId, user_id: str, identity: FederatedIdentity
    ) -> None:
        async with self._lock:
            self._identities.setdefault((realm.value, user_id), {})[identity.identity_provider] = identity

    async def update_federated_identity(
        self, realm: RealmId, user_id: str, identity: FederatedIdentity
    ) -> None:
        async with self._lock:
            links = self._identities.get((realm.value, user_id), {})
            if identity.identity_provider in links:
                links[identity.identity_provider] = identity

    async def remove_federated_identity(
        self, realm: RealmId, user_id: str, identity_provider: str
    ) -> bool:
        async with self._lock:
            links = self._identities.get((realm.value, user_id), {})
            return links.pop(identity_provider, None) is not None

    async def get_federated_identities(
        self, realm: RealmId, user_id: str
    ) -> Set[FederatedIdentity]:
        return set(self._identities.get((realm.value, user_id), {}).values())

    async def get_federated_identity(
        self, realm: RealmId, user_id: str, identity_provider: str
    ) -> Optional[FederatedIdentity]:
        return self._identities.get((realm.value, user_id), {}).get(identity_provider)

    async def get_user_by_federated_identity(
        self, realm: RealmId, identity: FederatedIdentity
    ) -> Optional[str]:
        for (realm_id, user_id), links in self._identities.items():
            if realm_id != realm.value:
                continue
            link = links.get(identity.identity_provider)
            if link is not None and link.user_id == identity.user_id:
                return user_id
        return None

    # Consents

    async def add_consent(self, realm: RealmId, user_id: str, consent: UserConsent) -> None:
        async with self._lock:
            self._consents.setdefault((realm.value, user_id), {})[consent.client_id] = consent

    async def get_consent_by_client(
        self, realm: RealmId, user_id: str, client_id: str
    ) -> Optional[UserConsent]:
        return self._consents.get((realm.value, user_id), {}).get(client_id)

    async def get_consents(self, realm: RealmId, user_id: str) -> List[UserConsent]:
        return list(self._consents.get((realm.value, user_id), {}).values())

    async def update_consent(self, realm: RealmId, user_id: str, consent: UserConsent) -> None:
        async with self._lock:
            consents = self._consents.get((realm.value, user_id), {})
            if consent.client_id in consents:
                consents[consent.client_id] = consent

    async def revoke_consent_for_client(
        self, realm: RealmId, user_id: str, client_id: str
    ) -> bool:
        async with self._lock:
            return self._consents.get((realm.value, user_id), {}).pop(client_id, None) is not None

    # Cleanup

    async def pre_remove_user(self, realm: RealmId, user_id: str) -> None:
        async with self._lock:
            self._drop_user(realm.value, user_id)

    async def pre_remove_realm(self, realm: RealmId) -> None:
        async with self._lock:
            for index in (self._attributes, self._groups, self._identities, self._consents, self._roles):
                for key in [k for k in index if k[0] == realm.value]:
                    del index[key]

    async def pre_remove_group(self, realm: RealmId, group: GroupRef) -> None:
        async with self._lock:
            self._groups.pop((realm.value, group.id), None)

    async def pre_remove_role(self, realm: RealmId, role: RoleRef) -> None:
        async with self._lock:
            for (realm_id, _), roles in self._roles.items():
                if realm_id == realm.value:
                    roles.discard(role.id)

    async def pre_remove_client(self, realm: RealmId, client: ClientRef) -> None:
        async with self._lock:
            for (realm_id, _), consents in self._consents.items():
                if realm_id == realm.value:
                    consents.pop(client.id, None)

    async def pre_remove_component(self, realm: RealmId, component: ComponentRef) -> None:
        async with self._lock:
            self._drop_backend_users(realm.value, component.id)

    async def pre_remove_descriptor(self, realm: RealmId, descriptor: BackendDescriptor) -> None:
        async with self._lock:
            self._drop_backend_users(realm.value, descriptor.id)

    # Internals

    def _known_user_ids(self, realm_id: str) -> Set[str]:
        user_ids: Set[str] = set()
        for index in (self._attributes, self._identities, self._consents, self._roles):
            user_ids.update(user_id for (r, user_id) in index if r == realm_id)
        for (r, _), members in self._groups.items():
            if r == realm_id:
                user_ids.update(members)
        return user_ids

    def _drop_backend_users(self, realm_id: str, provider_id: str) -> None:
        owned = [
            user_id for user_id in self._known_user_ids(realm_id)
            if StorageId.resolve_provider_id(user_id) == provider_id
        ]
        for user_id in owned:
            self._drop_user(realm_id, user_id)
        if owned:
            logger.info(f"Dropped federated data of {len(owned)} users owned by '{provider_id}' in {realm_id}")

    def _drop_user(self, realm_id: str, user_id: str) -> None:
        key = (realm_id, user_id)
        for index in (self._attributes, self._identities, self._consents, self._roles):
            index.pop(key, None)
        for (r, _), members in self._groups.items():
            if r == realm_id and user_id in members:
                members.remove(user_id)
