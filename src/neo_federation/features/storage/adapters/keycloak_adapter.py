"""Keycloak directory backend.

Proxies users held in a remote Keycloak realm through the Admin REST API.
Records are never imported: every user id handed out is tagged with the
descriptor id so the router can route it back here.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from keycloak import KeycloakAdmin, KeycloakOpenIDConnection
from keycloak.exceptions import KeycloakError

from ....config.constants import Capability
from ....config.settings import get_settings
from ....core.exceptions import BackendOperationError, ConfigurationError, UserAlreadyExistsError
from ....core.value_objects import RealmId, StorageId
from ..entities.context import FederationContext
from ..entities.descriptor import BackendDescriptor
from ..entities.protocols import UserStorageProvider, UserStorageProviderFactory
from ..entities.references import GroupRef, RoleRef
from ..entities.user import UserRecord
from ..services.paginated_query import slice_window

logger = logging.getLogger(__name__)

# Attribute-map search keys mapped to Admin API query parameters
SEARCH_PARAMS = {
    "username": "username",
    "email": "email",
    "first": "firstName",
    "last": "lastName",
}


class KeycloakUserStorageAdapter(UserStorageProvider):
    """Adapter bound to one Keycloak descriptor.

    Descriptor config keys: ``server_url``, ``realm_name``, ``client_id``
    and either ``client_secret`` or ``username`` + ``password``. Optional
    ``timeout`` and ``verify`` override the settings defaults.
    """

    def __init__(
        self,
        descriptor: BackendDescriptor,
        admin_client: Optional[KeycloakAdmin] = None,
        timeout: Optional[int] = None,
        verify: Optional[bool] = None,
    ):
        super().__init__(descriptor)
        settings = get_settings()
        self.server_url = self._normalize_server_url(descriptor.get_config("server_url", ""))
        self.realm_name = descriptor.get_config("realm_name", "master")
        self.client_id = descriptor.get_config("client_id", "admin-cli")
        if timeout is None:
            timeout = descriptor.get_config("timeout", settings.keycloak_timeout)
        if verify is None:
            verify = descriptor.get_config("verify", settings.keycloak_verify_ssl)
        self.timeout = int(timeout)
        self.verify = verify
        self._admin_client = admin_client

    @staticmethod
    def _normalize_server_url(server_url: str) -> str:
        """Drop the legacy ``/auth`` suffix (Keycloak v18+)."""
        server_url = server_url.rstrip("/")
        if server_url.endswith("/auth"):
            server_url = server_url[:-5]
        return server_url

    @property
    def admin(self) -> KeycloakAdmin:
        if self._admin_client is None:
            config = self.descriptor.config
            if config.get("client_secret"):
                connection = KeycloakOpenIDConnection(
                    server_url=self.server_url,
                    realm_name=self.realm_name,
                    client_id=self.client_id,
                    client_secret_key=config["client_secret"],
                    verify=self.verify,
                    timeout=self.timeout,
                )
            else:
                # Admin users authenticate in master and manage the target realm
                connection = KeycloakOpenIDConnection(
                    server_url=self.server_url,
                    username=config.get("username"),
                    password=config.get("password"),
                    realm_name=self.realm_name,
                    user_realm_name=config.get("user_realm_name", "master"),
                    client_id=self.client_id,
                    verify=self.verify,
                    timeout=self.timeout,
                )
            self._admin_client = KeycloakAdmin(connection=connection)
            logger.info(f"Connected storage provider {self.provider_id} to Keycloak realm {self.realm_name}")
        return self._admin_client

    async def close(self) -> None:
        # KeycloakAdmin doesn't need explicit closing
        self._admin_client = None

    # Lookup

    async def get_user_by_id(self, realm: RealmId, user_id: str) -> Optional[UserRecord]:
        external_id = StorageId.external_id_of(user_id)
        try:
            representation = await self.admin.a_get_user(external_id)
        except KeycloakError as e:
            if getattr(e, "response_code", None) == 404:
                return None
            raise self._backend_error("get user", e) from e
        return self._to_record(representation) if representation else None

    async def get_user_by_username(self, realm: RealmId, username: str) -> Optional[UserRecord]:
        users = await self._fetch({"username": username, "exact": True})
        return users[0] if users else None

    async def get_user_by_email(self, realm: RealmId, email: str) -> Optional[UserRecord]:
        users = await self._fetch({"email": email, "exact": True})
        return users[0] if users else None

    # Query

    async def get_users_count(self, realm: RealmId) -> int:
        try:
            return await self.admin.a_users_count()
        except KeycloakError as e:
            raise self._backend_error("count users", e) from e

    async def get_users(
        self, realm: RealmId, first_result: int, max_results: Optional[int]
    ) -> List[UserRecord]:
        return await self._fetch_window({}, first_result, max_results)

    async def search_for_user(
        self, realm: RealmId, search: str, first_result: int, max_results: Optional[int]
    ) -> List[UserRecord]:
        return await self._fetch_window({"search": search}, first_result, max_results)

    async def search_for_user_by_attributes(
        self,
        realm: RealmId,
        attributes: Dict[str, str],
        first_result: int,
        max_results: Optional[int],
    ) -> List[UserRecord]:
        query: Dict[str, Any] = {}
        custom = []
        for key, value in attributes.items():
            if key in SEARCH_PARAMS:
                query[SEARCH_PARAMS[key]] = value
            else:
                custom.append(f"{key}:{value}")
        if custom:
            query["q"] = " ".join(custom)
        return await self._fetch_window(query, first_result, max_results)

    async def search_for_user_by_user_attribute(
        self, realm: RealmId, name: str, value: str
    ) -> List[UserRecord]:
        return await self._fetch({"q": f"{name}:{value}"})

    async def get_group_members(
        self, realm: RealmId, group: GroupRef, first_result: int, max_results: Optional[int]
    ) -> List[UserRecord]:
        query: Dict[str, Any] = {"first": first_result}
        if max_results is not None:
            query["max"] = max_results
        try:
            members = await self.admin.a_get_group_members(group.id, query)
        except KeycloakError as e:
            if getattr(e, "response_code", None) == 404:
                return []
            raise self._backend_error("get group members", e) from e
        return [self._to_record(m) for m in members]

    # Registration

    async def add_user(self, realm: RealmId, username: str) -> UserRecord:
        payload = {"username": username, "enabled": True}
        try:
            external_id = await self.admin.a_create_user(payload, exist_ok=False)
        except KeycloakError as e:
            if getattr(e, "response_code", None) == 409:
                raise UserAlreadyExistsError(
                    f"Username {username} already exists in {self.provider_id}",
                    details={"provider_id": self.provider_id, "username": username},
                ) from e
            raise self._backend_error("create user", e) from e

        logger.info(f"Created user {username} in Keycloak realm {self.realm_name}")
        return UserRecord(id=StorageId.encode(self.provider_id, external_id), username=username)

    async def remove_user(self, realm: RealmId, user: UserRecord) -> bool:
        external_id = StorageId.external_id_of(user)
        try:
            await self.admin.a_delete_user(external_id)
        except KeycloakError as e:
            if getattr(e, "response_code", None) == 404:
                return False
            raise self._backend_error("delete user", e) from e
        logger.info(f"Deleted user {user.username} from Keycloak realm {self.realm_name}")
        return True

    async def grant_to_all_users(self, realm: RealmId, role: RoleRef) -> None:
        try:
            if role.is_client_role:
                representation = await self.admin.a_get_client_role(role.client_id, role.name)
            else:
                representation = await self.admin.a_get_realm_role(role.name)
        except KeycloakError as e:
            if getattr(e, "response_code", None) == 404:
                logger.warning(f"Role {role.name} does not exist in Keycloak realm {self.realm_name}")
                return
            raise self._backend_error("get role", e) from e

        users = await self._fetch({})
        try:
            for user in users:
                external_id = StorageId.external_id_of(user)
                if role.is_client_role:
                    await self.admin.a_assign_client_role(external_id, role.client_id, [representation])
                else:
                    await self.admin.a_assign_realm_roles(external_id, [representation])
        except KeycloakError as e:
            raise self._backend_error("assign role", e) from e
        logger.info(f"Granted role {role.name} to {len(users)} users in Keycloak realm {self.realm_name}")

    # Internals

    async def _fetch(self, query: Dict[str, Any]) -> List[UserRecord]:
        try:
            users = await self.admin.a_get_users(query)
        except KeycloakError as e:
            raise self._backend_error("query users", e) from e
        return [self._to_record(u) for u in users]

    async def _fetch_window(
        self, query: Dict[str, Any], first_result: int, max_results: Optional[int]
    ) -> List[UserRecord]:
        if max_results is None:
            # Without first/max the client walks every page of the realm
            users = await self._fetch(query)
            return slice_window(users, first_result, None)
        return await self._fetch({**query, "first": first_result, "max": max_results})

    def _to_record(self, representation: Dict[str, Any]) -> UserRecord:
        created = representation.get("createdTimestamp")
        record = UserRecord(
            id=StorageId.encode(self.provider_id, representation["id"]),
            username=representation.get("username", ""),
            email=representation.get("email"),
            enabled=representation.get("enabled", True),
            email_verified=representation.get("emailVerified", False),
            first_name=representation.get("firstName"),
            last_name=representation.get("lastName"),
            attributes={k: list(v) for k, v in (representation.get("attributes") or {}).items()},
        )
        if created:
            record.created_at = datetime.fromtimestamp(created / 1000, tz=timezone.utc)
        return record

    def _backend_error(self, operation: str, error: KeycloakError) -> BackendOperationError:
        logger.error(f"Keycloak storage provider {self.provider_id} failed to {operation}: {error}")
        return BackendOperationError(
            f"Cannot {operation} in Keycloak realm {self.realm_name}: {error}",
            details={"provider_id": self.provider_id, "operation": operation},
        )


class KeycloakUserStorageProviderFactory(UserStorageProviderFactory):
    """Factory for descriptors with ``provider_id == "keycloak"``."""

    provider_id = "keycloak"
    capabilities = frozenset({Capability.LOOKUP, Capability.QUERY, Capability.REGISTRATION})

    def create(self, context: FederationContext, descriptor: BackendDescriptor) -> KeycloakUserStorageAdapter:
        self.validate_config(descriptor)
        return KeycloakUserStorageAdapter(descriptor)

    def validate_config(self, descriptor: BackendDescriptor) -> None:
        config = descriptor.config
        if not config.get("server_url"):
            raise ConfigurationError(
                f"Storage provider {descriptor.id} is missing server_url",
                details={"descriptor_id": descriptor.id},
            )
        if not config.get("realm_name"):
            raise ConfigurationError(
                f"Storage provider {descriptor.id} is missing realm_name",
                details={"descriptor_id": descriptor.id},
            )
        if not ((config.get("username") and config.get("password")) or config.get("client_secret")):
            raise ConfigurationError(
                f"Storage provider {descriptor.id} must provide either (username + password) or client_secret",
                details={"descriptor_id": descriptor.id},
            )
