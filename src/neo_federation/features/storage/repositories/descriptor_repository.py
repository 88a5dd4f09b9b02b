"""Backend descriptor repositories.

Descriptors are realm configuration owned by realm administration; the
router only reads them.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import asyncpg

from ....config.constants import DatabaseTables, ProviderTypes
from ....config.settings import get_settings
from ....core.exceptions import BackendOperationError, DescriptorNotFoundError
from ....core.value_objects import RealmId
from ..entities.descriptor import BackendDescriptor
from ..entities.protocols import DescriptorSource

logger = logging.getLogger(__name__)


class InMemoryDescriptorRepository(DescriptorSource):
    """In-memory implementation of DescriptorSource."""

    def __init__(self):
        self._descriptors: Dict[str, Dict[str, BackendDescriptor]] = {}  # realm -> id -> descriptor
        self._lock = asyncio.Lock()

    async def add_descriptor(self, realm: RealmId, descriptor: BackendDescriptor) -> None:
        """Add or replace a descriptor in a realm."""
        async with self._lock:
            self._descriptors.setdefault(realm.value, {})[descriptor.id] = descriptor
            logger.info(f"Registered descriptor {descriptor.id} ({descriptor.provider_id}) in {realm.value}")

    async def remove_descriptor(self, realm: RealmId, descriptor_id: str) -> BackendDescriptor:
        async with self._lock:
            realm_descriptors = self._descriptors.get(realm.value, {})
            if descriptor_id not in realm_descriptors:
                raise DescriptorNotFoundError(
                    f"Descriptor {descriptor_id} not found in realm {realm.value}",
                    details={"descriptor_id": descriptor_id, "realm": realm.value},
                )
            return realm_descriptors.pop(descriptor_id)

    async def list_descriptors(self, realm: RealmId) -> List[BackendDescriptor]:
        async with self._lock:
            descriptors = list(self._descriptors.get(realm.value, {}).values())
        descriptors.sort(key=lambda d: d.sort_key)
        return descriptors

    async def get_descriptor(self, realm: RealmId, descriptor_id: str) -> Optional[BackendDescriptor]:
        async with self._lock:
            return self._descriptors.get(realm.value, {}).get(descriptor_id)


class PostgresDescriptorRepository(DescriptorSource):
    """Reads descriptors from ``<schema>.user_storage_providers``."""

    _COLUMNS = "id, realm_id, provider_id, name, priority, enabled, config, provider_type"

    def __init__(self, pool: asyncpg.Pool, schema_name: Optional[str] = None):
        if pool is None:
            raise ValueError("Database pool is required")
        self._pool = pool
        self._schema = schema_name or get_settings().descriptor_schema

    @property
    def table(self) -> str:
        return f"{self._schema}.{DatabaseTables.USER_STORAGE_PROVIDERS}"

    async def list_descriptors(self, realm: RealmId) -> List[BackendDescriptor]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {self._COLUMNS}
                    FROM {self.table}
                    WHERE realm_id = $1
                    ORDER BY priority ASC, name ASC, id ASC
                    """,
                    realm.value
                )
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error(f"Failed to list storage providers for realm {realm.value}: {e}")
            raise BackendOperationError(
                f"Failed to list storage providers for realm {realm.value}",
                details={"realm": realm.value},
            ) from e

        return [self._row_to_descriptor(row) for row in rows]

    async def get_descriptor(self, realm: RealmId, descriptor_id: str) -> Optional[BackendDescriptor]:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    SELECT {self._COLUMNS}
                    FROM {self.table}
                    WHERE realm_id = $1 AND id = $2
                    """,
                    realm.value, descriptor_id
                )
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error(f"Failed to load storage provider {descriptor_id}: {e}")
            raise BackendOperationError(
                f"Failed to load storage provider {descriptor_id}",
                details={"realm": realm.value, "descriptor_id": descriptor_id},
            ) from e

        return self._row_to_descriptor(row) if row else None

    def _row_to_descriptor(self, row) -> BackendDescriptor:
        return BackendDescriptor(
            id=str(row["id"]),
            realm_id=row["realm_id"],
            provider_id=row["provider_id"],
            name=row["name"] or "",
            priority=row["priority"] or 0,
            enabled=bool(row["enabled"]),
            config=self._parse_config(row["config"]),
            provider_type=row["provider_type"] or ProviderTypes.USER_STORAGE,
        )

    @staticmethod
    def _parse_config(value: Any) -> Dict[str, Any]:
        """Parse a JSON config column, handling both string and dict cases."""
        if value is None:
            return {}
        if isinstance(value, dict):
            return value
        if isinstance(value, str):
            try:
                parsed = json.loads(value) if value.strip() else {}
            except json.JSONDecodeError:
                logger.warning("Ignoring malformed storage provider config")
                return {}
            return parsed if isinstance(parsed, dict) else {}
        return {}
