"""Revalidation of locally stored imports of external identities."""

import logging
from typing import List, Optional

from ....config.constants import Capability
from ....core.exceptions import ProviderResolutionError
from ....core.value_objects import RealmId
from ..entities.context import FederationContext
from ..entities.user import UserRecord
from .provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)


class ImportValidationService:
    """Gives the owning backend a chance to refresh or invalidate an imported record."""

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    async def validate(
        self,
        context: FederationContext,
        realm: RealmId,
        user: Optional[UserRecord],
    ) -> Optional[UserRecord]:
        """Revalidate one record.

        Records without a federation link pass through untouched, as do
        records whose owner cannot be resolved or does not declare
        IMPORT_VALIDATION. A None result means the import is no longer valid.
        """
        if user is None or not user.is_import_linked:
            return user

        try:
            provider = await self.registry.find_by_id(context, realm, user.federation_link)
        except ProviderResolutionError as e:
            logger.warning(
                f"Cannot validate imported user {user.id}: owner "
                f"'{user.federation_link}' unresolvable ({e.message})"
            )
            return user

        if provider is None or not self.registry.instance_supports(provider, Capability.IMPORT_VALIDATION):
            return user

        validated = await provider.validate(realm, user)
        if validated is None:
            logger.info(f"Imported user {user.id} invalidated by '{user.federation_link}'")
        return validated

    async def validate_many(
        self,
        context: FederationContext,
        realm: RealmId,
        users: List[UserRecord],
    ) -> List[UserRecord]:
        """Revalidate a batch in order, dropping invalidated imports."""
        validated = []
        for user in users:
            result = await self.validate(context, realm, user)
            if result is not None:
                validated.append(result)
        return validated
