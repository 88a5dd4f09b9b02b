"""Federation request context.

This module defines the FederationContext that owns the backend adapter
instances created while serving one request or session.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class FederationContext:
    """Request-scoped owner of backend adapter instances.

    Adapter instances are cached by descriptor id for the lifetime of the
    context and enlisted for close. ``close()`` closes every enlisted
    resource in reverse order, whether or not the request failed.

    A context is never shared between concurrent requests.
    """

    def __init__(self, request_id: Optional[str] = None, correlation_id: Optional[str] = None):
        self.request_id = request_id or str(uuid.uuid4())
        self.correlation_id = correlation_id or self.request_id
        self.created_at = datetime.now(timezone.utc)
        self._instances: Dict[str, Any] = {}
        self._close_list: List[Any] = []
        self._closed = False

    async def __aenter__(self) -> "FederationContext":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def get_instance(self, key: str) -> Optional[Any]:
        """Get a cached adapter instance."""
        return self._instances.get(key)

    def set_instance(self, key: str, instance: Any) -> None:
        """Cache an adapter instance for the rest of the context."""
        self._ensure_open()
        self._instances[key] = instance

    def evict_instance(self, key: str) -> Optional[Any]:
        """Forget a cached instance; it stays enlisted unless closed by the caller."""
        return self._instances.pop(key, None)

    def enlist_for_close(self, resource: Any) -> None:
        """Register a resource for release at context teardown."""
        self._ensure_open()
        self._close_list.append(resource)

    def delist(self, resource: Any) -> None:
        if resource in self._close_list:
            self._close_list.remove(resource)

    @property
    def instance_count(self) -> int:
        return len(self._instances)

    async def close(self) -> None:
        """Close all enlisted resources, newest first.

        Every resource is closed even if an earlier close fails; the first
        failure is re-raised once all resources were visited.
        """
        if self._closed:
            return
        self._closed = True

        first_error: Optional[BaseException] = None
        while self._close_list:
            resource = self._close_list.pop()
            try:
                await resource.close()
            except Exception as e:
                logger.error(
                    f"Failed to close {type(resource).__name__} "
                    f"in context {self.request_id}: {e}"
                )
                if first_error is None:
                    first_error = e

        self._instances.clear()
        logger.debug(f"Federation context {self.request_id} closed")

        if first_error is not None:
            raise first_error

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"Federation context {self.request_id} is already closed")
