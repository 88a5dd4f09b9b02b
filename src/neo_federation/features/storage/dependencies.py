"""FastAPI dependencies for federated user storage."""

import logging
from typing import AsyncIterator, Optional

from fastapi import Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ...core.exceptions import NeoFederationError, create_error_response, get_http_status_code
from ...core.value_objects import RealmId
from .entities.context import FederationContext
from .services.user_storage_manager import UserStorageManager

logger = logging.getLogger(__name__)


class FederationDependencies:
    """FastAPI dependencies factory for the user storage router."""

    def __init__(self, manager: UserStorageManager):
        self.manager = manager

    async def get_context(
        self,
        x_request_id: Optional[str] = Header(default=None),
        x_correlation_id: Optional[str] = Header(default=None),
    ) -> AsyncIterator[FederationContext]:
        """Open a federation context for the request and close it afterwards."""
        context = FederationContext(request_id=x_request_id, correlation_id=x_correlation_id)
        try:
            yield context
        finally:
            await context.close()
            logger.debug(f"Closed federation context {context.request_id}")

    async def get_realm(self, realm: str) -> RealmId:
        """Path parameter ``realm`` as a RealmId."""
        try:
            return RealmId(realm)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    async def get_user_storage_manager(self) -> UserStorageManager:
        return self.manager


async def federation_exception_handler(request: Request, exc: NeoFederationError) -> JSONResponse:
    """Render federation errors with their mapped HTTP status."""
    status_code = get_http_status_code(exc)
    if status_code >= 500:
        logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.error_code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=create_error_response(exc))
