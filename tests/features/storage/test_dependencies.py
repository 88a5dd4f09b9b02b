"""Tests for the FastAPI dependencies."""

import asyncio
from typing import Annotated

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from neo_federation.core.exceptions import NeoFederationError
from neo_federation.core.value_objects import RealmId
from neo_federation.features.storage.dependencies import (
    FederationDependencies,
    federation_exception_handler,
)
from neo_federation.features.storage.entities import FederationContext, UserRecord
from neo_federation.features.storage.services import UserStorageManager


@pytest.fixture
def contexts():
    return []


@pytest.fixture
def client(manager, local_store, contexts):
    deps = FederationDependencies(manager)
    app = FastAPI()
    app.add_exception_handler(NeoFederationError, federation_exception_handler)

    @app.get("/realms/{realm}/users/{user_id}")
    async def get_user(
        user_id: str,
        realm: Annotated[RealmId, Depends(deps.get_realm)],
        context: Annotated[FederationContext, Depends(deps.get_context)],
        users: Annotated[UserStorageManager, Depends(deps.get_user_storage_manager)],
    ):
        contexts.append(context)
        user = await users.get_user_by_id(context, realm, user_id)
        return {"id": user.id, "username": user.username, "request_id": context.request_id}

    return TestClient(app)


class TestFederationDependencies:

    def test_context_closed_after_request(self, client, local_store, realm, contexts):
        asyncio.run(local_store.save_user(realm, UserRecord(id="u1", username="john")))

        response = client.get("/realms/acme/users/u1", headers={"X-Request-ID": "req-42"})

        assert response.status_code == 200
        assert response.json() == {"id": "u1", "username": "john", "request_id": "req-42"}
        assert contexts[0].is_closed

    def test_federation_errors_mapped_to_status(self, client):
        response = client.get("/realms/acme/users/f:gone:john")

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "ProviderResolutionError"
