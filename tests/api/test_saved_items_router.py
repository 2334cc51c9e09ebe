"""
Saved Items Ordering API Tests

Run with: pytest tests/api/test_saved_items_router.py -v
"""

from unittest.mock import AsyncMock

import pytest

# Mark entire module as medium - uses TestClient with in-memory transports
pytestmark = pytest.mark.medium

from fastapi.testclient import TestClient

from src.api.deps import get_reorder_registry
from src.api.main import app
from src.authoring.services.reorder import ReorderRegistry
from src.authoring.services.transport import InMemoryOrderTransport, TransportError

ORIGINAL = ["1", "2", "3", "4", "5"]


@pytest.fixture
def transport():
    transport = InMemoryOrderTransport()
    transport.orders["author-1"] = list(ORIGINAL)
    return transport


@pytest.fixture
def registry(transport):
    return ReorderRegistry(transport)


@pytest.fixture
def client(registry):
    app.dependency_overrides[get_reorder_registry] = lambda: registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestGetOrder:
    def test_loads_server_order(self, client):
        response = client.get("/api/saved-items/author-1")
        assert response.status_code == 200
        data = response.json()
        assert data["displayed_order"] == ORIGINAL
        assert data["pending"] is False
        assert data["drag_epoch"] == 0

    def test_load_failure_is_502(self, client, transport):
        transport.load_order = AsyncMock(side_effect=TransportError("backend down"))
        assert client.get("/api/saved-items/author-2").status_code == 502


class TestReorder:
    def test_reorder_confirmed(self, client, transport):
        response = client.put(
            "/api/saved-items/author-1/order", json={"ordered_ids": ["3", "1", "4", "2", "5"]}
        )
        assert response.status_code == 200
        assert response.json()["confirmed_order"] == ["3", "1", "4", "2", "5"]
        assert transport.orders["author-1"] == ["3", "1", "4", "2", "5"]

    def test_failed_confirmation_returns_restored_order(self, client, transport):
        transport.fail_next()

        response = client.put(
            "/api/saved-items/author-1/order", json={"ordered_ids": ["3", "1", "4", "2", "5"]}
        )

        assert response.status_code == 502
        assert response.json()["detail"]["order"] == ORIGINAL
        assert client.get("/api/saved-items/author-1").json()["displayed_order"] == ORIGINAL

    def test_move(self, client):
        response = client.put(
            "/api/saved-items/author-1/order", json={"from_index": 0, "to_index": 2}
        )
        assert response.json()["displayed_order"] == ["2", "3", "1", "4", "5"]

    def test_drop_in_place_makes_no_call(self, client, transport):
        client.put("/api/saved-items/author-1/order", json={"from_index": 1, "to_index": 1})
        assert transport.calls == []

    def test_not_a_permutation(self, client):
        response = client.put(
            "/api/saved-items/author-1/order", json={"ordered_ids": ["1", "2", "9", "4", "5"]}
        )
        assert response.status_code == 422

    def test_move_out_of_range(self, client):
        response = client.put(
            "/api/saved-items/author-1/order", json={"from_index": 0, "to_index": 9}
        )
        assert response.status_code == 422

    @pytest.mark.parametrize("body", [
        {},
        {"from_index": 1},
        {"ordered_ids": ORIGINAL, "from_index": 0, "to_index": 1},
    ])
    def test_request_shape(self, client, body):
        assert client.put("/api/saved-items/author-1/order", json=body).status_code == 422


class TestServerOrder:
    def test_drop_from_before_server_change_is_ignored(self, client, transport):
        epoch = client.get("/api/saved-items/author-1").json()["drag_epoch"]
        client.post(
            "/api/saved-items/author-1/server-order", json={"ordered_ids": ["5", "4", "3", "2", "1"]}
        )

        response = client.put(
            "/api/saved-items/author-1/order",
            json={"from_index": 0, "to_index": 4, "drag_epoch": epoch},
        )

        assert response.json()["displayed_order"] == ["5", "4", "3", "2", "1"]
        assert response.json()["drag_epoch"] == epoch + 1
        assert transport.calls == []
