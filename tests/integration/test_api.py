"""
Integration tests for the store server API endpoints.
"""

import asyncio
import base64
import os
import tempfile

import httpx
import pytest
from fastapi.testclient import TestClient

from coordinator import server
from coordinator.server import app
from coordinator.database import Database


def b64(value: bytes) -> str:
    return base64.b64encode(value).decode('ascii')


@pytest.fixture
def database():
    """Install a temporary database as the server's global state."""
    fd, db_path = tempfile.mkstemp(suffix='.db')
    os.close(fd)

    server.db = Database(db_path)

    yield server.db

    server.db.close()
    os.unlink(db_path)


@pytest.fixture
def client(database):
    """Create test client with temporary database."""
    return TestClient(app)


class TestHealthEndpoints:
    """Test health and status endpoints."""

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data['service'] == "Rendezvous Store"
        assert data['status'] == "running"

    def test_health_endpoint(self, client):
        """Test health check endpoint."""
        client.post("/store/set", json={"key": "a", "value": b64(b"1")})

        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data['status'] == "healthy"
        assert data['keys'] == 1


class TestStoreEndpoints:
    """Test key-value endpoints."""

    def test_set_and_get(self, client):
        """Test writing and reading a key."""
        response = client.post("/store/set", json={"key": "0", "value": b64(b"alice")})
        assert response.status_code == 200

        response = client.post("/store/get", json={"key": "0"})
        assert response.status_code == 200
        assert base64.b64decode(response.json()['value']) == b"alice"

    def test_get_missing_key(self, client):
        """Test reading a missing key."""
        response = client.post("/store/get", json={"key": "missing"})
        assert response.status_code == 404

    def test_set_invalid_base64(self, client):
        """Test values must be base64."""
        response = client.post("/store/set", json={"key": "k", "value": "not base64!"})
        assert response.status_code == 400

    def test_add(self, client):
        """Test atomic add."""
        response = client.post("/store/add", json={"key": "count", "delta": 2})
        assert response.json()['value'] == 2

        response = client.post("/store/add", json={"key": "count", "delta": 5})
        assert response.json()['value'] == 7

    def test_add_non_integer(self, client):
        """Test add on a non-integer value."""
        client.post("/store/set", json={"key": "name", "value": b64(b"alice")})

        response = client.post("/store/add", json={"key": "name", "delta": 1})
        assert response.status_code == 400

    def test_compare_set(self, client):
        """Test compare-and-set."""
        response = client.post("/store/compare-set", json={
            "key": "0", "expected": "", "desired": b64(b"alice")
        })
        assert base64.b64decode(response.json()['value']) == b"alice"

        response = client.post("/store/compare-set", json={
            "key": "0", "expected": "", "desired": b64(b"bob")
        })
        assert base64.b64decode(response.json()['value']) == b"alice"

    def test_check(self, client):
        """Test existence check."""
        response = client.post("/store/check", json={"keys": ["a"]})
        assert response.json()['exists'] is False

        client.post("/store/set", json={"key": "a", "value": ""})

        response = client.post("/store/check", json={"keys": ["a"]})
        assert response.json()['exists'] is True

    def test_wait_ready(self, client):
        """Test wait on an existing key."""
        client.post("/store/set", json={"key": "ready", "value": ""})

        response = client.post("/store/wait", json={"keys": ["ready"], "timeout": 1.0})
        assert response.status_code == 200
        assert response.json()['ready'] is True

    def test_wait_timeout(self, client):
        """Test wait answers 408 after its timeout."""
        response = client.post("/store/wait", json={"keys": ["never"], "timeout": 0.1})
        assert response.status_code == 408
        assert response.json()['ready'] is False

    def test_wait_rejects_non_positive_timeout(self, client):
        """Test wait timeout validation."""
        response = client.post("/store/wait", json={"keys": ["a"], "timeout": 0})
        assert response.status_code == 422


class TestLongPoll:
    """Test wait requests released by concurrent writes."""

    @pytest.mark.asyncio
    async def test_wait_released_by_set(self, database):
        """Test a pending wait is released by a write."""
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:

            async def release():
                await asyncio.sleep(0.2)
                await client.post("/store/set", json={"key": "go", "value": ""})

            wait_response, _ = await asyncio.gather(
                client.post("/store/wait", json={"keys": ["go"], "timeout": 5.0}),
                release()
            )

        assert wait_response.status_code == 200
        assert wait_response.json()['ready'] is True

    @pytest.mark.asyncio
    async def test_barrier_over_api(self, database):
        """Three concurrent arrivals release each other through the API."""
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:

            async def arrive(active_calls):
                await client.post("/store/add", json={"key": "ACTIVE_CALLS_ID_1", "delta": active_calls})
                response = await client.post("/store/add", json={"key": "PROCESS_COUNT_ID_1", "delta": 1})
                if response.json()['value'] == 3:
                    await client.post("/store/set", json={"key": "READY_ID_1", "value": ""})
                await client.post("/store/wait", json={"keys": ["READY_ID_1"], "timeout": 5.0})
                response = await client.post("/store/get", json={"key": "ACTIVE_CALLS_ID_1"})
                return int(base64.b64decode(response.json()['value']))

            results = await asyncio.gather(arrive(1), arrive(2), arrive(3))

        assert results == [6, 6, 6]
