"""
Integration tests for the Bank Ledger API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient

from bank_ledger.api import create_app
from bank_ledger.config import LedgerConfig
from bank_ledger.storage import InMemoryStorage


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def client(storage):
    """Create a test client backed by in-memory storage"""
    app = create_app(LedgerConfig(database_url="memory://"), storage=storage)
    with TestClient(app) as client:
        yield client


def create_account(client, **body):
    payload = {"user": "test", "currency": "$"}
    payload.update(body)
    return client.post("/api/accounts", json=payload)


class TestInfoEndpoints:
    """Test banner and health endpoints"""

    def test_banner(self, client):
        r = client.get("/api/")
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/plain")
        assert r.text == "Bank API v1.0.0"

    def test_banner_without_trailing_slash(self, client):
        r = client.get("/api", follow_redirects=False)
        assert r.status_code == 200
        assert r.text == "Bank API v1.0.0"

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"


class TestAccountFlow:
    """End-to-end account management tests"""

    def test_create_account(self, client):
        r = create_account(client)
        assert r.status_code == 201
        data = r.json()
        assert data["id"]
        assert data["user"] == "test"
        assert data["currency"] == "$"
        assert data["description"] == "test's budget"
        assert data["balance"] == 0
        assert data["transactions"] == []

    def test_create_with_trailing_slash(self, client):
        r = client.post("/api/accounts/", json={"user": "test", "currency": "$"},
                        follow_redirects=False)
        assert r.status_code == 201
        assert r.json()["user"] == "test"

    def test_create_then_get(self, client):
        created = create_account(client).json()

        r = client.get("/api/accounts/test")
        assert r.status_code == 200
        data = r.json()
        assert data["id"] == created["id"]
        assert data["balance"] == 0
        assert data["transactions"] == []

    def test_create_with_string_balance(self, client):
        r = create_account(client, description="Savings", balance="75")
        assert r.status_code == 201
        assert r.json()["balance"] == 75
        assert r.json()["description"] == "Savings"

    def test_create_missing_parameters(self, client):
        r = client.post("/api/accounts", json={"user": "test"})
        assert r.status_code == 400
        assert r.json() == {"error": "Missing parameters"}

    def test_create_invalid_balance(self, client):
        r = create_account(client, balance="plenty")
        assert r.status_code == 400
        assert r.json() == {"error": "Balance must be a number"}

    def test_create_with_non_object_body(self, client):
        r = client.post("/api/accounts", json=["test", "$"])
        assert r.status_code == 400
        assert r.json() == {"error": "Missing parameters"}

    def test_create_without_body(self, client):
        r = client.post("/api/accounts")
        assert r.status_code == 400

    def test_create_duplicate(self, client):
        create_account(client, balance=10)

        r = create_account(client, currency="EUR", balance=99)
        assert r.status_code == 409
        assert r.json() == {"error": "User already exists"}

        data = client.get("/api/accounts/test").json()
        assert data["currency"] == "$"
        assert data["balance"] == 10

    def test_get_unknown(self, client):
        r = client.get("/api/accounts/nobody")
        assert r.status_code == 404
        assert r.json() == {"error": "User does not exist"}

    def test_delete(self, client):
        create_account(client)

        r = client.delete("/api/accounts/test")
        assert r.status_code == 204
        assert r.content == b""

        r = client.get("/api/accounts/test")
        assert r.status_code == 404

    def test_delete_unknown(self, client):
        r = client.delete("/api/accounts/nobody")
        assert r.status_code == 404
        assert r.json() == {"error": "User does not exist"}


class TestTransactionFlow:
    """End-to-end transaction tests"""

    def test_add_transaction(self, client):
        create_account(client)

        r = client.post("/api/accounts/test/transactions", json={
            "date": "2020-10-01",
            "object": "Pocket money",
            "amount": 50
        })
        assert r.status_code == 201
        assert r.json() == {
            "id": "327265b7af7a1a28b161a884512293b9",
            "date": "2020-10-01",
            "object": "Pocket money",
            "amount": 50
        }

        assert client.get("/api/accounts/test").json()["balance"] == 50

    def test_add_to_unknown_account(self, client):
        r = client.post("/api/accounts/nobody/transactions", json={
            "date": "2020-10-01", "object": "Pocket money", "amount": 50
        })
        assert r.status_code == 404

    def test_add_missing_parameters(self, client):
        create_account(client)
        r = client.post("/api/accounts/test/transactions", json={
            "date": "2020-10-01", "object": "Pocket money"
        })
        assert r.status_code == 400
        assert r.json() == {"error": "Missing parameters"}

    def test_add_zero_amount_is_rejected(self, client):
        create_account(client)
        r = client.post("/api/accounts/test/transactions", json={
            "date": "2020-10-01", "object": "Nothing", "amount": 0
        })
        assert r.status_code == 400

    def test_add_non_numeric_amount(self, client):
        create_account(client)
        r = client.post("/api/accounts/test/transactions", json={
            "date": "2020-10-01", "object": "Book", "amount": "ten"
        })
        assert r.status_code == 400
        assert r.json() == {"error": "Amount must be a number"}

    def test_add_duplicate(self, client):
        create_account(client)
        body = {"date": "2020-10-01", "object": "Pocket money", "amount": 50}

        assert client.post("/api/accounts/test/transactions", json=body).status_code == 201
        r = client.post("/api/accounts/test/transactions", json=body)
        assert r.status_code == 409
        assert r.json() == {"error": "Transaction already exists"}

        assert len(client.get("/api/accounts/test").json()["transactions"]) == 1

    def test_remove_transaction(self, client):
        create_account(client)
        transaction = client.post("/api/accounts/test/transactions", json={
            "date": "2020-10-03", "object": "Book", "amount": -10
        }).json()

        r = client.delete(f"/api/accounts/test/transactions/{transaction['id']}")
        assert r.status_code == 204

        data = client.get("/api/accounts/test").json()
        assert data["transactions"] == []
        assert data["balance"] == -10

    def test_remove_unknown_transaction(self, client):
        create_account(client)
        client.post("/api/accounts/test/transactions", json={
            "date": "2020-10-01", "object": "Pocket money", "amount": 50
        })

        r = client.delete("/api/accounts/test/transactions/missing")
        assert r.status_code == 404
        assert r.json() == {"error": "Transaction does not exist"}

        data = client.get("/api/accounts/test").json()
        assert len(data["transactions"]) == 1
        assert data["balance"] == 50

    def test_remove_from_unknown_account(self, client):
        r = client.delete("/api/accounts/nobody/transactions/missing")
        assert r.status_code == 404
        assert r.json() == {"error": "User does not exist"}

    def test_full_account_lifecycle(self, client):
        """create → add → add → get → delete"""
        r = client.post("/api/accounts", json={
            "user": "alice", "currency": "$", "description": "", "balance": 100
        })
        assert r.status_code == 201

        r = client.post("/api/accounts/alice/transactions", json={
            "date": "2021-01-01", "object": "Gift", "amount": 20
        })
        assert r.status_code == 201
        r = client.post("/api/accounts/alice/transactions", json={
            "date": "2021-01-02", "object": "Coffee", "amount": -4
        })
        assert r.status_code == 201
        assert r.json()["id"] == "0e042006e6430728b761822e196b57ca"

        data = client.get("/api/accounts/alice").json()
        assert data["balance"] == 116
        assert data["description"] == "alice's budget"
        assert [t["object"] for t in data["transactions"]] == ["Gift", "Coffee"]

        assert client.delete("/api/accounts/alice").status_code == 204
        assert client.get("/api/accounts/alice").status_code == 404


class TestBalanceReversal:
    """Corrected removal mode behind configuration"""

    def test_remove_reverses_balance(self, storage):
        config = LedgerConfig(database_url="memory://", reverse_balance_on_remove=True)
        with TestClient(create_app(config, storage=storage)) as client:
            create_account(client)
            transaction = client.post("/api/accounts/test/transactions", json={
                "date": "2020-10-03", "object": "Book", "amount": -10
            }).json()

            client.delete(f"/api/accounts/test/transactions/{transaction['id']}")

            assert client.get("/api/accounts/test").json()["balance"] == 0


class TestErrors:
    """Store failures and error bodies"""

    def test_store_failure_returns_500(self, client, storage):
        with patch.object(storage, "load", side_effect=RuntimeError("connection lost")):
            r = client.get("/api/accounts/test")
        assert r.status_code == 500
        assert r.json() == {"error": "Internal server error"}

    def test_remove_transaction_store_failure_returns_500(self, client, storage):
        create_account(client)
        transaction = client.post("/api/accounts/test/transactions", json={
            "date": "2020-10-01", "object": "Pocket money", "amount": 50
        }).json()

        with patch.object(storage, "save", side_effect=RuntimeError("disk full")):
            r = client.delete(f"/api/accounts/test/transactions/{transaction['id']}")
        assert r.status_code == 500
        assert r.json() == {"error": "Internal server error"}

        assert len(client.get("/api/accounts/test").json()["transactions"]) == 1

    def test_service_keeps_serving_after_failure(self, client, storage):
        with patch.object(storage, "exists", side_effect=RuntimeError("connection lost")):
            assert create_account(client).status_code == 500

        assert create_account(client).status_code == 201


class TestCors:
    """Cross-origin requests are limited to loopback origins"""

    @pytest.mark.parametrize("origin", [
        "http://localhost",
        "http://localhost:3000",
        "http://127.0.0.1:8080",
    ])
    def test_loopback_origin_allowed(self, client, origin):
        r = client.options("/api/accounts", headers={
            "Origin": origin,
            "Access-Control-Request-Method": "POST",
        })
        assert r.status_code == 200
        assert r.headers["access-control-allow-origin"] == origin

    def test_foreign_origin_rejected(self, client):
        r = client.get("/api/", headers={"Origin": "http://example.com"})
        assert r.status_code == 200
        assert "access-control-allow-origin" not in r.headers

        r = client.options("/api/accounts", headers={
            "Origin": "http://example.com",
            "Access-Control-Request-Method": "POST",
        })
        assert r.status_code == 400


class TestCustomPrefix:
    """Routes follow the configured prefix"""

    def test_prefix(self, storage):
        config = LedgerConfig(database_url="memory://", api_prefix="/v2")
        with TestClient(create_app(config, storage=storage)) as client:
            assert client.post("/v2/accounts", json={"user": "a", "currency": "$"}).status_code == 201
            assert client.get("/v2/accounts/a").status_code == 200
            assert client.get("/api/accounts/a").status_code == 404
