"""Integration tests for the /token and /verification endpoints."""

import asyncio
from datetime import date

import pytest


@pytest.fixture
def account(users):
    return users.add("ada@example.com", username="ada", role="hirer")


@pytest.fixture
def pair(token_service, account):
    return asyncio.run(token_service.issue(str(account.id)))


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


class TestRefresh:
    def test_refresh_returns_new_access_token(self, client, pair):
        resp = client.post("/token/refresh", json={"refreshToken": pair.refresh_token})
        assert resp.status_code == 200
        body = resp.json()
        assert body["tokenType"] == "Bearer"
        assert body["expiresIn"] == 900
        assert body["accessToken"]
        assert "refreshToken" not in body

    def test_access_token_rejected(self, client, pair):
        resp = client.post("/token/refresh", json={"refreshToken": pair.access_token})
        assert resp.status_code == 401
        assert resp.json()["code"] == "invalid_token"

    def test_garbage_token(self, client):
        resp = client.post("/token/refresh", json={"refreshToken": "nope"})
        assert resp.status_code == 401

    def test_missing_body(self, client):
        resp = client.post("/token/refresh", json={})
        assert resp.status_code == 400


class TestLogout:
    def test_revokes_both_tokens(self, client, pair):
        resp = client.request(
            "DELETE",
            "/token",
            json={"accessToken": pair.access_token, "refreshToken": pair.refresh_token},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["accessRevoked"] is True
        assert body["refreshRevoked"] is True

        again = client.post("/token/refresh", json={"refreshToken": pair.refresh_token})
        assert again.status_code == 401
        assert again.json()["code"] == "token_revoked"

        status = client.get("/verification/age/status", headers=_auth(pair.access_token))
        assert status.status_code == 401

    def test_empty_body_is_noop(self, client):
        resp = client.request("DELETE", "/token", json={})
        assert resp.status_code == 200
        assert resp.json()["accessRevoked"] is False


class TestAgeVerification:
    def test_requires_bearer(self, client):
        resp = client.get("/verification/age/status")
        assert resp.status_code == 401
        assert resp.json()["code"] == "authentication_error"

    def test_status_unverified_from_durable(self, client, pair):
        resp = client.get("/verification/age/status", headers=_auth(pair.access_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["verified"] is False
        assert body["source"] == "durable"
        assert body["hasDateOfBirth"] is False

    def test_verify_then_status_from_cache(self, client, pair):
        resp = client.post(
            "/verification/age",
            json={"dateOfBirth": "2000-01-31"},
            headers=_auth(pair.access_token),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["verified"] is True
        assert body["age"] == 26
        assert body["verifiedAt"].startswith("2026-03-01")

        status = client.get("/verification/age/status", headers=_auth(pair.access_token))
        assert status.json()["source"] == "cache"
        assert status.json()["verified"] is True

    def test_underage_rejected(self, client, pair, clock):
        too_young = date(clock().year - 15, 1, 1).isoformat()
        resp = client.post(
            "/verification/age",
            json={"dateOfBirth": too_young},
            headers=_auth(pair.access_token),
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["field"] == "dateOfBirth"
        assert body["details"]["requiredAge"] == 16

    def test_scoped_token_not_accepted_as_bearer(self, client, token_service, account):
        token, _ = asyncio.run(
            token_service.issue_scoped_token(str(account.id), "password_reset")
        )
        resp = client.get("/verification/age/status", headers=_auth(token))
        assert resp.status_code == 401
