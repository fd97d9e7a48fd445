"""Integration tests for POST /auth/signup."""

import pytest

CODE = "482913"
EMAIL = "new@example.com"


@pytest.fixture(autouse=True)
def fixed_code(mocker):
    mocker.patch("services.otp_service.generate_otp_code", return_value=CODE)


def _prove_email(client, email=EMAIL):
    client.post("/otp/issue", json={"email": email})
    resp = client.post("/otp/verify", json={"email": email, "otp": CODE})
    assert resp.json()["nextStep"] == "profile-details"


def _signup(client, **overrides):
    body = {"email": EMAIL, "username": "newbie", "name": "New Bie", "role": "fixer"}
    body.update(overrides)
    return client.post("/auth/signup", json=body)


class TestSignup:
    def test_full_flow_returns_tokens(self, client):
        _prove_email(client)
        resp = _signup(client)
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["nextStep"] == "dashboard"
        assert body["tokenType"] == "Bearer"
        assert body["expiresIn"] == 900
        assert body["user"]["email"] == EMAIL
        assert body["user"]["username"] == "newbie"
        assert body["user"]["role"] == "fixer"
        assert body["user"]["emailVerified"] is True

        refreshed = client.post(
            "/token/refresh", json={"refreshToken": body["refreshToken"]}
        )
        assert refreshed.status_code == 200

        status = client.get(
            "/verification/age/status",
            headers={"Authorization": f"Bearer {body['accessToken']}"},
        )
        assert status.status_code == 200

    def test_without_verified_email(self, client, users):
        resp = _signup(client)
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Email not verified"
        assert body["message"] == "Please verify your email before completing signup"
        assert body["details"] == {"nextStep": "email-verification"}
        assert users.docs == {}

    def test_second_signup_conflicts(self, client):
        _prove_email(client)
        assert _signup(client).status_code == 201
        resp = _signup(client)
        assert resp.status_code == 409
        assert resp.json()["field"] == "identifier"

    def test_unknown_role(self, client):
        _prove_email(client)
        resp = _signup(client, role="admin")
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"
