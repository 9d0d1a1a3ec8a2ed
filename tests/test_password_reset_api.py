"""
Forgot-password and reset flow through the API.

SMTP is not configured in tests, so sent mail lands in EmailService.outbox.
"""

import re
from datetime import UTC, datetime, timedelta

import pytest

from conftest import run

NEUTRAL_MESSAGE = "If an account with that email exists, a password reset link has been sent"


def reset_token_from(services) -> str:
    msg = services.email.outbox[-1]
    match = re.search(r"token=([0-9a-f]{64})", msg.get_payload())
    assert match, msg.get_payload()
    return match.group(1)


def test_forgot_password_sends_link(client, services, alice):
    response = client.post("/api/auth/forgot-password", json={"email": "ALICE@example.com"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": NEUTRAL_MESSAGE}

    msg = services.email.outbox[-1]
    assert msg["To"] == "alice@example.com"
    assert msg["Subject"] == "Vetora Password Reset Request"
    assert "http://localhost:4000/auth/reset-password?token=" in msg.get_payload()

    user = run(services.users.get(alice["user"]["id"]))
    assert user.reset_password_token == reset_token_from(services)
    assert user.reset_password_expiry > datetime.now(UTC) + timedelta(hours=23)


def test_forgot_password_unknown_email_looks_the_same(client, services):
    response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": NEUTRAL_MESSAGE}
    assert services.email.outbox == []


@pytest.mark.parametrize(
    "payload,message",
    [({}, "Email is required"), ({"email": "nope"}, "Please enter a valid email address")],
)
def test_forgot_password_validation(client, payload, message):
    response = client.post("/api/auth/forgot-password", json=payload)
    assert response.status_code == 400
    assert response.json()["message"] == message


def test_reset_password_flow(client, services, alice):
    client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
    token = reset_token_from(services)

    response = client.get(f"/api/auth/validate-reset-token/{token}")
    assert response.status_code == 200
    assert response.json()["message"] == "Reset token is valid"

    response = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "brandnew1"})
    assert response.status_code == 200
    assert response.json()["message"] == "Password reset successfully"

    assert client.post("/api/auth/login", json={"email": "alice", "password": "brandnew1"}).status_code == 200
    assert client.post("/api/auth/login", json={"email": "alice", "password": "secret123"}).status_code == 401

    # Tokens are single use
    response = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "another1"})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired reset token"
    assert client.get(f"/api/auth/validate-reset-token/{token}").status_code == 400


def test_expired_reset_token(client, services, alice):
    client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
    token = reset_token_from(services)
    user = run(services.users.get(alice["user"]["id"]))
    user.reset_password_expiry = datetime.now(UTC) - timedelta(minutes=1)
    run(services.users.save(user))

    response = client.get(f"/api/auth/validate-reset-token/{token}")
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired reset token"


def test_second_request_replaces_token(client, services, alice):
    client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
    first = reset_token_from(services)
    client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
    second = reset_token_from(services)

    assert first != second
    assert client.get(f"/api/auth/validate-reset-token/{first}").status_code == 400
    assert client.get(f"/api/auth/validate-reset-token/{second}").status_code == 200


@pytest.mark.parametrize(
    "payload,message",
    [
        ({"token": "abc"}, "Reset token and new password are required"),
        ({"token": "abc", "newPassword": "12345"}, "Password must be at least 6 characters"),
        ({"token": "abc", "newPassword": "123456"}, "Invalid or expired reset token"),
    ],
)
def test_reset_password_validation(client, payload, message):
    response = client.post("/api/auth/reset-password", json=payload)
    assert response.status_code == 400
    assert response.json()["message"] == message


def test_email_failure_still_answers_neutrally(client, services, alice, monkeypatch):
    async def broken(**kwargs):
        raise OSError("smtp down")

    monkeypatch.setattr(services.email, "send_email", broken)
    response = client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
    assert response.status_code == 200
    assert response.json()["message"] == NEUTRAL_MESSAGE
