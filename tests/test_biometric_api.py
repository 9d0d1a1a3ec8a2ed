"""
Biometric (WebAuthn) registration and sign-in through the API.

py_webauthn builds real options; the verification calls are patched.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from conftest import bearer, run
from vetora.modules.biometric import (
    RegistrationResult,
    VerificationErrorKind,
    WebAuthnVerificationError,
)

CREDENTIAL_ID = "Y3JlZGVudGlhbC0x"
BASE = "/api/auth/biometric"


def registration_result(**overrides):
    values = dict(
        credential_id=CREDENTIAL_ID,
        public_key="cHVibGljLWtleQ",
        sign_count=0,
        device_type="multiDevice",
        backed_up=True,
    )
    values.update(overrides)
    return RegistrationResult(**values)


def registration_response(credential_id=CREDENTIAL_ID):
    return {
        "id": credential_id,
        "rawId": credential_id,
        "type": "public-key",
        "response": {"clientDataJSON": "e30", "attestationObject": "o2M", "transports": ["internal", "hybrid"]},
    }


def assertion(credential_id=CREDENTIAL_ID):
    return {
        "id": credential_id,
        "rawId": credential_id,
        "type": "public-key",
        "response": {"clientDataJSON": "e30", "authenticatorData": "AAAA", "signature": "c2ln"},
    }


def register_credential(client, services, headers):
    options = client.post(f"{BASE}/generate-registration-options", headers=headers)
    assert options.status_code == 200, options.text
    with patch.object(
        services.biometric.verifier, "verify_registration", AsyncMock(return_value=registration_result())
    ):
        response = client.post(
            f"{BASE}/register",
            json={"registrationResponse": registration_response(), "challengeId": options.json()["challengeId"]},
            headers=headers,
        )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def registered(client, services, alice, alice_headers):
    register_credential(client, services, alice_headers)
    return alice


# Registration


def test_registration_options(client, services, alice, alice_headers):
    response = client.post(f"{BASE}/generate-registration-options", headers=alice_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["challengeId"]
    assert body["options"]["rp"] == {"id": "localhost", "name": "Vetora"}
    assert body["options"]["user"]["name"] == "alice@example.com"
    assert body["options"]["authenticatorSelection"]["authenticatorAttachment"] == "platform"
    assert body["timeout"] == 300000

    user = run(services.users.get(alice["user"]["id"]))
    assert user.biometric_credentials.challenge_id == body["challengeId"]
    assert user.biometric_credentials.challenge == body["options"]["challenge"]


def test_registration_requires_user(client):
    response = client.post(f"{BASE}/generate-registration-options")
    assert response.status_code == 401


def test_register_stores_credential(client, services, alice, alice_headers):
    body = register_credential(client, services, alice_headers)
    assert body["message"] == "Biometric credentials registered successfully"
    assert body["biometric"]["deviceType"] == "multiDevice"

    user = run(services.users.get(alice["user"]["id"]))
    creds = user.biometric_credentials
    assert creds.credential_id == CREDENTIAL_ID
    assert creds.transports == ["internal", "hybrid"]
    assert creds.backed_up is True
    assert creds.challenge is None and creds.challenge_id is None
    assert run(services.users.find_by_credential_id(CREDENTIAL_ID)).id == user.id


def test_second_registration_is_rejected(client, registered, alice_headers):
    response = client.post(f"{BASE}/generate-registration-options", headers=alice_headers)
    assert response.status_code == 400
    assert "already registered" in response.json()["message"]


def test_register_with_wrong_challenge_id(client, alice_headers):
    client.post(f"{BASE}/generate-registration-options", headers=alice_headers)
    response = client.post(
        f"{BASE}/register",
        json={
            "registrationResponse": registration_response(),
            "challengeId": "6f1c2c1e-8a3b-4c55-9d7e-2b9f0c6a1d23",
        },
        headers=alice_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired challenge"


def test_register_with_expired_challenge(client, services, alice, alice_headers):
    options = client.post(f"{BASE}/generate-registration-options", headers=alice_headers).json()
    user = run(services.users.get(alice["user"]["id"]))
    user.biometric_credentials.challenge_expiry = datetime.now(UTC) - timedelta(seconds=1)
    run(services.users.save(user))

    with patch.object(
        services.biometric.verifier, "verify_registration", AsyncMock(return_value=registration_result())
    ) as verify:
        response = client.post(
            f"{BASE}/register",
            json={"registrationResponse": registration_response(), "challengeId": options["challengeId"]},
            headers=alice_headers,
        )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired challenge"
    verify.assert_not_called()


def test_register_missing_fields(client, alice_headers):
    response = client.post(f"{BASE}/register", json={}, headers=alice_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Registration response is required"

    response = client.post(
        f"{BASE}/register", json={"registrationResponse": registration_response()}, headers=alice_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Challenge ID is required"


def test_register_rejects_non_uuid_challenge(client, alice_headers):
    response = client.post(
        f"{BASE}/register",
        json={"registrationResponse": registration_response(), "challengeId": "abc"},
        headers=alice_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid challenge ID format"


def test_register_rejects_bad_structure(client, alice_headers):
    response = client.post(
        f"{BASE}/register",
        json={"registrationResponse": {"id": "x"}, "challengeId": "6f1c2c1e-8a3b-4c55-9d7e-2b9f0c6a1d23"},
        headers=alice_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid registration response structure"


@pytest.mark.parametrize(
    "kind,message",
    [
        (VerificationErrorKind.MALFORMED, "Invalid biometric registration data"),
        (VerificationErrorKind.REJECTED, "Biometric registration verification failed"),
        (VerificationErrorKind.TIMEOUT, "Biometric registration timed out. Please try again."),
    ],
)
def test_register_verification_failure(client, services, alice_headers, kind, message):
    options = client.post(f"{BASE}/generate-registration-options", headers=alice_headers).json()
    with patch.object(
        services.biometric.verifier,
        "verify_registration",
        AsyncMock(side_effect=WebAuthnVerificationError(kind, "details")),
    ):
        response = client.post(
            f"{BASE}/register",
            json={"registrationResponse": registration_response(), "challengeId": options["challengeId"]},
            headers=alice_headers,
        )
    assert response.status_code == 400
    assert response.json()["message"] == message
    assert "details" not in response.json()


def test_registration_retry_after_failed_verification(client, services, alice_headers):
    options = client.post(f"{BASE}/generate-registration-options", headers=alice_headers).json()
    payload = {"registrationResponse": registration_response(), "challengeId": options["challengeId"]}
    failure = AsyncMock(side_effect=WebAuthnVerificationError(VerificationErrorKind.TIMEOUT))
    with patch.object(services.biometric.verifier, "verify_registration", failure):
        first = client.post(f"{BASE}/register", json=payload, headers=alice_headers)
    assert first.status_code == 400
    assert first.json()["message"] == "Biometric registration timed out. Please try again."

    with patch.object(
        services.biometric.verifier, "verify_registration", AsyncMock(return_value=registration_result())
    ):
        retry = client.post(f"{BASE}/register", json=payload, headers=alice_headers)
        assert retry.status_code == 200, retry.text
        again = client.post(f"{BASE}/register", json=payload, headers=alice_headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Invalid or expired challenge"


# Authentication


def test_authentication_options_for_known_user(client, services, registered):
    response = client.post(f"{BASE}/generate-authentication-options", json={"userEmail": "alice@example.com"})
    assert response.status_code == 200
    body = response.json()
    assert body["allowsResidentCredentials"] is False
    assert body["options"]["allowCredentials"][0]["id"] == CREDENTIAL_ID
    assert body["timeout"] == 120000

    user = run(services.users.get(registered["user"]["id"]))
    assert [c.id for c in user.biometric_credentials.auth_challenges] == [body["challengeId"]]


def test_authentication_options_are_capped(client, services, registered):
    ids = [
        client.post(f"{BASE}/generate-authentication-options", json={"credentialId": CREDENTIAL_ID}).json()[
            "challengeId"
        ]
        for _ in range(7)
    ]
    user = run(services.users.get(registered["user"]["id"]))
    assert [c.id for c in user.biometric_credentials.auth_challenges] == ids[-5:]


def test_authentication_options_without_user_are_pending(client, fake_redis):
    response = client.post(f"{BASE}/generate-authentication-options", json={"userEmail": "anonymous"})
    assert response.status_code == 200
    body = response.json()
    assert body["allowsResidentCredentials"] is True
    assert body["challengeId"]
    assert fake_redis.keys_matching(f"biometric:pending:{body['challengeId']}")


def test_authenticate_success(client, services, registered):
    options = client.post(f"{BASE}/generate-authentication-options", json={"userEmail": "alice@example.com"}).json()
    with patch.object(services.biometric.verifier, "verify_authentication", AsyncMock(return_value=5)):
        response = client.post(
            f"{BASE}/authenticate",
            json={"authenticationResponse": assertion(), "challengeId": options["challengeId"]},
            headers={"User-Agent": "Mozilla/5.0 Test", "X-Forwarded-For": "203.0.113.7"},
        )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["message"] == "Biometric authentication successful"
    assert body["authMethod"] == "biometric"
    assert body["accessToken"] and body["refreshToken"]
    assert "biometricCredentials" not in body["user"]
    assert "passwordHash" not in body["user"]

    me = client.get("/api/auth/me", headers=bearer(body["accessToken"])).json()
    assert me["user"]["id"] == registered["user"]["id"]
    assert me["user"]["isOnline"] is True

    user = run(services.users.get(registered["user"]["id"]))
    assert user.biometric_credentials.counter == 5
    assert user.biometric_credentials.last_used_at is not None
    assert user.biometric_credentials.auth_challenges == []
    device = user.settings.security.recent_devices[0]
    assert device.user_agent == "Mozilla/5.0 Test"
    # Forwarded headers are ignored without a trusted proxy; the test peer is not an IP
    assert device.ip_address is None


def test_authenticate_replay_is_rejected(client, services, registered):
    options = client.post(f"{BASE}/generate-authentication-options", json={"userEmail": "alice@example.com"}).json()
    payload = {"authenticationResponse": assertion(), "challengeId": options["challengeId"]}
    with patch.object(services.biometric.verifier, "verify_authentication", AsyncMock(return_value=1)):
        assert client.post(f"{BASE}/authenticate", json=payload).status_code == 200
        replay = client.post(f"{BASE}/authenticate", json=payload)
    assert replay.status_code == 400
    assert replay.json()["message"] == "Invalid or expired authentication challenge"



def test_authenticate_retry_after_failed_verification(client, services, registered):
    options = client.post(f"{BASE}/generate-authentication-options", json={"userEmail": "alice@example.com"}).json()
    payload = {"authenticationResponse": assertion(), "challengeId": options["challengeId"]}
    failure = AsyncMock(side_effect=WebAuthnVerificationError(VerificationErrorKind.TIMEOUT))
    with patch.object(services.biometric.verifier, "verify_authentication", failure):
        first = client.post(f"{BASE}/authenticate", json=payload)
    assert first.status_code == 401
    assert first.json()["message"] == "Biometric authentication timed out. Please try again."

    user = run(services.users.get(registered["user"]["id"]))
    assert [c.id for c in user.biometric_credentials.auth_challenges] == [options["challengeId"]]

    with patch.object(services.biometric.verifier, "verify_authentication", AsyncMock(return_value=2)):
        retry = client.post(f"{BASE}/authenticate", json=payload)
        assert retry.status_code == 200, retry.text
        replay = client.post(f"{BASE}/authenticate", json=payload)
    assert replay.status_code == 400


def test_authenticate_with_pending_challenge(client, services, fake_redis, registered):
    options = client.post(f"{BASE}/generate-authentication-options", json={}).json()
    with patch.object(services.biometric.verifier, "verify_authentication", AsyncMock(return_value=1)):
        response = client.post(
            f"{BASE}/authenticate",
            json={"authenticationResponse": assertion(), "challengeId": options["challengeId"]},
        )
    assert response.status_code == 200
    assert not fake_redis.keys_matching(f"biometric:pending:{options['challengeId']}")


def test_authenticate_expired_challenge(client, services, registered):
    options = client.post(f"{BASE}/generate-authentication-options", json={"userEmail": "alice@example.com"}).json()
    user = run(services.users.get(registered["user"]["id"]))
    user.biometric_credentials.auth_challenges[0].expiry = datetime.now(UTC) - timedelta(seconds=1)
    run(services.users.save(user))

    with patch.object(services.biometric.verifier, "verify_authentication", AsyncMock(return_value=1)) as verify:
        response = client.post(
            f"{BASE}/authenticate",
            json={"authenticationResponse": assertion(), "challengeId": options["challengeId"]},
        )
    assert response.status_code == 400
    verify.assert_not_called()


def test_authenticate_without_challenge_id_and_no_legacy_challenge(client, registered):
    response = client.post(f"{BASE}/authenticate", json={"authenticationResponse": assertion()})
    assert response.status_code == 400
    assert response.json()["message"].startswith("Missing authentication challenge")


def test_authenticate_unknown_credential(client, registered):
    response = client.post(
        f"{BASE}/authenticate",
        json={"authenticationResponse": assertion("dW5rbm93bg"), "challengeId": "6f1c2c1e-8a3b-4c55-9d7e-2b9f0c6a1d23"},
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid biometric credentials"


def test_authenticate_verification_failure(client, services, registered):
    options = client.post(f"{BASE}/generate-authentication-options", json={"userEmail": "alice@example.com"}).json()
    failure = AsyncMock(side_effect=WebAuthnVerificationError(VerificationErrorKind.REJECTED, "bad signature"))
    with patch.object(services.biometric.verifier, "verify_authentication", failure):
        response = client.post(
            f"{BASE}/authenticate",
            json={"authenticationResponse": assertion(), "challengeId": options["challengeId"]},
        )
    assert response.status_code == 401
    assert response.json()["message"] == "Biometric authentication verification failed"


def test_authenticate_deactivated_account(client, services, registered):
    options = client.post(f"{BASE}/generate-authentication-options", json={"userEmail": "alice@example.com"}).json()
    user = run(services.users.get(registered["user"]["id"]))
    user.is_active = False
    run(services.users.save(user))

    response = client.post(
        f"{BASE}/authenticate",
        json={"authenticationResponse": assertion(), "challengeId": options["challengeId"]},
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Account is deactivated"


# Management


def test_status_and_remove(client, services, registered, alice_headers):
    status = client.get(f"{BASE}/status", headers=alice_headers).json()
    assert status["biometric"]["registered"] is True
    assert status["biometric"]["deviceType"] == "multiDevice"

    response = client.delete(f"{BASE}/remove", headers=alice_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Biometric credentials removed successfully"

    status = client.get(f"{BASE}/status", headers=alice_headers).json()
    assert status["biometric"] == {
        "registered": False,
        "deviceType": None,
        "registeredAt": None,
        "lastUsedAt": None,
        "backedUp": None,
    }
    assert run(services.users.find_by_credential_id(CREDENTIAL_ID)) is None

    response = client.delete(f"{BASE}/remove", headers=alice_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "No biometric credentials found for this user"

    # Can register again after removal
    register_credential(client, services, alice_headers)
