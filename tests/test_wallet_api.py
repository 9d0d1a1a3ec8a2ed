"""
Wallet sign-in, linking and unlinking through the API.

Signature recovery is patched; everything else runs for real.
"""

from unittest.mock import patch

import pytest

ADDRESS = "0x52908400098527886E0F7030069857D2E4169EE7"
OTHER_ADDRESS = "0x8617E340B3D01FA5F11F306F4090FD50E238070D"
MESSAGE = "Sign in to Vetora\nNonce: 8f2d"


def wallet_body(address=ADDRESS, signature="0xsigned", message=MESSAGE):
    return {"walletAddress": address, "signature": signature, "message": message}


def signed_by(address):
    return lambda message, signature: address


@pytest.fixture
def recover(services):
    with patch.object(services.wallet, "recover", side_effect=signed_by(ADDRESS)) as mock:
        yield mock


def test_wallet_login_creates_user(client, recover):
    response = client.post("/api/auth/wallet", json=wallet_body())
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["accessToken"] and data["refreshToken"]
    assert data["user"]["walletAddress"] == ADDRESS
    assert data["user"]["username"] == "user_169ee7"
    assert data["user"]["displayName"] == "User 169EE7"
    recover.assert_called_once_with(MESSAGE, "0xsigned")


def test_wallet_login_reuses_account(client, recover):
    first = client.post("/api/auth/wallet", json=wallet_body()).json()
    second = client.post("/api/auth/wallet", json=wallet_body()).json()
    assert first["data"]["user"]["id"] == second["data"]["user"]["id"]


def test_wallet_login_address_is_case_insensitive(client, recover):
    first = client.post("/api/auth/wallet", json=wallet_body()).json()
    with patch.object(client.app.state.services.wallet, "recover", return_value=ADDRESS.lower()):
        second = client.post("/api/auth/wallet", json=wallet_body(address=ADDRESS.lower())).json()
    assert first["data"]["user"]["id"] == second["data"]["user"]["id"]


@pytest.mark.parametrize("missing", ["walletAddress", "signature", "message"])
def test_wallet_login_requires_all_fields(client, missing):
    body = wallet_body()
    del body[missing]
    response = client.post("/api/auth/wallet", json=body)
    assert response.status_code == 400
    assert response.json()["message"] == "Wallet address, signature, and message are required"


def test_wallet_login_wrong_signer(client, services):
    with patch.object(services.wallet, "recover", return_value=OTHER_ADDRESS):
        response = client.post("/api/auth/wallet", json=wallet_body())
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid signature"


def test_wallet_login_unparseable_signature(client, services):
    with patch.object(services.wallet, "recover", side_effect=ValueError("bad signature length")):
        response = client.post("/api/auth/wallet", json=wallet_body())
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid signature format"


def test_link_and_unlink_wallet(client, recover, alice, alice_headers):
    response = client.post("/api/auth/wallet/link", json=wallet_body(), headers=alice_headers)
    assert response.status_code == 200, response.text
    assert response.json()["message"] == "Wallet address associated successfully"
    assert response.json()["user"]["walletAddress"] == ADDRESS

    # The linked wallet now signs in as alice
    login = client.post("/api/auth/wallet", json=wallet_body()).json()
    assert login["data"]["user"]["id"] == alice["user"]["id"]

    response = client.delete("/api/auth/wallet", headers=alice_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Wallet disconnected successfully"
    assert response.json()["user"]["walletAddress"] is None

    response = client.delete("/api/auth/wallet", headers=alice_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "No wallet address associated with this account"


def test_link_requires_verified_signature(client, services, alice_headers):
    with patch.object(services.wallet, "recover", return_value=OTHER_ADDRESS):
        response = client.post("/api/auth/wallet/link", json=wallet_body(), headers=alice_headers)
    assert response.status_code == 401


def test_link_rejects_bad_address(client, alice_headers):
    response = client.post("/api/auth/wallet/link", json=wallet_body(address="0x123"), headers=alice_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid wallet address format"


def test_link_rejects_wallet_owned_by_someone_else(client, recover, alice_headers):
    client.post("/api/auth/wallet", json=wallet_body())
    response = client.post("/api/auth/wallet/link", json=wallet_body(), headers=alice_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "This wallet address is already associated with another account"


def test_link_requires_user(client):
    response = client.post("/api/auth/wallet/link", json=wallet_body())
    assert response.status_code == 401


def test_wallet_account_has_no_password(client, recover):
    client.post("/api/auth/wallet", json=wallet_body())
    response = client.post("/api/auth/login", json={"email": "user_169ee7", "password": "anything"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"
