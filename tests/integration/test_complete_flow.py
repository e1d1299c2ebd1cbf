"""
End-to-end account lifecycle through AuthClient.
"""

import jwt
import pytest
from authcore.errors import ConflictError, EmailNotVerifiedError, TokenInvalidError


def test_complete_lifecycle(client, notifier):
    """Register, get blocked until verified, log in, refresh, log out."""
    # Register
    result = client.register("dana@example.com", "dana", "pa55-word")
    assert result.account_id

    # Not verified yet
    with pytest.raises(EmailNotVerifiedError):
        client.login("dana@example.com", "pa55-word")

    # Verify via the ticket from the message
    account = client.verify(notifier.last_ticket("dana@example.com"))
    assert account.is_verified

    # Email and username are now taken
    with pytest.raises(ConflictError):
        client.register("DANA@example.com", "dana2", "pa55-word")
    with pytest.raises(ConflictError):
        client.register("dana2@example.com", "dana", "pa55-word")

    # Login on two devices
    phone = client.login("dana", "pa55-word", user_agent="phone", ip_address="198.51.100.1")
    laptop = client.login("dana@example.com", "pa55-word", user_agent="laptop", ip_address="198.51.100.2")
    assert len(client.list_sessions(account.account_id)) == 2

    # Refresh rotates
    phone_tokens = client.refresh(phone.refresh_token, ip_address="198.51.100.1")
    with pytest.raises(TokenInvalidError):
        client.refresh(phone.refresh_token)

    # Access tokens verify offline with the exported key material
    claims = client.verify_access_token(phone_tokens.access_token)
    assert claims.account_id == account.account_id
    assert client.jwks()["keys"][0]["kid"] == jwt.get_unverified_header(phone_tokens.access_token)["kid"]

    # Log out the phone only
    assert client.logout(refresh_token=phone_tokens.refresh_token) == 1
    assert client.refresh(laptop.refresh_token).refresh_token

    # Log out everywhere
    assert client.logout(account_id=account.account_id) == 1
    assert client.list_sessions(account.account_id) == []


def test_independent_accounts(client, notifier):
    """Sessions of one account are unaffected by another's logout."""
    for name in ("erin", "finn"):
        client.register(f"{name}@example.com", name, "pa55-word")
        client.verify(notifier.last_ticket(f"{name}@example.com"))

    erin = client.login("erin", "pa55-word")
    finn = client.login("finn", "pa55-word")

    client.logout(account_id=erin.account["id"])

    with pytest.raises(TokenInvalidError):
        client.refresh(erin.refresh_token)
    assert client.refresh(finn.refresh_token).refresh_token
