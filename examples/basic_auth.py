"""
Basic Authentication Example - Register, verify, log in, refresh, log out.

Runs entirely in memory with a throwaway key pair.
"""

from authcore import AuthClient, AuthSettings, KeyMaterial
from authcore.adapters import LoggingNotifier
from authcore.errors import EmailNotVerifiedError, TokenInvalidError


def main():
    # Initialize auth client
    notifier = LoggingNotifier()
    client = AuthClient.from_settings(
        AuthSettings(bcrypt_rounds=4),
        notifier=notifier,
        keys=KeyMaterial.generate(),
    )

    # Register
    result = client.register("alice@example.com", "alice", "correct-horse")
    print(f"Registered: {result.account_id}")

    try:
        client.login("alice", "correct-horse")
    except EmailNotVerifiedError as e:
        print(f"Login blocked: {e.message}")

    # Verify with the ticket that would have been emailed
    _, _, data = notifier.last("alice@example.com")
    print(f"Verification link: {data['verification_url']}")
    account = client.verify(data["verification_token"])
    print(f"Verified: {account.is_verified}")

    # Login
    login = client.login("alice@example.com", "correct-horse", user_agent="example", ip_address="127.0.0.1")
    print(f"\nLogin successful!")
    print(f"Access token: {login.access_token[:50]}...")
    print(f"Expires in: {login.expires_in}s")

    claims = client.verify_access_token(login.access_token)
    print(f"Token verified: {claims.username} (expires {claims.expires_at.isoformat()})")

    # Refresh
    tokens = client.refresh(login.refresh_token)
    print(f"\nRefreshed; sessions: {len(client.list_sessions(account.account_id))}")

    try:
        client.refresh(login.refresh_token)
    except TokenInvalidError:
        print("Old refresh token rejected (rotated)")

    # Logout
    removed = client.logout(refresh_token=tokens.refresh_token)
    print(f"\nLogged out ({removed} session removed)")


if __name__ == "__main__":
    main()
