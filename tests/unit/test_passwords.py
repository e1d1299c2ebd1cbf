"""
Unit tests for password hashing.
"""

from authcore.services.passwords import PasswordHasher


def test_hash_and_verify(hasher):
    password_hash = hasher.hash("s3cret-pass")

    assert password_hash != "s3cret-pass"
    assert password_hash.startswith("$2")
    assert hasher.verify("s3cret-pass", password_hash)
    assert not hasher.verify("wrong-pass", password_hash)


def test_hashes_are_salted(hasher):
    assert hasher.hash("same") != hasher.hash("same")


def test_corrupt_hash_never_matches(hasher):
    assert hasher.verify("anything", "not-a-bcrypt-hash") is False


def test_dummy_verify_is_always_false(hasher):
    assert hasher.dummy_verify("") is False
    assert hasher.dummy_verify("s3cret-pass") is False


def test_long_passwords_truncated(hasher):
    """bcrypt only looks at 72 bytes; longer input must not raise."""
    long_password = "x" * 100
    password_hash = hasher.hash(long_password)

    assert hasher.verify(long_password, password_hash)
    assert hasher.verify("x" * 72, password_hash)


def test_rounds():
    assert PasswordHasher(rounds=5).hash("pw").startswith("$2b$05$")
