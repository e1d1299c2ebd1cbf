"""
Integration tests for the Redis credential store.

Requires Redis running on localhost:6379
Skip tests if Redis is not available.
"""

import threading

import pytest
from authcore import AuthClient
from authcore.adapters.redis_store import RedisCredentialStore
from authcore.domain.account import Account
from authcore.domain.session import Session, mint_refresh_token
from authcore.errors import ConcurrentUpdateError, StorageConflictError

redis = pytest.importorskip("redis")

PREFIX = "test:authcore:"
HASH = "$2b$04$notarealhashbutnonempty"


@pytest.fixture
def redis_store():
    """Create Redis credential store (skip if Redis unavailable)."""
    r = redis.Redis(host="localhost", port=6379, decode_responses=True)
    try:
        r.ping()
    except redis.exceptions.ConnectionError:
        pytest.skip("Redis not available")

    yield RedisCredentialStore(redis_client=r, prefix=PREFIX)

    # Cleanup: delete all test keys
    for key in r.scan_iter(f"{PREFIX}*"):
        r.delete(key)


def _account(email="ann@example.com", username="ann"):
    return Account.create(email=email, username=username, password_hash=HASH)


def _session():
    return Session.create(mint_refresh_token()[1], ttl=3600)


class TestRedisAccounts:
    """Account documents and unique indexes in Redis."""

    def test_create_and_find(self, redis_store):
        created = redis_store.create_account(_account())

        assert redis_store.get(created.account_id).email == "ann@example.com"
        assert redis_store.find_by_email("Ann@Example.com").account_id == created.account_id
        assert redis_store.find_by_username("ann").account_id == created.account_id
        assert redis_store.find_by_verification_ticket(created.verification.value).account_id == created.account_id

    def test_unique_indexes(self, redis_store):
        redis_store.create_account(_account())

        with pytest.raises(StorageConflictError) as exc:
            redis_store.create_account(_account(username="other"))
        assert exc.value.field == "email"

        with pytest.raises(StorageConflictError) as exc:
            redis_store.create_account(_account(email="other@example.com"))
        assert exc.value.field == "username"

        # The failed username write must not leave its email claimed
        assert redis_store.find_by_email("other@example.com") is None
        redis_store.create_account(_account(email="other@example.com", username="other"))

    def test_concurrent_creates_single_winner(self, redis_store):
        winners, conflicts = [], []
        barrier = threading.Barrier(5)

        def create():
            barrier.wait()
            try:
                winners.append(redis_store.create_account(_account()))
            except StorageConflictError as e:
                conflicts.append(e)

        threads = [threading.Thread(target=create) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(winners) == 1
        assert len(conflicts) == 4

    def test_version_check(self, redis_store):
        created = redis_store.create_account(_account())
        ticket = created.verification.value
        stale = redis_store.get(created.account_id)

        created.mark_verified()
        assert redis_store.update_account(created).version == 2

        stale.reissue_verification()
        with pytest.raises(ConcurrentUpdateError):
            redis_store.update_account(stale)

        assert redis_store.find_by_verification_ticket(ticket) is None
        assert redis_store.get(created.account_id).is_verified

    def test_delete(self, redis_store):
        created = redis_store.create_account(_account())
        session = _session()
        redis_store.add_session(created.account_id, session, max_sessions=5)

        assert redis_store.delete_account(created.account_id) is True
        assert redis_store.find_by_email("ann@example.com") is None
        assert redis_store.find_session(session.token_hash) is None
        assert redis_store.delete_account(created.account_id) is False

    def test_delete_checks_version(self, redis_store):
        created = redis_store.create_account(_account())
        created.reissue_verification()
        redis_store.update_account(created)

        with pytest.raises(ConcurrentUpdateError):
            redis_store.delete_account(created.account_id, expected_version=1)
        assert redis_store.find_by_email("ann@example.com") is not None

        assert redis_store.delete_account(created.account_id, expected_version=2) is True
        assert redis_store.find_by_username("ann") is None


class TestRedisSessions:
    """Session sets mutated inside WATCH/MULTI transactions."""

    def test_cap_and_rotation(self, redis_store):
        account_id = redis_store.create_account(_account()).account_id
        sessions = [_session() for _ in range(3)]
        for session in sessions:
            redis_store.add_session(account_id, session, max_sessions=3)

        evicted = redis_store.add_session(account_id, _session(), max_sessions=3)
        assert [s.token_hash for s in evicted] == [sessions[0].token_hash]
        assert len(redis_store.list_sessions(account_id)) == 3

        new = _session()
        assert redis_store.replace_session(account_id, sessions[1].token_hash, new) is True
        assert redis_store.replace_session(account_id, sessions[1].token_hash, _session()) is False

        account, found = redis_store.find_session(new.token_hash)
        assert account.account_id == account_id
        assert found == new

    def test_remove(self, redis_store):
        account_id = redis_store.create_account(_account()).account_id
        first, second = _session(), _session()
        redis_store.add_session(account_id, first, max_sessions=5)
        redis_store.add_session(account_id, second, max_sessions=5)

        assert redis_store.remove_session(first.token_hash) is True
        assert redis_store.remove_session(first.token_hash) is False
        assert redis_store.remove_sessions(account_id) == 1
        assert redis_store.list_sessions(account_id) == []

    def test_concurrent_replace_single_winner(self, redis_store):
        account_id = redis_store.create_account(_account()).account_id
        old = _session()
        redis_store.add_session(account_id, old, max_sessions=5)
        results = []
        barrier = threading.Barrier(5)

        def replace():
            barrier.wait()
            results.append(redis_store.replace_session(account_id, old.token_hash, _session()))

        threads = [threading.Thread(target=replace) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert len(redis_store.list_sessions(account_id)) == 1


def test_full_flow_on_redis(redis_store, tokens, notifier, settings, hasher):
    client = AuthClient(redis_store, tokens, notifier, settings=settings, hasher=hasher)
    client.register("ann@example.com", "ann", "s3cret-pass")
    client.verify(notifier.last_ticket())

    login = client.login("ann", "s3cret-pass")
    rotated = client.refresh(login.refresh_token)

    assert client.verify_access_token(rotated.access_token).username == "ann"
    assert client.logout(refresh_token=rotated.refresh_token) == 1
