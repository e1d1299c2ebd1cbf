"""
Redis Credential Store - Redis-backed account and session storage.
"""

import json
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from authcore.domain.account import Account, normalize_email
from authcore.domain.session import Session
from authcore.errors import ConcurrentUpdateError, StorageConflictError
from authcore.ports.credential_store_port import CredentialStorePort


class RedisCredentialStore(CredentialStorePort):
    """
    Redis-backed credential storage.

    Layout (all keys under ``prefix``):
    - ``account:<id>``        account JSON (without sessions)
    - ``email:<email>``       unique index -> account id (SET NX)
    - ``username:<name>``     unique index -> account id (SET NX)
    - ``ticket:<value>``      pending verification ticket -> account id
    - ``sessions:<id>``       hash of token_hash -> session JSON
    - ``session:<hash>``      reverse index token_hash -> account id

    Session sets and account documents are changed inside WATCH/MULTI
    transactions, so concurrent rotations of the same token cannot both win.
    """

    def __init__(self, redis_client=None, prefix: str = "authcore:", redis_url: str = "redis://localhost:6379/0"):
        """
        Initialize Redis credential store.

        Args:
            redis_client: Redis client instance created with decode_responses=True
            prefix: Key prefix
            redis_url: Used to build a client when redis_client is not given
        """
        self._redis = redis_client
        self._prefix = prefix
        self._redis_url = redis_url

    def _get_redis(self):
        """Lazy load Redis client."""
        if self._redis is None:
            try:
                import redis
            except ImportError:
                raise ImportError("redis package required: pip install redis")
            self._redis = redis.Redis.from_url(self._redis_url, decode_responses=True)
        return self._redis

    def _account_key(self, account_id: str) -> str:
        return f"{self._prefix}account:{account_id}"

    def _email_key(self, email: str) -> str:
        return f"{self._prefix}email:{normalize_email(email)}"

    def _username_key(self, username: str) -> str:
        return f"{self._prefix}username:{username}"

    def _ticket_key(self, ticket_value: str) -> str:
        return f"{self._prefix}ticket:{ticket_value}"

    def _sessions_key(self, account_id: str) -> str:
        return f"{self._prefix}sessions:{account_id}"

    def _session_key(self, token_hash: str) -> str:
        return f"{self._prefix}session:{token_hash}"

    @staticmethod
    def _parse_sessions(stored: Dict[str, str]) -> List[Session]:
        sessions = [Session.from_dict(json.loads(raw)) for raw in stored.values()]
        return sorted(sessions, key=lambda s: s.created_at)

    # Accounts

    def _load(self, account_id: Optional[str]) -> Optional[Account]:
        if not account_id:
            return None
        redis = self._get_redis()
        raw = redis.get(self._account_key(account_id))
        if raw is None:
            return None
        account = Account.from_dict(json.loads(raw))
        account.sessions = self._parse_sessions(redis.hgetall(self._sessions_key(account_id)))
        return account

    def get(self, account_id: str) -> Optional[Account]:
        return self._load(account_id)

    def find_by_email(self, email: str) -> Optional[Account]:
        return self._load(self._get_redis().get(self._email_key(email)))

    def find_by_username(self, username: str) -> Optional[Account]:
        return self._load(self._get_redis().get(self._username_key(username)))

    def find_by_verification_ticket(self, ticket_value: str) -> Optional[Account]:
        return self._load(self._get_redis().get(self._ticket_key(ticket_value)))

    def create_account(self, account: Account) -> Account:
        redis = self._get_redis()
        account_id = account.account_id
        email_key = self._email_key(account.email)

        # The NX writes are the unique constraint; whoever sets the key first owns it.
        if not redis.set(email_key, account_id, nx=True):
            raise StorageConflictError(field="email")
        if not redis.set(self._username_key(account.username), account_id, nx=True):
            redis.delete(email_key)
            raise StorageConflictError(field="username")

        pipe = redis.pipeline()
        pipe.set(self._account_key(account_id), json.dumps(account.to_dict()))
        if account.verification:
            pipe.set(self._ticket_key(account.verification.value), account_id)
        pipe.execute()

        return self._load(account_id)

    def update_account(self, account: Account) -> Account:
        redis = self._get_redis()
        key = self._account_key(account.account_id)

        def _update(pipe):
            raw = pipe.get(key)
            if raw is None:
                raise ConcurrentUpdateError(account.account_id)
            stored = json.loads(raw)
            if stored.get("version") != account.version:
                raise ConcurrentUpdateError(account.account_id)

            data = account.to_dict()
            data["version"] = account.version + 1
            data["updated_at"] = datetime.now(timezone.utc).isoformat()

            pipe.multi()
            if stored.get("verification_token"):
                pipe.delete(self._ticket_key(stored["verification_token"]))
            pipe.set(key, json.dumps(data))
            if account.verification:
                pipe.set(self._ticket_key(account.verification.value), account.account_id)

        redis.transaction(_update, key)
        return self._load(account.account_id)

    def delete_account(self, account_id: str, expected_version: Optional[int] = None) -> bool:
        redis = self._get_redis()
        key = self._account_key(account_id)
        skey = self._sessions_key(account_id)

        def _delete(pipe):
            raw = pipe.get(key)
            if raw is None:
                return False
            data = json.loads(raw)
            if expected_version is not None and data.get("version") != expected_version:
                raise ConcurrentUpdateError(account_id)

            keys = [key, skey]
            keys.extend(self._session_key(h) for h in pipe.hkeys(skey))
            if data.get("verification_token"):
                keys.append(self._ticket_key(data["verification_token"]))
            for index_key in (self._email_key(data["email"]), self._username_key(data["username"])):
                if pipe.get(index_key) == account_id:
                    keys.append(index_key)

            pipe.multi()
            pipe.delete(*keys)
            return True

        return redis.transaction(_delete, key, skey, value_from_callable=True)

    # Sessions

    def add_session(
        self,
        account_id: str,
        session: Session,
        max_sessions: int,
        now: Optional[datetime] = None,
    ) -> List[Session]:
        now = now or datetime.now(timezone.utc)
        redis = self._get_redis()
        skey = self._sessions_key(account_id)

        def _add(pipe):
            if not pipe.exists(self._account_key(account_id)):
                raise KeyError(account_id)

            live, dropped = [], []
            for existing in self._parse_sessions(pipe.hgetall(skey)):
                (live if existing.is_valid(now) else dropped).append(existing)

            evicted = []
            while live and len(live) >= max_sessions:
                evicted.append(live.pop(0))

            pipe.multi()
            for stale in dropped + evicted:
                pipe.hdel(skey, stale.token_hash)
                pipe.delete(self._session_key(stale.token_hash))
            pipe.hset(skey, session.token_hash, json.dumps(session.to_dict()))
            pipe.set(self._session_key(session.token_hash), account_id)
            return evicted

        return redis.transaction(_add, skey, value_from_callable=True)

    def find_session(self, token_hash: str) -> Optional[Tuple[Account, Session]]:
        redis = self._get_redis()
        account_id = redis.get(self._session_key(token_hash))
        if not account_id:
            return None
        raw = redis.hget(self._sessions_key(account_id), token_hash)
        if raw is None:
            return None
        account = self._load(account_id)
        if account is None:
            return None
        return account, Session.from_dict(json.loads(raw))

    def replace_session(self, account_id: str, old_hash: str, new_session: Session) -> bool:
        redis = self._get_redis()
        skey = self._sessions_key(account_id)

        def _replace(pipe):
            if not pipe.hexists(skey, old_hash):
                return False
            pipe.multi()
            pipe.hdel(skey, old_hash)
            pipe.delete(self._session_key(old_hash))
            pipe.hset(skey, new_session.token_hash, json.dumps(new_session.to_dict()))
            pipe.set(self._session_key(new_session.token_hash), account_id)
            return True

        return redis.transaction(_replace, skey, value_from_callable=True)

    def remove_session(self, token_hash: str) -> bool:
        redis = self._get_redis()
        account_id = redis.get(self._session_key(token_hash))
        if not account_id:
            return False
        skey = self._sessions_key(account_id)

        def _remove(pipe):
            if not pipe.hexists(skey, token_hash):
                return False
            pipe.multi()
            pipe.hdel(skey, token_hash)
            pipe.delete(self._session_key(token_hash))
            return True

        return redis.transaction(_remove, skey, value_from_callable=True)

    def remove_sessions(self, account_id: str) -> int:
        redis = self._get_redis()
        skey = self._sessions_key(account_id)

        def _clear(pipe):
            hashes = pipe.hkeys(skey)
            pipe.multi()
            for token_hash in hashes:
                pipe.delete(self._session_key(token_hash))
            pipe.delete(skey)
            return len(hashes)

        return redis.transaction(_clear, skey, value_from_callable=True)

    def purge_expired_sessions(self, account_id: str, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        redis = self._get_redis()
        skey = self._sessions_key(account_id)

        def _purge(pipe):
            expired = [s for s in self._parse_sessions(pipe.hgetall(skey)) if s.is_expired(now)]
            pipe.multi()
            for stale in expired:
                pipe.hdel(skey, stale.token_hash)
                pipe.delete(self._session_key(stale.token_hash))
            return len(expired)

        return redis.transaction(_purge, skey, value_from_callable=True)

    def list_sessions(self, account_id: str) -> List[Session]:
        return self._parse_sessions(self._get_redis().hgetall(self._sessions_key(account_id)))
