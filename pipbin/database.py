"""
Database layer for Redis operations, with an in-memory store of the same
shape for development and testing (selected with a ``memory://`` URL).
Handles user records and paste records.
"""
import copy
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from pipbin.errors import DuplicateUser, PasteNotFound, StorageFailure
from pipbin.models import Paste, SshKey, User

logger = logging.getLogger(__name__)

USER_ID_COUNTER = "users:next_id"
PASTE_ID_COUNTER = "pastes:next_id"


def user_key(name: str) -> str:
    return f"user:{name}"


def paste_key(paste_id: int) -> str:
    return f"paste:{paste_id}"


class InMemoryPipeline:
    """Transaction pipeline for InMemoryStore: WATCH, then queued commands applied all-or-nothing."""

    def __init__(self, store: "InMemoryStore"):
        self.store = store
        self.watched: Dict[str, Any] = {}
        self.queue: List[Tuple[str, tuple, dict]] = []

    async def __aenter__(self) -> "InMemoryPipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.watched.clear()
        self.queue.clear()

    async def watch(self, *keys: str) -> None:
        self.watched.update({key: copy.deepcopy(self.store.store.get(key)) for key in keys})

    async def hexists(self, key: str, field: str) -> bool:
        return await self.store.hexists(key, field)

    def multi(self) -> None:
        self.queue.clear()

    def hset(self, key: str, field: Optional[str] = None, value: Any = None,
             mapping: Optional[Dict[str, Any]] = None) -> "InMemoryPipeline":
        self.queue.append(("hset", (key, field, value), {"mapping": mapping}))
        return self

    async def execute(self) -> List[Any]:
        """Run the queued commands; on any failure the store is left untouched."""
        for key, seen in self.watched.items():
            if self.store.store.get(key) != seen:
                raise WatchError(f"watched key {key} changed")

        snapshot = copy.deepcopy(self.store.store)
        results = []
        try:
            for name, args, kwargs in self.queue:
                results.append(await getattr(self.store, name)(*args, **kwargs))
        except Exception:
            self.store.store = snapshot
            raise
        finally:
            self.queue.clear()
        return results


class InMemoryStore:
    """Simple in-memory store for development/testing (when Redis is not wanted)."""

    def __init__(self):
        self.store: Dict[str, Any] = {}

    async def hset(self, key: str, field: Optional[str] = None, value: Any = None,
                   mapping: Optional[Dict[str, Any]] = None) -> int:
        """Store hash fields."""
        bucket = self.store.setdefault(key, {})
        updates = dict(mapping or {})
        if field is not None:
            updates[field] = value
        added = len([f for f in updates if f not in bucket])
        bucket.update({f: str(v) for f, v in updates.items()})
        return added

    async def hexists(self, key: str, field: str) -> bool:
        """Check whether a hash field exists."""
        return field in self.store.get(key, {})

    def pipeline(self, transaction: bool = True) -> InMemoryPipeline:
        return InMemoryPipeline(self)

    async def hgetall(self, key: str) -> Dict[str, str]:
        """Retrieve hash data."""
        return dict(self.store.get(key, {}))

    async def incr(self, key: str) -> int:
        """Increment a counter and return the new value."""
        current = int(self.store.get(key, 0)) + 1
        self.store[key] = current
        return current

    async def ping(self) -> bool:
        """Health check."""
        return True

    async def aclose(self) -> None:
        return None


class PasteDatabase:
    """Wrapper for Redis operations on users and pastes."""

    def __init__(self, redis):
        self.redis = redis
        self.using_memory = isinstance(redis, InMemoryStore)

    @classmethod
    async def connect(cls, url: str) -> "PasteDatabase":
        """
        Open the storage backend named by ``url`` and ping it.

        Raises:
            StorageFailure: If the backend cannot be reached
        """
        if url.startswith("memory://"):
            logger.warning("Using in-memory storage. Data will NOT persist across restarts.")
            return cls(InMemoryStore())

        logger.info(f"Attempting to connect to Redis: {url[:30]}...")
        redis = Redis.from_url(url, decode_responses=True)
        try:
            await redis.ping()
        except (RedisError, OSError) as e:
            await redis.aclose()
            raise StorageFailure(f"could not connect to the database: {type(e).__name__}: {e}") from e
        logger.info("✓ Redis connected successfully")
        return cls(redis)

    async def close(self) -> None:
        await self.redis.aclose()

    async def is_healthy(self) -> bool:
        """Check if database connection is alive."""
        try:
            await self.redis.ping()
            return True
        except (RedisError, OSError) as e:
            logger.error(f"Health check failed: {e}")
        return False

    async def get_user(self, name: str) -> Optional[User]:
        """
        Fetch a user by name.

        Returns:
            The user, or None if no user has that name

        Raises:
            StorageFailure: If the lookup fails
        """
        try:
            data = await self.redis.hgetall(user_key(name))
            if not data:
                return None
            if "id" not in data:
                logger.warning(f"Ignoring incomplete record for user {name}")
                return None
            return User(
                id=int(data["id"]),
                name=data["name"],
                ssh_keys=json.loads(data.get("ssh_keys") or "[]"),
                pastes=json.loads(data.get("pastes") or "[]"),
            )
        except (RedisError, OSError, KeyError, ValueError, ValidationError) as e:
            logger.error(f"Error fetching user {name}: {e}")
            raise StorageFailure(
                f"error fetching user {name}: {e}",
                message="X there was an error finding you in the db",
            ) from e

    async def create_user(self, name: str, key: SshKey) -> User:
        """
        Insert a new user whose only credential is ``key``.

        The whole record is written in one MULTI/EXEC guarded by WATCH, so a
        failed insert leaves nothing behind. A record counts as existing once
        it has an ``id``.

        Raises:
            DuplicateUser: If another session registered the name first
            StorageFailure: If the write fails
        """
        message = "X there was an error creating you in the db"
        key_name = user_key(name)
        try:
            user = User(id=await self.redis.incr(USER_ID_COUNTER), name=name, ssh_keys=[key])
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key_name)
                if await pipe.hexists(key_name, "id"):
                    raise DuplicateUser(f"user {name} already exists", message=message)
                pipe.multi()
                pipe.hset(key_name, mapping={
                    "id": user.id,
                    "name": user.name,
                    "ssh_keys": json.dumps([k.model_dump() for k in user.ssh_keys]),
                    "pastes": json.dumps(user.pastes),
                })
                await pipe.execute()
        except WatchError as e:
            raise DuplicateUser(f"user {name} was registered concurrently", message=message) from e
        except (RedisError, OSError) as e:
            logger.error(f"Error creating user {name}: {e}")
            raise StorageFailure(f"error creating user {name}: {e}", message=message) from e

        return user

    async def add_user_paste(self, user: User, reference: str) -> None:
        """
        Append a paste reference to the user's paste list and persist it.

        Raises:
            StorageFailure: If the update fails
        """
        pastes = user.pastes + [reference]
        try:
            await self.redis.hset(user_key(user.name), "pastes", json.dumps(pastes))
        except (RedisError, OSError) as e:
            logger.error(f"Error linking paste {reference} to {user.name}: {e}")
            raise StorageFailure(
                f"error linking paste {reference} to {user.name}: {e}",
                message="X your paste was saved but could not be added to your account",
            ) from e
        user.pastes = pastes

    async def create_paste(self, content: str, language: str, expiry: str = "never") -> Paste:
        """
        Save a paste under the next id.

        Raises:
            StorageFailure: If the write fails
        """
        try:
            paste = Paste(
                id=await self.redis.incr(PASTE_ID_COUNTER),
                content=content,
                language=language,
                expiry=expiry,
            )
            await self.redis.hset(paste_key(paste.id), mapping=paste.model_dump())
        except (RedisError, OSError) as e:
            logger.error(f"Error saving paste: {e}")
            raise StorageFailure(
                f"error saving paste: {e}",
                message="X there was an error saving your paste",
            ) from e

        logger.info(f"Paste {paste.id} saved successfully")
        return paste

    async def get_paste(self, paste_id: int) -> Paste:
        """
        Fetch a paste by id.

        Raises:
            PasteNotFound: If no paste has that id
            StorageFailure: If the lookup fails
        """
        try:
            data = await self.redis.hgetall(paste_key(paste_id))
            if not data:
                raise PasteNotFound(f"paste {paste_id} not found")
            return Paste(**data)
        except (RedisError, OSError, ValidationError) as e:
            logger.error(f"Error fetching paste {paste_id}: {e}")
            raise StorageFailure(f"error fetching paste {paste_id}: {e}") from e
