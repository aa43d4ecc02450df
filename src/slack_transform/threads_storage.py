"""Thread stores used while assembling a channel's threads

A thread store maps a thread identifier to the root ``IntermediatePost`` of
that thread. Two implementations share the ``ThreadsStorage`` contract:

- ``MemoryThreadsStorage`` keeps every root in a dict.
- ``RedisThreadsStorage`` keeps a local write cache in front of Redis, so a
  channel's threads can be persisted outside the process and looked up again
  by a later run.

``lookup`` always returns the live post, not a copy: the thread reconstructor
appends replies to it after it was stored. Instead of writing every mutation
back, each store tracks which identifiers it created or handed out and
exposes them through ``changed()``; ``flush()`` persists exactly that set.

Roots are keyed by their adjusted creation time, which can differ from the
Slack ``ts`` replies point at. Each store therefore also keeps the mapping
from a root's ``ts`` to its identifier (``record_thread_id`` /
``find_thread_id``), persisted alongside the threads.

Example:
    >>> factory = create_storage_factory(None)
    >>> with factory.open("general") as threads:
    ...     threads.store("1697654321000", IntermediatePost(message="hi"))
    ...     posts = threads.changed()
    ...     threads.flush()
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import redis
from pydantic import ValidationError

from .config import RedisConfig
from .exceptions import ConfigurationError, ThreadsStorageError
from .intermediate import IntermediatePost

THREAD_IDS_KEY = "thread_ids"


class ThreadsStorage(ABC):
    """Capability contract shared by every thread store"""

    @abstractmethod
    def has(self, thread_id: str) -> bool:
        """True if a root post is resolvable for ``thread_id``"""

    @abstractmethod
    def lookup(self, thread_id: str) -> Optional[IntermediatePost]:
        """Return the live root post for ``thread_id``, or None"""

    @abstractmethod
    def store(self, thread_id: str, post: IntermediatePost) -> None:
        """Insert or overwrite the root post for ``thread_id``"""

    @abstractmethod
    def changed(self) -> List[IntermediatePost]:
        """Posts stored or looked up during this store's lifetime"""

    @abstractmethod
    def record_thread_id(self, ts: str, thread_id: str) -> None:
        """Remember that the root with Slack timestamp ``ts`` lives under ``thread_id``

        The first mapping recorded for a timestamp wins.
        """

    @abstractmethod
    def find_thread_id(self, ts: str) -> Optional[str]:
        """Identifier of the root with Slack timestamp ``ts``, or None"""

    def flush(self) -> None:
        """Persist every changed post to the backing store"""

    def close(self) -> None:
        """Release the store's local state"""

    def __enter__(self) -> "ThreadsStorage":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


class MemoryThreadsStorage(ThreadsStorage):
    """Thread store holding every root post in process memory"""

    def __init__(self) -> None:
        self.threads: Dict[str, IntermediatePost] = {}
        self.thread_ids: Dict[str, str] = {}

    def has(self, thread_id: str) -> bool:
        return thread_id in self.threads

    def lookup(self, thread_id: str) -> Optional[IntermediatePost]:
        return self.threads.get(thread_id)

    def store(self, thread_id: str, post: IntermediatePost) -> None:
        self.threads[thread_id] = post

    def changed(self) -> List[IntermediatePost]:
        # every entry was created by this instance
        return list(self.threads.values())

    def record_thread_id(self, ts: str, thread_id: str) -> None:
        self.thread_ids.setdefault(ts, thread_id)

    def find_thread_id(self, ts: str) -> Optional[str]:
        return self.thread_ids.get(ts)

    def close(self) -> None:
        self.threads = {}
        self.thread_ids = {}


class RedisThreadsStorage(ThreadsStorage):
    """Thread store backed by Redis with a local write cache

    Keys are namespaced per channel (``<channel>:<thread_id>``) so identical
    timestamps in different channels never collide. The ``ts`` to identifier
    mapping of the channel's roots lives in the ``<channel>:thread_ids`` hash.
    ``store`` and ``record_thread_id`` only touch the local cache; ``flush``
    writes every changed post and new mapping back in a single pipelined
    round trip.

    Example:
        >>> client = redis.Redis(host="localhost", port=6379)
        >>> threads = RedisThreadsStorage(client, "general")
        >>> threads.store("11", IntermediatePost(message="msg"))
        >>> threads.flush()
        >>> RedisThreadsStorage(client, "general").lookup("11").message
        'msg'
    """

    def __init__(self, client: redis.Redis, channel_name: str):
        self.logger = logging.getLogger(__name__)
        self.client = client
        self.channel_name = channel_name
        self.local: Dict[str, IntermediatePost] = {}
        self.changed_ids: Dict[str, None] = {}
        self.thread_ids: Dict[str, str] = {}
        self.new_thread_ids: Dict[str, str] = {}

    def _key(self, thread_id: str) -> str:
        return f"{self.channel_name}:{thread_id}"

    @property
    def thread_ids_key(self) -> str:
        return self._key(THREAD_IDS_KEY)

    def has(self, thread_id: str) -> bool:
        if thread_id in self.local:
            return True
        try:
            return bool(self.client.exists(self._key(thread_id)))
        except redis.RedisError as e:
            raise ThreadsStorageError(
                f"Failed to check thread {self._key(thread_id)}: {e}"
            ) from e

    def lookup(self, thread_id: str) -> Optional[IntermediatePost]:
        post = self.local.get(thread_id)
        if post is not None:
            self.changed_ids[thread_id] = None
            return post

        key = self._key(thread_id)
        try:
            data = self.client.get(key)
        except redis.RedisError as e:
            raise ThreadsStorageError(f"Failed to fetch thread {key}: {e}") from e

        if data is None:
            return None

        try:
            post = IntermediatePost.model_validate_json(data)
        except ValidationError as e:
            raise ThreadsStorageError(f"Failed to decode thread {key}: {e}") from e

        self.logger.debug(f"Fetched thread {key} from redis")
        self.local[thread_id] = post
        self.changed_ids[thread_id] = None
        return post

    def store(self, thread_id: str, post: IntermediatePost) -> None:
        self.local[thread_id] = post
        self.changed_ids[thread_id] = None

    def changed(self) -> List[IntermediatePost]:
        return [self.local[thread_id] for thread_id in self.changed_ids]

    def record_thread_id(self, ts: str, thread_id: str) -> None:
        if ts in self.thread_ids:
            return
        self.thread_ids[ts] = thread_id
        self.new_thread_ids[ts] = thread_id

    def find_thread_id(self, ts: str) -> Optional[str]:
        thread_id = self.thread_ids.get(ts)
        if thread_id is not None:
            return thread_id

        try:
            data = self.client.hget(self.thread_ids_key, ts)
        except redis.RedisError as e:
            raise ThreadsStorageError(
                f"Failed to fetch thread id of {ts} in {self.thread_ids_key}: {e}"
            ) from e

        if data is None:
            return None

        thread_id = data.decode() if isinstance(data, bytes) else data
        self.thread_ids[ts] = thread_id
        return thread_id

    def flush(self) -> None:
        if not self.changed_ids and not self.new_thread_ids:
            return

        try:
            pipe = self.client.pipeline(transaction=False)
            for thread_id in self.changed_ids:
                pipe.set(self._key(thread_id), self.local[thread_id].model_dump_json())
            # an earlier run's mapping is never replaced
            for ts, thread_id in self.new_thread_ids.items():
                pipe.hsetnx(self.thread_ids_key, ts, thread_id)
            pipe.execute()
        except redis.RedisError as e:
            raise ThreadsStorageError(
                f"Failed to persist threads for channel {self.channel_name}: {e}"
            ) from e

        self.logger.debug(
            f"Persisted {len(self.changed_ids)} threads and "
            f"{len(self.new_thread_ids)} thread ids for channel {self.channel_name}"
        )
        self.new_thread_ids = {}

    def close(self) -> None:
        self.local = {}
        self.changed_ids = {}
        self.thread_ids = {}
        self.new_thread_ids = {}


class MemoryThreadsStorageFactory:
    """Opens a fresh in-memory store per channel"""

    def open(self, channel_name: str) -> ThreadsStorage:
        return MemoryThreadsStorage()


class RedisThreadsStorageFactory:
    """Opens Redis-backed stores sharing one client for the whole run"""

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_config(cls, config: RedisConfig) -> "RedisThreadsStorageFactory":
        """Connect to Redis and verify the connection

        Raises:
            ConfigurationError: If Redis cannot be reached with ``config``
        """
        client = config.create_client()
        try:
            client.ping()
        except redis.RedisError as e:
            raise ConfigurationError(
                f"Cannot connect to redis at {config.endpoint}: {e}"
            ) from e
        return cls(client)

    def open(self, channel_name: str) -> ThreadsStorage:
        return RedisThreadsStorage(self.client, channel_name)


def create_storage_factory(redis_config: Optional[RedisConfig]):
    """Pick the thread store variant for a run

    Redis is used if and only if connection parameters were configured.
    """
    if redis_config is None:
        return MemoryThreadsStorageFactory()
    return RedisThreadsStorageFactory.from_config(redis_config)
