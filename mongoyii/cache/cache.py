"""
Caching backends used for query result caching.

    CacheBackend (Protocol)
    ├── InMemoryCache  single-process, bounded LRU
    └── RedisCache     distributed, shared between processes

    API: get(key) → value | None
         set(key, value, *, ttl_seconds=None, dependency=None)
         delete(key)
         exists(key) → bool
         clear()

Values are the raw documents returned by the driver, so the Redis backend serializes through bson.json_util to keep ObjectIds and datetimes intact.
A dependency passed to set() is evaluated at store time and checked on every get(); a changed dependency turns the entry into a miss.
"""

from __future__ import annotations

import time
from typing import Any, Protocol

from bson import json_util

from .dependency import CacheDependency


class CacheBackend(Protocol):
	""" Protocol for cache backend implementations.

	Implementations:
		- :class:`InMemoryCache`: single-process, bounded LRU cache
		- :class:`RedisCache`: distributed, Redis-backed cache
	"""

	def get(self, key: str) -> Any | None:
		""" Retrieve a value by key. Returns None if missing, expired or invalidated by its dependency. """
		...

	def set(self, key: str, value: Any, *, ttl_seconds: int | None = None, dependency: CacheDependency | None = None) -> None:
		""" Store a value with optional TTL and dependency. """
		...

	def delete(self, key: str) -> None:
		...

	def exists(self, key: str) -> bool:
		...

	def clear(self) -> None:
		...


class InMemoryCache:
	""" Bounded in-memory cache with TTL support.

	Uses LRU eviction when max_size is reached.

	Example:
		cache = InMemoryCache(max_size=500, default_ttl_seconds=1800)
		cache.set("session:abc", {"user_id": 42}, ttl_seconds=3600)
		session = cache.get("session:abc")
	"""

	def __init__(self, *, max_size: int = 10_000, default_ttl_seconds: int | None = 3600):
		self._store: dict[str, tuple[Any, float | None, CacheDependency | None]] = {}
		self._access_order: list[str] = []
		self._max_size = max_size
		self._default_ttl = default_ttl_seconds

	def get(self, key: str) -> Any | None:
		if not self.exists(key):
			return None

		value, _, _ = self._store[key]

		# Update LRU order
		if key in self._access_order:
			self._access_order.remove(key)
		self._access_order.append(key)

		return value

	def set(self, key: str, value: Any, *, ttl_seconds: int | None = None, dependency: CacheDependency | None = None) -> None:
		ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
		expires_at = (time.time() + ttl) if ttl else None

		if dependency is not None:
			dependency.evaluate_dependency()

		# Evict LRU if at capacity
		if key not in self._store and len(self._store) >= self._max_size:
			if self._access_order:
				lru_key = self._access_order.pop(0)
				self._store.pop(lru_key, None)

		self._store[key] = (value, expires_at, dependency)

		if key in self._access_order:
			self._access_order.remove(key)
		self._access_order.append(key)

	def delete(self, key: str) -> None:
		self._store.pop(key, None)
		if key in self._access_order:
			self._access_order.remove(key)

	def exists(self, key: str) -> bool:
		""" Check if key exists and is still valid. Expired or invalidated entries are dropped lazily here. """
		if key not in self._store:
			return False

		_, expires_at, dependency = self._store[key]
		if expires_at is not None and time.time() > expires_at:
			self.delete(key)
			return False
		if dependency is not None and dependency.has_changed():
			self.delete(key)
			return False

		return True

	def clear(self) -> None:
		self._store.clear()
		self._access_order.clear()

	def size(self) -> int:
		""" Return current number of cached keys. """
		return len(self._store)


class RedisCache:
	""" Redis-backed distributed cache.

	Requires the ``redis`` package (install via ``pip install mongoyii[redis]``).
	Dependencies are evaluated in this process only; they are not shared between processes.

	Example:
		cache = RedisCache("redis://localhost:6379/0", default_ttl_seconds=600)
	"""

	def __init__(self, url: str = "redis://localhost:6379/0", *, default_ttl_seconds: int | None = 3600, key_prefix: str = ""):
		try:
			import redis
		except ImportError as exc:
			msg = (
				"Redis backend requires 'redis' package. "
				"Install with: pip install mongoyii[redis]"
			)
			raise ImportError(msg) from exc

		self._client = redis.from_url(url, decode_responses=False)
		self._default_ttl = default_ttl_seconds
		self._key_prefix = key_prefix
		self._dependencies: dict[str, CacheDependency] = {}

	def _key(self, key: str) -> str:
		return self._key_prefix + key

	def get(self, key: str) -> Any | None:
		dependency = self._dependencies.get(key)
		if dependency is not None and dependency.has_changed():
			self.delete(key)
			return None

		raw = self._client.get(self._key(key))
		if raw is None:
			return None

		return json_util.loads(raw)

	def set(self, key: str, value: Any, *, ttl_seconds: int | None = None, dependency: CacheDependency | None = None) -> None:
		ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
		serialized = json_util.dumps(value)

		if dependency is not None:
			dependency.evaluate_dependency()
			self._dependencies[key] = dependency

		if ttl:
			self._client.setex(self._key(key), ttl, serialized)
		else:
			self._client.set(self._key(key), serialized)

	def delete(self, key: str) -> None:
		self._dependencies.pop(key, None)
		self._client.delete(self._key(key))

	def exists(self, key: str) -> bool:
		return bool(self._client.exists(self._key(key)))

	def clear(self) -> None:
		""" Remove all keys from the current Redis database.

		Warning: This flushes the entire Redis DB, use with caution!
		"""
		self._dependencies.clear()
		self._client.flushdb()
