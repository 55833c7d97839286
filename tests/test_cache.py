from unittest.mock import MagicMock

import pytest
from bson import ObjectId, json_util

from mongoyii.cache import ExpressionDependency, InMemoryCache, RedisCache


class TestInMemoryCache:
	def test_set_and_get(self):
		cache = InMemoryCache()
		cache.set("k", [{"a": 1}])
		assert cache.get("k") == [{"a": 1}]
		assert cache.exists("k")

	def test_missing_key(self):
		assert InMemoryCache().get("missing") is None

	def test_expiry(self, monkeypatch):
		cache = InMemoryCache()
		now = 1000.0
		monkeypatch.setattr("mongoyii.cache.cache.time.time", lambda: now)
		cache.set("k", "v", ttl_seconds=10)
		now = 1011.0
		assert cache.get("k") is None
		assert not cache.exists("k")

	def test_lru_eviction(self):
		cache = InMemoryCache(max_size=2)
		cache.set("a", 1)
		cache.set("b", 2)
		cache.get("a")
		cache.set("c", 3)
		assert cache.get("b") is None
		assert cache.get("a") == 1
		assert cache.size() == 2

	def test_dependency_invalidates(self):
		state = {"n": 1}
		dependency = ExpressionDependency(lambda: state["n"])
		cache = InMemoryCache()
		cache.set("k", "v", dependency=dependency)
		assert cache.get("k") == "v"
		state["n"] = 2
		assert cache.get("k") is None

	def test_delete_and_clear(self):
		cache = InMemoryCache()
		cache.set("a", 1)
		cache.set("b", 2)
		cache.delete("a")
		assert cache.get("a") is None
		cache.clear()
		assert cache.size() == 0


class TestRedisCache:
	@pytest.fixture
	def cache_and_client(self):
		redis = pytest.importorskip("redis")
		with pytest.MonkeyPatch.context() as mp:
			client = MagicMock()
			mock_from_url = MagicMock(return_value=client)
			mp.setattr(redis, "from_url", mock_from_url)

			cache = RedisCache(key_prefix="test:")
			mock_from_url.assert_called_once_with("redis://localhost:6379/0", decode_responses=False)
			yield cache, client

	def test_values_keep_bson_types(self, cache_and_client):
		cache, client = cache_and_client
		_id = ObjectId()
		client.get.return_value = json_util.dumps([{"_id": _id}]).encode()
		assert cache.get("k") == [{"_id": _id}]
		client.get.assert_called_once_with("test:k")

	def test_missing_key(self, cache_and_client):
		cache, client = cache_and_client
		client.get.return_value = None
		assert cache.get("k") is None

	def test_set_with_ttl(self, cache_and_client):
		cache, client = cache_and_client
		cache.set("k", {"v": 1}, ttl_seconds=60)
		client.setex.assert_called_once_with("test:k", 60, json_util.dumps({"v": 1}))

	def test_set_without_ttl(self, cache_and_client):
		cache, client = cache_and_client
		cache._default_ttl = None
		cache.set("k", "v")
		client.set.assert_called_once_with("test:k", json_util.dumps("v"))

	def test_dependency_invalidates(self, cache_and_client):
		cache, client = cache_and_client
		state = {"n": 1}
		cache.set("k", "v", dependency=ExpressionDependency(lambda: state["n"]))
		state["n"] = 2
		assert cache.get("k") is None
		client.delete.assert_called_once_with("test:k")
		client.get.assert_not_called()
