import os
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId, json_util
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.write_concern import WriteConcern

from .cache.dependency import CacheDependency
from .utilities.logger import logger
from .utilities.setup_error import SetupError


class Client:
	""" The connection component. Holds the pymongo client, the write concern every document write uses, and the query caching parameters.

	Query caching works the same way as in a relational active record: call cache(duration) and the next `query_count` queries are served from (or stored into) the cache component named by query_cache_id.
	"""

	def __init__(
			self,
			server: str | None = None,
			db: str | None = None,
			*,
			client: Any = None,
			options: dict[str, Any] | None = None,
			w: int | str | None = None,
			j: bool | None = None,
			enable_profiling: bool = False,
			query_cache_id: str | None = "cache"
		):
		"""
		Args:
			server: Mongo connection string. Falls back to the MONGO_URL environment variable.
			db: Database name. Falls back to the MONGO_DB_NAME environment variable.
			client: Optional pre-built client (e.g. mongomock.MongoClient for testing). The server is then only used as part of cache keys.
			options: Extra keyword arguments for MongoClient.
			w, j: Default write concern for document writes. Left unset, the server default applies.
		"""
		self.server = server or os.environ.get("MONGO_URL")
		self.db = db or os.environ.get("MONGO_DB_NAME")
		if client is None and not self.server:
			raise SetupError("Please set MONGO_URL in your environment variables.")
		if not self.db:
			raise SetupError("Please set MONGO_DB_NAME in your environment variables.")
		if self.server is None:
			self.server = "mongodb://localhost:27017"

		self.options = options or {}
		self.w = w
		self.j = j
		self.enable_profiling = enable_profiling

		self.query_cache_id = query_cache_id
		self.query_caching_duration = 0
		self.query_caching_dependency: CacheDependency | None = None
		self.query_caching_count = 0

		self._mongo_client = client

	def __repr__(self) -> str:
		return f"Client(server={self.server!r}, db={self.db!r})"

	# Connection
	def get_connection(self) -> MongoClient:
		""" Lazily connects on first use. """
		if self._mongo_client is None:
			self._mongo_client = MongoClient(self.server, **self.options)
			logger.info(f"Opened MongoDB connection to database '{self.db}'")
		return self._mongo_client

	def get_db(self) -> Database:
		return self.get_connection()[self.db]

	def get_default_write_concern(self) -> WriteConcern | None:
		""" Returns None when neither w nor j is configured, meaning the collection's own write concern is used. """
		if self.w is None and self.j is None:
			return None
		kwargs: dict[str, Any] = {}
		if self.w is not None:
			kwargs["w"] = self.w
		if self.j is not None:
			kwargs["j"] = self.j
		return WriteConcern(**kwargs)

	def get_collection(self, name: str) -> Collection:
		""" Returns the collection with the default write concern applied. """
		write_concern = self.get_default_write_concern()
		if write_concern is None:
			return self.get_db()[name]
		return self.get_db().get_collection(name, write_concern=write_concern)

	def __getitem__(self, name: str) -> Collection:
		return self.get_collection(name)

	def select_collection(self, name: str) -> Collection:
		return self.get_collection(name)

	def drop(self) -> None:
		""" Drops the whole database. Used by test suites. """
		self.get_connection().drop_database(self.db)

	# Query caching
	def cache(self, duration: int, dependency: CacheDependency | None = None, query_count: int = 1) -> 'Client':
		""" Sets the parameters for query caching.

		Args:
			duration: The number of seconds query results may remain valid in cache. 0 disables caching.
			dependency: Dependency used when saving query results into the cache.
			query_count: Number of queries to cache after calling this method.
		"""
		self.query_caching_duration = duration
		self.query_caching_dependency = dependency
		self.query_caching_count = query_count
		return self

	def is_query_caching_enabled(self) -> bool:
		return self.query_caching_count > 0 and self.query_caching_duration > 0 and bool(self.query_cache_id)

	def get_serialised_query(
			self,
			criteria: dict | None = None,
			fields: dict | None = None,
			sort: dict | None = None,
			skip: int = 0,
			limit: int = 0
		) -> str:
		""" Serializes a query into a stable string, used to build query cache keys. """
		query = {
			"$query": criteria or {},
			"$fields": fields or {},
			"$sort": sort or {},
			"$skip": skip,
			"$limit": limit,
		}
		return json_util.dumps(query, sort_keys=True)

	def get_cache_key(self, collection_name: str, serialised_query: str) -> str:
		return f"mongoyii:dbquery{self.server}:{self.db}:{serialised_query}:{collection_name}"

	# Helpers
	def aggregate(self, collection_name: str, pipeline: list[dict]) -> list[dict]:
		""" Runs an aggregation and returns the raw result documents. """
		logger.debug(f"Executing aggregate on '{collection_name}': {json_util.dumps(pipeline)}")
		return list(self.get_collection(collection_name).aggregate(pipeline))

	def command(self, command: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
		return self.get_db().command(command, **kwargs)

	def create_mongo_id_from_timestamp(self, timestamp: float) -> ObjectId:
		""" Creates an ObjectId whose generation time is the given unix timestamp. Useful for range queries on _id. """
		return ObjectId.from_datetime(datetime.fromtimestamp(timestamp, tz=timezone.utc))
