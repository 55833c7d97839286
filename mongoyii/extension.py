import os
from typing import Any

from flask import Flask, current_app

from .cache.cache import InMemoryCache, RedisCache
from .client import Client
from .document.document_registry import ModelRegistry
from .utilities.logger import get_logger
from .utilities.setup_error import SetupError


EXTENSION_NAME = "mongoyii"
DEFAULT_CONNECTION_ID = "mongodb"


def _config_value(app: Flask, key: str, default: Any = None) -> Any:
	""" Flask config first, then the environment. """
	if key in app.config:
		return app.config[key]
	return os.environ.get(key, default)

def _as_bool(value: Any) -> bool:
	if isinstance(value, str):
		return value.strip().lower() in ("1", "true", "yes", "on")
	return bool(value)


class MongoYiiState:
	""" Per-application state: the component locator and the model registry.
	Stored in app.extensions so that two apps in one process never share connections or memoized models. """

	def __init__(self) -> None:
		self.components: dict[str, Any] = {}
		self.models = ModelRegistry()

	def set_component(self, component_id: str, component: Any) -> None:
		self.components[component_id] = component

	def get_component(self, component_id: str | None) -> Any | None:
		""" Returns None when nothing is registered under the id. """
		if not component_id:
			return None
		return self.components.get(component_id)

	def require_component(self, component_id: str) -> Any:
		component = self.get_component(component_id)
		if component is None:
			raise SetupError(f"No component registered under '{component_id}'. Did you call MongoYii.init_app()?")
		return component


class MongoYii:
	""" Flask extension wiring a Client, a query cache and the model registry into an application.

	Example:
		mongo = MongoYii()
		mongo.init_app(app)
		with app.app_context():
			User.model().find({"status": "active"})
	"""

	def __init__(self, app: Flask | None = None, **kwargs: Any) -> None:
		self._init_kwargs = kwargs
		if app is not None:
			self.init_app(app, **kwargs)

	def init_app(self, app: Flask, *, client: Any = None, cache: Any = None) -> MongoYiiState:
		"""
		Args:
			client: Optional pre-built pymongo (or mongomock) client passed straight through to Client.
			cache: Optional cache backend to register under the query cache id. Defaults to RedisCache when MONGO_CACHE_URL is configured, otherwise InMemoryCache.
		"""
		client = client if client is not None else self._init_kwargs.get("client")
		cache = cache if cache is not None else self._init_kwargs.get("cache")

		w = _config_value(app, "MONGO_WRITE_CONCERN_W")
		if isinstance(w, str) and w.isdigit():
			w = int(w)
		j = _config_value(app, "MONGO_JOURNAL")

		connection = Client(
			_config_value(app, "MONGO_URL"),
			_config_value(app, "MONGO_DB_NAME"),
			client=client,
			w=w,
			j=_as_bool(j) if j is not None else None,
			enable_profiling=_as_bool(_config_value(app, "MONGO_ENABLE_PROFILING", False)),
			query_cache_id=_config_value(app, "MONGO_QUERY_CACHE_ID", "cache"),
		)

		state = MongoYiiState()
		state.set_component(DEFAULT_CONNECTION_ID, connection)

		if connection.query_cache_id:
			if cache is None:
				cache_url = _config_value(app, "MONGO_CACHE_URL")
				cache = RedisCache(cache_url) if cache_url else InMemoryCache()
			state.set_component(connection.query_cache_id, cache)

		log_collection = _config_value(app, "MONGO_LOG_COLLECTION")
		if log_collection:
			from .log_handler import MongoLogHandler
			get_logger().addHandler(MongoLogHandler(connection, log_collection))

		app.extensions[EXTENSION_NAME] = state
		return state


def get_state() -> MongoYiiState:
	""" Returns the state of the current Flask application. Requires an application context. """
	state = current_app.extensions.get(EXTENSION_NAME)
	if state is None:
		raise SetupError("MongoYii has not been initialized for the current application. Call MongoYii.init_app(app) first.")
	return state

def get_component(component_id: str | None) -> Any | None:
	return get_state().get_component(component_id)

def get_connection(connection_id: str = DEFAULT_CONNECTION_ID) -> Client:
	connection = get_state().require_component(connection_id)
	if not isinstance(connection, Client):
		raise SetupError(f"Component '{connection_id}' is a {type(connection).__name__}, not a Client.")
	return connection
