import logging

import mongomock
import pytest
from flask import Flask

from mongoyii import Client, Document, InMemoryCache, MongoLogHandler, MongoYii, SetupError, get_component, get_connection, get_state
from mongoyii.utilities.logger import get_logger, set_log_level

from models import User


def _make_app(**config):
	app = Flask(__name__)
	app.config.update(MONGO_URL="mongodb://localhost:27017", MONGO_DB_NAME="mongoyii_test", **config)
	return app


class TestMongoYii:
	def test_init_app_registers_components(self):
		app = _make_app(MONGO_WRITE_CONCERN_W="1", MONGO_JOURNAL="true", MONGO_ENABLE_PROFILING="1")
		state = MongoYii().init_app(app, client=mongomock.MongoClient())
		assert app.extensions["mongoyii"] is state

		with app.app_context():
			connection = get_connection()
			assert isinstance(connection, Client)
			assert connection.w == 1
			assert connection.j is True
			assert connection.enable_profiling
			assert isinstance(get_component("cache"), InMemoryCache)
			assert get_state() is state

	def test_constructor_with_app(self):
		app = _make_app()
		MongoYii(app, client=mongomock.MongoClient())
		with app.app_context():
			assert get_connection().db == "mongoyii_test"

	def test_custom_cache_id_and_backend(self):
		app = _make_app(MONGO_QUERY_CACHE_ID="query_cache")
		cache = InMemoryCache(max_size=5)
		MongoYii().init_app(app, client=mongomock.MongoClient(), cache=cache)
		with app.app_context():
			assert get_component("query_cache") is cache
			assert get_component("cache") is None

	def test_uninitialized_app_raises(self):
		app = Flask(__name__)
		with app.app_context():
			with pytest.raises(SetupError):
				get_state()

	def test_missing_component_raises(self, app_context):
		with pytest.raises(SetupError):
			get_connection("other")

	def test_component_of_the_wrong_type_raises(self, app_context):
		get_state().set_component("not_a_client", object())
		with pytest.raises(SetupError):
			get_connection("not_a_client")


class TestModelRegistry:
	def test_model_is_memoized_per_app(self):
		first, second = _make_app(), _make_app()
		MongoYii(first, client=mongomock.MongoClient())
		MongoYii(second, client=mongomock.MongoClient())

		with first.app_context():
			model = User.model()
			assert User.model() is model
			assert not model.is_new_record
			assert model.scenario is None
		with second.app_context():
			assert User.model() is not model

	def test_lookup_by_class_name(self, app_context):
		User.model()
		registry = get_state().models
		assert registry.lookup("User") is User
		assert registry.class_name_of(User) == "User"
		assert User in registry
		registry.forget(User)
		assert User not in registry
		assert registry.lookup("User") is None

	def test_class_name_clash_raises(self, app_context):
		def make():
			class Clash(Document):
				__collection_name__ = "clash"
			return Clash

		make().model()
		with pytest.raises(SetupError):
			make().model()


class TestLogging:
	def test_log_collection(self):
		app = _make_app(MONGO_LOG_COLLECTION="app_log")
		MongoYii(app, client=mongomock.MongoClient())
		handler = next(h for h in get_logger().handlers if isinstance(h, MongoLogHandler))
		set_log_level(logging.DEBUG)
		try:
			with app.app_context():
				User(username="sammaye").insert()
				entries = list(get_connection()["app_log"].find())
		finally:
			get_logger().removeHandler(handler)
			set_log_level(logging.WARNING)

		assert any("User.insert()" in entry["message"] for entry in entries)
		assert all(entry["category"] == "mongoyii" and entry["level"] == "DEBUG" for entry in entries)
		assert all(isinstance(entry["logtime"], int) for entry in entries)

	def test_profiling_logs_timings(self, app, caplog):
		with app.app_context():
			get_connection().enable_profiling = True
			with caplog.at_level(logging.DEBUG, logger="mongoyii"):
				User(username="sammaye").insert()
				list(User.model().find())
		assert any("begin:" in message and ".insert(" in message for message in caplog.messages)
		assert any("end:" in message and "seconds" in message for message in caplog.messages)
