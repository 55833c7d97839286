"""Shared fixtures: a Flask application backed by mongomock, with an application context pushed for every test."""
import mongomock
import pytest
from flask import Flask

from mongoyii import MongoYii


@pytest.fixture
def mongo_client():
	return mongomock.MongoClient()


@pytest.fixture
def app(mongo_client):
	app = Flask(__name__)
	app.config.update(
		TESTING=True,
		MONGO_URL="mongodb://localhost:27017",
		MONGO_DB_NAME="mongoyii_test",
	)
	MongoYii().init_app(app, client=mongo_client)
	return app


@pytest.fixture
def app_context(app):
	with app.app_context():
		yield app


@pytest.fixture
def connection(app_context):
	from mongoyii import get_connection

	connection = get_connection()
	yield connection
	connection.drop()
