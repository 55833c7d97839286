"""Sample documents shared by the tests."""
from mongoyii import Document, SafeValidator, UniqueValidator


class User(Document):
	__collection_name__ = "users"

	username: str | None = None
	age: int | None = None
	interests: list = []

	def scopes(self):
		return {
			"adults": {"condition": {"age": {"$gte": 18}}},
			"youngest_first": {"sort": {"age": "asc"}},
			"first_two": {"limit": 2},
		}


class Interest(Document):
	__collection_name__ = "interests"

	name: str | None = None

	def validators(self):
		return [
			SafeValidator("_id, name", on="search"),
		]


class Account(Document):
	__collection_name__ = "accounts"

	email: str | None = None
	balance: int = 0
	visits: int = 0

	def validators(self):
		return [
			UniqueValidator("email", case_sensitive=False),
			SafeValidator("email, balance", on="insert, update, search"),
		]


class VersionedDocument(Document):
	__collection_name__ = "versioned"
	__versioned__ = True

	name: str | None = None


class Article(Document):
	__collection_name__ = "articles"

	title: str | None = None
	deleted: int = 0

	def default_scope(self):
		return {"condition": {"deleted": 0}}
