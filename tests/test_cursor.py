import pytest
from bson import ObjectId

from mongoyii import Criteria, Cursor, Document, MongoYiiError
from mongoyii.document.scenario import Scenario

from models import User


def _insert_users(count=5, **attributes):
	for i in range(count):
		user = User(username="sammaye", age=20 + i, **attributes)
		assert user.save()


@pytest.mark.usefixtures("connection")
class TestCursor:
	def test_find_returns_a_cursor_of_persisted_records(self):
		_insert_users()
		cursor = User.model().find()
		assert isinstance(cursor, Cursor)
		assert cursor.count() == 5

		for record in cursor:
			assert isinstance(record, Document)
			assert record.scenario == Scenario.UPDATE
			assert not record.is_new_record
			assert isinstance(record._id, ObjectId)
			break

	def test_direct_instantiation_with_a_condition(self):
		_insert_users()
		cursor = Cursor(User, {"username": "sammaye"})
		assert cursor.count() == 5

	def test_direct_instantiation_with_criteria(self):
		_insert_users()
		criteria = Criteria({"condition": {"username": "sammaye"}, "limit": 3, "skip": 1})
		cursor = Cursor(User, criteria)
		assert cursor.count() == 5
		assert cursor.count(True) == 3

	def test_skip_limit(self):
		_insert_users()
		cursor = User.model().find().skip(1).limit(3)
		assert cursor.count(True) == 3
		assert len(list(cursor)) == 3

	def test_limited_cursor_has_no_length_disagreeing_with_its_rows(self):
		_insert_users()
		cursor = User.model().find().limit(2)
		# Like the driver cursor, the size comes from count(), never len()
		with pytest.raises(TypeError):
			len(cursor)
		assert len(list(cursor)) == cursor.count(True) == 2

	def test_sort(self):
		_insert_users()
		ages = [user.age for user in User.model().find().sort({"age": "desc"})]
		assert ages == [24, 23, 22, 21, 20]

	def test_cursor_can_be_iterated_twice(self):
		_insert_users(3)
		cursor = User.model().find()
		assert len(list(cursor)) == 3
		assert len(list(cursor)) == 3

	def test_get_next_and_key(self):
		_insert_users(1)
		cursor = User.model().find()
		record = cursor.get_next()
		assert record is not None
		assert cursor.current is record
		assert cursor.key() == record._id
		assert cursor.get_next() is None

	def test_projection_makes_records_partial(self):
		_insert_users(2)
		cursor = User.model().find({}, {"username": 1})
		assert cursor.is_partial
		for record in cursor:
			assert record.is_partial
			assert record.age is None
			assert set(record.projected_fields) == {"_id", "username"}

	def test_wrapping_a_driver_cursor(self):
		_insert_users(3)
		cursor = Cursor(User, User.get_collection().find({"age": {"$gte": 21}}))
		assert cursor.count() == 2
		assert [user.age for user in cursor] == [21, 22]

	def test_model_is_required(self):
		with pytest.raises(MongoYiiError):
			Cursor(object, {})

	def test_unknown_methods_are_not_forwarded(self):
		cursor = User.model().find()
		with pytest.raises(AttributeError):
			cursor.no_such_method()

	def test_timeout_and_batch_size_chain(self):
		_insert_users(2)
		cursor = User.model().find().timeout(1000).batch_size(10)
		assert isinstance(cursor, Cursor)
		assert len(list(cursor)) == 2


@pytest.mark.usefixtures("connection")
class TestCursorQueryCache:
	def test_cached_query_replays_rows(self):
		_insert_users()
		cursor = User.model().cache(60).find({"username": "sammaye"})
		rows = list(cursor)
		assert cursor.from_cache
		assert cursor.count() == len(rows) == 5

		# Changes in the database are invisible to the cached query
		User.model().delete_all()
		cached = User.model().cache(60).find({"username": "sammaye"})
		assert len(list(cached)) == 5
		assert cached.count() == 5

	def test_replayed_records_do_not_share_nested_values(self):
		user = User(username="sammaye", interests=["chess"])
		user.save()
		User.model().cache(60).find().get_next().interests.append("go")
		record = User.model().cache(60).find().get_next()
		assert record.interests == ["chess"]

	def test_find_one_from_cache_does_not_share_nested_values(self):
		User(username="sammaye", interests=["chess"]).save()
		User.model().cache(60).find_one({"username": "sammaye"}).interests.append("go")
		record = User.model().cache(60).find_one({"username": "sammaye"})
		assert record.interests == ["chess"]

	def test_sort_replaces_the_scope_sort_in_the_cache_key(self):
		for name, age in [("carol", 20), ("bob", 21), ("alice", 22)]:
			User(username=name, age=age).save()
		by_name = list(User.model().scope("youngest_first").cache(60).find().sort({"username": 1}))
		assert [u.username for u in by_name] == ["alice", "bob", "carol"]

		by_age = list(User.model().cache(60).find().sort({"age": 1, "username": 1}))
		assert [u.username for u in by_age] == ["carol", "bob", "alice"]

	def test_cache_applies_to_query_count_queries_only(self, connection):
		_insert_users(2)
		list(User.model().cache(60, query_count=1).find())
		assert not connection.is_query_caching_enabled()
		User.model().delete_all()
		assert len(list(User.model().find())) == 0

	def test_skip_and_limit_are_part_of_the_cache_key(self):
		_insert_users()
		first = list(User.model().cache(60).find().sort({"age": 1}).limit(2))
		second = list(User.model().cache(60).find().sort({"age": 1}).skip(2).limit(2))
		assert [u.age for u in first] == [20, 21]
		assert [u.age for u in second] == [22, 23]
