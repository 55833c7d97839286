import pytest

from mongoyii import Criteria, DataProvider, MongoYiiError, Pagination, Sort

from models import User


def _users(count=25):
	for i in range(count):
		User(username=f"user{i:02d}", age=i).save()


class TestPagination:
	def test_defaults_outside_a_request(self):
		pagination = Pagination(page_size=10)
		pagination.item_count = 25
		assert pagination.page_count == 3
		assert pagination.current_page == 0
		assert pagination.get_offset() == 0
		assert pagination.get_limit() == 10

	def test_reads_the_page_from_the_request(self, app):
		with app.test_request_context("/users?page=3"):
			pagination = Pagination(page_size=10)
			pagination.item_count = 25
			assert pagination.current_page == 2
			assert pagination.get_offset() == 20

	def test_page_is_clamped_to_the_last_page(self, app):
		with app.test_request_context("/users?page=9"):
			pagination = Pagination(page_size=10)
			pagination.item_count = 25
			assert pagination.current_page == 2

	def test_malformed_page_falls_back_to_the_first(self, app):
		with app.test_request_context("/users?page=abc"):
			assert Pagination().current_page == 0

	def test_create_page_url(self, app):
		with app.test_request_context("/users?page=2&q=x"):
			pagination = Pagination()
			assert pagination.create_page_url(2) == "/users?page=3&q=x"
			assert pagination.create_page_url(0) == "/users?q=x"


class TestSort:
	def test_reads_the_order_from_the_request(self, app):
		with app.test_request_context("/users?sort=name.desc-age"):
			assert Sort().get_order_by() == {"name": -1, "age": 1}

	def test_only_listed_attributes(self, app):
		with app.test_request_context("/users?sort=password-age.desc"):
			assert Sort(attributes=["age"]).get_order_by() == {"age": -1}

	def test_single_sort(self, app):
		with app.test_request_context("/users?sort=name-age"):
			assert Sort(multi_sort=False).get_order_by() == {"name": 1}

	def test_default_order(self):
		assert Sort(default_order={"age": "desc"}).get_order_by() == {"age": -1}

	def test_create_sort_url(self, app):
		with app.test_request_context("/users"):
			assert Sort().create_sort_url({"name": "desc", "age": 1}) == "/users?sort=name.desc-age"


@pytest.mark.usefixtures("connection")
class TestDataProvider:
	def test_first_page(self):
		_users()
		provider = DataProvider(User, criteria={"sort": {"age": 1}}, pagination=Pagination(page_size=10))
		assert provider.total_item_count == 25
		assert provider.item_count == 10
		assert [u.age for u in provider.data] == list(range(10))

	def test_requested_page_and_sort(self, app):
		_users()
		with app.test_request_context("/users?page=2&sort=age.desc"):
			provider = DataProvider(User, pagination=Pagination(page_size=10))
			assert [u.age for u in provider.data] == list(range(14, 4, -1))

	def test_prefixed_query_parameters(self, app):
		_users()
		with app.test_request_context("/users?users_page=3&page=1"):
			provider = DataProvider(User, criteria={"sort": {"age": 1}}, id="users", pagination=None)
			assert provider.pagination.page_var == "users_page"
			# page 3 is past the end, so the last page is served
			assert [u.age for u in provider.data] == [20, 21, 22, 23, 24]

	def test_condition_and_criteria_object(self):
		_users()
		criteria = Criteria({"condition": {"age": {"$gte": 20}}, "sort": {"age": "desc"}})
		provider = DataProvider(User, criteria=criteria, pagination=False)
		assert provider.total_item_count == 5
		assert [u.age for u in provider.data] == [24, 23, 22, 21, 20]

	def test_criteria_skip_and_limit_without_pagination(self):
		_users()
		provider = DataProvider(User, criteria={"sort": {"age": 1}, "skip": 2, "limit": 3}, pagination=False)
		assert [u.age for u in provider.data] == [2, 3, 4]
		assert provider.total_item_count == 25

	def test_projection(self):
		_users(2)
		provider = DataProvider(User, criteria={"project": {"username": 1}}, pagination=False)
		assert all(u.is_partial and u.age is None for u in provider.data)

	def test_keys(self):
		_users(3)
		provider = DataProvider(User, criteria={"sort": {"age": 1}}, key_attribute="username")
		assert provider.keys == ["user00", "user01", "user02"]

	def test_list_keys_are_joined(self):
		User(username="a", interests=["x", "y"]).save()
		provider = DataProvider(User, key_attribute="interests")
		assert provider.keys == ["x,y"]

	def test_scoped_finder(self):
		_users()
		provider = DataProvider(User.model().scope("adults"), pagination=False)
		assert provider.total_item_count == 7
		assert len(provider.data) == 7

	def test_refresh(self):
		_users(2)
		provider = DataProvider(User)
		assert provider.total_item_count == 2
		User(username="late").save()
		assert provider.total_item_count == 2
		provider.refresh()
		assert provider.total_item_count == 3

	def test_model_is_required(self):
		with pytest.raises(MongoYiiError):
			DataProvider(object)
