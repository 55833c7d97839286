from typing import TYPE_CHECKING, Any, Generic, Literal, Mapping, TypeVar

from .pagination import Pagination
from .sort import Sort
from ..document.criteria import Criteria
from ..document.cursor import Cursor
from ..document.merge_array import merge_array
from ..utilities.mongoyii_error import MongoYiiError
if TYPE_CHECKING:
	from ..document.document import Document


D = TypeVar('D', bound='Document')

class DataProvider(Generic[D]):
	""" Feeds the results of a Document query to paginated, sortable list views.

	Example:
		provider = DataProvider(Post, criteria={"condition": {"published": 1}}, pagination=Pagination(page_size=10))
		provider.data                 # the records of the requested page
		provider.total_item_count     # the number of records over all pages

	The scope criteria carried by the model when the provider is created are folded into the provider's criteria,
	so both the count and the page query see them.
	"""

	def __init__(
			self,
			model: 'type[D] | D',
			criteria: Criteria | Mapping[str, Any] | None = None,
			pagination: Pagination | Literal[False] | None = None,
			sort: Sort | Literal[False] | None = None,
			key_attribute: str | None = "_id",
			id: str | None = None
		):
		"""
		Args:
			model: A Document class or a (possibly scoped) finder instance.
			criteria: condition, project, sort, skip, limit and hint.
			pagination, sort: Helpers reading the page and order from the request. None creates default ones, False disables them.
			key_attribute: The attribute fetch_keys() returns. None means the model's primary key.
			id: Prefixes the query string parameters (`{id}_page`, `{id}_sort`) so that several lists can share a page.
		"""
		from ..document.document import Document

		if isinstance(model, type) and issubclass(model, Document):
			self.model_class: type[D] = model
			self.model: D = model.model()
		elif isinstance(model, Document):
			self.model_class = type(model)
			self.model = model
		else:
			raise MongoYiiError("The DataProvider must have a model")

		self.id = id
		self.key_attribute = key_attribute

		if isinstance(criteria, Criteria):
			criteria = criteria.to_dict()
		self._criteria: dict[str, Any] = merge_array(self.model.get_db_criteria(), dict(criteria or {}))
		self.model.reset_scope(False)

		if pagination is None:
			pagination = Pagination(page_var=f"{id}_page" if id else "page")
		self._pagination = pagination
		if sort is None:
			sort = Sort(sort_var=f"{id}_sort" if id else "sort")
		self._sort = sort

		self._cursor: Cursor[D] | None = None
		self._data: list[D] | None = None
		self._keys: list[Any] | None = None
		self._total_item_count: int | None = None

	def __repr__(self) -> str:
		return f"DataProvider({self.model_class.__name__}, criteria={self._criteria!r})"

	# region: Configuration
	@property
	def criteria(self) -> dict[str, Any]:
		return self._criteria

	@criteria.setter
	def criteria(self, value: Criteria | Mapping[str, Any]) -> None:
		self._criteria = value.to_dict() if isinstance(value, Criteria) else dict(value)
		self.refresh()

	@property
	def pagination(self) -> Pagination | Literal[False]:
		return self._pagination

	@property
	def sort(self) -> Sort | Literal[False]:
		return self._sort

	@property
	def cursor(self) -> Cursor[D] | None:
		""" The cursor of the last fetch_data() """
		return self._cursor

	def refresh(self) -> None:
		""" Forgets the fetched data, keys and count so the next access queries again. """
		self._data = None
		self._keys = None
		self._total_item_count = None
	# endregion

	def _condition(self) -> dict[str, Any]:
		condition = self._criteria.get("condition")
		return condition if isinstance(condition, Mapping) else {}

	def fetch_data(self) -> list[D]:
		""" Runs the page query and returns the records as a list. """
		criteria = self._criteria
		project = criteria.get("project") or {}
		self._cursor = self.model.find(self._condition(), project)

		# Sort, skip and limit of the criteria come first, the pagination and sort helpers override them
		if isinstance(criteria.get("sort"), Mapping) and criteria["sort"]:
			self._cursor.sort(criteria["sort"])
		if isinstance(criteria.get("skip"), int) and criteria["skip"] > 0:
			self._cursor.skip(criteria["skip"])
		if isinstance(criteria.get("limit"), int) and criteria["limit"] > 0:
			self._cursor.limit(criteria["limit"])
		if isinstance(criteria.get("hint"), (str, list, dict)):
			self._cursor.hint(criteria["hint"])

		if self._pagination is not False:
			self._pagination.item_count = self.total_item_count
			self._cursor.limit(self._pagination.get_limit())
			self._cursor.skip(self._pagination.get_offset())

		if self._sort is not False:
			order_by = self._sort.get_order_by()
			if order_by:
				self._cursor.sort(order_by)

		return list(self._cursor)

	def fetch_keys(self) -> list[Any]:
		""" The key attribute of every record of the current page. List keys are joined with commas. """
		keys = []
		for record in self.data:
			attribute = self.key_attribute if self.key_attribute is not None else record.primary_key()
			key = getattr(record, attribute, None)
			keys.append(",".join(str(k) for k in key) if isinstance(key, (list, tuple)) else key)
		return keys

	def calculate_total_item_count(self) -> int:
		""" Counts the documents matching the condition. Skip and limit are not taken into account. """
		return self.model.count(self._condition())

	@property
	def data(self) -> list[D]:
		if self._data is None:
			self._data = self.fetch_data()
		return self._data

	@property
	def keys(self) -> list[Any]:
		if self._keys is None:
			self._keys = self.fetch_keys()
		return self._keys

	@property
	def item_count(self) -> int:
		""" The number of records on the current page. """
		return len(self.data)

	@property
	def total_item_count(self) -> int:
		if self._total_item_count is None:
			self._total_item_count = self.calculate_total_item_count()
		return self._total_item_count
