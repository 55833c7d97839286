import copy
from typing import TYPE_CHECKING, Any, Generic, Iterator, Mapping, Self, TypeVar

from .criteria import Criteria, normalize_sort
from ..utilities.logger import logger
from ..utilities.mongoyii_error import MongoYiiError
if TYPE_CHECKING:
	from .document import Document


D = TypeVar('D', bound='Document')

class Cursor(Generic[D]):
	""" Lazily turns the rows of a driver cursor into Document instances.

	The cursor does not load everything up front. Use list(cursor) for eager loading.

	When query caching is switched on for the model's connection (Document.cache()), the first read after a rewind looks the query up in the cache. A hit replays the cached rows, a miss reads the whole driver cursor, stores the rows and replays them.
	"""

	def __init__(self, model: 'type[D] | D', criteria: 'Mapping[str, Any] | Criteria | Any' = None, fields: Mapping[str, Any] | None = None):
		"""
		Args:
			model: The Document class (its registered finder is used) or a Document instance.
			criteria: A condition dict, a Criteria (condition, projection, sort, skip and limit are all applied) or a driver cursor to wrap.
			fields: Projection. Any non-empty projection makes every record partial, since there is no schema to tell whether the whole document was projected.
		"""
		from .document import Document

		if isinstance(model, type) and issubclass(model, Document):
			self.model_class: type[D] = model
			self.model: D = model.model()
		elif isinstance(model, Document):
			self.model_class = type(model)
			self.model = model
		else:
			raise MongoYiiError("The Cursor must have a model")

		self.criteria = criteria
		self._condition: dict[str, Any] = {}
		self._fields: dict[str, Any] = dict(fields or {})
		self._sort: dict[str, Any] = {}
		self._skip = 0
		self._limit = 0
		# Wrapped driver cursors carry a query we can't read back, so they are neither cached nor counted server side
		self._wrapped = False

		if isinstance(criteria, Criteria):
			self._condition = dict(criteria.condition)
			if criteria.project:
				self._fields = dict(criteria.project)
			self._cursor = self.model.native_find(self._condition, self._fields)
			if criteria.sort:
				self.sort(criteria.sort)
			if criteria.skip > 0:
				self.skip(criteria.skip)
			if criteria.limit > 0:
				self.limit(criteria.limit)
		elif criteria is None or isinstance(criteria, Mapping):
			# Then we are doing an active query
			self._condition = dict(criteria or {})
			self._cursor = self.model.native_find(self._condition, self._fields)
		else:
			self._cursor = criteria
			self._cursor.rewind()
			self._wrapped = True

		self._partial = bool(self._fields)
		self._current: D | None = None
		self._run = False
		self._from_cache = False
		self._cached_rows: list[Any] = []
		self._position = 0

	def __repr__(self) -> str:
		return f"Cursor({self.model_class.__name__}, condition={self._condition!r}, sort={self._sort!r}, skip={self._skip}, limit={self._limit})"

	@property
	def cursor(self) -> Any:
		""" The underlying driver cursor. """
		return self._cursor

	@property
	def current(self) -> D | None:
		""" The record most recently returned by the cursor. """
		return self._current

	@property
	def is_partial(self) -> bool:
		return self._partial

	@property
	def from_cache(self) -> bool:
		return self._from_cache

	# region: Query modifiers
	def sort(self, fields: Mapping[str, Any]) -> Self:
		fields = normalize_sort(fields)
		if fields:
			self._sort = fields
			self._cursor.sort(list(fields.items()))
		return self

	def skip(self, num: int = 0) -> Self:
		self._skip = int(num)
		self._cursor.skip(self._skip)
		return self

	def limit(self, num: int = 0) -> Self:
		self._limit = int(num)
		self._cursor.limit(self._limit)
		return self

	def timeout(self, ms: int) -> Self:
		""" Server-side time limit for the query, in milliseconds. """
		self._cursor.max_time_ms(ms)
		return self

	def hint(self, index: Any) -> Self:
		self._cursor.hint(index)
		return self

	def batch_size(self, size: int) -> Self:
		self._cursor.batch_size(size)
		return self

	def explain(self) -> dict[str, Any]:
		return self._cursor.explain()
	# endregion

	# region: Iteration
	def rewind(self) -> Self:
		""" Reset the cursor to the beginning. The cache is consulted again on the next read. """
		self._run = False
		self._from_cache = False
		self._cached_rows = []
		self._position = 0
		self._current = None
		self._cursor.rewind()
		return self

	def __iter__(self) -> Iterator[D]:
		self.rewind()
		return self

	def __next__(self) -> D:
		if not self._run:
			self._load_from_cache()
			self._run = True

		if self._from_cache:
			if self._position >= len(self._cached_rows):
				raise StopIteration
			# Deep copy so records never share nested values with the cache
			row = copy.deepcopy(self._cached_rows[self._position])
			self._position += 1
		else:
			row = next(self._cursor)

		self._current = self.model.populate_record(row, True, self._partial)
		return self._current

	def get_next(self) -> D | None:
		""" Returns the next record, or None once the cursor is exhausted. """
		try:
			return next(self)
		except StopIteration:
			return None

	def key(self) -> Any:
		""" The primary key of the current record. """
		if self._current is None:
			return None
		return getattr(self._current, self._current.primary_key(), None)

	def _load_from_cache(self) -> None:
		""" Runs once per rewind. Switches the cursor into replay mode when query caching is active for the connection. """
		from ..extension import get_component

		if self._wrapped:
			return

		connection = self.model.get_db_connection()
		if not connection.is_query_caching_enabled():
			return
		cache = get_component(connection.query_cache_id)
		if cache is None:
			return

		connection.query_caching_count -= 1
		cache_key = connection.get_cache_key(
			self.model.collection_name(),
			connection.get_serialised_query(self._condition, self._fields, self._sort, self._skip, self._limit)
		)

		result = cache.get(cache_key)
		if result is not None:
			logger.debug("Query result found in cache")
			self._cached_rows = result
		else:
			self._cached_rows = list(self._cursor)
			cache.set(
				cache_key,
				self._cached_rows,
				ttl_seconds=connection.query_caching_duration,
				dependency=connection.query_caching_dependency
			)
		self._from_cache = True
	# endregion

	def count(self, take_skip: bool = False) -> int:
		""" Counts the records matching the query.
		By default skip and limit are not taken into account, pass take_skip=True for that. A cursor replaying from the cache always reports the number of cached rows. """
		if self._from_cache:
			return len(self._cached_rows)
		if self._wrapped:
			return sum(1 for _ in self._cursor.clone())

		options: dict[str, int] = {}
		if take_skip:
			if self._skip > 0:
				options["skip"] = self._skip
			if self._limit > 0:
				options["limit"] = self._limit
		return self.model.native_count(self._condition, **options)
