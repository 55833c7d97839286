import copy
from numbers import Number
from typing import Any, Mapping, Self

from .compare import compare_value
from .merge_array import merge_array


CRITERIA_KEYS = ("condition", "limit", "skip", "sort", "project")

def normalize_sort(sort: Mapping[str, Any]) -> dict[str, Any]:
	""" Maps the "asc"/"desc" strings to 1/-1. Other values pass through untouched. """
	normalized: dict[str, Any] = {}
	for field, order in sort.items():
		if isinstance(order, str) and order.lower() == "asc":
			order = 1
		elif isinstance(order, str) and order.lower() == "desc":
			order = -1
		normalized[field] = order
	return normalized


class Criteria:
	""" A query's filter, sort order, paging and projection in one object.

	This class is by no means required, find() and friends accept plain dicts too, however it can help in your programming.

	Example:
		criteria = Criteria({"condition": {"published": 1}, "limit": 10})
		criteria.compare("views", ">=100").set_sort({"date_published": "desc"})
		Post.model().find(criteria)
	"""

	def __init__(self, data: Mapping[str, Any] | None = None):
		self._condition: dict[str, Any] = {}
		self._sort: dict[str, Any] = {}
		self._skip = 0
		self._limit = 0
		# Named after MongoDB's projection, basically SELECT
		self._project: dict[str, Any] = {}

		for name, value in (data or {}).items():
			if name == "select":
				name = "project"
			if name not in CRITERIA_KEYS:
				raise AttributeError(f"Criteria has no property '{name}'")
			setattr(self, name, value)

	def __repr__(self) -> str:
		return f"Criteria({self.to_dict()!r})"

	def __eq__(self, other: object) -> bool:
		if not isinstance(other, Criteria):
			return NotImplemented
		return self.to_dict() == other.to_dict()

	# region: Properties
	@property
	def condition(self) -> dict[str, Any]:
		return self._condition

	@condition.setter
	def condition(self, condition: Mapping[str, Any] | None) -> None:
		self._condition = dict(condition or {})

	@property
	def sort(self) -> dict[str, Any]:
		return self._sort

	@sort.setter
	def sort(self, sort: Mapping[str, Any] | None) -> None:
		self._sort = normalize_sort(sort or {})

	@property
	def skip(self) -> int:
		return self._skip

	@skip.setter
	def skip(self, skip: Any) -> None:
		self._skip = int(skip)

	@property
	def limit(self) -> int:
		return self._limit

	@limit.setter
	def limit(self, limit: Any) -> None:
		self._limit = int(limit)

	@property
	def project(self) -> dict[str, Any]:
		return self._project

	@project.setter
	def project(self, project: Mapping[str, Any] | None) -> None:
		self._project = dict(project or {})

	# An alias for those too used to select
	select = project
	# endregion

	# region: Fluent setters
	def set_condition(self, condition: Mapping[str, Any] | None) -> Self:
		self.condition = condition
		return self

	def set_sort(self, sort: Mapping[str, Any] | None) -> Self:
		self.sort = sort
		return self

	def set_skip(self, skip: Any) -> Self:
		self.skip = skip
		return self

	def set_limit(self, limit: Any) -> Self:
		self.limit = limit
		return self

	def set_project(self, project: Mapping[str, Any] | None) -> Self:
		self.project = project
		return self

	def set_select(self, project: Mapping[str, Any] | None) -> Self:
		return self.set_project(project)
	# endregion

	def add_condition(self, column: str, value: Any, operator: str | None = None) -> Self:
		""" Sets the condition for column, overwriting any previous condition on the same column. """
		self._condition[column] = value if operator is None else {operator: value}
		return self

	def add_or_condition(self, conditions: list[dict[str, Any]]) -> Self:
		""" Appends an $or group to the $and list of the condition, so several $or groups can coexist. """
		self._condition.setdefault("$and", []).append({"$or": conditions})
		return self

	def compare(self, column: str, value: Any = None, partial_match: bool = False) -> Self:
		""" Base search functionality.

		Strings may start with a comparison operator (<>, <=, >=, <, >, =), e.g. compare("age", ">=18").
		Integer-looking strings are compared as integers unless partial_match is set, in which case the value is matched as a case-insensitive regex.
		Lists become an $in query. None, booleans and other objects are compared for equality.
		"""
		if isinstance(value, (list, tuple)):
			query_value: Any = {"$in": list(value)}
		elif isinstance(value, str):
			query_value = compare_value(value, partial_match)
		else:
			query_value = value
		return self.add_condition(column, query_value)

	def merge_with(self, criteria: 'Criteria | Mapping[str, Any] | None') -> Self:
		""" Merges either a mapping of criteria or another Criteria object into this one.
		condition, sort and project are merged recursively with the incoming values winning, skip and limit are overwritten. """
		if isinstance(criteria, Criteria):
			return self.merge_with(criteria.to_dict())
		if not criteria:
			return self

		if isinstance(criteria.get("condition"), Mapping):
			self._condition = merge_array(self._condition, criteria["condition"])
		if isinstance(criteria.get("sort"), Mapping):
			self._sort = merge_array(self._sort, normalize_sort(criteria["sort"]))
		if _is_numeric(criteria.get("skip")):
			self.skip = criteria["skip"]
		if _is_numeric(criteria.get("limit")):
			self.limit = criteria["limit"]
		project = criteria.get("project", criteria.get("select"))
		if isinstance(project, Mapping):
			self._project = merge_array(self._project, project)
		return self

	def to_dict(self, only_condition: bool = False) -> dict[str, Any]:
		""" Returns the native representation of the criteria.
		Pass only_condition=True when the result is used as a plain find() condition. """
		if only_condition:
			return self._condition
		return {
			"condition": self._condition,
			"limit": self._limit,
			"skip": self._skip,
			"sort": self._sort,
			"project": self._project,
		}

	def copy(self) -> 'Criteria':
		return Criteria(copy.deepcopy(self.to_dict()))


def _is_numeric(value: Any) -> bool:
	if isinstance(value, bool):
		return False
	if isinstance(value, Number):
		return True
	return isinstance(value, str) and value.strip().lstrip("-").isdigit()
