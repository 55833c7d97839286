from typing import Any, Iterable, Mapping
from urllib.parse import urlencode

from flask import has_request_context, request

from ..document.criteria import normalize_sort


class Sort:
	""" Reads the requested order from the query string.

	The sort parameter lists attributes separated by `-`, each optionally followed by `.desc`:

		?sort=name.desc-age   ->   {"name": -1, "age": 1}

	Only the attributes listed in `attributes` can be sorted on. Leaving it as None allows any attribute, as documents have no schema to check against.
	"""
	SEPARATORS = ("-", ".")

	def __init__(
			self,
			attributes: Iterable[str] | None = None,
			default_order: Mapping[str, Any] | None = None,
			sort_var: str = "sort",
			multi_sort: bool = True
		):
		self.attributes = list(attributes) if attributes is not None else None
		self.default_order = normalize_sort(default_order or {})
		self.sort_var = sort_var
		self.multi_sort = multi_sort
		self._directions: dict[str, int] | None = None

	def __repr__(self) -> str:
		return f"Sort({self.get_directions()!r})"

	def is_sortable(self, attribute: str) -> bool:
		return self.attributes is None or attribute in self.attributes

	def get_directions(self) -> dict[str, int]:
		""" The requested order, or the default order when nothing usable was requested. """
		if self._directions is None:
			self._directions = self._directions_from_request() or dict(self.default_order)
		return self._directions

	def _directions_from_request(self) -> dict[str, int]:
		if not has_request_context():
			return {}
		value = request.args.get(self.sort_var)
		if not value:
			return {}

		directions: dict[str, int] = {}
		for part in value.split(self.SEPARATORS[0]):
			attribute, _, direction = part.partition(self.SEPARATORS[1])
			if not attribute or not self.is_sortable(attribute):
				continue
			directions[attribute] = -1 if direction == "desc" else 1
			if not self.multi_sort:
				break
		return directions

	def get_order_by(self) -> dict[str, int]:
		""" The order as a cursor sort specification. """
		return dict(self.get_directions())

	def create_sort_url(self, directions: Mapping[str, Any], params: Mapping[str, Any] | None = None) -> str:
		""" URL of the current request sorted by directions. """
		parts = []
		for attribute, direction in normalize_sort(directions).items():
			parts.append(f"{attribute}{self.SEPARATORS[1]}desc" if direction == -1 else attribute)
		args: dict[str, Any] = dict(params) if params is not None else (dict(request.args) if has_request_context() else {})
		args[self.sort_var] = self.SEPARATORS[0].join(parts)
		path = request.path if has_request_context() else ""
		return f"{path}?{urlencode(args, doseq=False)}"
