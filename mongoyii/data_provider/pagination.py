from typing import Any, Mapping
from urllib.parse import urlencode

from flask import has_request_context, request


class Pagination:
	""" Splits a list into pages. The current page is read from the query string (1-based, e.g. ?page=3) and kept 0-based here.
	Outside of a request, or when the parameter is missing or malformed, the first page is used. """

	def __init__(self, page_size: int = 20, page_var: str = "page", current_page: int | None = None, validate_current_page: bool = True):
		self.page_size = page_size if page_size > 0 else 20
		self.page_var = page_var
		self.validate_current_page = validate_current_page
		self.item_count = 0
		self._current_page = current_page

	def __repr__(self) -> str:
		return f"Pagination(page={self.current_page}, page_size={self.page_size}, item_count={self.item_count})"

	@property
	def page_count(self) -> int:
		return (self.item_count + self.page_size - 1) // self.page_size

	@property
	def current_page(self) -> int:
		if self._current_page is None:
			self._current_page = self._page_from_request()
		page = self._current_page
		if self.validate_current_page:
			page = min(page, max(self.page_count - 1, 0))
		return max(page, 0)

	@current_page.setter
	def current_page(self, value: int) -> None:
		self._current_page = int(value)

	def _page_from_request(self) -> int:
		if not has_request_context():
			return 0
		value = request.args.get(self.page_var)
		if value is None or not value.strip().isdigit():
			return 0
		return int(value) - 1

	def get_limit(self) -> int:
		return self.page_size

	def get_offset(self) -> int:
		return self.current_page * self.page_size

	def create_page_url(self, page: int, params: Mapping[str, Any] | None = None) -> str:
		""" URL of the current request with the page parameter replaced. The first page drops the parameter. """
		args: dict[str, Any] = dict(params) if params is not None else (dict(request.args) if has_request_context() else {})
		if page > 0:
			args[self.page_var] = page + 1
		else:
			args.pop(self.page_var, None)
		path = request.path if has_request_context() else ""
		query_string = urlencode(args, doseq=False)
		return f"{path}?{query_string}" if query_string else path
