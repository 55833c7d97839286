from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class CacheDependency(Protocol):
	""" A cached value stays valid only while its dependency reports no change.
	evaluate_dependency() is called once when the value is stored. """

	def evaluate_dependency(self) -> None:
		...

	def has_changed(self) -> bool:
		...


class ExpressionDependency:
	""" Invalidates a cached value once the expression returns something different from what it returned at store time.

	Example:
		dependency = ExpressionDependency(lambda: Post.model().count())
		Post.model().cache(600, dependency).find()
	"""

	def __init__(self, expression: Callable[[], Any]):
		self.expression = expression
		self._data: Any = None

	def evaluate_dependency(self) -> None:
		self._data = self.expression()

	def has_changed(self) -> bool:
		return self.expression() != self._data
