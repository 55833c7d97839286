import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from bson.regex import Regex

from .scenario import Scenario
if TYPE_CHECKING:
	from .document import Document


def _split_names(names: str | Iterable[str]) -> list[str]:
	""" Accepts "a, b, c" as well as ["a", "b", "c"]. """
	if isinstance(names, str):
		return [name.strip() for name in names.split(",") if name.strip()]
	return list(names)


class Validator(ABC):
	""" Base class for document validators.

	Validators are declared per Document class by overriding Document.validators(). A validator limited to some scenarios (`on`) is skipped in the others.
	Every attribute named by a validator active in the current scenario counts as safe for mass assignment unless safe=False.
	"""

	def __init__(
			self,
			attributes: str | Iterable[str],
			*,
			on: Scenario | str | Iterable[Scenario | str] | None = None,
			skip_on_error: bool = False,
			safe: bool = True,
			message: str | None = None
		):
		self.attributes = _split_names(attributes)
		if on is None:
			self.on: set[str] = set()
		elif isinstance(on, str):
			self.on = {str(s) for s in _split_names(on)}
		else:
			self.on = {str(s) for s in on}
		self.skip_on_error = skip_on_error
		self.safe = safe
		self.message = message

	def applies_to(self, scenario: Scenario | str | None) -> bool:
		return not self.on or str(scenario) in self.on

	def validate(self, document: 'Document', attributes: Iterable[str] | None = None) -> None:
		names = self.attributes if attributes is None else [a for a in self.attributes if a in set(attributes)]
		for attribute in names:
			if self.skip_on_error and document.has_errors(attribute):
				continue
			self.validate_attribute(document, attribute)

	@abstractmethod
	def validate_attribute(self, document: 'Document', attribute: str) -> None:
		...

	def add_error(self, document: 'Document', attribute: str, message: str, params: Mapping[str, Any] | None = None) -> None:
		params = {"{attribute}": attribute, **(params or {})}
		for placeholder, value in params.items():
			message = message.replace(placeholder, str(value))
		document.add_error(attribute, message)

	@staticmethod
	def is_empty(value: Any) -> bool:
		return value is None or value == "" or value == [] or value == {}


class SafeValidator(Validator):
	""" Marks attributes as safe for mass assignment in the given scenarios without checking anything. """

	def validate_attribute(self, document: 'Document', attribute: str) -> None:
		return


class UniqueValidator(Validator):
	""" Validates that the attribute value is unique in the collection.

	The check reads the raw collection so no extra Document instance is created. A document found with the same primary key as the one being validated does not count as a duplicate.
	"""

	def __init__(
			self,
			attributes: str | Iterable[str],
			*,
			case_sensitive: bool = True,
			allow_empty: bool = True,
			model_class: 'type[Document] | None' = None,
			attribute_name: str | None = None,
			criteria: Mapping[str, Any] | None = None,
			skip_on_error: bool = True,
			**kwargs: Any
		):
		super().__init__(attributes, skip_on_error=skip_on_error, **kwargs)
		self.case_sensitive = case_sensitive
		self.allow_empty = allow_empty
		self.model_class = model_class
		self.attribute_name = attribute_name
		self.criteria = dict(criteria or {})

	def validate_attribute(self, document: 'Document', attribute: str) -> None:
		value = getattr(document, attribute, None)
		if self.allow_empty and self.is_empty(value):
			return

		model_class = self.model_class if self.model_class is not None else type(document)
		attribute_name = self.attribute_name if self.attribute_name is not None else attribute

		match_value = value if self.case_sensitive else Regex(f"^{re.escape(str(value))}$", "i")
		query = {**self.criteria, attribute_name: match_value}
		found = model_class.model().get_collection().find_one(query)

		primary_key = document.primary_key()
		if found is not None and str(found.get(primary_key)) != str(getattr(document, primary_key, None)):
			message = self.message if self.message is not None else '{attribute} "{value}" has already been taken.'
			self.add_error(document, attribute, message, {"{value}": value})
