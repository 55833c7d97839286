from typing import TYPE_CHECKING, TypeVar

from bidict import bidict

from ..utilities.setup_error import SetupError
if TYPE_CHECKING:
	from .document import Document


D = TypeVar('D', bound='Document')

class ModelRegistry:
	""" Memoizes one finder instance per Document class for an application.
	Finder instances carry scope criteria between calls, which is why they are kept per application instead of globally. """

	def __init__(self) -> None:
		self.class_name_dict: bidict[str, type['Document']] = bidict()
		self._models: dict[type['Document'], 'Document'] = {}

	def register(self, cls: type['Document']) -> None:
		""" Register a Document class by its name. Two different classes may not share a name. """
		existing = self.class_name_dict.get(cls.__name__)
		if existing is cls:
			return
		if existing is not None:
			raise SetupError(f"Document class name {cls.__name__} already exists.")
		self.class_name_dict[cls.__name__] = cls

	def model(self, cls: type[D]) -> D:
		""" Returns the finder instance for cls, creating it on first use. """
		model = self._models.get(cls)
		if model is None:
			self.register(cls)
			model = cls.instantiate_finder()
			self._models[cls] = model
		return model  # type: ignore[return-value]

	def lookup(self, class_name: str) -> type['Document'] | None:
		""" Returns None if no Document class with that name has been used yet. """
		return self.class_name_dict.get(class_name)

	def class_name_of(self, cls: type['Document']) -> str | None:
		return self.class_name_dict.inverse.get(cls)

	def forget(self, cls: type['Document']) -> None:
		self._models.pop(cls, None)
		self.class_name_dict.inverse.pop(cls, None)

	def __contains__(self, cls: object) -> bool:
		return cls in self._models
