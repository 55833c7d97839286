import copy
import inspect
from abc import ABCMeta
from contextlib import nullcontext
from typing import TYPE_CHECKING, Any, ClassVar, ContextManager, Iterable, Mapping, Self, get_origin

from bson import ObjectId, json_util
from bson.code import Code
from pymongo.collection import Collection
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult

from .compare import compare_value
from .criteria import Criteria
from .cursor import Cursor
from .merge_array import merge_array
from .scenario import Scenario
from .validators import Validator
from ..cache.dependency import CacheDependency
from ..utilities.logger import is_debug, trace
from ..utilities.mongoyii_error import MongoYiiError
from ..utilities.profile import profile
from ..utilities.setup_error import SetupError
from ..utilities.special_values import ABSTRACT
if TYPE_CHECKING:
	from ..client import Client
	from ..data_provider.data_provider import DataProvider


TRACE_CATEGORY = "mongoyii.Document"

# Bookkeeping attributes which live on the instance but are never written to the database
SPECIAL_INSTANCE_FIELDS = frozenset((
	"_is_new",
	"_scenario",
	"_criteria",
	"_partial",
	"_projected_fields",
	"_last_error",
	"_errors",
))

def _is_operator_document(document: Mapping[str, Any]) -> bool:
	return any(key.startswith("$") for key in document)

def _to_condition(criteria: 'Criteria | Mapping[str, Any] | None') -> dict[str, Any]:
	if isinstance(criteria, Criteria):
		return criteria.condition
	return dict(criteria or {})


class DocumentMeta(ABCMeta):
	""" Collects the annotated fields of a Document class (and its parents) into __document_fields__, mapping field name -> default value.
	Fields surrounded by double underscores and ClassVars are class configuration, not document fields. """

	def __new__(mcs, name, bases, dct):
		new_cls = super().__new__(mcs, name, bases, dct)

		fields: dict[str, Any] = {}
		for base in reversed(new_cls.__mro__[1:]):
			fields.update(getattr(base, "__document_fields__", {}))

		for field_name, field_annotation in inspect.get_annotations(new_cls).items():
			if field_name.startswith("__") and field_name.endswith("__"):
				continue
			if get_origin(field_annotation) is ClassVar or field_annotation is ClassVar:
				continue
			fields[field_name] = dct.get(field_name)

		new_cls.__document_fields__ = fields
		return new_cls


class Document(metaclass=DocumentMeta):
	""" An active record mapped to a MongoDB collection.

	Subclasses declare their collection and their fields:

		class User(Document):
			__collection_name__ = "users"
			__versioned__ = True

			username: str | None = None
			roles: list = []

	Defaults are deep-copied for each instance. Any other public attribute assigned to an instance is stored as a document field as well.

	Class-level operations go through the finder returned by User.model(), which also carries scope criteria:

		User.model().scope("active").find({"username": "sammaye"})
	"""
	# Class configuration
	__collection_name__: ClassVar[str] = ABSTRACT
	__connection_id__: ClassVar[str] = "mongodb"
	__versioned__: ClassVar[bool] = False
	__version_field__: ClassVar[str] = "_v"
	__primary_key__: ClassVar[str] = "_id"
	__transient_fields__: ClassVar[tuple[str, ...]] = ()
	""" Extra instance attributes of a subclass which should not be saved. """
	__document_fields__: ClassVar[dict[str, Any]]

	_id: ObjectId | None = None

	def __init__(self, scenario: Scenario | str | None = Scenario.INSERT, **attributes: Any):
		""" Creates a new record. Keyword arguments are assigned as attributes.
		scenario=None is used internally for finder instances and records populated from a query. """
		self._is_new = False
		self._scenario: str | None = None
		self._criteria: dict[str, Any] | None = None
		self._partial = False
		self._projected_fields: dict[str, int] = {}
		self._last_error: Any = None
		self._errors: dict[str, list[str]] = {}

		for field_name, default in type(self).__document_fields__.items():
			setattr(self, field_name, copy.deepcopy(default))

		if scenario is None:
			return

		self._scenario = str(scenario)
		self._is_new = True
		for name, value in attributes.items():
			setattr(self, name, value)
		self.init()

	def init(self) -> None:
		""" Override this to set up a record. Runs for new records and for records populated from a query, but not for finders. """
		return

	def __str__(self) -> str:
		output = f"{type(self).__name__}(\n"
		for field_name, field_value in self.get_attributes().items():
			output += f"\t{field_name}={repr(field_value)},\n"
		output += ")"
		return output

	def __repr__(self) -> str:
		return f"<{type(self).__name__} {self.primary_key()}={getattr(self, self.primary_key(), None)!r}>"

	# region: Class metadata
	@classmethod
	def collection_name(cls) -> str:
		if not cls.__collection_name__ or cls.__collection_name__ == ABSTRACT:
			raise SetupError(f"Collection name not defined for {cls.__name__}. __collection_name__ must be specified for concrete document classes.")
		return cls.__collection_name__

	@classmethod
	def versioned(cls) -> bool:
		""" Whether updates of this document are conditioned on the version field (optimistic locking). """
		return cls.__versioned__

	@classmethod
	def version_field(cls) -> str:
		return cls.__version_field__

	@classmethod
	def primary_key(cls) -> str:
		return cls.__primary_key__

	@classmethod
	def get_db_connection(cls) -> 'Client':
		""" Returns the Client registered under __connection_id__ for the current application. """
		from ..extension import get_connection
		return get_connection(cls.__connection_id__)

	@classmethod
	def get_collection(cls) -> Collection:
		""" Returns the corresponding Pymongo Collection, with the connection's write concern applied. """
		return cls.get_db_connection().get_collection(cls.collection_name())

	@classmethod
	def model(cls) -> Self:
		""" Returns the finder instance of this class for the current application. It is created once and then reused. """
		from ..extension import get_state
		return get_state().models.model(cls)

	@classmethod
	def instantiate_finder(cls) -> Self:
		return cls(scenario=None)

	def instantiate(self, attributes: Mapping[str, Any]) -> Self:
		""" Creates the empty record populate_record() fills. Override to pick a subclass based on the row. """
		return type(self)(scenario=None)
	# endregion

	# region: Keys
	def get_mongo_id(self, value: Any = None) -> ObjectId:
		""" Returns value as an ObjectId. None generates a new one. """
		return value if isinstance(value, ObjectId) else ObjectId(value)

	def get_primary_key(self, value: Any = None) -> Any:
		""" Returns the value of the primary key, or value coerced the same way.
		Override this (together with __primary_key__) for custom primary keys. """
		if value is None:
			value = getattr(self, self.primary_key(), None)
		return self.get_mongo_id(value)

	def _has_primary_key(self) -> bool:
		return getattr(self, self.primary_key(), None) is not None
	# endregion

	# region: State
	@property
	def is_new_record(self) -> bool:
		""" Whether the record should be inserted when calling save(). True for records created with the constructor, False for populated ones. """
		return self._is_new

	@is_new_record.setter
	def is_new_record(self, value: bool) -> None:
		self._is_new = bool(value)

	@property
	def scenario(self) -> str | None:
		return self._scenario

	@scenario.setter
	def scenario(self, value: Scenario | str | None) -> None:
		self._scenario = str(value) if value is not None else None

	@property
	def is_partial(self) -> bool:
		""" True for records loaded with a projection. """
		return self._partial

	@is_partial.setter
	def is_partial(self, value: bool) -> None:
		self._partial = bool(value)

	@property
	def projected_fields(self) -> dict[str, int]:
		""" The fields a partial record was loaded with. Only meaningful when is_partial is True. """
		return self._projected_fields

	@projected_fields.setter
	def projected_fields(self, fields: Mapping[str, Any] | Iterable[str]) -> None:
		self._projected_fields = {name: 1 for name in fields}

	def get_last_error(self) -> Any:
		""" The driver's result of the last write made through this record (InsertOneResult, UpdateResult or DeleteResult). """
		return self._last_error

	def version(self) -> Any:
		return getattr(self, self.version_field(), None)

	def increment_version(self) -> bool:
		""" Forcibly increments the version of this document. """
		result = self.update_by_pk(self.get_primary_key(), {"$inc": {self.version_field(): 1}})
		if result.matched_count <= 0:
			return False
		setattr(self, self.version_field(), (self.version() or 0) + 1)
		return True

	def set_version(self, n: Any) -> bool:
		""" Forcibly sets the version of this document. """
		result = self.update_by_pk(self.get_primary_key(), {"$set": {self.version_field(): n}})
		if result.matched_count <= 0:
			return False
		setattr(self, self.version_field(), n)
		return True
	# endregion

	# region: Attributes
	def _skipped_fields(self) -> frozenset[str]:
		return SPECIAL_INSTANCE_FIELDS.union(type(self).__transient_fields__)

	def attribute_names(self) -> list[str]:
		""" Declared fields first, then any attribute assigned on the fly. """
		skipped = self._skipped_fields()
		return [name for name in self.__dict__ if name not in skipped and not name.startswith("__")]

	def get_attributes(self, names: Iterable[str] | None = None) -> dict[str, Any]:
		if names is None:
			names = self.attribute_names()
		return {name: getattr(self, name, None) for name in names}

	def set_attributes(self, values: Mapping[str, Any], safe_only: bool = True) -> None:
		""" Mass assignment. With safe_only, attributes which are not safe in the current scenario are ignored. """
		safe = set(self.safe_attribute_names()) if safe_only else None
		for name, value in values.items():
			if safe is None or name in safe:
				setattr(self, name, value)

	def filter_raw_document(self, document: Any) -> Any:
		""" Renders nested documents, mappings and lists down to plain values the driver can store. """
		if isinstance(document, Document):
			return document.get_raw_document()
		if isinstance(document, Mapping):
			return {key: self.filter_raw_document(value) for key, value in document.items()}
		if isinstance(document, (list, tuple)):
			return [self.filter_raw_document(value) for value in document]
		return document

	def get_raw_document(self) -> dict[str, Any]:
		return self.filter_raw_document(self.get_attributes())

	def clean(self) -> None:
		""" Resets every field to its declared default and drops attributes assigned on the fly. """
		for name in self.attribute_names():
			delattr(self, name)
		for field_name, default in type(self).__document_fields__.items():
			setattr(self, field_name, copy.deepcopy(default))
	# endregion

	# region: Validation
	def validators(self) -> list[Validator]:
		""" Override this to declare validation rules. """
		return []

	def validate(self, attributes: Iterable[str] | None = None, clear_errors: bool = True) -> bool:
		""" Runs the validators active in the current scenario. Returns whether the record is free of errors. """
		if clear_errors:
			self._errors = {}
		for validator in self.validators():
			if validator.applies_to(self._scenario):
				validator.validate(self, attributes)
		return not self.has_errors()

	def add_error(self, attribute: str, message: str) -> None:
		self._errors.setdefault(attribute, []).append(message)

	def has_errors(self, attribute: str | None = None) -> bool:
		if attribute is None:
			return bool(self._errors)
		return bool(self._errors.get(attribute))

	def get_errors(self, attribute: str | None = None) -> dict[str, list[str]] | list[str]:
		if attribute is None:
			return self._errors
		return self._errors.get(attribute, [])

	def safe_attribute_names(self) -> list[str]:
		""" Attributes which may be mass assigned (and searched on) in the current scenario.
		Documents without any validators treat every attribute as safe. """
		validators = self.validators()
		if not validators:
			return self.attribute_names()

		names: list[str] = []
		for validator in validators:
			if validator.safe and validator.applies_to(self._scenario):
				names.extend(name for name in validator.attributes if name not in names)
		return names
	# endregion

	# region: Population
	def populate_record(self, attributes: Mapping[str, Any] | None, call_after_find: bool = True, partial: bool = False) -> Self | None:
		""" Creates a persisted record from a raw document. Returns None for a None row. """
		if attributes is None:
			return None
		record = self.instantiate(attributes)
		record._scenario = str(Scenario.UPDATE)
		record._is_new = False
		record.init()

		for name, value in attributes.items():
			setattr(record, name, value)

		if partial:
			record.is_partial = True
			record.projected_fields = attributes

		if call_after_find:
			record.__after_finding__()
		return record

	def populate_records(self, rows: Iterable[Mapping[str, Any]], call_after_find: bool = True, index: str | None = None) -> list[Self] | dict[Any, Self]:
		""" Populates several records. With index, returns a dict keyed by that attribute. """
		records: list[Self] = []
		indexed: dict[Any, Self] = {}
		for attributes in rows:
			record = self.populate_record(attributes, call_after_find)
			if record is None:
				continue
			if index is None:
				records.append(record)
			else:
				indexed[getattr(record, index)] = record
		return records if index is None else indexed
	# endregion

	# region: Hooks
	def __before_saving__(self, scenario: Scenario) -> bool:
		""" Override this to add checks before insert() or update(). Returning False cancels the write. """
		return True

	def __after_saving__(self) -> None:
		return

	def __before_deleting__(self) -> bool:
		""" Override this if you want to add validation (like referential integrity) before deleting. """
		return True

	def __after_deleting__(self) -> None:
		return

	def __before_finding__(self) -> None:
		""" Runs before find() and find_one(), even before scopes are applied. """
		return

	def __after_finding__(self) -> None:
		return
	# endregion

	# region: Tracing and profiling
	def trace(self, func: str) -> None:
		trace(f"{type(self).__name__}.{func}()", TRACE_CATEGORY)

	def _profile(self, operation: str, **parts: Any) -> ContextManager[None]:
		""" Builds the profiling token only when profiling is switched on, since it serializes the whole query. """
		if not self.get_db_connection().enable_profiling:
			return nullcontext()
		token = f"{TRACE_CATEGORY}.query.{self.collection_name()}.{operation}({json_util.dumps(parts)})"
		return profile(token, f"{TRACE_CATEGORY}.{operation}")

	def _trace_query(self, operation: str, **parts: Any) -> None:
		if is_debug():
			trace(f"Executing {operation}: {json_util.dumps(parts)}", TRACE_CATEGORY)
	# endregion

	# region: Driver access
	# Overridden by File, whose records live in the GridFS files collection
	def native_find(self, condition: Mapping[str, Any], fields: Mapping[str, Any] | None = None) -> Any:
		return self.get_collection().find(condition, dict(fields) if fields else None)

	def native_find_one(self, condition: Mapping[str, Any], fields: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
		return self.get_collection().find_one(condition, dict(fields) if fields else None)

	def native_count(self, condition: Mapping[str, Any], **options: Any) -> int:
		return self.get_collection().count_documents(condition, **options)

	def _write_update(self, query: Mapping[str, Any], update_doc: Mapping[str, Any], multiple: bool, upsert: bool = False) -> UpdateResult:
		""" Operator documents ($set, $inc ...) go through update_one/update_many, anything else replaces the matched document. """
		collection = self.get_collection()
		if _is_operator_document(update_doc):
			if multiple:
				return collection.update_many(query, update_doc, upsert=upsert)
			return collection.update_one(query, update_doc, upsert=upsert)
		if multiple:
			raise MongoYiiError("A replacement document can only be applied to a single document. Use update operators to update many.")
		return collection.replace_one(query, update_doc, upsert=upsert)
	# endregion

	# region: Persistence
	def save(self, run_validation: bool = True, attributes: Iterable[str] | None = None) -> bool:
		""" Inserts or updates the record. If attributes is given, only those attributes are validated and saved. """
		if not run_validation or self.validate(attributes):
			return self.insert(attributes) if self.is_new_record else self.update(attributes)
		return False

	def save_attributes(self, attributes: Mapping[str, Any] | Iterable[str]) -> bool:
		""" Saves only the given attributes with $set. A mapping assigns the values to the record first. """
		if self.is_new_record:
			raise MongoYiiError("The active record cannot be updated because it is new.")
		self.trace("save_attributes")

		values: dict[str, Any] = {}
		if isinstance(attributes, Mapping):
			for name, value in attributes.items():
				setattr(self, name, value)
				values[name] = self.filter_raw_document(value)
		else:
			for name in attributes:
				values[name] = self.filter_raw_document(getattr(self, name, None))

		if not self._has_primary_key():
			raise MongoYiiError("The active record cannot be updated because its primary key is not set.")
		self._last_error = self.update_by_pk(self.get_primary_key(), {"$set": values})
		return self._last_error.matched_count > 0

	def insert(self, attributes: Iterable[str] | None = None) -> bool:
		""" Inserts this record. Versioned records always start at version 1. """
		if not self.is_new_record:
			raise MongoYiiError("The active record cannot be inserted to database because it is not new.")
		if not self.__before_saving__(Scenario.INSERT):
			return False
		self.trace("insert")

		if attributes is not None:
			document = self.filter_raw_document(self.get_attributes(attributes))
		else:
			document = self.get_raw_document()

		if self.versioned():
			document[self.version_field()] = 1
			setattr(self, self.version_field(), 1)

		primary_key = self.primary_key()
		if not self._has_primary_key():
			setattr(self, primary_key, self.get_primary_key())
		document[primary_key] = getattr(self, primary_key)

		self._trace_query("insert", document=document)
		with self._profile("insert", document=document):
			result: InsertOneResult = self.get_collection().insert_one(document)
		self._last_error = result

		if result.inserted_id is not None:
			self.__after_saving__()
			self.is_new_record = False
			self.scenario = Scenario.UPDATE
			return True
		return False

	def update(self, attributes: Iterable[str] | None = None) -> bool:
		""" Updates this record.

		Full records replace the stored document. Partial records (loaded with a projection) and updates of explicit attributes use $set instead, so fields that were never loaded are left alone.

		Versioned records only update when the stored version still matches the one that was loaded. Returns False when another writer got there first.
		"""
		if self.is_new_record:
			raise MongoYiiError("The active record cannot be updated because it is new.")
		if not self.__before_saving__(Scenario.UPDATE):
			return False
		self.trace("update")
		if not self._has_primary_key():
			raise MongoYiiError("The active record cannot be updated because its primary key is not set.")

		partial = False
		if attributes is not None:
			document = self.filter_raw_document(self.get_attributes(attributes))
			partial = True
		elif self.is_partial:
			document = self.filter_raw_document(self.get_attributes(self._projected_fields))
			partial = True
		else:
			document = self.get_raw_document()
		document.pop(self.primary_key(), None)

		if self.versioned():
			version_field = self.version_field()
			if self.is_partial and version_field not in self._projected_fields:
				# The stored version can't be trusted unless it was loaded
				raise MongoYiiError("You cannot update a versioned partial document unless you project the version field as well")

			version = getattr(self, version_field, None)
			new_version = version + 1 if isinstance(version, int) and version > 0 else 1
			# NOTE: The in-memory version is bumped before the write and is left bumped when the write loses
			document[version_field] = new_version
			setattr(self, version_field, new_version)

			update_doc = {"$set": document} if partial else document
			self._last_error = self.update_all(
				{self.primary_key(): self.get_primary_key(), version_field: version},
				update_doc,
				multiple=False
			)
			if self._last_error.matched_count <= 0:
				return False
		else:
			update_doc = {"$set": document} if partial else document
			self._last_error = self.update_by_pk(self.get_primary_key(), update_doc)

		self.__after_saving__()
		return True

	def delete(self) -> bool:
		""" Deletes this record. Returns whether a document was removed. """
		if self.is_new_record:
			raise MongoYiiError("The active record cannot be deleted because it is new.")
		self.trace("delete")
		if not self.__before_deleting__():
			return False
		result = self.delete_by_pk(self.get_primary_key())
		self._last_error = result
		self.__after_deleting__()
		return result.deleted_count > 0

	def refresh(self) -> bool:
		""" Reloads the record from the database. """
		self.trace("refresh")
		if self.is_new_record:
			return False
		record = self.native_find_one({self.primary_key(): self.get_primary_key()})
		if record is None:
			return False
		self.clean()
		for name, value in record.items():
			setattr(self, name, value)
		return True

	def save_counters(self, counters: Mapping[str, int | float], lower: int | float | None = None, upper: int | float | None = None) -> bool:
		""" Atomically increments counters with $inc and mirrors the change on this record.

		A counter whose new value would fall below lower or above upper is left out. The bounds are checked against the in-memory values, so they are not atomic with respect to other writers.
		"""
		self.trace("save_counters")
		if self.is_new_record:
			raise MongoYiiError("The active record cannot be updated because it is new.")

		applied: dict[str, int | float] = {}
		for key, value in counters.items():
			new_value = (getattr(self, key, None) or 0) + value
			if lower is not None and new_value < lower:
				continue
			if upper is not None and new_value > upper:
				continue
			setattr(self, key, new_value)
			applied[key] = value

		# Nothing to update still counts as success, the action did run
		if not applied:
			return True
		result = self.update_by_pk(self.get_primary_key(), {"$inc": applied})
		self._last_error = result
		return result.matched_count > 0

	def exists(self, criteria: Criteria | Mapping[str, Any] | None = None) -> bool:
		""" Checks if a document matching the criteria exists. """
		self.trace("exists")
		return self.native_find_one(_to_condition(criteria)) is not None

	def equals(self, record: 'Document') -> bool:
		""" Whether both records refer to the same document of the same collection. """
		return (
			self.collection_name() == record.collection_name()
			and str(self.get_primary_key()) == str(record.get_primary_key())
		)

	def get_latest(self) -> Self | None:
		""" Loads the latest saved version of this record. """
		for record in self.find({self.primary_key(): self.get_primary_key()}):
			return record
		return None
	# endregion

	# region: Querying
	def find(self, criteria: Criteria | Mapping[str, Any] | None = None, fields: Mapping[str, Any] | None = None) -> Cursor[Self]:
		""" Returns a lazy Cursor over the matching records.

		The criteria is merged over the scope criteria, so for the same key the criteria passed in wins. Scopes are cleared afterwards, the default scope is reapplied on the next query.
		"""
		self.trace("find")
		self.__before_finding__()

		if isinstance(criteria, Criteria):
			supplied = {key: value for key, value in criteria.to_dict().items() if value}
			c = self.merge_criteria(self.get_db_criteria(), supplied)
			criteria = {}
		else:
			c = self.get_db_criteria()

		query = self.merge_criteria(c.get("condition", {}), criteria or {})
		project = self.merge_criteria(c.get("project", {}), fields or {})

		self._trace_query("find", query=query, project=project, sort=c.get("sort"), skip=c.get("skip"), limit=c.get("limit"))
		with self._profile("find", query=query, project=project, sort=c.get("sort"), skip=c.get("skip"), limit=c.get("limit")):
			cursor: Cursor[Self] = Cursor(self, query, project)
			if c.get("sort"):
				cursor.sort(c["sort"])
			if c.get("skip"):
				cursor.skip(c["skip"])
			if c.get("limit"):
				cursor.limit(c["limit"])
		self.reset_scope(False)
		return cursor

	def find_all(self, criteria: Criteria | Mapping[str, Any] | None = None, fields: Mapping[str, Any] | None = None) -> Cursor[Self]:
		""" Alias of find() """
		return self.find(criteria, fields)

	def find_all_by_attributes(self, attributes: Mapping[str, Any] | None = None, fields: Mapping[str, Any] | None = None) -> Cursor[Self]:
		""" Alias of find() """
		return self.find(attributes, fields)

	def find_all_by_pk(self, pk: Any, fields: Mapping[str, Any] | None = None) -> Cursor[Self]:
		""" Finds all records by one primary key or a list of them. Strings and ObjectIds can be mixed in the list. """
		if isinstance(pk, (str, ObjectId)):
			return self.find({self.primary_key(): self.get_primary_key(pk)}, fields)
		if not isinstance(pk, (list, tuple, set)):
			raise MongoYiiError("Set an incorrect primary key.")
		return self.find({self.primary_key(): {"$in": [self.get_primary_key(value) for value in pk]}}, fields)

	def find_one(self, criteria: Criteria | Mapping[str, Any] | None = None, fields: Mapping[str, Any] | None = None) -> Self | None:
		""" Finds a single record, or None. Honors query caching like Cursor does. """
		from ..extension import get_component

		self.trace("find_one")
		self.__before_finding__()

		c = self.get_db_criteria()
		query = self.merge_criteria(c.get("condition", {}), _to_condition(criteria))
		project = self.merge_criteria(c.get("project", {}), fields or {})
		self._trace_query("find_one", query=query, project=project)

		connection = self.get_db_connection()
		cache = get_component(connection.query_cache_id) if connection.is_query_caching_enabled() else None
		cache_key = None
		cached = None
		if cache is not None:
			connection.query_caching_count -= 1
			cache_key = connection.get_cache_key(self.collection_name(), connection.get_serialised_query(query, project))
			cached = cache.get(cache_key)

		if cached is not None:
			trace("Query result found in cache", TRACE_CATEGORY)
			record = copy.deepcopy(cached[0])
		else:
			with self._profile("find_one", query=query, project=project):
				record = self.native_find_one(query, project)
			if cache is not None and cache_key is not None:
				cache.set(cache_key, [copy.deepcopy(record)], ttl_seconds=connection.query_caching_duration, dependency=connection.query_caching_dependency)

		self.reset_scope(False)
		if record is None:
			return None
		return self.populate_record(record, True, bool(project))

	def find_by_id(self, _id: Any, fields: Mapping[str, Any] | None = None) -> Self | None:
		self.trace("find_by_id")
		return self.find_one({self.primary_key(): self.get_primary_key(_id)}, fields)

	def find_by_pk(self, pk: Any, fields: Mapping[str, Any] | None = None) -> Self | None:
		""" Alias of find_by_id() """
		return self.find_by_id(pk, fields)

	def count(self, criteria: Criteria | Mapping[str, Any] | None = None) -> int:
		""" Counts the documents matching criteria. Without criteria, the scope condition is counted. """
		self.trace("count")
		if not criteria:
			criteria = self.get_db_criteria().get("condition", {})
		return self.native_count(_to_condition(criteria))

	def search(
			self,
			query: Mapping[str, Any] | None = None,
			project: Mapping[str, Any] | None = None,
			partial_match: bool = False,
			sort: Mapping[str, Any] | None = None
		) -> 'DataProvider[Self]':
		""" Basic searching for list views. Builds a condition out of the safe attributes which are set on this record (string values may start with a comparison operator) and returns a DataProvider for it.

		Args:
			query: A condition which should always apply along with the searched attributes.
			project: Fields to load.
			partial_match: Match strings as case-insensitive regexes.
		"""
		from ..data_provider.data_provider import DataProvider

		self.trace("search")
		condition = dict(query or {})
		for attribute in self.safe_attribute_names():
			value = getattr(self, attribute, None)
			if value is None or (isinstance(value, str) and value == ""):
				continue
			if isinstance(value, str):
				condition[attribute] = compare_value(value, partial_match)
			elif isinstance(value, (list, tuple, dict)):
				if value:
					condition[attribute] = value
			else:
				condition[attribute] = value

		return DataProvider(self, criteria={"condition": condition, "project": dict(project or {}), "sort": dict(sort or {})})

	def aggregate(self, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
		""" Runs an aggregation on this collection. Returns the raw result documents, not records. """
		self.trace("aggregate")
		return self.get_db_connection().aggregate(self.collection_name(), pipeline)

	def distinct(self, key: str, query: Mapping[str, Any] | None = None) -> list[Any]:
		self.trace("distinct")
		return self.get_collection().distinct(key, dict(query or {}))

	def map_reduce(
			self,
			map: str | Code,
			reduce: str | Code,
			out: str | Mapping[str, Any],
			finalize: str | Code | None = None,
			query: Mapping[str, Any] | None = None,
			**options: Any
		) -> dict[str, Any]:
		""" Runs the mapReduce command on this collection. Any other command option can be passed as a keyword argument. """
		self.trace("map_reduce")
		command: dict[str, Any] = {
			"mapReduce": self.collection_name(),
			"map": Code(map) if isinstance(map, str) else map,
			"reduce": Code(reduce) if isinstance(reduce, str) else reduce,
			"query": dict(query or {}),
			"out": out,
		}
		if finalize is not None:
			command["finalize"] = Code(finalize) if isinstance(finalize, str) else finalize
		command.update(options)
		return self.get_db_connection().command(command)

	def ensure_indexes(self, indexes: Iterable[Any]) -> bool:
		""" Creates indexes. Each index is either a key pattern ({"email": 1, "address": -1}) or a (key pattern, options) pair:

			ensure_indexes([
				({"email": 1}, {"unique": True}),
				{"username": 1},
			])
		"""
		collection = self.get_collection()
		for index in indexes:
			if isinstance(index, (list, tuple)):
				keys, options = index[0], (index[1] if len(index) > 1 else {})
			else:
				keys, options = index, {}
			collection.create_index(list(keys.items()), **options)
		return True

	def cache(self, duration: int, dependency: CacheDependency | None = None, query_count: int = 1) -> Self:
		""" Caches the results of the next query_count queries for duration seconds. Shortcut for Client.cache(). """
		self.get_db_connection().cache(duration, dependency, query_count)
		return self
	# endregion

	# region: Bulk writes
	def update_by_pk(self, pk: Any, update_doc: Mapping[str, Any], criteria: Criteria | Mapping[str, Any] | None = None, upsert: bool = False) -> UpdateResult:
		""" Updates the document with the given primary key. Extra criteria narrow the match further. """
		self.trace("update_by_pk")
		query = self.merge_criteria(_to_condition(criteria), {self.primary_key(): self.get_primary_key(pk)})
		self._trace_query("update_by_pk", query=query, document=update_doc)
		with self._profile("update_by_pk", query=query, document=update_doc):
			return self._write_update(query, update_doc, multiple=False, upsert=upsert)

	def update_all(self, criteria: Criteria | Mapping[str, Any] | None, update_doc: Mapping[str, Any], multiple: bool = True, upsert: bool = False) -> UpdateResult:
		""" Updates all documents matching criteria. multiple=False updates the first match only. """
		self.trace("update_all")
		query = _to_condition(criteria)
		self._trace_query("update_all", query=query, document=update_doc, multiple=multiple)
		with self._profile("update_all", query=query, document=update_doc, multiple=multiple):
			return self._write_update(query, update_doc, multiple=multiple, upsert=upsert)

	def delete_by_pk(self, pk: Any, criteria: Criteria | Mapping[str, Any] | None = None) -> DeleteResult:
		self.trace("delete_by_pk")
		query = {self.primary_key(): self.get_primary_key(pk), **_to_condition(criteria)}
		self._trace_query("delete_by_pk", query=query)
		with self._profile("delete_by_pk", query=query):
			return self.get_collection().delete_one(query)

	def delete_all(self, criteria: Criteria | Mapping[str, Any] | None = None) -> DeleteResult:
		self.trace("delete_all")
		query = _to_condition(criteria)
		self._trace_query("delete_all", query=query)
		with self._profile("delete_all", query=query):
			return self.get_collection().delete_many(query)
	# endregion

	# region: Scopes
	def scopes(self) -> dict[str, Mapping[str, Any] | Criteria]:
		""" Named scopes for this model, each one a criteria:

			{
				"ten_recently_published": {
					"condition": {"published": 1},
					"sort": {"date_published": -1},
					"limit": 10,
				},
			}
		"""
		return {}

	def default_scope(self) -> Mapping[str, Any] | Criteria:
		""" A criteria applied to every query of this model, same format as a single entry of scopes(). """
		return {}

	def scope(self, *names: str) -> Self:
		""" Returns a copy of this finder with the named scopes merged into its criteria. This finder is left untouched, so scopes never leak between callers. """
		available = self.scopes()
		criteria = copy.deepcopy(self.get_db_criteria())
		for name in names:
			if name not in available:
				raise MongoYiiError(f"Scope '{name}' is not defined on {type(self).__name__}.")
			criteria = self.merge_criteria(criteria, available[name])
		finder = copy.copy(self)
		finder._criteria = criteria
		return finder

	def get_db_criteria(self, create_if_null: bool = True) -> dict[str, Any]:
		""" Returns the scope criteria, starting from the default scope when none is set yet. """
		if self._criteria is None:
			default = self.default_scope()
			if isinstance(default, Criteria):
				default = default.to_dict()
			if default or create_if_null:
				self._criteria = copy.deepcopy(dict(default))
			else:
				return {}
		return self._criteria

	def set_db_criteria(self, criteria: Criteria | Mapping[str, Any]) -> dict[str, Any]:
		self._criteria = criteria.to_dict() if isinstance(criteria, Criteria) else dict(criteria)
		return self._criteria

	def merge_db_criteria(self, criteria: Criteria | Mapping[str, Any]) -> dict[str, Any]:
		""" Merges criteria into the scope criteria of this finder. """
		return self.set_db_criteria(self.merge_criteria(self.get_db_criteria(), criteria))

	def reset_scope(self, reset_default: bool = True) -> Self:
		""" Clears the scope criteria. With reset_default=False the default scope comes back on the next query. """
		self._criteria = {} if reset_default else None
		return self

	def merge_criteria(self, old_criteria: Criteria | Mapping[str, Any] | None, new_criteria: Criteria | Mapping[str, Any] | None) -> dict[str, Any]:
		""" Recursively merges two criteria, new values winning. """
		if isinstance(old_criteria, Criteria):
			old_criteria = old_criteria.to_dict()
		if isinstance(new_criteria, Criteria):
			new_criteria = new_criteria.to_dict()
		return merge_array(old_criteria, new_criteria)
	# endregion
