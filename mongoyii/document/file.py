import os
from typing import Any, ClassVar, Mapping, Self

import gridfs
from gridfs.grid_file import GridOut
from pymongo.results import DeleteResult

from .criteria import Criteria
from .document import Document, _to_condition
from .scenario import Scenario
from ..utilities.mongoyii_error import MongoYiiError


class File(Document):
	""" A helper for storing uploads in GridFS. It is in no way required.

	Records are read from the files collection of the bucket like any other document, the GridOut holding the payload is only loaded when asked for.
	The payload of a new record can be a path, bytes or any object with a read() method (a werkzeug FileStorage from request.files works):

		upload = File.populate(request.files["avatar"])
		upload.owner = user._id
		upload.insert()

		for upload in File.model().find({"owner": user._id}):
			upload.get_bytes()
	"""
	__collection_prefix__: ClassVar[str] = "fs"
	__transient_fields__ = ("_file",)

	def __init__(self, scenario: Scenario | str | None = Scenario.INSERT, **attributes: Any):
		self._file: Any = None
		super().__init__(scenario, **attributes)

	@classmethod
	def collection_prefix(cls) -> str:
		""" The GridFS bucket, i.e. the prefix of the files and chunks collections. """
		return cls.__collection_prefix__

	@classmethod
	def collection_name(cls) -> str:
		return f"{cls.collection_prefix()}.files"

	@classmethod
	def populate(cls, source: Any) -> Self | None:
		""" Creates a new record for the given payload. Returns None for an empty payload, e.g. a form submitted without a file. """
		if source is None:
			return None
		if hasattr(source, "filename") and not getattr(source, "filename"):
			return None
		record = cls()
		record.set_file(source)
		return record

	def get_grid_fs(self) -> gridfs.GridFS:
		return gridfs.GridFS(self.get_db_connection().get_db(), collection=self.collection_prefix())

	# region: Payload
	def get_file(self) -> Any:
		""" The payload. For persisted records the GridOut is loaded on first access, which saves a query whenever the payload isn't needed. """
		if not self.is_new_record and self._id is not None and not isinstance(self._file, GridOut):
			self._file = self.get_grid_fs().get(self._id)
		return self._file

	def set_file(self, value: Any) -> None:
		self._file = value

	def get_filename(self) -> str | None:
		file = self.get_file()
		if isinstance(file, GridOut):
			return file.filename
		if isinstance(file, (str, os.PathLike)) and os.path.isfile(file):
			return os.fspath(file)
		return getattr(file, "filename", None) or None

	def get_size(self) -> int | None:
		file = self.get_file()
		if isinstance(file, GridOut):
			return file.length
		if isinstance(file, (bytes, bytearray)):
			return len(file)
		if isinstance(file, (str, os.PathLike)) and os.path.isfile(file):
			return os.path.getsize(file)
		return None

	def get_bytes(self) -> bytes | None:
		file = self.get_file()
		if isinstance(file, GridOut):
			file.seek(0)
			return file.read()
		if isinstance(file, (bytes, bytearray)):
			return bytes(file)
		if isinstance(file, (str, os.PathLike)) and os.path.isfile(file):
			with open(file, "rb") as fp:
				return fp.read()
		if hasattr(file, "read"):
			if hasattr(file, "seek"):
				file.seek(0)
			return file.read()
		return None
	# endregion

	def populate_record(self, attributes: Any, call_after_find: bool = True, partial: bool = False) -> Self | None:
		""" Also accepts a GridOut, whose files document becomes the attributes of the record. """
		if isinstance(attributes, GridOut):
			file = attributes
			record = super().populate_record(self.native_find_one({"_id": file._id}), call_after_find, partial)
			if record is not None:
				record.set_file(file)
			return record
		return super().populate_record(attributes, call_after_find, partial)

	def insert(self, attributes: Any = None) -> bool:
		""" Stores the payload with put(), the record's attributes going into the files document. """
		if not self.is_new_record:
			raise MongoYiiError("The active record cannot be inserted to database because it is not new.")
		if not self.__before_saving__(Scenario.INSERT):
			return False
		self.trace("insert")

		if attributes is not None:
			document = self.filter_raw_document(self.get_attributes(attributes))
		else:
			document = self.get_raw_document()
		if not self._has_primary_key():
			setattr(self, self.primary_key(), self.get_primary_key())
		document[self.primary_key()] = getattr(self, self.primary_key())
		if "filename" not in document and self.get_filename() is not None:
			document["filename"] = os.path.basename(self.get_filename())

		file = self.get_file()
		if file is None:
			raise MongoYiiError("The file cannot be inserted because it has no payload. Call set_file() first.")

		self._trace_query("put", document=document)
		with self._profile("insert", document=document):
			if isinstance(file, (str, os.PathLike)):
				with open(file, "rb") as fp:
					_id = self.get_grid_fs().put(fp, **document)
			elif isinstance(file, (bytes, bytearray)):
				_id = self.get_grid_fs().put(bytes(file), **document)
			else:
				stream = getattr(file, "stream", file)
				_id = self.get_grid_fs().put(stream, **document)

		if _id is None:
			return False
		setattr(self, self.primary_key(), _id)
		self.__after_saving__()
		self.is_new_record = False
		self.scenario = Scenario.UPDATE
		# The payload is read back from GridFS from now on
		self._file = None
		return True

	def delete_by_pk(self, pk: Any, criteria: Criteria | Mapping[str, Any] | None = None) -> DeleteResult:
		""" Removes the files document together with its chunks. """
		self.trace("delete_by_pk")
		query = {self.primary_key(): self.get_primary_key(pk), **_to_condition(criteria)}
		return self.delete_all(query)

	def delete_all(self, criteria: Criteria | Mapping[str, Any] | None = None) -> DeleteResult:
		self.trace("delete_all")
		query = _to_condition(criteria)
		grid_fs = self.get_grid_fs()
		deleted = 0
		with self._profile("delete_all", query=query):
			for row in self.get_collection().find(query, {"_id": 1}):
				grid_fs.delete(row["_id"])
				deleted += 1
		return DeleteResult({"n": deleted, "ok": 1}, True)
