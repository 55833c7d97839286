import logging
from typing import TYPE_CHECKING

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

if TYPE_CHECKING:
	from .client import Client


class MongoLogHandler(logging.Handler):
	""" Stores log records in a MongoDB collection, one document per record:

		{"level": "DEBUG", "category": "mongoyii", "logtime": 1718000000, "message": "..."}

	Attach it to the package logger (MONGO_LOG_COLLECTION does that in init_app), or to any other logger.
	"""

	def __init__(self, connection: 'Client', collection_name: str = "mongoyii_log", level: int = logging.NOTSET):
		super().__init__(level)
		self.connection = connection
		self.collection_name = collection_name
		self._emitting = False

	def get_collection(self) -> Collection:
		return self.connection.get_collection(self.collection_name)

	def emit(self, record: logging.LogRecord) -> None:
		# Opening the connection logs too, which would come straight back here
		if self._emitting:
			return
		self._emitting = True
		try:
			self.get_collection().insert_one({
				"level": record.levelname,
				"category": record.name,
				"logtime": int(record.created),
				"message": self.format(record),
			})
		except PyMongoError:
			self.handleError(record)
		finally:
			self._emitting = False
