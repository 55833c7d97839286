"""
mongoyii: an active record object-document mapper for MongoDB, run as a Flask extension.

	from mongoyii import MongoYii, Document

	class Post(Document):
		__collection_name__ = "posts"
		title: str | None = None

	MongoYii(app)
	with app.app_context():
		Post(title="Hello").insert()
"""
from .cache import CacheBackend, ExpressionDependency, InMemoryCache, RedisCache
from .client import Client
from .data_provider import DataProvider, Pagination, Sort
from .document.criteria import Criteria
from .document.cursor import Cursor
from .document.document import Document
from .document.file import File
from .document.scenario import Scenario
from .document.validators import SafeValidator, UniqueValidator, Validator
from .extension import MongoYii, get_component, get_connection, get_state
from .log_handler import MongoLogHandler
from .utilities.logger import set_log_level, set_logger
from .utilities.mongoyii_error import MongoYiiError
from .utilities.setup_error import SetupError
