from .data_provider import DataProvider
from .pagination import Pagination
from .sort import Sort
