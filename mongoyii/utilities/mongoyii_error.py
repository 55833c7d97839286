from typing import Any


class MongoYiiError(Exception):
    """ The exception raised by documents, cursors and criteria.
    error_info carries the driver payload (usually a write result or server response) when there is one. """

    def __init__(self, message: str, error_info: Any = None):
        self.message = message
        self.error_info = error_info
        super().__init__(self.message)
