from .mongoyii_error import MongoYiiError


class SetupError(MongoYiiError):
    """ Raised for configuration mistakes: a missing connection setting, an application without the extension, or two document classes sharing a name. """

    def __init__(self, message: str):
        super().__init__(message)
