from enum import StrEnum, auto


class Scenario(StrEnum):
    """ Describes what a document is currently being used for. Validators and safe attributes can be limited to scenarios. """
    INSERT = auto()
    UPDATE = auto()
    SEARCH = auto()
