"""Exceptions raised by the roster store."""


class StoreError(Exception):
    """Base class for store-level errors raised by this package."""


class SchemaBootstrapError(StoreError):
    """The table definitions could not be read or executed."""


class StudentDecodeError(StoreError):
    """A Student row held a column value of the wrong type."""


class StudentConflictError(StoreError):
    """A rename would give two students the same stuid."""

    def __init__(self, stuid: str):
        super().__init__("Student id '{}' is already in use".format(stuid))
        self.stuid = stuid
