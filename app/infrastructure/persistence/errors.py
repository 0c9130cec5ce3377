"""Errors raised by store backends."""


class StoreError(Exception):
    """A store read or write failed.

    Raised by every store backend (in-memory and SQL) for failures other than
    the expected uniqueness conflict on the send log. Callers decide how to
    degrade; the dispatch engine handles each call site explicitly.

    Attributes:
        operation: Name of the store operation that failed
    """

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message)
        self.operation = operation
