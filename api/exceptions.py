"""
Errors raised by the store layer.
"""


class PersistenceError(Exception):
    """
    A database operation could not be completed.

    Raised for rejected writes (validation or constraint failures),
    malformed identifiers and driver errors. The original exception is
    kept as ``__cause__`` and is only ever logged.
    """

    def __init__(self, operation: str, message: str = ""):
        self.operation = operation
        super().__init__(message or f"{operation} failed")
