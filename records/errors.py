from typing import Optional


class MalformedRecord(ValueError):
    """A stored document is missing a required field or holds the wrong type."""

    def __init__(self, record_type: str, key: Optional[str], reason: str):
        self.record_type = record_type
        self.key = key
        self.reason = reason
        where = f"{record_type}.{key}" if key else record_type
        super().__init__(f"{where}: {reason}")


class OperationFailed(RuntimeError):
    """The Firebase SDK (or the Auth REST API) failed while acting for the user."""


class NotAuthenticated(OperationFailed):
    pass


class AuthError(OperationFailed):
    def __init__(self, code: str, message: str = ""):
        self.code = code
        super().__init__(message or code)
