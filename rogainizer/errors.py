"""Error taxonomy shared by the managers, the storage boundary and the routes.

Every error carries an HTTP status and renders as ``{"message": ...}``.
"""

from typing import Any, Dict


class RogainizerError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


class ValidationError(RogainizerError):
    """Malformed or missing input."""

    status_code = 400


class MembershipError(ValidationError):
    """A team's course or category is not offered by its event."""


class NotFoundError(RogainizerError):
    status_code = 404


class ConflictError(RogainizerError):
    """Duplicate record; ``exists`` is set when an explicit lookup found it."""

    status_code = 409

    def __init__(self, message: str, exists: bool = False) -> None:
        super().__init__(message)
        self.exists = exists

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        if self.exists:
            out["exists"] = True
        return out


class SchemaError(RogainizerError):
    """The store is missing a table the service expects."""

    def __init__(self, table: str, init_script: str = "sql/init.sql") -> None:
        super().__init__(f"{table} table does not exist. Run {init_script} first.")
        self.table = table
        self.init_script = init_script


class StorageError(RogainizerError):
    pass
