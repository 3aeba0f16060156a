"""Error taxonomy shared by the store boundary, coordinators and HTTP layer."""

from typing import Optional

# Postgres unique_violation, reported by the store on duplicate inserts
UNIQUE_VIOLATION = "23505"


class DashboardError(Exception):
    """Base class for all dashboard errors."""
    pass


class AuthRequired(DashboardError):
    """Raised when there is no valid session."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DashboardError):
    """Missing or malformed required input."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class StoreError(DashboardError):
    """The backing store (or the transport to it) rejected an operation."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def is_conflict(self) -> bool:
        return self.code == UNIQUE_VIOLATION


class ExportError(DashboardError):
    """Spreadsheet serialization failed; nothing was delivered."""
    pass
