"""Typed errors raised by the directory services.

Every error carries an HTTP status and a stable ``error_code``; the API layer
renders them through a single exception handler (see ``apps.api.main``).
"""

from typing import Dict, List, Optional


class DirectoryError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    error_code = "DIRECTORY_ERROR"

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}

    def to_payload(self) -> dict:
        payload = {"success": False, "error_code": self.error_code, "message": self.message}
        if self.errors:
            payload["errors"] = self.errors
        return payload


class ValidationError(DirectoryError):
    """Malformed or out-of-range input (422)."""

    status_code = 422
    error_code = "VALIDATION_ERROR"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls("Parámetros inválidos", errors={field: [message]})


class NotFoundError(DirectoryError):
    """Unknown or unpublished resource (404)."""

    status_code = 404
    error_code = "NOT_FOUND"


class DataAccessError(DirectoryError):
    """Repository or cache backend failure (500)."""

    status_code = 500
    error_code = "DATA_ACCESS_ERROR"
    public_message = "Error interno al consultar los datos"
