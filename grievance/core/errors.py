"""
Error kinds raised by the lifecycle engine, the account store and the
classification collaborator. The API layer maps each kind to a status code
in grievance.main.
"""
from typing import Any, Dict, Optional


class GrievanceError(Exception):
    status_code = 500

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_detail(self):
        return self.detail if self.detail is not None else self.message


class ValidationError(GrievanceError):
    """Bad input: empty text, unknown status, unknown submitter."""
    status_code = 400


class InvalidTransitionError(ValidationError):
    status_code = 409


class NotFoundError(GrievanceError):
    status_code = 404


class PersistenceError(GrievanceError):
    """The store rejected a read or write. No partial state is left behind."""
    status_code = 503


class CollaboratorError(GrievanceError):
    """
    An external AI call failed. The lifecycle engine always absorbs this into
    a fallback value; API callers never see it.
    """
    status_code = 502
