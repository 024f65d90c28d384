"""
Error taxonomy for Crime Report Hub.

Every error the workflow raises carries the HTTP status it maps to;
app.main renders them as {"error": <message>}.
"""

import logging
from contextlib import contextmanager

from google.api_core import exceptions as gexc

logger = logging.getLogger(__name__)


class CrimeHubError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CrimeHubError):
    """Malformed id, missing required field, or schema violation."""
    status_code = 400


class AuthError(CrimeHubError):
    status_code = 401


class ForbiddenError(CrimeHubError):
    status_code = 403


class NotFoundError(CrimeHubError):
    status_code = 404


class IntegrityError(CrimeHubError):
    """A Location or CrimeType that must exist is missing."""
    status_code = 404


class ConflictError(CrimeHubError):
    """The record kept changing underneath an update."""
    status_code = 409


class GeocodeError(CrimeHubError):
    status_code = 400


class StorageError(CrimeHubError):
    status_code = 500


@contextmanager
def storage_errors(action: str):
    """Translate Firestore client failures into StorageError."""
    try:
        yield
    except gexc.GoogleAPIError as e:
        logger.error(f"Storage failure while {action}: {e}", exc_info=True)
        raise StorageError(f"Database error while {action}")
