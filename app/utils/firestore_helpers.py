"""
Firestore helpers shared by the stores.

NOTE: For firebase_admin SDK, we use positional arguments in where().
The deprecation warning is just a warning - the functionality is still supported.
"""

import re
from datetime import date, datetime
from typing import Any, Optional

# Ids the app accepts for its own documents. Firestore allows more, but
# auto-generated ids only ever use this alphabet.
_DOCUMENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_RESERVED_ID_PATTERN = re.compile(r"^__.*__$")


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "crime_type", "==", crime_type_id)
        query = where_filter(query, "case_status", "==", "Ongoing")
    """
    return query.where(field_path, op_string, value)


def is_valid_document_id(doc_id: Any) -> bool:
    if not isinstance(doc_id, str):
        return False
    return bool(_DOCUMENT_ID_PATTERN.match(doc_id)) and not _RESERVED_ID_PATTERN.match(doc_id)


def serialize_timestamp(value: Any) -> Optional[str]:
    """Firestore timestamps (and the mock DB's datetimes/strings) as ISO strings."""
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def parse_stored_date(value: Any) -> Optional[date]:
    """Report dates are stored as ISO "YYYY-MM-DD" strings; timestamps are accepted too."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None
