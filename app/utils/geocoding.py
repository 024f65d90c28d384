"""
Address helpers for Location records.
"""

from typing import Dict, Optional

from app.models.crime_report import ADDRESS_FIELDS


def build_full_address(location: Dict) -> str:
    """
    Join the non-empty address components in a fixed order.

    Example: "12, Rizal Street, Poblacion, Tagum City, Davao del Norte, Region XI, 8100"
    """
    parts = []
    for field in ADDRESS_FIELDS:
        value: Optional[str] = location.get(field)
        if value is not None and str(value).strip():
            parts.append(str(value).strip())
    return ", ".join(parts)


def address_changed(before: Dict, changes: Dict) -> bool:
    return any(field in changes and changes[field] != before.get(field) for field in ADDRESS_FIELDS)
