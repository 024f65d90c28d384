"""
Crime report service - read, create, update, and delete workflow.

Keeps the three collections consistent:
- A report always references one Location and one CrimeType.
- A Location or CrimeType left unreferenced by a delete is reclaimed.
- Multi-record writes commit in a single Firestore transaction.
"""

import logging
from collections import Counter
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from app.config.firebase import get_db, run_transaction
from app.core.errors import ConflictError, IntegrityError, NotFoundError, ValidationError, storage_errors
from app.core.settings import settings
from app.models.crime_report import (
    ADDRESS_FIELDS,
    LOCATION_FIELD_ALIASES,
    REPORT_UPDATABLE_FIELDS,
    CrimeReportCreate,
    CrimeReportResponse,
    CrimeTypeResponse,
    LocationFields,
    LocationResponse,
    ReportFields,
)
from app.services.crime_report_store import CrimeReportStore
from app.services.crime_type_store import CrimeTypeStore, normalize_crime_type_name
from app.services.geocoding import Coordinates, GeocodingProvider, get_geocoding_provider
from app.services.location_store import LocationStore
from app.utils.firestore_helpers import is_valid_document_id, parse_stored_date, serialize_timestamp, where_filter
from app.utils.geocoding import address_changed, build_full_address

logger = logging.getLogger(__name__)

REQUIRED_REPORT_FIELDS = ("crime_id", "date", "time", "day_of_week")

# Raw case_status values folded into the dashboard's status buckets
STATUS_BUCKETS = {
    "Ongoing": "Ongoing",
    "Under Investigation": "Ongoing",
    "Pending": "Pending",
    "Open": "Pending",
    "Resolved": "Resolved",
    "Closed": "Resolved",
}
STATUS_BUCKET_ORDER = ("Ongoing", "Pending", "Resolved", "Unknown")

# Times update_report starts over when the address moves under it
UPDATE_ATTEMPTS = 3

# groupBy value -> output key for report counts over time
PERIOD_GROUPINGS = {"yearly": "year", "monthly": "month", "weekly": "week"}

# Location fields report counts can be grouped by
LOCATION_GROUPINGS = ("municipality_city", "barangay", "province")


class _StaleAddress(Exception):
    """The Location's address changed after it was read for geocoding."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _changed_fields(fields: Dict, record: Dict) -> Dict:
    return {key: value for key, value in fields.items() if record.get(key) != value}


def _period_key(report_date: date, group_by: str):
    if group_by == "monthly":
        return f"{report_date.year:04d}-{report_date.month:02d}"
    if group_by == "weekly":
        iso_year, iso_week, _ = report_date.isocalendar()
        return f"{iso_year:04d}-{iso_week:02d}"
    return report_date.year


def format_validation_errors(error: PydanticValidationError) -> str:
    messages = []
    for err in error.errors():
        field = ".".join(str(part) for part in err.get("loc", ()))
        messages.append(f"{field}: {err.get('msg')}" if field else err.get("msg"))
    return f"Validation Error: {', '.join(messages)}"


def require_valid_id(report_id: str) -> None:
    if not is_valid_document_id(report_id):
        logger.error(f"Invalid Crime Report ID received: {report_id!r}")
        raise ValidationError("Invalid Crime Report ID format")


class CrimeReportService:
    """
    Orchestrates the Location, CrimeType, and CrimeReport stores.
    """

    def __init__(self, db=None, geocoder: Optional[GeocodingProvider] = None):
        self.db = db if db is not None else get_db()
        self.geocoder = geocoder if geocoder is not None else get_geocoding_provider()
        self.locations = LocationStore(self.db)
        self.crime_types = CrimeTypeStore(self.db)
        self.reports = CrimeReportStore(self.db)

    # ------------------------------------------------------------------ read

    def get_report(self, report_id: str) -> Dict:
        require_valid_id(report_id)
        logger.info(f"Fetching report with ID: {report_id}")

        with storage_errors("fetching crime report"):
            report = self.reports.get(report_id)
            if report is None:
                raise NotFoundError("Crime Report not found")
            return self._resolve(report)

    def list_reports(self, crime_type: Optional[str] = None, case_status: Optional[str] = None,
                     limit: int = 100) -> List[Dict]:
        with storage_errors("listing crime reports"):
            query = self.reports.collection
            if case_status:
                query = where_filter(query, "case_status", "==", case_status)
            if crime_type:
                found = self.crime_types.find_by_name(crime_type)
                if found is None:
                    return []
                query = where_filter(query, "crime_type", "==", found["id"])

            location_cache: Dict[str, Optional[Dict]] = {}
            type_cache: Dict[str, Optional[Dict]] = {}
            return [
                self._resolve(report, location_cache, type_cache)
                for report in self.reports.stream(query.limit(limit))
            ]

    def count_reports(self) -> int:
        with storage_errors("counting crime reports"):
            return self.reports.count()

    def status_counts(self) -> List[Dict]:
        """Report counts per normalized case status; Unknown only when non-zero."""
        counts = {bucket: 0 for bucket in STATUS_BUCKET_ORDER}
        with storage_errors("aggregating status counts"):
            for report in self.reports.stream():
                counts[STATUS_BUCKETS.get(report.get("case_status"), "Unknown")] += 1

        return [
            {"status": bucket, "count": counts[bucket]}
            for bucket in STATUS_BUCKET_ORDER
            if bucket != "Unknown" or counts[bucket] > 0
        ]

    def period_counts(self, group_by: Optional[str] = None) -> List[Dict]:
        """
        Report counts per year (2024), month ("2024-03") or ISO week
        ("2024-11"), oldest first. Reports without a readable date are skipped.
        """
        group_by = (group_by or "yearly").lower()
        if group_by not in PERIOD_GROUPINGS:
            raise ValidationError(
                f"Invalid 'groupBy' parameter. Allowed values are: {', '.join(PERIOD_GROUPINGS)}."
            )
        output_key = PERIOD_GROUPINGS[group_by]
        logger.info(f"Fetching report stats grouped by: {group_by}")

        counts = Counter()
        with storage_errors("aggregating report stats"):
            for report in self.reports.stream():
                report_date = parse_stored_date(report.get("date"))
                if report_date is None:
                    logger.warning(f"Crime report {report['id']} has no usable date, left out of {group_by} stats")
                    continue
                counts[_period_key(report_date, group_by)] += 1

        return [{output_key: period, "count": counts[period]} for period in sorted(counts)]

    def top_locations(self, group_by: Optional[str] = None, year: Optional[str] = None,
                      limit: int = 10) -> List[Dict]:
        """
        Locations with the most reports, grouped by municipality/city,
        barangay, or province, optionally for a single year.

        An out-of-range or non-numeric year is ignored.
        """
        group_by = group_by or "municipality_city"
        if group_by not in LOCATION_GROUPINGS:
            raise ValidationError(
                f"Invalid 'groupBy' parameter. Allowed values are: {', '.join(LOCATION_GROUPINGS)}."
            )

        selected_year = None
        if year:
            try:
                selected_year = int(year)
            except ValueError:
                selected_year = None
            if selected_year is not None and not 1900 < selected_year < 2100:
                selected_year = None
            if selected_year is None:
                logger.warning(f"Invalid 'year' parameter received: {year!r}. Ignoring.")

        with storage_errors("aggregating top locations"):
            query = self.reports.collection
            if selected_year is not None:
                query = where_filter(query, "date", ">=", f"{selected_year:04d}-01-01")
                query = where_filter(query, "date", "<", f"{selected_year + 1:04d}-01-01")

            per_location = Counter(report.get("location") for report in self.reports.stream(query))

            counts = Counter()
            for location_id, report_count in per_location.items():
                location = self._lookup(self.locations, location_id, None)
                name = (location or {}).get(group_by)
                if isinstance(name, str) and name.strip():
                    counts[name] += report_count

        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
        logger.info(f"Found {len(ranked)} top locations by {group_by} (year: {selected_year or 'all'})")
        return [{"locationName": name, "count": count} for name, count in ranked]

    # ---------------------------------------------------------------- create

    def create_report(self, data: CrimeReportCreate) -> Dict:
        """
        Create a report with its Location, reusing or creating its CrimeType.

        Coordinates supplied by the caller are stored as-is; otherwise the
        address is geocoded before anything is written.
        """
        address = data.model_dump(include=set(ADDRESS_FIELDS))
        if data.latitude is not None and data.longitude is not None:
            coordinates = Coordinates(latitude=data.latitude, longitude=data.longitude)
        else:
            coordinates = self.geocoder.geocode(build_full_address(address))

        def _create(transaction) -> str:
            if self.reports.find_by_crime_id(data.crime_id, transaction) is not None:
                raise ValidationError(f"Validation Error: crime_id {data.crime_id} already exists")
            crime_type = self.crime_types.find_by_name(data.crime_type, transaction)

            if crime_type is not None:
                crime_type_id = crime_type["id"]
            else:
                crime_type_ref = self.crime_types.new_ref()
                logger.info(f"Creating new CrimeType: {data.crime_type} with category {data.crime_type_category}")
                transaction.create(crime_type_ref, self.crime_types.new_record(data.crime_type, data.crime_type_category))
                crime_type_id = crime_type_ref.id

            location_ref = self.locations.new_ref()
            transaction.create(location_ref, self.locations.new_record(address, coordinates))

            now = _now()
            report_ref = self.reports.new_ref()
            transaction.create(report_ref, {
                "crime_id": data.crime_id,
                "date": data.date.isoformat(),
                "time": data.time,
                "day_of_week": data.day_of_week,
                "case_status": data.case_status.value,
                "event_proximity": data.event_proximity,
                "crime_occurred_indoors_or_outdoors": data.crime_occurred_indoors_or_outdoors.value,
                "location": location_ref.id,
                "crime_type": crime_type_id,
                "created_at": now,
                "updated_at": now,
                "version": 0,
            })
            return report_ref.id

        with storage_errors("creating crime report"):
            report_id = run_transaction(_create, client=self.db)
            logger.info(f"Crime report created: {report_id} ({data.crime_id})")
            return self._resolve(self.reports.get(report_id))

    # ---------------------------------------------------------------- update

    def update_report(self, report_id: str, payload: Dict) -> Dict:
        """
        Apply a partial update to a report and its Location/CrimeType links.

        Flow:
        1. Validate the id, load the report and its Location (must exist)
        2. Work out changed address fields, report fields, and crime type
        3. Geocode if an address field changed (failure aborts, nothing written)
        4. In one transaction: re-read the report and Location, resolve/create
           the CrimeType, write the Location and the report
        5. Return the report with references resolved

        If the Location's address moved between steps 1 and 4 the coordinates
        from step 3 are stale, so the whole flow starts over (up to
        UPDATE_ATTEMPTS times).
        """
        require_valid_id(report_id)
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        with storage_errors("updating crime report"):
            for attempt in range(1, UPDATE_ATTEMPTS + 1):
                try:
                    return self._update_once(report_id, payload)
                except _StaleAddress:
                    logger.warning(
                        f"Address of crime report {report_id} changed during update "
                        f"(attempt {attempt}/{UPDATE_ATTEMPTS})"
                    )

        raise ConflictError("Crime report was modified by another request. Please try again.")

    def _update_once(self, report_id: str, payload: Dict) -> Dict:
        existing = self.reports.get(report_id)
        if existing is None:
            raise NotFoundError("Crime Report not found")

        location_id = existing.get("location")
        location = self._linked_location(report_id, location_id)

        location_changes = self._location_changes(payload, location)
        report_fields = self._report_fields(payload)
        crime_type_request = self._crime_type_request(payload)

        if (not location_changes and not _changed_fields(report_fields, existing)
                and self._crime_type_unchanged(crime_type_request, existing)):
            logger.info(f"No changes for crime report {report_id}")
            return self._resolve(existing)

        if address_changed(location, location_changes):
            address = build_full_address({**location, **location_changes})
            logger.info(f"Address changed for location {location_id}, geocoding: {address!r}")
            coordinates = self.geocoder.geocode(address)
            location_changes["latitude"] = coordinates.latitude
            location_changes["longitude"] = coordinates.longitude

        def _apply(transaction) -> None:
            report_ref = self.reports.ref(report_id)
            current = report_ref.get(transaction=transaction)
            if not current.exists:
                raise NotFoundError("Crime Report not found")
            current_data = current.to_dict()

            if location_changes:
                if current_data.get("location") != location_id:
                    raise _StaleAddress()
                current_location = self._linked_location(report_id, location_id, transaction)
                if any(current_location.get(field) != location.get(field) for field in ADDRESS_FIELDS):
                    raise _StaleAddress()

            report_changes = _changed_fields(report_fields, current_data)
            if "crime_id" in report_changes:
                clash = self.reports.find_by_crime_id(report_changes["crime_id"], transaction)
                if clash is not None and clash["id"] != report_id:
                    raise ValidationError(f"Validation Error: crime_id {report_changes['crime_id']} already exists")

            crime_type_id, new_crime_type = self._resolve_crime_type(
                crime_type_request, current_data.get("crime_type"), transaction
            )

            now = _now()
            if location_changes:
                transaction.update(self.locations.ref(location_id), {**location_changes, "updated_at": now})
            if new_crime_type is not None:
                transaction.create(self.crime_types.ref(crime_type_id), new_crime_type)

            updates = dict(report_changes)
            if crime_type_id != current_data.get("crime_type"):
                updates["crime_type"] = crime_type_id
            if updates:
                updates["updated_at"] = now
                updates["version"] = int(current_data.get("version") or 0) + 1
                transaction.update(report_ref, updates)

        run_transaction(_apply, client=self.db)
        logger.info(f"Crime report {report_id} updated")

        updated = self.reports.get(report_id)
        if updated is None:
            raise NotFoundError("Crime Report not found")
        return self._resolve(updated)

    def _linked_location(self, report_id: str, location_id, transaction=None) -> Dict:
        location = self.locations.get(location_id, transaction) if is_valid_document_id(location_id) else None
        if location is None:
            logger.error(
                f"Location document not found for ID: {location_id}, "
                f"associated with CrimeReport {report_id}"
            )
            raise IntegrityError("Associated location data not found. Cannot update.")
        return location

    def _location_changes(self, payload: Dict, location: Dict) -> Dict:
        requested = {}
        for key, value in payload.items():
            field = LOCATION_FIELD_ALIASES.get(key, key)
            if field in ADDRESS_FIELDS:
                requested[field] = value
        if not requested:
            return {}

        merged = {field: location.get(field) for field in ADDRESS_FIELDS}
        merged.update(requested)
        try:
            validated = LocationFields(**merged).model_dump()
        except PydanticValidationError as e:
            raise ValidationError(format_validation_errors(e))

        return {
            field: validated[field]
            for field in requested
            if validated[field] != location.get(field)
        }

    def _report_fields(self, payload: Dict) -> Dict:
        """Validated report-owned fields from the payload, changed or not."""
        fields = {key: value for key, value in payload.items() if key in REPORT_UPDATABLE_FIELDS}
        if not fields:
            return {}

        try:
            validated = ReportFields(**fields).model_dump(mode="json", exclude_unset=True)
        except PydanticValidationError as e:
            raise ValidationError(format_validation_errors(e))

        for field in REQUIRED_REPORT_FIELDS:
            if field in validated and validated[field] is None:
                raise ValidationError(f"Validation Error: {field}: Field required")

        return validated

    def _crime_type_request(self, payload: Dict) -> Optional[Tuple[str, str, Optional[str]]]:
        """
        Returns ("name", name, category), ("id", crime_type_id, None),
        or None when the payload does not touch the crime type.
        """
        value = payload.get("crime_type")

        if isinstance(value, str) and value.strip():
            return ("name", value.strip(), payload.get("crime_type_category"))

        if isinstance(value, dict):
            crime_type_id = value.get("id") or value.get("_id")
            if crime_type_id is None:
                return None
            if not is_valid_document_id(crime_type_id):
                raise ValidationError(f"Invalid ID format: {crime_type_id}")
            return ("id", crime_type_id, None)

        return None

    def _crime_type_unchanged(self, request, report: Dict) -> bool:
        if request is None:
            return True
        kind, value, _ = request
        current_id = report.get("crime_type")
        if kind == "id":
            return value == current_id
        current = self.crime_types.get(current_id) if is_valid_document_id(current_id) else None
        return current is not None and normalize_crime_type_name(current["crime_type"]) == normalize_crime_type_name(value)

    def _resolve_crime_type(self, request, current_id: str, transaction) -> Tuple[str, Optional[Dict]]:
        """Pick the report's crime type id; the second item is a record to create, if any."""
        if request is None:
            return current_id, None

        kind, value, category = request
        if kind == "id":
            if value != current_id and not self.crime_types.ref(value).get(transaction=transaction).exists:
                raise ValidationError(f"Validation Error: crime type {value} does not exist")
            return value, None

        found = self.crime_types.find_by_name(value, transaction)
        if found is not None:
            return found["id"], None

        if not isinstance(category, str) or not category.strip():
            raise ValidationError("Crime type category is required when specifying a new crime type name.")

        logger.info(f"Creating new CrimeType: {value} with category {category}")
        return self.crime_types.new_ref().id, self.crime_types.new_record(value, category)

    # ---------------------------------------------------------------- delete

    def delete_report(self, report_id: str) -> Dict:
        """
        Delete a report, then reclaim its CrimeType and Location if no other
        report references them.

        Cleanup is best-effort: the report is already gone when it runs, so
        failures are logged (and returned as warnings in strict mode).
        """
        require_valid_id(report_id)

        def _delete(transaction) -> Dict:
            report_ref = self.reports.ref(report_id)
            snapshot = report_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Crime Report not found")
            transaction.delete(report_ref)
            return snapshot.to_dict()

        with storage_errors("deleting crime report"):
            deleted = run_transaction(_delete, client=self.db)
        logger.info(f"Crime report {report_id} deleted")

        warnings = []
        cleanup = (
            ("CrimeType", self.crime_types, "crime_type"),
            ("Location", self.locations, "location"),
        )
        for label, store, field in cleanup:
            target_id = deleted.get(field)
            try:
                if self._reclaim_if_orphaned(store, field, target_id):
                    logger.info(f"Deleted unused {label}: {target_id}")
            except Exception as e:
                logger.error(f"Failed to clean up {label} {target_id} after deleting report {report_id}: {e}",
                             exc_info=True)
                warnings.append(f"{label} {target_id} could not be cleaned up")

        result = {"message": "Crime Report Deleted!"}
        if warnings and settings.STRICT_DELETE_CLEANUP:
            result["warnings"] = warnings
        return result

    def _reclaim_if_orphaned(self, store, field: str, target_id) -> bool:
        if not is_valid_document_id(target_id):
            return False

        def _reclaim(transaction) -> bool:
            still_used = self.reports.is_referenced(field, target_id, transaction)
            target_ref = store.ref(target_id)
            exists = target_ref.get(transaction=transaction).exists
            if still_used or not exists:
                return False
            transaction.delete(target_ref)
            return True

        return run_transaction(_reclaim, client=self.db)

    # --------------------------------------------------------------- helpers

    def _resolve(self, report: Dict, location_cache: Optional[Dict] = None,
                 type_cache: Optional[Dict] = None) -> Dict:
        """Replace the location/crime_type ids with the referenced records."""
        location = self._lookup(self.locations, report.get("location"), location_cache)
        crime_type = self._lookup(self.crime_types, report.get("crime_type"), type_cache)
        if location is None or crime_type is None:
            logger.warning(f"Crime report {report['id']} has a dangling location or crime type reference")

        response = CrimeReportResponse(
            id=report["id"],
            crime_id=report.get("crime_id", ""),
            date=report.get("date"),
            time=report.get("time"),
            day_of_week=report.get("day_of_week"),
            case_status=report.get("case_status"),
            event_proximity=report.get("event_proximity"),
            crime_occurred_indoors_or_outdoors=report.get("crime_occurred_indoors_or_outdoors"),
            location=LocationResponse(**location) if location else None,
            crime_type=CrimeTypeResponse(**crime_type) if crime_type else None,
            created_at=serialize_timestamp(report.get("created_at")),
            updated_at=serialize_timestamp(report.get("updated_at")),
            version=int(report.get("version") or 0),
        )
        return response.model_dump(mode="json")

    @staticmethod
    def _lookup(store, record_id, cache: Optional[Dict]) -> Optional[Dict]:
        if not is_valid_document_id(record_id):
            return None
        if cache is not None and record_id in cache:
            return cache[record_id]
        record = store.get(record_id)
        if cache is not None:
            cache[record_id] = record
        return record


# Global service instance (singleton pattern)
_crime_report_service = None


def get_crime_report_service() -> CrimeReportService:
    """
    Get or create CrimeReportService singleton instance.

    Returns:
        CrimeReportService: The global crime report service instance
    """
    global _crime_report_service
    if _crime_report_service is None:
        _crime_report_service = CrimeReportService()
    return _crime_report_service
