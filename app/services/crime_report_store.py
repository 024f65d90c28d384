"""
Crime report store - Firestore collection of reports.

Each report references one Location and one CrimeType by document id
(fields "location" and "crime_type").
"""

from typing import Dict, Iterator, Optional

from app.utils.firestore_helpers import where_filter


class CrimeReportStore:
    COLLECTION = "crime_reports"

    def __init__(self, db):
        self.db = db

    @property
    def collection(self):
        return self.db.collection(self.COLLECTION)

    def ref(self, report_id: str):
        return self.collection.document(report_id)

    def new_ref(self):
        return self.collection.document()

    def get(self, report_id: str, transaction=None) -> Optional[Dict]:
        snapshot = self.ref(report_id).get(transaction=transaction)
        if not snapshot.exists:
            return None
        data = snapshot.to_dict()
        data["id"] = snapshot.id
        return data

    def find_by_crime_id(self, crime_id: str, transaction=None) -> Optional[Dict]:
        query = where_filter(self.collection, "crime_id", "==", crime_id).limit(1)
        for snapshot in query.stream(transaction=transaction):
            data = snapshot.to_dict()
            data["id"] = snapshot.id
            return data
        return None

    def is_referenced(self, field: str, target_id: str, transaction=None) -> bool:
        """True if any report points at target_id through field ("location" or "crime_type")."""
        query = where_filter(self.collection, field, "==", target_id).limit(1)
        return any(True for _ in query.stream(transaction=transaction))

    def stream(self, query=None) -> Iterator[Dict]:
        for snapshot in (query if query is not None else self.collection).stream():
            data = snapshot.to_dict()
            data["id"] = snapshot.id
            yield data

    def count(self, query=None) -> int:
        """Server-side count() aggregation; no documents are transferred."""
        results = (query if query is not None else self.collection).count(alias="total").get()
        return int(results[0][0].value)
