"""
Location store - Firestore collection of normalized addresses.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from app.models.crime_report import ADDRESS_FIELDS
from app.services.geocoding import Coordinates


class LocationStore:
    COLLECTION = "locations"

    def __init__(self, db):
        self.db = db

    @property
    def collection(self):
        return self.db.collection(self.COLLECTION)

    def ref(self, location_id: str):
        return self.collection.document(location_id)

    def new_ref(self):
        return self.collection.document()

    def get(self, location_id: str, transaction=None) -> Optional[Dict]:
        snapshot = self.ref(location_id).get(transaction=transaction)
        if not snapshot.exists:
            return None
        data = snapshot.to_dict()
        data["id"] = snapshot.id
        return data

    @staticmethod
    def new_record(address: Dict, coordinates: Coordinates) -> Dict:
        now = datetime.now(timezone.utc)
        record = {field: address.get(field) for field in ADDRESS_FIELDS}
        record.update({
            "latitude": coordinates.latitude,
            "longitude": coordinates.longitude,
            "created_at": now,
            "updated_at": now,
        })
        return record
