"""
Crime type store - small reference table mapping a type name to a category.

Names are unique case-insensitively. Each record carries a normalized copy
of its name so lookups can use an equality query.
"""

from typing import Dict, Optional

from app.utils.firestore_helpers import where_filter


def normalize_crime_type_name(name: str) -> str:
    return name.strip().lower()


class CrimeTypeStore:
    COLLECTION = "crime_types"

    def __init__(self, db):
        self.db = db

    @property
    def collection(self):
        return self.db.collection(self.COLLECTION)

    def ref(self, crime_type_id: str):
        return self.collection.document(crime_type_id)

    def new_ref(self):
        return self.collection.document()

    def get(self, crime_type_id: str, transaction=None) -> Optional[Dict]:
        snapshot = self.ref(crime_type_id).get(transaction=transaction)
        if not snapshot.exists:
            return None
        data = snapshot.to_dict()
        data["id"] = snapshot.id
        return data

    def find_by_name(self, name: str, transaction=None) -> Optional[Dict]:
        query = where_filter(self.collection, "crime_type_normalized", "==", normalize_crime_type_name(name))
        for snapshot in query.limit(1).stream(transaction=transaction):
            data = snapshot.to_dict()
            data["id"] = snapshot.id
            return data
        return None

    @staticmethod
    def new_record(name: str, category: str) -> Dict:
        return {
            "crime_type": name.strip(),
            "crime_type_category": category.strip(),
            "crime_type_normalized": normalize_crime_type_name(name),
        }
