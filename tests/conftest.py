import hashlib
from datetime import date

import pytest
from fastapi.testclient import TestClient

from app.config import firebase
from app.config.mock_firestore import MockFirestore
from app.core import auth
from app.core.errors import AuthError, GeocodeError
from app.main import app
from app.models.crime_report import CrimeReportCreate
from app.services.crime_report_service import CrimeReportService, get_crime_report_service
from app.services.geocoding import GEOCODE_FAILED_MESSAGE, Coordinates, GeocodingProvider

TOKENS = {
    "admin-token": {"uid": "admin-1", "role": "admin", "email": "admin@example.com"},
    "user-token": {"uid": "user-1", "role": "user", "email": "user@example.com"},
    "guest-token": {"uid": "guest-1", "role": "guest"},
}

ADMIN = {"Authorization": "Bearer admin-token"}
USER = {"Authorization": "Bearer user-token"}
GUEST = {"Authorization": "Bearer guest-token"}


class FakeGeocoder(GeocodingProvider):
    """Deterministic coordinates derived from the address text."""

    name = "fake"

    def __init__(self):
        self.calls = []
        self.fail = False

    def geocode(self, address):
        self.calls.append(address)
        if self.fail:
            raise GeocodeError(GEOCODE_FAILED_MESSAGE)
        digest = hashlib.sha256(address.encode("utf-8")).digest()
        latitude = 5.0 + int.from_bytes(digest[:4], "big") / 2 ** 32 * 14.0
        longitude = 117.0 + int.from_bytes(digest[4:8], "big") / 2 ** 32 * 10.0
        return Coordinates(latitude=latitude, longitude=longitude)


def _fake_decode_token(token):
    if token not in TOKENS:
        raise AuthError("Unauthorized")
    return TOKENS[token]


@pytest.fixture
def db(monkeypatch):
    mock_db = MockFirestore()
    monkeypatch.setattr(firebase, "db", mock_db)
    return mock_db


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def service(db, geocoder):
    return CrimeReportService(db=db, geocoder=geocoder)


@pytest.fixture
def client(service, monkeypatch):
    monkeypatch.setattr(auth, "decode_token", _fake_decode_token)
    app.dependency_overrides[get_crime_report_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def report_payload(**overrides):
    payload = {
        "crime_id": "CR-0001",
        "date": date(2024, 3, 14),
        "time": "21:30",
        "day_of_week": "Thursday",
        "case_status": "Ongoing",
        "crime_occurred_indoors_or_outdoors": "Outdoors",
        "event_proximity": "Near market",
        "crime_type": "theft",
        "crime_type_category": "property",
        "street_name": "123 Main St",
        "barangay": "Poblacion",
        "municipality_city": "Tagum City",
        "province": "Davao del Norte",
        "region": "Region XI",
        "zip_code": "8100",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_report(service):
    def _make(**overrides):
        return service.create_report(CrimeReportCreate(**report_payload(**overrides)))
    return _make


def docs(db, collection):
    return {snapshot.id: snapshot.to_dict() for snapshot in db.collection(collection).stream()}
