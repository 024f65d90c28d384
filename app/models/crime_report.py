"""
Pydantic models for crime reports and their linked records.

A crime report references exactly one Location and one CrimeType by
document id. Responses replace both ids with the full records.
"""

from datetime import date as Date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class CaseStatus(str, Enum):
    ONGOING = "Ongoing"
    RESOLVED = "Resolved"
    PENDING = "Pending"


class IndoorOutdoor(str, Enum):
    INDOORS = "Indoors"
    OUTDOORS = "Outdoors"


# Address components in full-address order
ADDRESS_FIELDS = (
    "house_building_number",
    "street_name",
    "purok_block_lot",
    "barangay",
    "municipality_city",
    "province",
    "region",
    "zip_code",
)

# Form field names the dashboard sends for some address components
LOCATION_FIELD_ALIASES = {
    "barangay_name": "barangay",
    "municipality_city_name": "municipality_city",
    "province_name": "province",
    "region_name": "region",
}

# Fields a crime report owns and that the update path may change
REPORT_UPDATABLE_FIELDS = (
    "crime_id",
    "date",
    "time",
    "day_of_week",
    "case_status",
    "event_proximity",
    "crime_occurred_indoors_or_outdoors",
)


class LocationFields(BaseModel):
    """Address components of a Location; the four administrative levels are required."""
    house_building_number: Optional[str] = Field(None, max_length=100)
    street_name: Optional[str] = Field(None, max_length=200)
    purok_block_lot: Optional[str] = Field(None, max_length=100)
    barangay: str = Field(..., min_length=1, max_length=200)
    municipality_city: str = Field(..., min_length=1, max_length=200)
    province: str = Field(..., min_length=1, max_length=200)
    region: str = Field(..., min_length=1, max_length=200)
    zip_code: Optional[str] = Field(None, max_length=20)

    class Config:
        extra = "ignore"


class ReportFields(BaseModel):
    """Crime-report-owned fields as validated on update (all optional)."""
    crime_id: Optional[str] = Field(None, min_length=1, max_length=100)
    date: Optional[Date] = None
    time: Optional[str] = Field(None, min_length=1, max_length=20)
    day_of_week: Optional[str] = Field(None, min_length=1, max_length=20)
    case_status: Optional[CaseStatus] = None
    event_proximity: Optional[str] = Field(None, max_length=200)
    crime_occurred_indoors_or_outdoors: Optional[IndoorOutdoor] = None

    class Config:
        extra = "forbid"


class CrimeReportCreate(BaseModel):
    """
    Model for creating a new crime report (incoming POST request).
    Location and crime type details arrive flattened on the same body.
    """
    crime_id: str = Field(..., min_length=1, max_length=100, description="External report identifier")
    date: Date
    time: str = Field(..., min_length=1, max_length=20)
    day_of_week: str = Field(..., min_length=1, max_length=20)
    case_status: CaseStatus
    crime_occurred_indoors_or_outdoors: IndoorOutdoor
    event_proximity: Optional[str] = Field(None, max_length=200)

    crime_type: str = Field(..., min_length=1, max_length=100, description="Crime type name")
    crime_type_category: str = Field(..., min_length=1, max_length=100)

    house_building_number: Optional[str] = Field(None, max_length=100)
    street_name: Optional[str] = Field(None, max_length=200)
    purok_block_lot: Optional[str] = Field(None, max_length=100)
    barangay: str = Field(..., min_length=1, max_length=200)
    municipality_city: str = Field(..., min_length=1, max_length=200)
    province: str = Field(..., min_length=1, max_length=200)
    region: str = Field(..., min_length=1, max_length=200)
    zip_code: Optional[str] = Field(None, max_length=20)
    latitude: Optional[float] = Field(None, ge=-90, le=90, description="Skips geocoding when given with longitude")
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    class Config:
        json_schema_extra = {
            "example": {
                "crime_id": "CR-2024-0001",
                "date": "2024-03-14",
                "time": "21:30",
                "day_of_week": "Thursday",
                "case_status": "Ongoing",
                "crime_occurred_indoors_or_outdoors": "Outdoors",
                "event_proximity": "Near market",
                "crime_type": "Theft",
                "crime_type_category": "Property",
                "street_name": "Rizal Street",
                "barangay": "Poblacion",
                "municipality_city": "Tagum City",
                "province": "Davao del Norte",
                "region": "Region XI",
                "zip_code": "8100",
            }
        }
        extra = "ignore"


class LocationResponse(BaseModel):
    id: str
    house_building_number: Optional[str] = None
    street_name: Optional[str] = None
    purok_block_lot: Optional[str] = None
    barangay: Optional[str] = None
    municipality_city: Optional[str] = None
    province: Optional[str] = None
    region: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class CrimeTypeResponse(BaseModel):
    id: str
    crime_type: str
    crime_type_category: str


class CrimeReportResponse(BaseModel):
    """A crime report with its location and crime type resolved."""
    id: str = Field(..., description="Firestore document ID")
    crime_id: str
    date: Optional[Date] = None
    time: Optional[str] = None
    day_of_week: Optional[str] = None
    case_status: Optional[str] = None
    event_proximity: Optional[str] = None
    crime_occurred_indoors_or_outdoors: Optional[str] = None
    location: Optional[LocationResponse] = None
    crime_type: Optional[CrimeTypeResponse] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    version: int = 0


class StatusCount(BaseModel):
    status: str
    count: int


class DeleteResult(BaseModel):
    message: str
    warnings: Optional[List[str]] = None


class PeriodCount(BaseModel):
    """One of year, month ("YYYY-MM") or week ("YYYY-WW", ISO) is set."""
    year: Optional[int] = None
    month: Optional[str] = None
    week: Optional[str] = None
    count: int


class LocationCount(BaseModel):
    location_name: str = Field(..., alias="locationName")
    count: int
