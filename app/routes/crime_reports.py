"""
Crime report endpoints - CRUD plus dashboard stats.

Every route passes the access gate first: admins may do everything,
users may only read.
"""

import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from starlette.concurrency import run_in_threadpool

from app.core.auth import ROLE_ADMIN, ROLE_USER, require_role
from app.core.errors import ValidationError
from app.models.crime_report import (
    CaseStatus,
    CrimeReportCreate,
    DeleteResult,
    LocationCount,
    PeriodCount,
    StatusCount,
)
from app.services.crime_report_service import CrimeReportService, get_crime_report_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/crime-reports", tags=["Crime Reports"])

admin_only = Depends(require_role(ROLE_ADMIN))
any_role = Depends(require_role(ROLE_ADMIN, ROLE_USER))


@router.get("", dependencies=[any_role])
def list_crime_reports(
    crime_type: Optional[str] = Query(None, description="Crime type name (case-insensitive)"),
    case_status: Optional[CaseStatus] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    service: CrimeReportService = Depends(get_crime_report_service),
):
    reports = service.list_reports(
        crime_type=crime_type,
        case_status=case_status.value if case_status else None,
        limit=limit,
    )
    return {"data": reports}


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[admin_only])
def create_crime_report(
    report: CrimeReportCreate,
    service: CrimeReportService = Depends(get_crime_report_service),
):
    """
    File a new crime report.

    Reuses an existing crime type (case-insensitive name match) or creates
    one, stores the location (geocoded when no coordinates are given), and
    stores the report.
    """
    logger.info(f"POST /crime-reports - Creating report {report.crime_id}")
    created = service.create_report(report)
    return {"message": "Crime Report Saved!", "data": created}


@router.get("/count", dependencies=[admin_only])
def count_crime_reports(service: CrimeReportService = Depends(get_crime_report_service)):
    return {"count": service.count_reports()}


@router.get("/stats/status-counts", response_model=List[StatusCount], dependencies=[admin_only])
def crime_report_status_counts(service: CrimeReportService = Depends(get_crime_report_service)):
    return service.status_counts()


@router.get("/stats/aggregate", response_model=List[PeriodCount], response_model_exclude_none=True,
            dependencies=[admin_only])
def crime_report_period_counts(
    group_by: Optional[str] = Query(None, alias="groupBy", description="yearly (default), monthly, or weekly"),
    service: CrimeReportService = Depends(get_crime_report_service),
):
    return service.period_counts(group_by)


@router.get("/stats/top-locations", response_model=List[LocationCount], dependencies=[admin_only])
def crime_report_top_locations(
    group_by: Optional[str] = Query(
        None, alias="groupBy", description="municipality_city (default), barangay, or province"
    ),
    year: Optional[str] = Query(None, description="Only count reports dated in this year"),
    limit: int = Query(10, ge=1, le=100),
    service: CrimeReportService = Depends(get_crime_report_service),
):
    return service.top_locations(group_by=group_by, year=year, limit=limit)


@router.get("/{report_id}", dependencies=[any_role])
def get_crime_report(report_id: str, service: CrimeReportService = Depends(get_crime_report_service)):
    return {"data": service.get_report(report_id)}


@router.put("/{report_id}", dependencies=[admin_only])
async def update_crime_report(
    report_id: str,
    request: Request,
    service: CrimeReportService = Depends(get_crime_report_service),
):
    """
    Update a crime report with any subset of its fields.

    Accepts address fields (geocoded again when they change), a crime type
    name (plus crime_type_category for a new type) or a crime type object
    with an id, and the report's own fields. Everything else is ignored.
    """
    # Body is read only after the access gate has passed.
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON in request body")

    updated = await run_in_threadpool(service.update_report, report_id, payload)
    return {"message": "Crime Report Updated!", "data": updated}


@router.delete("/{report_id}", response_model=DeleteResult, response_model_exclude_none=True,
               dependencies=[admin_only])
def delete_crime_report(report_id: str, service: CrimeReportService = Depends(get_crime_report_service)):
    return service.delete_report(report_id)
