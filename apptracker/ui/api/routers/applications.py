"""Job Applications API router"""

from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from apptracker.analytics import DateRange
from ..dependencies import get_application_service, get_current_user_id
from ..services.application_service import ApplicationService
from ..models.application_models import (
    JobApplication,
    ApplicationCreate,
    ApplicationFieldUpdate,
    ApplicationListResponse,
    DateRangeModel,
)
from ..models.responses import ErrorResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/applications", tags=["applications"])


@router.get(
    "",
    response_model=ApplicationListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List applications",
    description="Applications of the current user in insertion order, optionally narrowed to an inclusive date range",
)
async def list_applications(
    start: Optional[date] = Query(None, description="First apply date to include"),
    end: Optional[date] = Query(None, description="Last apply date to include"),
    owner_id: str = Depends(get_current_user_id),
    service: ApplicationService = Depends(get_application_service),
) -> ApplicationListResponse:
    """Table view of tracked applications"""
    date_range = DateRange(start=start, end=end)
    applications = service.list_applications(owner_id, date_range)
    return ApplicationListResponse(
        applications=applications,
        total=len(applications),
        date_range=DateRangeModel(start=start, end=end),
    )


@router.post(
    "",
    response_model=JobApplication,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Track a job application",
)
async def create_application(
    data: ApplicationCreate,
    owner_id: str = Depends(get_current_user_id),
    service: ApplicationService = Depends(get_application_service),
) -> JobApplication:
    """Create an application; company name and role must not be blank"""
    app_id = service.create_application(owner_id, data)
    app = service.get_application(owner_id, app_id)
    if not app:
        raise HTTPException(status_code=404, detail="Application not found")
    return app


@router.get(
    "/{app_id}",
    response_model=JobApplication,
    responses={404: {"model": ErrorResponse}},
    summary="Get application details",
)
async def get_application(
    app_id: str,
    owner_id: str = Depends(get_current_user_id),
    service: ApplicationService = Depends(get_application_service),
) -> JobApplication:
    app = service.get_application(owner_id, app_id)
    if not app:
        raise HTTPException(status_code=404, detail="Application not found")
    return app


@router.patch(
    "/{app_id}",
    response_model=JobApplication,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Update one application field",
)
async def update_application(
    app_id: str,
    data: ApplicationFieldUpdate,
    owner_id: str = Depends(get_current_user_id),
    service: ApplicationService = Depends(get_application_service),
) -> JobApplication:
    """Inline edit: set a single field of an application"""
    service.update_field(owner_id, app_id, data.field, data.value)
    app = service.get_application(owner_id, app_id)
    if not app:
        raise HTTPException(status_code=404, detail="Application not found")
    return app


@router.delete(
    "/{app_id}",
    response_model=MessageResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Delete an application",
)
async def delete_application(
    app_id: str,
    owner_id: str = Depends(get_current_user_id),
    service: ApplicationService = Depends(get_application_service),
) -> MessageResponse:
    service.delete_application(owner_id, app_id)
    return MessageResponse(message="Application deleted")
