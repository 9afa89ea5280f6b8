"""Funnel analytics API router"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from typing import Optional
import logging

from apptracker.analytics import DateRange
from ..dependencies import get_application_service, get_current_user_id
from ..services.application_service import ApplicationService
from ..models.application_models import FunnelResponse
from ..models.responses import ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get(
    "/funnel",
    response_model=FunnelResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Application funnel",
    description="""
    Cumulative stage counts over the applications applied for within the range.

    Returns one entry per stage (Applied, First next step, Passed next step,
    Interview, Offer received) with:
    - count: applications at or beyond the stage
    - percent_of_total: share of all applications in range
    - percent_of_previous: share of the previous stage (null for Applied)
    - bar_height: chart bar height
    """,
)
async def get_funnel(
    start: Optional[date] = Query(None, description="First apply date to include"),
    end: Optional[date] = Query(None, description="Last apply date to include"),
    owner_id: str = Depends(get_current_user_id),
    service: ApplicationService = Depends(get_application_service),
) -> FunnelResponse:
    report = service.funnel_report(owner_id, DateRange(start=start, end=end))
    return FunnelResponse.from_report(report)
