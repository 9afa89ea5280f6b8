"""Pydantic models for application tracking and funnel analytics"""

from datetime import date, datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field

from apptracker.analytics import Stage, FunnelReport, funnel_chart


# ============== Application Models ==============

class JobApplication(BaseModel):
    """A tracked job application, owned by exactly one user"""
    id: str
    owner_id: str
    company_name: str
    role: str
    apply_date: Optional[date] = None
    status: Stage = Stage.APPLIED
    created_at: datetime

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "app_3f9c1e7a2b4d",
                "owner_id": "user_0a1b2c3d4e5f",
                "company_name": "TechCorp Inc",
                "role": "Backend Engineer",
                "apply_date": "2026-02-01",
                "status": "Interview",
                "created_at": "2026-02-01T09:30:00"
            }
        }


class ApplicationCreate(BaseModel):
    """Create application request. Blank company or role is rejected by the service."""
    company_name: str = ""
    role: str = ""
    apply_date: Optional[date] = None
    status: Stage = Stage.APPLIED

    class Config:
        json_schema_extra = {
            "example": {
                "company_name": "TechCorp Inc",
                "role": "Backend Engineer",
                "apply_date": "2026-02-01",
                "status": "Applied"
            }
        }


UpdatableField = Literal["company_name", "role", "apply_date", "status", "companyName", "applyDate"]


class ApplicationFieldUpdate(BaseModel):
    """Update a single field of an application"""
    field: UpdatableField
    value: str

    class Config:
        json_schema_extra = {
            "example": {"field": "status", "value": "First next step"}
        }


class DateRangeModel(BaseModel):
    """Inclusive date bounds, either may be open"""
    start: Optional[date] = None
    end: Optional[date] = None


class ApplicationListResponse(BaseModel):
    """Applications visible in the table view"""
    applications: List[JobApplication]
    total: int
    date_range: DateRangeModel = Field(default_factory=DateRangeModel)


# ============== Analytics Models ==============

class StageStatResponse(BaseModel):
    """Funnel statistics for one stage"""
    stage: Stage
    count: int = Field(ge=0)
    percent_of_total: float = Field(ge=0, le=100)
    percent_of_previous: Optional[float] = Field(None, ge=0, le=100)
    bar_height: float = Field(0, ge=0)


class FunnelResponse(BaseModel):
    """Funnel report for the insights view"""
    total: int
    stages: List[StageStatResponse]
    date_range: DateRangeModel = Field(default_factory=DateRangeModel)

    class Config:
        json_schema_extra = {
            "example": {
                "total": 4,
                "stages": [
                    {"stage": "Applied", "count": 4, "percent_of_total": 100.0,
                     "percent_of_previous": None, "bar_height": 170.0},
                    {"stage": "First next step", "count": 3, "percent_of_total": 75.0,
                     "percent_of_previous": 75.0, "bar_height": 127.5},
                ],
                "date_range": {"start": "2026-01-01", "end": None}
            }
        }

    @classmethod
    def from_report(cls, report: FunnelReport) -> "FunnelResponse":
        chart = funnel_chart(report.stages)
        stages = [
            StageStatResponse(
                stage=stat.stage,
                count=stat.count,
                percent_of_total=stat.percent_of_total,
                percent_of_previous=stat.percent_of_previous,
                bar_height=height,
            )
            for stat, (_, _, height) in zip(report.stages, chart)
        ]
        return cls(
            total=report.total,
            stages=stages,
            date_range=DateRangeModel(start=report.date_range.start, end=report.date_range.end),
        )


# ============== Auth Models ==============

class RegisterRequest(BaseModel):
    """Email/password registration"""
    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    """Email/password login"""
    email: str
    password: str


class AuthResponse(BaseModel):
    """Session issued after register, login or guest login"""
    token: str
    user_id: str
    email: Optional[str] = None
    is_guest: bool = False


# ============== Live Models ==============

class LiveUpdate(BaseModel):
    """Message pushed to live dashboard clients after every snapshot"""
    version: int
    applications: List[JobApplication]
    funnel: FunnelResponse
    table_range: DateRangeModel = Field(default_factory=DateRangeModel)
    error: Optional[str] = None
    error_code: Optional[str] = None
