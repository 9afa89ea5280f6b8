"""Application Service - validation and record store calls for job applications"""

import logging
from typing import Any, List, Optional

from apptracker.analytics import DateRange, FunnelReport, build_report, filter_by_date
from apptracker.errors import RecordValidationError
from ..database.record_store import RecordStore, get_record_store
from ..models.application_models import ApplicationCreate, JobApplication

logger = logging.getLogger(__name__)


class ApplicationService:
    """
    Owner-scoped operations on job applications.

    Validation happens here, before the store is touched. Writes are not
    applied locally: callers see their effect through the next snapshot or
    the next read.
    """

    def __init__(self, store: Optional[RecordStore] = None):
        self.store = store or get_record_store()

    # ============== Writes ==============

    def validate_new(self, data: ApplicationCreate) -> None:
        """Raise RecordValidationError for blank company or role"""
        if not data.company_name.strip():
            raise RecordValidationError("company_name", "Please enter a company name")
        if not data.role.strip():
            raise RecordValidationError("role", "Please enter a role")

    def create_application(self, owner_id: str, data: ApplicationCreate) -> str:
        """Validate and create an application, returns its ID"""
        self.validate_new(data)
        app_id = self.store.create(
            owner_id=owner_id,
            company_name=data.company_name,
            role=data.role,
            apply_date=data.apply_date,
            status=data.status,
        )
        logger.info(f"Application {app_id} added for {owner_id}")
        return app_id

    def update_field(self, owner_id: str, app_id: str, field: str, value: Any) -> None:
        """Update one field; no invariant is enforced on company or role"""
        self.store.update(app_id, owner_id, field, value)

    def delete_application(self, owner_id: str, app_id: str) -> None:
        self.store.delete(app_id, owner_id)

    # ============== Reads ==============

    def get_application(self, owner_id: str, app_id: str) -> Optional[JobApplication]:
        return self.store.get(app_id, owner_id)

    def list_applications(self, owner_id: str, date_range: Optional[DateRange] = None) -> List[JobApplication]:
        """Applications in insertion order, narrowed to date_range"""
        records = self.store.list_for_owner(owner_id)
        return list(filter_by_date(records, date_range or DateRange()))

    def funnel_report(self, owner_id: str, date_range: Optional[DateRange] = None) -> FunnelReport:
        """Funnel over the owner's applications within date_range"""
        return build_report(self.store.list_for_owner(owner_id), date_range)


def get_application_service(store: Optional[RecordStore] = None) -> ApplicationService:
    """Factory function for ApplicationService"""
    return ApplicationService(store)
