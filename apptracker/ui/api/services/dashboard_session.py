"""
Dashboard Session - keeps one user's dashboard in sync with the record store.

The session holds a single live subscription. Each snapshot replaces the
record set wholesale; the table view and the insights funnel are derived
again from scratch, each through its own date range.
"""

import logging
from typing import AsyncIterator, Optional, Sequence, Tuple

from apptracker.analytics import DateRange, FunnelReport, build_report, filter_by_date
from apptracker.errors import StoreOperationError
from ..database.record_store import RecordStore
from ..database.subscriptions import Snapshot, SnapshotEvent, Subscription
from ..models.application_models import (
    DateRangeModel,
    FunnelResponse,
    JobApplication,
    LiveUpdate,
)

logger = logging.getLogger(__name__)


class DashboardSession:
    """Live view state for one authenticated user"""

    def __init__(
        self,
        store: RecordStore,
        owner_id: str,
        label: Optional[str] = None,
        table_range: Optional[DateRange] = None,
        insights_range: Optional[DateRange] = None,
    ):
        self.store = store
        self.owner_id = owner_id
        self.label = label
        self.table_range = table_range or DateRange()
        self.insights_range = insights_range or DateRange()

        self.records: Tuple[JobApplication, ...] = ()
        self.version = 0
        self.last_error: Optional[StoreOperationError] = None
        self._subscription: Optional[Subscription] = None

    # ============== Lifecycle ==============

    def open(self) -> "DashboardSession":
        """Open the live subscription. Must run inside the event loop."""
        if self._subscription is None or self._subscription.closed:
            self._subscription = self.store.subscribe(self.owner_id, label=self.label)
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()

    @property
    def is_open(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    async def __aenter__(self) -> "DashboardSession":
        return self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ============== Snapshot handling ==============

    def apply(self, event: SnapshotEvent) -> bool:
        """
        Take in one event from the subscription.

        Snapshots replace the record set; errors are kept in last_error and
        leave the records as the last snapshot left them.
        """
        if isinstance(event, StoreOperationError):
            self.last_error = event
            logger.error(f"Live update failed for {self.owner_id}: {event}")
            return False

        if isinstance(event, Snapshot):
            self.records = event.records
            self.version = event.version
            self.last_error = None
            logger.debug(f"Dashboard {self.owner_id} at version {self.version} ({len(event)} records)")
            return True

        logger.warning(f"Ignoring unexpected live event: {type(event).__name__}")
        return False

    async def next_update(self, timeout: Optional[float] = None) -> Optional[SnapshotEvent]:
        """Wait for and apply the next event; None once the subscription ends"""
        if self._subscription is None:
            self.open()
        event = await self._subscription.next(timeout)
        if event is not None:
            self.apply(event)
        return event

    async def updates(self) -> AsyncIterator["DashboardSession"]:
        """Yield the session after each applied event until the subscription closes"""
        while True:
            event = await self.next_update()
            if event is None:
                return
            yield self

    # ============== Derived views ==============

    def set_table_range(self, date_range: DateRange) -> None:
        self.table_range = date_range

    def set_insights_range(self, date_range: DateRange) -> None:
        self.insights_range = date_range

    @property
    def visible_records(self) -> Sequence[JobApplication]:
        """Records shown in the table, filtered by the table range"""
        return filter_by_date(self.records, self.table_range)

    @property
    def funnel(self) -> FunnelReport:
        """Funnel over the records in the insights range"""
        return build_report(self.records, self.insights_range)

    def to_live_update(self) -> LiveUpdate:
        return LiveUpdate(
            version=self.version,
            applications=list(self.visible_records),
            funnel=FunnelResponse.from_report(self.funnel),
            table_range=DateRangeModel(start=self.table_range.start, end=self.table_range.end),
            error=str(self.last_error) if self.last_error else None,
            error_code=self.last_error.error_code if self.last_error else None,
        )
