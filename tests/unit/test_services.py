"""Unit Tests for ApplicationService, AuthService and DashboardSession"""

import pytest
from datetime import date, datetime, timedelta
from unittest.mock import Mock

from apptracker.analytics import Stage, DateRange
from apptracker.errors import (
    RecordValidationError,
    StoreOperationError,
    ReauthRequiredError,
    AuthenticationError,
)
from apptracker.ui.api.database import Snapshot
from apptracker.ui.api.models.application_models import ApplicationCreate
from apptracker.ui.api.services import AuthService, DashboardSession
from apptracker.ui.api.services.application_service import ApplicationService


class TestApplicationService:
    """Test ApplicationService"""

    def test_create(self, service):
        app_id = service.create_application(
            "user_a",
            ApplicationCreate(company_name="TechCorp", role="Engineer", apply_date=date(2026, 1, 5)),
        )

        app = service.get_application("user_a", app_id)
        assert app.company_name == "TechCorp"
        assert app.status == Stage.APPLIED

    @pytest.mark.parametrize("company,role,field", [
        ("", "Engineer", "company_name"),
        ("   ", "Engineer", "company_name"),
        ("TechCorp", "", "role"),
        ("", "", "company_name"),
    ])
    def test_blank_fields_rejected_before_store(self, company, role, field):
        """Test that validation fails without any store call"""
        store = Mock()
        service = ApplicationService(store)

        with pytest.raises(RecordValidationError) as exc_info:
            service.create_application("user_a", ApplicationCreate(company_name=company, role=role))

        assert exc_info.value.field == field
        store.create.assert_not_called()

    def test_validation_messages(self, service):
        with pytest.raises(RecordValidationError, match="Please enter a company name"):
            service.validate_new(ApplicationCreate(role="Engineer"))
        with pytest.raises(RecordValidationError, match="Please enter a role"):
            service.validate_new(ApplicationCreate(company_name="TechCorp"))

    def test_update_and_delete_pass_through(self, service):
        app_id = service.create_application("user_a", ApplicationCreate(company_name="A", role="R"))

        service.update_field("user_a", app_id, "status", "Passed next step")
        assert service.get_application("user_a", app_id).status == Stage.PASSED_NEXT_STEP

        service.delete_application("user_a", app_id)
        assert service.get_application("user_a", app_id) is None

    def test_store_errors_propagate(self, service):
        with pytest.raises(StoreOperationError):
            service.delete_application("user_a", "app_missing")

    def test_list_with_range(self, service):
        for name, day in [("jan", date(2026, 1, 10)), ("feb", date(2026, 2, 10))]:
            service.create_application("user_a", ApplicationCreate(company_name=name, role="R", apply_date=day))

        everything = service.list_applications("user_a")
        january = service.list_applications("user_a", DateRange(end=date(2026, 1, 31)))

        assert [a.company_name for a in everything] == ["jan", "feb"]
        assert [a.company_name for a in january] == ["jan"]

    def test_funnel_report(self, service):
        for status in [Stage.APPLIED, Stage.INTERVIEW, Stage.OFFER_RECEIVED, Stage.INTERVIEW]:
            service.create_application("user_a", ApplicationCreate(company_name="C", role="R", status=status))

        report = service.funnel_report("user_a")

        assert report.total == 4
        assert [s.count for s in report.stages] == [4, 3, 3, 3, 1]


class TestAuthService:
    """Test AuthService"""

    @pytest.fixture
    def auth(self, store):
        return AuthService(store, reauth_window_minutes=5)

    def test_register_then_login(self, auth):
        registered = auth.register("me@example.com", "secret1")
        logged_in = auth.login("me@example.com", "secret1")

        assert registered.user_id == logged_in.user_id
        assert registered.token != logged_in.token
        assert not logged_in.is_guest

    def test_guest_login(self, auth):
        response = auth.guest_login()
        assert response.is_guest
        assert response.email is None
        assert auth.resolve(response.token)["user_id"] == response.user_id

    def test_resolve_rejects_unknown_token(self, auth):
        with pytest.raises(AuthenticationError):
            auth.resolve("nope")
        with pytest.raises(AuthenticationError):
            auth.resolve(None)

    def test_logout_ends_session(self, auth):
        token = auth.guest_login().token
        auth.logout(token)
        with pytest.raises(AuthenticationError):
            auth.resolve(token)

    @pytest.mark.asyncio
    async def test_logout_closes_only_its_subscriptions(self, auth, store):
        first = auth.guest_login()
        second_token = store.create_session(first.user_id)

        mine = store.subscribe(first.user_id, label=first.token)
        other = store.subscribe(first.user_id, label=second_token)

        auth.logout(first.token)

        assert mine.closed
        assert not other.closed
        other.unsubscribe()

    def test_delete_account_with_recent_login(self, auth, store):
        response = auth.guest_login()
        store.create(response.user_id, "TechCorp", "Engineer")

        auth.delete_account(response.token)

        assert store.get_user(response.user_id) is None
        assert store.list_for_owner(response.user_id) == []

    def test_delete_account_needs_recent_login(self, auth, store):
        response = auth.guest_login()
        later = datetime.now() + timedelta(minutes=6)

        with pytest.raises(ReauthRequiredError) as exc_info:
            auth.delete_account(response.token, now=later)

        assert exc_info.value.code == "requires-recent-login"
        assert exc_info.value.error_code == "REAUTH_REQUIRED"
        assert store.get_user(response.user_id) is not None


class TestDashboardSession:
    """Test the live dashboard state"""

    def _snapshot(self, store, owner_id, version=1):
        return Snapshot(owner_id=owner_id, records=tuple(store.list_for_owner(owner_id)), version=version)

    def test_snapshot_replaces_records(self, store):
        store.create("user_a", "First", "R")
        dashboard = DashboardSession(store, "user_a")

        assert dashboard.apply(self._snapshot(store, "user_a", 1))
        assert [a.company_name for a in dashboard.records] == ["First"]

        store.create("user_a", "Second", "R")
        dashboard.apply(self._snapshot(store, "user_a", 2))
        assert [a.company_name for a in dashboard.records] == ["First", "Second"]
        assert dashboard.version == 2

    def test_error_keeps_last_snapshot(self, store):
        store.create("user_a", "First", "R")
        dashboard = DashboardSession(store, "user_a")
        dashboard.apply(self._snapshot(store, "user_a"))

        assert not dashboard.apply(StoreOperationError("disk gone"))

        assert [a.company_name for a in dashboard.records] == ["First"]
        update = dashboard.to_live_update()
        assert update.error == "disk gone"
        assert update.error_code == "UNAVAILABLE"

    def test_ranges_are_independent(self, store):
        """Test that the table range never affects the funnel and vice versa"""
        store.create("user_a", "jan", "R", apply_date=date(2026, 1, 10), status=Stage.INTERVIEW)
        store.create("user_a", "feb", "R", apply_date=date(2026, 2, 10))
        dashboard = DashboardSession(store, "user_a")
        dashboard.apply(self._snapshot(store, "user_a"))

        dashboard.set_table_range(DateRange(start=date(2026, 2, 1)))
        assert [a.company_name for a in dashboard.visible_records] == ["feb"]
        assert dashboard.funnel.total == 2

        dashboard.set_insights_range(DateRange(end=date(2026, 1, 31)))
        assert dashboard.funnel.total == 1
        assert dashboard.funnel.stages[3].count == 1
        assert [a.company_name for a in dashboard.visible_records] == ["feb"]

    @pytest.mark.asyncio
    async def test_live_updates(self, store):
        async with DashboardSession(store, "user_a") as dashboard:
            await dashboard.next_update(timeout=1)
            assert dashboard.records == ()

            store.create("user_a", "TechCorp", "Engineer")
            await dashboard.next_update(timeout=1)

            update = dashboard.to_live_update()
            assert [a.company_name for a in update.applications] == ["TechCorp"]
            assert update.funnel.total == 1
            assert update.funnel.stages[0].bar_height == 30

        assert not dashboard.is_open

    @pytest.mark.asyncio
    async def test_updates_stop_on_close(self, store):
        dashboard = DashboardSession(store, "user_a", label="token-1").open()
        store.close_subscriptions("user_a", label="token-1")

        seen = [session.version async for session in dashboard.updates()]

        assert seen == [1]
        assert not dashboard.is_open
