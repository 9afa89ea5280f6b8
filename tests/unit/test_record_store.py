"""Unit Tests for the record store and its live subscriptions"""

import asyncio
import sqlite3
import pytest
from datetime import date

from apptracker.analytics import Stage
from apptracker.errors import StoreOperationError, AuthenticationError
from apptracker.ui.api.database import RecordStore, Snapshot


class TestApplicationOperations:
    """Test create / update / delete / read"""

    def test_create_assigns_id_and_defaults(self, store):
        app_id = store.create("user_a", "TechCorp", "Engineer")

        app = store.get(app_id, "user_a")
        assert app_id.startswith("app_")
        assert app.owner_id == "user_a"
        assert app.status == Stage.APPLIED
        assert app.apply_date == date.today()
        assert app.created_at is not None

    def test_list_keeps_insertion_order(self, store):
        """Test that listing is by insertion, not by apply date"""
        store.create("user_a", "Late", "R", apply_date=date(2026, 3, 1))
        store.create("user_a", "Early", "R", apply_date=date(2026, 1, 1))
        store.create("user_a", "Middle", "R", apply_date=date(2026, 2, 1))

        names = [a.company_name for a in store.list_for_owner("user_a")]
        assert names == ["Late", "Early", "Middle"]

    def test_list_is_owner_scoped(self, store):
        store.create("user_a", "A Corp", "R")
        store.create("user_b", "B Corp", "R")

        assert [a.company_name for a in store.list_for_owner("user_a")] == ["A Corp"]
        assert [a.company_name for a in store.list_for_owner("user_b")] == ["B Corp"]

    def test_update_single_field(self, store):
        app_id = store.create("user_a", "TechCorp", "Engineer", apply_date=date(2026, 1, 5))

        store.update(app_id, "user_a", "status", "Interview")

        app = store.get(app_id, "user_a")
        assert app.status == Stage.INTERVIEW
        assert app.company_name == "TechCorp"
        assert app.role == "Engineer"
        assert app.apply_date == date(2026, 1, 5)

    def test_update_accepts_camel_case_fields(self, store):
        app_id = store.create("user_a", "TechCorp", "Engineer")

        store.update(app_id, "user_a", "companyName", "NewCorp")
        store.update(app_id, "user_a", "applyDate", "2026-02-02")

        app = store.get(app_id, "user_a")
        assert app.company_name == "NewCorp"
        assert app.apply_date == date(2026, 2, 2)

    def test_update_allows_blank_company(self, store):
        """Test that no invariant is enforced on update"""
        app_id = store.create("user_a", "TechCorp", "Engineer")
        store.update(app_id, "user_a", "company_name", "")
        assert store.get(app_id, "user_a").company_name == ""

    def test_status_may_move_backward(self, store):
        app_id = store.create("user_a", "TechCorp", "Engineer", status=Stage.OFFER_RECEIVED)
        store.update(app_id, "user_a", "status", Stage.APPLIED)
        assert store.get(app_id, "user_a").status == Stage.APPLIED

    def test_clear_apply_date(self, store):
        app_id = store.create("user_a", "TechCorp", "Engineer")
        store.update(app_id, "user_a", "apply_date", "")
        assert store.get(app_id, "user_a").apply_date is None

    @pytest.mark.parametrize("field,value", [
        ("status", "Rejected"),
        ("apply_date", "next week"),
        ("apply_date", "2026-01-05 not really"),
        ("owner_id", "user_b"),
        ("id", "app_x"),
    ])
    def test_update_invalid_argument(self, store, field, value):
        app_id = store.create("user_a", "TechCorp", "Engineer")

        with pytest.raises(StoreOperationError) as exc_info:
            store.update(app_id, "user_a", field, value)

        assert exc_info.value.code == StoreOperationError.INVALID_ARGUMENT
        assert store.get(app_id, "user_a").company_name == "TechCorp"

    def test_update_missing_record(self, store):
        with pytest.raises(StoreOperationError) as exc_info:
            store.update("app_missing", "user_a", "role", "x")
        assert exc_info.value.code == StoreOperationError.NOT_FOUND
        assert exc_info.value.error_code == "NOT_FOUND"

    def test_update_other_owner_denied(self, store):
        app_id = store.create("user_a", "TechCorp", "Engineer")

        with pytest.raises(StoreOperationError) as exc_info:
            store.update(app_id, "user_b", "role", "Hijacked")

        assert exc_info.value.code == StoreOperationError.PERMISSION_DENIED
        assert store.get(app_id, "user_a").role == "Engineer"

    def test_delete(self, store):
        app_id = store.create("user_a", "TechCorp", "Engineer")
        store.delete(app_id, "user_a")
        assert store.get(app_id, "user_a") is None

    def test_delete_missing(self, store):
        with pytest.raises(StoreOperationError) as exc_info:
            store.delete("app_missing", "user_a")
        assert exc_info.value.code == StoreOperationError.NOT_FOUND

    def test_create_requires_owner(self, store):
        with pytest.raises(StoreOperationError) as exc_info:
            store.create("", "TechCorp", "Engineer")
        assert exc_info.value.code == StoreOperationError.PERMISSION_DENIED

    def test_get_hides_other_owner(self, store):
        app_id = store.create("user_a", "TechCorp", "Engineer")
        assert store.get(app_id, "user_b") is None

    def test_malformed_stored_date_reads_as_none(self, store):
        app_id = store.create("user_a", "TechCorp", "Engineer")
        with sqlite3.connect(str(store.db_path)) as conn:
            conn.execute("UPDATE applications SET apply_date = 'someday' WHERE id = ?", (app_id,))

        assert store.get(app_id, "user_a").apply_date is None

    def test_sqlite_errors_are_wrapped(self, store):
        with sqlite3.connect(str(store.db_path)) as conn:
            conn.execute("DROP TABLE applications")

        with pytest.raises(StoreOperationError) as exc_info:
            store.list_for_owner("user_a")
        assert exc_info.value.code == StoreOperationError.UNAVAILABLE


class TestSubscriptions:
    """Test live query snapshots"""

    @pytest.mark.asyncio
    async def test_initial_snapshot(self, store):
        store.create("user_a", "TechCorp", "Engineer")

        async with store.subscribe("user_a") as subscription:
            snapshot = await subscription.next(timeout=1)

        assert isinstance(snapshot, Snapshot)
        assert [a.company_name for a in snapshot.records] == ["TechCorp"]

    @pytest.mark.asyncio
    async def test_snapshot_after_each_write(self, store):
        async with store.subscribe("user_a") as subscription:
            first = await subscription.next(timeout=1)
            assert len(first) == 0

            app_id = store.create("user_a", "TechCorp", "Engineer")
            second = await subscription.next(timeout=1)
            assert [a.id for a in second.records] == [app_id]

            store.update(app_id, "user_a", "status", "First next step")
            third = await subscription.next(timeout=1)
            assert third.records[0].status == Stage.FIRST_NEXT_STEP

            store.delete(app_id, "user_a")
            fourth = await subscription.next(timeout=1)
            assert fourth.records == ()

        assert first.version < second.version < third.version < fourth.version

    @pytest.mark.asyncio
    async def test_update_round_trip(self, store):
        """Test that a status update shows in a fresh snapshot with other fields unchanged"""
        app_id = store.create("user_a", "TechCorp", "Engineer", apply_date=date(2026, 1, 5))
        before = store.get(app_id, "user_a")

        store.update(app_id, "user_a", "status", "Interview")

        async with store.subscribe("user_a") as subscription:
            snapshot = await subscription.next(timeout=1)

        after = snapshot.records[0]
        assert after.status == Stage.INTERVIEW
        assert after.model_dump(exclude={"status"}) == before.model_dump(exclude={"status"})

    @pytest.mark.asyncio
    async def test_other_owner_writes_not_pushed(self, store):
        async with store.subscribe("user_a") as subscription:
            await subscription.next(timeout=1)
            store.create("user_b", "Other", "R")
            store.create("user_a", "Mine", "R")

            snapshot = await subscription.next(timeout=1)
            assert [a.company_name for a in snapshot.records] == ["Mine"]

    @pytest.mark.asyncio
    async def test_failed_write_pushes_nothing(self, store):
        async with store.subscribe("user_a") as subscription:
            await subscription.next(timeout=1)

            with pytest.raises(StoreOperationError):
                store.update("app_missing", "user_a", "role", "x")

            store.create("user_a", "After", "R")
            snapshot = await subscription.next(timeout=1)
            assert [a.company_name for a in snapshot.records] == ["After"]

    @pytest.mark.asyncio
    async def test_unsubscribe_ends_stream(self, store):
        subscription = store.subscribe("user_a")
        await subscription.next(timeout=1)
        assert store.subscription_count("user_a") == 1

        subscription.unsubscribe()
        subscription.unsubscribe()

        assert await subscription.next(timeout=1) is None
        assert store.subscription_count("user_a") == 0
        assert [event async for event in subscription] == []

    @pytest.mark.asyncio
    async def test_close_subscriptions_by_label(self, store):
        kept = store.subscribe("user_a", label="session-1")
        closed = store.subscribe("user_a", label="session-2")

        assert store.close_subscriptions("user_a", label="session-2") == 1
        assert closed.closed
        assert not kept.closed

        kept.unsubscribe()

    @pytest.mark.asyncio
    async def test_writes_from_another_handle_are_pushed(self, tmp_path):
        """Test that a write through a second store on the same file reaches the subscriber"""
        db_path = tmp_path / "shared.db"
        api_store = RecordStore(db_path, poll_interval=0.05)
        cli_store = RecordStore(db_path)

        async with api_store.subscribe("me") as subscription:
            await subscription.next(timeout=1)

            app_id = cli_store.create("me", "TechCorp", "Engineer")
            snapshot = await subscription.next(timeout=2)
            assert [a.id for a in snapshot.records] == [app_id]

            cli_store.update(app_id, "me", "status", "Interview")
            snapshot = await subscription.next(timeout=2)
            assert snapshot.records[0].status == Stage.INTERVIEW

    @pytest.mark.asyncio
    async def test_local_write_pushed_once(self, tmp_path):
        store = RecordStore(tmp_path / "local.db", poll_interval=0.05)

        async with store.subscribe("me") as subscription:
            await subscription.next(timeout=1)
            store.create("me", "TechCorp", "Engineer")
            await subscription.next(timeout=1)

            with pytest.raises(asyncio.TimeoutError):
                await subscription.next(timeout=0.3)

    @pytest.mark.asyncio
    async def test_stale_snapshot_dropped(self, store):
        async with store.subscribe("user_a") as subscription:
            await subscription.next(timeout=1)
            store.create("user_a", "TechCorp", "Engineer")
            latest = await subscription.next(timeout=1)

            subscription.push(Snapshot(owner_id="user_a", records=(), version=99, revision=latest.revision - 1))

            with pytest.raises(asyncio.TimeoutError):
                await subscription.next(timeout=0.2)

    def test_revision_moves_with_each_write(self, store):
        assert store.owner_revision("user_a") == 0
        app_id = store.create("user_a", "TechCorp", "Engineer")
        store.update(app_id, "user_a", "role", "Lead")
        store.delete(app_id, "user_a")
        assert store.owner_revision("user_a") == 3
        assert store.owner_revision("user_b") == 0

    @pytest.mark.asyncio
    async def test_load_error_delivered_on_stream(self, store):
        """Test that a snapshot failure arrives as an error item and the stream stays open"""
        async with store.subscribe("user_a") as subscription:
            await subscription.next(timeout=1)

            with sqlite3.connect(str(store.db_path)) as conn:
                conn.execute("ALTER TABLE applications RENAME TO applications_old")
            store._publish("user_a")

            event = await subscription.next(timeout=1)
            assert isinstance(event, StoreOperationError)
            assert not subscription.closed


class TestUsersAndSessions:
    """Test account storage"""

    def test_register_and_verify(self, store):
        user_id = store.create_user("Me@Example.com", "secret1")
        assert store.verify_credentials("me@example.com", "secret1") == user_id

    def test_wrong_password(self, store):
        store.create_user("me@example.com", "secret1")
        with pytest.raises(AuthenticationError):
            store.verify_credentials("me@example.com", "wrong")

    def test_duplicate_email(self, store):
        store.create_user("me@example.com", "secret1")
        with pytest.raises(AuthenticationError):
            store.create_user("ME@example.com", "other12")

    def test_guest_cannot_password_login(self, store):
        store.create_guest_user()
        with pytest.raises(AuthenticationError):
            store.verify_credentials("", "")

    def test_session_lifecycle(self, store):
        user_id = store.create_guest_user()
        token = store.create_session(user_id)

        session = store.get_session(token)
        assert session["user_id"] == user_id
        assert session["is_guest"] is True

        assert store.delete_session(token)
        assert store.get_session(token) is None

    def test_delete_user_removes_records(self, store):
        user_id = store.create_guest_user()
        token = store.create_session(user_id)
        store.create(user_id, "TechCorp", "Engineer")

        assert store.delete_user(user_id)
        assert store.list_for_owner(user_id) == []
        assert store.get_session(token) is None
        assert store.get_user(user_id) is None
