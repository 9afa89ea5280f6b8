"""SQLite record store with owner-scoped live subscriptions"""

import asyncio
import hashlib
import hmac
import secrets
import sqlite3
import threading
import uuid
from datetime import datetime, date
from pathlib import Path
from typing import Optional, List, Dict, Any
from contextlib import contextmanager
import logging

from apptracker.analytics import Stage, DEFAULT_STAGE, parse_stage, coerce_date
from config.settings import DEFAULT_DB_PATH
from apptracker.errors import StoreOperationError, AuthenticationError
from ..models.application_models import JobApplication
from .subscriptions import Snapshot, Subscription, SubscriptionRegistry

logger = logging.getLogger(__name__)


# Accepted field names for update(), mapped to columns
UPDATABLE_FIELDS = {
    "company_name": "company_name",
    "companyName": "company_name",
    "role": "role",
    "apply_date": "apply_date",
    "applyDate": "apply_date",
    "status": "status",
}


class RecordStore:
    """SQLite store for job applications, users and sessions"""

    SCHEMA_VERSION = 2
    PASSWORD_ITERATIONS = 100_000

    def __init__(self, db_path: Optional[Path] = None, poll_interval: float = 1.0):
        self.db_path = Path(db_path or DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Seconds between checks for writes made through other handles; 0 disables
        self.poll_interval = poll_interval
        self._subscriptions = SubscriptionRegistry()
        self._versions: Dict[str, int] = {}
        self._version_lock = threading.Lock()
        self._init_database()

    @contextmanager
    def get_connection(self):
        """Get database connection with automatic cleanup"""
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StoreOperationError(f"Could not open record store: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Record store error: {e}")
            raise StoreOperationError(f"Record store operation failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self):
        """Initialize database schema"""
        with self.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)

            cursor.execute("SELECT version FROM schema_version")
            row = cursor.fetchone()
            current_version = row[0] if row else 0

            if current_version < self.SCHEMA_VERSION:
                self._create_schema(cursor)
                cursor.execute("DELETE FROM schema_version")
                cursor.execute("INSERT INTO schema_version (version) VALUES (?)",
                               (self.SCHEMA_VERSION,))
                logger.info(f"Record store schema updated to version {self.SCHEMA_VERSION}")

    def _create_schema(self, cursor):
        """Create all database tables"""
        statuses = ", ".join(f"'{stage.value}'" for stage in Stage)

        # Applications; rowid gives insertion order
        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS applications (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                company_name TEXT NOT NULL,
                role TEXT NOT NULL,
                apply_date TEXT,
                status TEXT NOT NULL CHECK(status IN ({statuses})),
                created_at TIMESTAMP NOT NULL
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_applications_owner ON applications(owner_id)")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                email TEXT UNIQUE,
                password_hash TEXT,
                salt TEXT,
                is_guest BOOLEAN DEFAULT 0,
                created_at TIMESTAMP NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                token TEXT PRIMARY KEY,
                user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                authenticated_at TIMESTAMP NOT NULL
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)")

        # Bumped in the same transaction as every application write, so any
        # process sharing the file can tell an owner's records changed
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS owner_revisions (
                owner_id TEXT PRIMARY KEY,
                revision INTEGER NOT NULL
            )
        """)

    # ============== Application Operations ==============

    def create(
        self,
        owner_id: str,
        company_name: str,
        role: str,
        apply_date: Optional[date] = None,
        status: Stage = DEFAULT_STAGE,
    ) -> str:
        """Insert a new application, returns its ID"""
        if not owner_id:
            raise StoreOperationError(
                "Missing owner for new application",
                code=StoreOperationError.PERMISSION_DENIED,
                operation="create",
            )

        stage = self._normalize_status(status, "create")
        day = coerce_date(apply_date) or date.today()
        app_id = f"app_{uuid.uuid4().hex[:12]}"

        with self.get_connection() as conn:
            conn.execute("""
                INSERT INTO applications (id, owner_id, company_name, role, apply_date, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                app_id,
                owner_id,
                company_name,
                role,
                day.isoformat(),
                stage.value,
                datetime.now().isoformat(),
            ))
            self._bump_revision(conn, owner_id)

        logger.info(f"Created application {app_id}: {role} at {company_name}")
        self._publish(owner_id)
        return app_id

    def update(self, app_id: str, owner_id: str, field: str, value: Any) -> None:
        """Set a single field of an application owned by owner_id"""
        column = UPDATABLE_FIELDS.get(field)
        if column is None:
            raise StoreOperationError(
                f"Field cannot be updated: {field}",
                code=StoreOperationError.INVALID_ARGUMENT,
                operation="update",
            )

        if column == "status":
            stored = self._normalize_status(value, "update").value
        elif column == "apply_date":
            stored = self._normalize_apply_date(value)
        else:
            stored = "" if value is None else str(value)

        with self.get_connection() as conn:
            self._check_owner(conn, app_id, owner_id, "update")
            conn.execute(
                f"UPDATE applications SET {column} = ? WHERE id = ? AND owner_id = ?",
                (stored, app_id, owner_id),
            )
            self._bump_revision(conn, owner_id)

        logger.info(f"Updated application {app_id}: {column}")
        self._publish(owner_id)

    def delete(self, app_id: str, owner_id: str) -> None:
        """Delete an application owned by owner_id"""
        with self.get_connection() as conn:
            self._check_owner(conn, app_id, owner_id, "delete")
            conn.execute("DELETE FROM applications WHERE id = ? AND owner_id = ?", (app_id, owner_id))
            self._bump_revision(conn, owner_id)

        logger.info(f"Deleted application {app_id}")
        self._publish(owner_id)

    def get(self, app_id: str, owner_id: str) -> Optional[JobApplication]:
        """Get one application, None if missing or owned by someone else"""
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM applications WHERE id = ? AND owner_id = ?",
                (app_id, owner_id),
            ).fetchone()
            return self._row_to_application(row) if row else None

    def list_for_owner(self, owner_id: str) -> List[JobApplication]:
        """All applications of an owner in insertion order"""
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM applications WHERE owner_id = ? ORDER BY rowid",
                (owner_id,),
            ).fetchall()
            return [self._row_to_application(r) for r in rows]

    def count(self) -> int:
        """Total number of stored applications"""
        with self.get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM applications").fetchone()[0]

    def owner_revision(self, owner_id: str) -> int:
        """Change counter of owner_id's applications, shared by every handle on the file"""
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT revision FROM owner_revisions WHERE owner_id = ?", (owner_id,)
            ).fetchone()
            return row["revision"] if row else 0

    def _bump_revision(self, conn, owner_id: str):
        conn.execute("""
            INSERT INTO owner_revisions (owner_id, revision) VALUES (?, 1)
            ON CONFLICT(owner_id) DO UPDATE SET revision = revision + 1
        """, (owner_id,))

    def _check_owner(self, conn, app_id: str, owner_id: str, operation: str):
        row = conn.execute("SELECT owner_id FROM applications WHERE id = ?", (app_id,)).fetchone()
        if row is None:
            raise StoreOperationError(
                f"Application not found: {app_id}",
                code=StoreOperationError.NOT_FOUND,
                operation=operation,
            )
        if row["owner_id"] != owner_id:
            raise StoreOperationError(
                f"Application {app_id} belongs to another user",
                code=StoreOperationError.PERMISSION_DENIED,
                operation=operation,
            )

    def _normalize_status(self, value: Any, operation: str) -> Stage:
        try:
            return parse_stage(value)
        except ValueError:
            raise StoreOperationError(
                f"Unknown status: {value!r}",
                code=StoreOperationError.INVALID_ARGUMENT,
                operation=operation,
            )

    def _normalize_apply_date(self, value: Any) -> Optional[str]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        day = coerce_date(value)
        if day is None:
            raise StoreOperationError(
                f"Invalid apply date: {value!r}",
                code=StoreOperationError.INVALID_ARGUMENT,
                operation="update",
            )
        return day.isoformat()

    def _row_to_application(self, row: sqlite3.Row) -> JobApplication:
        raw_date = row["apply_date"]
        apply_date = coerce_date(raw_date)
        if raw_date and apply_date is None:
            logger.warning(f"Application {row['id']} has malformed apply date {raw_date!r}")

        return JobApplication(
            id=row["id"],
            owner_id=row["owner_id"],
            company_name=row["company_name"],
            role=row["role"],
            apply_date=apply_date,
            status=Stage(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ============== Live Subscriptions ==============

    def subscribe(self, owner_id: str, label: Optional[str] = None) -> Subscription:
        """
        Open a live query on owner_id's applications.

        The current snapshot is delivered immediately, then a full snapshot
        after every successful write for that owner. Writes made through this
        handle are pushed right away; writes from other handles on the same
        file (CLI, other workers) are picked up every poll_interval seconds.
        Must be called from a running event loop. Call unsubscribe() (or use
        `async with`) to release it.
        """
        subscription = Subscription(owner_id, label=label, on_close=self._subscriptions.remove)
        self._subscriptions.add(subscription)
        logger.debug(f"[{subscription.id}] Subscribed to owner {owner_id}")
        subscription.push(self._load_snapshot(owner_id))
        if self.poll_interval > 0:
            subscription.attach_task(asyncio.get_running_loop().create_task(self._watch(subscription)))
        return subscription

    async def _watch(self, subscription: Subscription):
        """Push a snapshot when the owner's revision moves without a local write"""
        while not subscription.closed:
            await asyncio.sleep(self.poll_interval)
            try:
                revision = await asyncio.to_thread(self.owner_revision, subscription.owner_id)
            except StoreOperationError as e:
                logger.error(f"[{subscription.id}] Revision check failed: {e}")
                subscription.push(e)
                continue

            if revision != subscription.revision:
                logger.debug(f"[{subscription.id}] External change to {subscription.owner_id} (revision {revision})")
                subscription.push(await asyncio.to_thread(self._load_snapshot, subscription.owner_id))

    def close_subscriptions(self, owner_id: str, label: Optional[str] = None) -> int:
        """End live queries of an owner (optionally only those with label)"""
        subscriptions = self._subscriptions.for_owner(owner_id, label)
        for subscription in subscriptions:
            subscription.unsubscribe()
        if subscriptions:
            logger.info(f"Closed {len(subscriptions)} subscription(s) for owner {owner_id}")
        return len(subscriptions)

    def subscription_count(self, owner_id: Optional[str] = None) -> int:
        return self._subscriptions.count(owner_id)

    def _next_version(self, owner_id: str) -> int:
        with self._version_lock:
            version = self._versions.get(owner_id, 0) + 1
            self._versions[owner_id] = version
            return version

    def _load_snapshot(self, owner_id: str):
        try:
            # Revision first: the records read after it are at least as new
            revision = self.owner_revision(owner_id)
            records = tuple(self.list_for_owner(owner_id))
        except StoreOperationError as e:
            logger.error(f"Snapshot load failed for owner {owner_id}: {e}")
            return e
        return Snapshot(
            owner_id=owner_id,
            records=records,
            version=self._next_version(owner_id),
            revision=revision,
        )

    def _publish(self, owner_id: str):
        """Push a fresh snapshot to every live query of owner_id"""
        subscriptions = self._subscriptions.for_owner(owner_id)
        if not subscriptions:
            return

        event = self._load_snapshot(owner_id)
        for subscription in subscriptions:
            subscription.push(event)
        logger.debug(f"Published snapshot to {len(subscriptions)} subscriber(s) of {owner_id}")

    # ============== User Operations ==============

    def _hash_password(self, password: str, salt: str) -> str:
        digest = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), bytes.fromhex(salt), self.PASSWORD_ITERATIONS
        )
        return digest.hex()

    def create_user(self, email: str, password: str) -> str:
        """Register an email/password user, returns user ID"""
        normalized = email.strip().lower()
        user_id = f"user_{uuid.uuid4().hex[:12]}"
        salt = secrets.token_hex(16)

        with self.get_connection() as conn:
            existing = conn.execute("SELECT id FROM users WHERE email = ?", (normalized,)).fetchone()
            if existing:
                raise AuthenticationError("The email address is already in use by another account.")

            conn.execute("""
                INSERT INTO users (id, email, password_hash, salt, is_guest, created_at)
                VALUES (?, ?, ?, ?, 0, ?)
            """, (user_id, normalized, self._hash_password(password, salt), salt, datetime.now().isoformat()))

        logger.info(f"Registered user {user_id}")
        return user_id

    def create_guest_user(self) -> str:
        """Create an anonymous user, returns user ID"""
        user_id = f"guest_{uuid.uuid4().hex[:12]}"
        with self.get_connection() as conn:
            conn.execute(
                "INSERT INTO users (id, is_guest, created_at) VALUES (?, 1, ?)",
                (user_id, datetime.now().isoformat()),
            )
        logger.info(f"Created guest user {user_id}")
        return user_id

    def verify_credentials(self, email: str, password: str) -> str:
        """Return the user ID for valid credentials, raise AuthenticationError otherwise"""
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT id, password_hash, salt FROM users WHERE email = ? AND is_guest = 0",
                (email.strip().lower(),),
            ).fetchone()

        if not row or not hmac.compare_digest(row["password_hash"], self._hash_password(password, row["salt"])):
            raise AuthenticationError("Invalid email or password")
        return row["id"]

    def get_user(self, user_id: str) -> Optional[Dict]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT id, email, is_guest, created_at FROM users WHERE id = ?", (user_id,)
            ).fetchone()
            return dict(row) if row else None

    def delete_user(self, user_id: str) -> bool:
        """Delete a user with their sessions and applications"""
        with self.get_connection() as conn:
            conn.execute("DELETE FROM applications WHERE owner_id = ?", (user_id,))
            self._bump_revision(conn, user_id)
            conn.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            deleted = cursor.rowcount > 0

        self.close_subscriptions(user_id)
        if deleted:
            logger.info(f"Deleted user {user_id}")
        return deleted

    # ============== Session Operations ==============

    def create_session(self, user_id: str) -> str:
        """Issue a session token for user_id"""
        token = secrets.token_urlsafe(32)
        with self.get_connection() as conn:
            conn.execute(
                "INSERT INTO sessions (token, user_id, authenticated_at) VALUES (?, ?, ?)",
                (token, user_id, datetime.now().isoformat()),
            )
        return token

    def get_session(self, token: str) -> Optional[Dict]:
        """Session row with parsed authenticated_at, or None"""
        with self.get_connection() as conn:
            row = conn.execute("""
                SELECT s.token, s.user_id, s.authenticated_at, u.email, u.is_guest
                FROM sessions s
                JOIN users u ON s.user_id = u.id
                WHERE s.token = ?
            """, (token,)).fetchone()

        if not row:
            return None
        session = dict(row)
        session["authenticated_at"] = datetime.fromisoformat(session["authenticated_at"])
        session["is_guest"] = bool(session["is_guest"])
        return session

    def delete_session(self, token: str) -> bool:
        with self.get_connection() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
            return cursor.rowcount > 0


# Singleton instance
_store_instance: Optional[RecordStore] = None


def get_record_store(db_path: Optional[Path] = None, poll_interval: float = 1.0) -> RecordStore:
    """Get or create the record store instance"""
    global _store_instance
    if _store_instance is None:
        _store_instance = RecordStore(db_path, poll_interval=poll_interval)
    return _store_instance


def reset_record_store(db_path: Optional[Path] = None, poll_interval: float = 1.0) -> RecordStore:
    """Replace the record store instance (tests, reconfiguration)"""
    global _store_instance
    _store_instance = RecordStore(db_path, poll_interval=poll_interval)
    return _store_instance
