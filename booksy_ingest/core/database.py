"""
Database repository for salon bookings and Booksy triage data.

Provides PostgreSQL operations for the ingestion pipeline. Every query that
touches tenant data filters on salon_id in SQL.
"""

from contextlib import contextmanager
from datetime import date, time
from typing import Any, Generator

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Json

from booksy_ingest.config import settings
from booksy_ingest.core.exceptions import StoreError
from booksy_ingest.core.logging import get_logger
from booksy_ingest.core.models import (
    BOOKING_SOURCE,
    Booking,
    BookingStatus,
    Client,
    Employee,
    PendingNotification,
    PendingStatus,
    Service,
    SyncStats,
)

log = get_logger(__name__)

BOOKING_COLUMNS = """
    id, salon_id, client_id, employee_id, service_id, booking_date, booking_time,
    duration, price_cents, status, source, notes, provider_event_id, created_at
"""

CLIENT_COLUMNS = "id, salon_id, client_code, full_name, phone, email, visit_count"

PENDING_COLUMNS = """
    id, salon_id, subject, body, message_id, status, reason, parsed_data,
    created_at, resolved_at
"""


def _row_to_booking(row: dict[str, Any]) -> Booking:
    return Booking(
        id=str(row["id"]),
        tenant_id=str(row["salon_id"]),
        client_id=str(row["client_id"]),
        employee_id=str(row["employee_id"]),
        service_id=str(row["service_id"]),
        date=row["booking_date"],
        start_time=row["booking_time"],
        duration_minutes=row["duration"],
        price_cents=row["price_cents"],
        status=BookingStatus(row["status"]),
        source=row["source"],
        notes=row["notes"] or "",
        provider_event_id=row["provider_event_id"],
        created_at=row["created_at"],
    )


def _row_to_client(row: dict[str, Any]) -> Client:
    return Client(
        id=str(row["id"]),
        tenant_id=str(row["salon_id"]),
        client_code=row["client_code"],
        full_name=row["full_name"],
        phone=row["phone"],
        email=row["email"],
        visit_count=row["visit_count"] or 0,
    )


def _row_to_pending(row: dict[str, Any]) -> PendingNotification:
    return PendingNotification(
        id=str(row["id"]),
        tenant_id=str(row["salon_id"]),
        subject=row["subject"] or "",
        body=row["body"] or "",
        event_id=row["message_id"],
        status=PendingStatus(row["status"]),
        reason=row["reason"] or "",
        parsed_data=row["parsed_data"],
        created_at=row["created_at"],
        resolved_at=row["resolved_at"],
    )


class Database:
    """PostgreSQL operations for the ingestion pipeline."""

    def __init__(self, connection_string: str | None = None):
        """
        Initialize database connection settings.

        Args:
            connection_string: PostgreSQL connection URL. Uses settings if not provided.
        """
        self.connection_string = connection_string or settings.database_url

    @contextmanager
    def get_connection(self) -> Generator[psycopg.Connection, None, None]:
        """
        Get a database connection as a context manager.

        Raises:
            StoreError: On any driver level failure.
        """
        conn = None
        try:
            conn = psycopg.connect(self.connection_string, row_factory=dict_row)
            yield conn
        except psycopg.Error as e:
            log.error("database_error", error=str(e), error_type=type(e).__name__)
            raise StoreError(f"Database operation failed: {e}") from e
        finally:
            if conn is not None:
                conn.close()

    def init_schema(self) -> None:
        """Initialize database schema (create tables if not exist)."""
        schema_sql = """
        -- Collaborator tables, normally owned by the main salon application
        CREATE TABLE IF NOT EXISTS clients (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            salon_id UUID NOT NULL,
            client_code VARCHAR(20),
            full_name TEXT NOT NULL,
            phone VARCHAR(32),
            email VARCHAR(255),
            visit_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_clients_salon_phone ON clients(salon_id, phone);

        CREATE TABLE IF NOT EXISTS services (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            salon_id UUID NOT NULL,
            name TEXT NOT NULL,
            active BOOLEAN DEFAULT TRUE
        );

        CREATE INDEX IF NOT EXISTS idx_services_salon ON services(salon_id, active);

        CREATE TABLE IF NOT EXISTS employees (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            salon_id UUID NOT NULL,
            first_name TEXT NOT NULL,
            last_name TEXT DEFAULT '',
            active BOOLEAN DEFAULT TRUE
        );

        CREATE INDEX IF NOT EXISTS idx_employees_salon ON employees(salon_id, active);

        -- bookings: one row per appointment
        CREATE TABLE IF NOT EXISTS bookings (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            salon_id UUID NOT NULL,
            client_id UUID NOT NULL REFERENCES clients(id),
            employee_id UUID NOT NULL REFERENCES employees(id),
            service_id UUID NOT NULL REFERENCES services(id),
            booking_date DATE NOT NULL,
            booking_time TIME NOT NULL,
            duration INTEGER NOT NULL CHECK (duration > 0),
            price_cents INTEGER NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'scheduled',
            source VARCHAR(50) NOT NULL,
            notes TEXT,
            provider_event_id TEXT,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_provider_event
            ON bookings(salon_id, provider_event_id)
            WHERE provider_event_id IS NOT NULL;
        CREATE INDEX IF NOT EXISTS idx_bookings_salon_source
            ON bookings(salon_id, source, created_at DESC);

        -- booksy_pending_emails: notifications waiting for manual triage
        CREATE TABLE IF NOT EXISTS booksy_pending_emails (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            salon_id UUID NOT NULL,
            subject TEXT,
            body TEXT,
            message_id TEXT,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            reason TEXT,
            parsed_data JSONB,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            resolved_at TIMESTAMPTZ
        );

        CREATE INDEX IF NOT EXISTS idx_pending_salon_status
            ON booksy_pending_emails(salon_id, status, created_at DESC);

        -- booksy_sync_stats: per-salon ingestion counters
        CREATE TABLE IF NOT EXISTS booksy_sync_stats (
            salon_id UUID PRIMARY KEY,
            total INTEGER NOT NULL DEFAULT 0,
            success INTEGER NOT NULL DEFAULT 0,
            errors INTEGER NOT NULL DEFAULT 0,
            last_sync_at TIMESTAMPTZ
        );
        """

        with self.get_connection() as conn:
            conn.execute(schema_sql)
            conn.commit()
            log.info("database_schema_initialized")

    # =========================================================================
    # BOOKINGS
    # =========================================================================

    def find_booking_by_event(self, tenant_id: str, event_id: str) -> Booking | None:
        """Return the most recent booking of a salon created for a provider event."""
        sql = f"""
        SELECT {BOOKING_COLUMNS}
        FROM bookings
        WHERE salon_id = %s AND provider_event_id = %s
        ORDER BY created_at DESC
        LIMIT 1
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, (tenant_id, event_id)).fetchone()
            return _row_to_booking(row) if row else None

    def insert_booking(self, booking: Booking) -> Booking | None:
        """
        Insert a booking.

        The client's visit count is incremented in the same transaction.

        Returns:
            The stored booking, or None when a booking for the same
            (salon_id, provider_event_id) already exists.
        """
        sql = f"""
        INSERT INTO bookings (
            salon_id, client_id, employee_id, service_id, booking_date, booking_time,
            duration, price_cents, status, source, notes, provider_event_id
        ) VALUES (
            %(salon_id)s, %(client_id)s, %(employee_id)s, %(service_id)s,
            %(booking_date)s, %(booking_time)s, %(duration)s, %(price_cents)s,
            %(status)s, %(source)s, %(notes)s, %(provider_event_id)s
        )
        ON CONFLICT (salon_id, provider_event_id) WHERE provider_event_id IS NOT NULL
        DO NOTHING
        RETURNING {BOOKING_COLUMNS}
        """

        params = {
            "salon_id": booking.tenant_id,
            "client_id": booking.client_id,
            "employee_id": booking.employee_id,
            "service_id": booking.service_id,
            "booking_date": booking.date,
            "booking_time": booking.start_time,
            "duration": booking.duration_minutes,
            "price_cents": booking.price_cents,
            "status": booking.status.value,
            "source": booking.source,
            "notes": booking.notes,
            "provider_event_id": booking.provider_event_id,
        }

        visits_sql = """
        UPDATE clients SET visit_count = visit_count + 1
        WHERE salon_id = %s AND id = %s
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, params).fetchone()
            if row:
                conn.execute(visits_sql, (booking.tenant_id, booking.client_id))
            conn.commit()
            if not row:
                log.warning(
                    "booking_insert_conflict",
                    tenant_id=booking.tenant_id,
                    provider_event_id=booking.provider_event_id,
                )
                return None
            return _row_to_booking(row)

    def find_booking_in_slot(
        self,
        tenant_id: str,
        employee_id: str,
        booking_date: date,
        booking_time: time,
    ) -> Booking | None:
        """Return a non-cancelled booking of an employee starting at the given date and time."""
        sql = f"""
        SELECT {BOOKING_COLUMNS}
        FROM bookings
        WHERE salon_id = %s AND employee_id = %s
          AND booking_date = %s AND booking_time = %s
          AND status <> 'cancelled'
        ORDER BY created_at ASC
        LIMIT 1
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, (tenant_id, employee_id, booking_date, booking_time)).fetchone()
            return _row_to_booking(row) if row else None

    def count_bookings(self, tenant_id: str, source: str = BOOKING_SOURCE) -> dict[str, int]:
        """Count a salon's bookings from one source, split by status."""
        sql = """
        SELECT
            COUNT(*) AS total,
            COUNT(*) FILTER (WHERE status = 'scheduled') AS scheduled,
            COUNT(*) FILTER (WHERE status = 'cancelled') AS cancelled
        FROM bookings
        WHERE salon_id = %s AND source = %s
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, (tenant_id, source)).fetchone()
            return dict(row) if row else {"total": 0, "scheduled": 0, "cancelled": 0}

    def get_recent_bookings(
        self,
        tenant_id: str,
        limit: int = 20,
        source: str = BOOKING_SOURCE,
    ) -> list[dict[str, Any]]:
        """Recent bookings of one source with client, employee and service names."""
        sql = """
        SELECT b.id, b.booking_date, b.booking_time, b.status, b.created_at,
               b.price_cents, c.full_name AS client_name, c.phone AS client_phone,
               e.first_name AS employee_first_name, e.last_name AS employee_last_name,
               s.name AS service_name
        FROM bookings b
        LEFT JOIN clients c ON c.id = b.client_id AND c.salon_id = b.salon_id
        LEFT JOIN employees e ON e.id = b.employee_id AND e.salon_id = b.salon_id
        LEFT JOIN services s ON s.id = b.service_id AND s.salon_id = b.salon_id
        WHERE b.salon_id = %s AND b.source = %s
        ORDER BY b.created_at DESC
        LIMIT %s
        """

        with self.get_connection() as conn:
            rows = conn.execute(sql, (tenant_id, source, limit)).fetchall()
            return [
                {
                    "id": str(row["id"]),
                    "booking_date": row["booking_date"].isoformat(),
                    "booking_time": row["booking_time"].strftime("%H:%M"),
                    "status": row["status"],
                    "created_at": row["created_at"].isoformat() if row["created_at"] else None,
                    "price_cents": row["price_cents"],
                    "client": {"full_name": row["client_name"], "phone": row["client_phone"]},
                    "employee": {
                        "first_name": row["employee_first_name"],
                        "last_name": row["employee_last_name"],
                    },
                    "service": {"name": row["service_name"]},
                }
                for row in rows
            ]

    # =========================================================================
    # CLIENTS, SERVICES, EMPLOYEES
    # =========================================================================

    def find_client_by_phone(self, tenant_id: str, phone: str) -> Client | None:
        """Find a salon client by phone number."""
        sql = f"""
        SELECT {CLIENT_COLUMNS}
        FROM clients
        WHERE salon_id = %s AND phone = %s
        ORDER BY created_at ASC
        LIMIT 1
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, (tenant_id, phone)).fetchone()
            return _row_to_client(row) if row else None

    def insert_client(
        self,
        tenant_id: str,
        full_name: str,
        phone: str,
        email: str | None = None,
    ) -> Client:
        """Create a client with the next per-salon client code (K0001, K0002, ...)."""
        sql = f"""
        INSERT INTO clients (salon_id, client_code, full_name, phone, email)
        VALUES (
            %(salon_id)s,
            'K' || LPAD(
                ((SELECT COUNT(*) FROM clients WHERE salon_id = %(salon_id)s) + 1)::text,
                4, '0'
            ),
            %(full_name)s, %(phone)s, %(email)s
        )
        RETURNING {CLIENT_COLUMNS}
        """

        params = {"salon_id": tenant_id, "full_name": full_name, "phone": phone, "email": email}

        with self.get_connection() as conn:
            row = conn.execute(sql, params).fetchone()
            conn.commit()
            if not row:
                raise StoreError("Failed to insert client", tenant_id=tenant_id)
            log.info("client_created", tenant_id=tenant_id, client_id=str(row["id"]))
            return _row_to_client(row)

    def get_active_services(self, tenant_id: str) -> list[Service]:
        """Fetch the active services of a salon."""
        sql = "SELECT id, salon_id, name, active FROM services WHERE salon_id = %s AND active = TRUE"

        with self.get_connection() as conn:
            rows = conn.execute(sql, (tenant_id,)).fetchall()
            return [
                Service(id=str(r["id"]), tenant_id=str(r["salon_id"]), name=r["name"], active=r["active"])
                for r in rows
            ]

    def get_service(self, tenant_id: str, service_id: str) -> Service | None:
        """Fetch one service of a salon by id."""
        sql = "SELECT id, salon_id, name, active FROM services WHERE salon_id = %s AND id = %s"

        with self.get_connection() as conn:
            r = conn.execute(sql, (tenant_id, service_id)).fetchone()
            if not r:
                return None
            return Service(id=str(r["id"]), tenant_id=str(r["salon_id"]), name=r["name"], active=r["active"])

    def get_active_employees(self, tenant_id: str) -> list[Employee]:
        """Fetch the active employees of a salon."""
        sql = """
        SELECT id, salon_id, first_name, last_name, active
        FROM employees
        WHERE salon_id = %s AND active = TRUE
        """

        with self.get_connection() as conn:
            rows = conn.execute(sql, (tenant_id,)).fetchall()
            return [
                Employee(
                    id=str(r["id"]),
                    tenant_id=str(r["salon_id"]),
                    first_name=r["first_name"],
                    last_name=r["last_name"] or "",
                    active=r["active"],
                )
                for r in rows
            ]

    def get_employee(self, tenant_id: str, employee_id: str) -> Employee | None:
        """Fetch one employee of a salon by id."""
        sql = """
        SELECT id, salon_id, first_name, last_name, active
        FROM employees
        WHERE salon_id = %s AND id = %s
        """

        with self.get_connection() as conn:
            r = conn.execute(sql, (tenant_id, employee_id)).fetchone()
            if not r:
                return None
            return Employee(
                id=str(r["id"]),
                tenant_id=str(r["salon_id"]),
                first_name=r["first_name"],
                last_name=r["last_name"] or "",
                active=r["active"],
            )

    # =========================================================================
    # PENDING NOTIFICATIONS
    # =========================================================================

    def insert_pending(self, pending: PendingNotification) -> PendingNotification:
        """Insert a notification into the triage queue."""
        sql = f"""
        INSERT INTO booksy_pending_emails (
            salon_id, subject, body, message_id, status, reason, parsed_data
        ) VALUES (
            %(salon_id)s, %(subject)s, %(body)s, %(message_id)s, %(status)s,
            %(reason)s, %(parsed_data)s
        )
        RETURNING {PENDING_COLUMNS}
        """

        params = {
            "salon_id": pending.tenant_id,
            "subject": pending.subject,
            "body": pending.body,
            "message_id": pending.event_id,
            "status": pending.status.value,
            "reason": pending.reason,
            "parsed_data": (
                Json(pending.parsed_data)
                if pending.parsed_data is not None
                else None
            ),
        }

        with self.get_connection() as conn:
            row = conn.execute(sql, params).fetchone()
            conn.commit()
            if not row:
                raise StoreError("Failed to insert pending notification", tenant_id=pending.tenant_id)
            return _row_to_pending(row)

    def list_pending(
        self,
        tenant_id: str,
        status: PendingStatus | None = PendingStatus.PENDING,
        limit: int = 50,
    ) -> list[PendingNotification]:
        """
        List a salon's triage queue, newest first.

        Args:
            tenant_id: Salon id
            status: Status filter, None for all statuses
            limit: Maximum number of rows
        """
        if status is not None:
            sql = f"""
            SELECT {PENDING_COLUMNS}
            FROM booksy_pending_emails
            WHERE salon_id = %s AND status = %s
            ORDER BY created_at DESC
            LIMIT %s
            """
            params: tuple = (tenant_id, status.value, limit)
        else:
            sql = f"""
            SELECT {PENDING_COLUMNS}
            FROM booksy_pending_emails
            WHERE salon_id = %s
            ORDER BY created_at DESC
            LIMIT %s
            """
            params = (tenant_id, limit)

        with self.get_connection() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [_row_to_pending(row) for row in rows]

    def get_pending(self, tenant_id: str, pending_id: str) -> PendingNotification | None:
        """Fetch one pending notification of a salon."""
        sql = f"""
        SELECT {PENDING_COLUMNS}
        FROM booksy_pending_emails
        WHERE salon_id = %s AND id = %s
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, (tenant_id, pending_id)).fetchone()
            return _row_to_pending(row) if row else None

    def update_pending_status(
        self,
        tenant_id: str,
        pending_id: str,
        status: PendingStatus,
    ) -> PendingNotification | None:
        """Set the triage status; resolved_at is stamped when resolving."""
        sql = f"""
        UPDATE booksy_pending_emails
        SET status = %s,
            resolved_at = CASE WHEN %s::text = 'resolved' THEN NOW() ELSE resolved_at END
        WHERE salon_id = %s AND id = %s
        RETURNING {PENDING_COLUMNS}
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, (status.value, status.value, tenant_id, pending_id)).fetchone()
            conn.commit()
            return _row_to_pending(row) if row else None

    # =========================================================================
    # SYNC STATS
    # =========================================================================

    def upsert_sync_stats(
        self,
        tenant_id: str,
        processed: int,
        successful: int,
        errors: int,
    ) -> SyncStats:
        """Add one batch to a salon's counters and stamp last_sync_at."""
        sql = """
        INSERT INTO booksy_sync_stats (salon_id, total, success, errors, last_sync_at)
        VALUES (%s, %s, %s, %s, NOW())
        ON CONFLICT (salon_id) DO UPDATE
        SET total = booksy_sync_stats.total + EXCLUDED.total,
            success = booksy_sync_stats.success + EXCLUDED.success,
            errors = booksy_sync_stats.errors + EXCLUDED.errors,
            last_sync_at = EXCLUDED.last_sync_at
        RETURNING total, success, errors, last_sync_at
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, (tenant_id, processed, successful, errors)).fetchone()
            conn.commit()
            if not row:
                raise StoreError("Failed to update sync stats", tenant_id=tenant_id)
            return SyncStats(**row)

    def get_sync_stats(self, tenant_id: str) -> SyncStats | None:
        """Fetch a salon's counters."""
        sql = """
        SELECT total, success, errors, last_sync_at
        FROM booksy_sync_stats
        WHERE salon_id = %s
        """

        with self.get_connection() as conn:
            row = conn.execute(sql, (tenant_id,)).fetchone()
            return SyncStats(**row) if row else None
