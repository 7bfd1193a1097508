"""
Shared pytest fixtures for booksy_ingest tests.
"""

import uuid
from datetime import date, datetime, time, timezone
from unittest.mock import MagicMock

import pytest

from booksy_ingest.core.exceptions import StoreError
from booksy_ingest.core.models import (
    BOOKING_SOURCE,
    Booking,
    BookingStatus,
    Client,
    Employee,
    IncomingNotification,
    ParsedCandidate,
    PendingNotification,
    PendingStatus,
    Service,
    SyncStats,
)

SALON_A = "11111111-1111-1111-1111-111111111111"
SALON_B = "22222222-2222-2222-2222-222222222222"

SAMPLE_BODY = """Anna Kowalska
123 456 789
anna@example.com

Strzyżenie damskie
250,00 zł

27 października 2024, 16:00 — 17:00

Pracownik:
Kasia

Zarządzaj swoimi rezerwacjami w aplikacji Booksy"""

SAMPLE_SUBJECT = "Anna Kowalska: nowa rezerwacja"


def make_body(
    client: str = "Anna Kowalska",
    phone: str = "123 456 789",
    email: str | None = "anna@example.com",
    service: str = "Strzyżenie damskie",
    price: str = "250,00 zł",
    when: str = "27 października 2024, 16:00 — 17:00",
    employee: str = "Kasia",
) -> str:
    """Build a notification body in the provider layout."""
    lines = [client, phone]
    if email:
        lines.append(email)
    lines += ["", service, price, "", when, "", "Pracownik:", employee, "", "Zarządzaj swoimi rezerwacjami"]
    return "\n".join(lines)


class FakeDatabase:
    """
    In-memory stand-in for Database.

    Every record is keyed by salon id, mirroring the tenant scoping of the SQL
    queries. Set `fail_on` to a method name to make that method raise StoreError.
    """

    def __init__(self):
        self.clients: list[Client] = []
        self.services: list[Service] = []
        self.employees: list[Employee] = []
        self.bookings: list[Booking] = []
        self.pending: list[PendingNotification] = []
        self.stats: dict[str, SyncStats] = {}
        self.fail_on: set[str] = set()

    def _check(self, name: str) -> None:
        if name in self.fail_on:
            raise StoreError(f"{name} failed", operation=name)

    # Seeding helpers

    def add_service(self, tenant_id: str, name: str, active: bool = True) -> Service:
        service = Service(id=str(uuid.uuid4()), tenant_id=tenant_id, name=name, active=active)
        self.services.append(service)
        return service

    def add_employee(self, tenant_id: str, first_name: str, last_name: str = "", active: bool = True) -> Employee:
        employee = Employee(
            id=str(uuid.uuid4()), tenant_id=tenant_id, first_name=first_name, last_name=last_name, active=active
        )
        self.employees.append(employee)
        return employee

    def seed_salon(self, tenant_id: str) -> None:
        self.add_service(tenant_id, "Strzyżenie damskie")
        self.add_service(tenant_id, "Koloryzacja")
        self.add_employee(tenant_id, "Kasia", "Nowak")
        self.add_employee(tenant_id, "Marta", "Wiśniewska")

    # Bookings

    def find_booking_by_event(self, tenant_id: str, event_id: str) -> Booking | None:
        self._check("find_booking_by_event")
        for booking in reversed(self.bookings):
            if booking.tenant_id == tenant_id and booking.provider_event_id == event_id:
                return booking
        return None

    def insert_booking(self, booking: Booking) -> Booking | None:
        self._check("insert_booking")
        if booking.provider_event_id and any(
            b.tenant_id == booking.tenant_id and b.provider_event_id == booking.provider_event_id
            for b in self.bookings
        ):
            return None
        booking.id = str(uuid.uuid4())
        booking.created_at = datetime.now(timezone.utc)
        self.bookings.append(booking)
        for client in self.clients:
            if client.tenant_id == booking.tenant_id and client.id == booking.client_id:
                client.visit_count += 1
        return booking

    def find_booking_in_slot(self, tenant_id: str, employee_id: str, booking_date: date, booking_time: time):
        self._check("find_booking_in_slot")
        for booking in self.bookings:
            if (
                booking.tenant_id == tenant_id
                and booking.employee_id == employee_id
                and booking.date == booking_date
                and booking.start_time == booking_time
                and booking.status is not BookingStatus.CANCELLED
            ):
                return booking
        return None

    def count_bookings(self, tenant_id: str, source: str = BOOKING_SOURCE) -> dict[str, int]:
        rows = [b for b in self.bookings if b.tenant_id == tenant_id and b.source == source]
        return {
            "total": len(rows),
            "scheduled": sum(1 for b in rows if b.status.value == "scheduled"),
            "cancelled": sum(1 for b in rows if b.status.value == "cancelled"),
        }

    def get_recent_bookings(self, tenant_id: str, limit: int = 20, source: str = BOOKING_SOURCE) -> list[dict]:
        rows = [b for b in self.bookings if b.tenant_id == tenant_id and b.source == source]
        return [
            {"id": b.id, "booking_date": b.date.isoformat(), "booking_time": b.start_time.strftime("%H:%M")}
            for b in reversed(rows)
        ][:limit]

    # Clients, services, employees

    def find_client_by_phone(self, tenant_id: str, phone: str) -> Client | None:
        self._check("find_client_by_phone")
        for client in self.clients:
            if client.tenant_id == tenant_id and client.phone == phone:
                return client
        return None

    def insert_client(self, tenant_id: str, full_name: str, phone: str, email: str | None = None) -> Client:
        self._check("insert_client")
        count = sum(1 for c in self.clients if c.tenant_id == tenant_id)
        client = Client(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            full_name=full_name,
            phone=phone,
            email=email,
            client_code=f"K{count + 1:04d}",
        )
        self.clients.append(client)
        return client

    def get_active_services(self, tenant_id: str) -> list[Service]:
        self._check("get_active_services")
        return [s for s in self.services if s.tenant_id == tenant_id and s.active]

    def get_service(self, tenant_id: str, service_id: str) -> Service | None:
        return next((s for s in self.services if s.tenant_id == tenant_id and s.id == service_id), None)

    def get_active_employees(self, tenant_id: str) -> list[Employee]:
        return [e for e in self.employees if e.tenant_id == tenant_id and e.active]

    def get_employee(self, tenant_id: str, employee_id: str) -> Employee | None:
        return next((e for e in self.employees if e.tenant_id == tenant_id and e.id == employee_id), None)

    # Pending notifications

    def insert_pending(self, pending: PendingNotification) -> PendingNotification:
        self._check("insert_pending")
        pending.id = str(uuid.uuid4())
        pending.created_at = datetime.now(timezone.utc)
        self.pending.append(pending)
        return pending

    def list_pending(self, tenant_id: str, status: PendingStatus | None = PendingStatus.PENDING, limit: int = 50):
        rows = [
            p for p in reversed(self.pending)
            if p.tenant_id == tenant_id and (status is None or p.status is status)
        ]
        return rows[:limit]

    def get_pending(self, tenant_id: str, pending_id: str) -> PendingNotification | None:
        return next((p for p in self.pending if p.tenant_id == tenant_id and p.id == pending_id), None)

    def update_pending_status(self, tenant_id: str, pending_id: str, status: PendingStatus):
        pending = self.get_pending(tenant_id, pending_id)
        if not pending:
            return None
        pending.status = status
        if status is PendingStatus.RESOLVED:
            pending.resolved_at = datetime.now(timezone.utc)
        return pending

    # Sync stats

    def upsert_sync_stats(self, tenant_id: str, processed: int, successful: int, errors: int) -> SyncStats:
        self._check("upsert_sync_stats")
        current = self.stats.setdefault(tenant_id, SyncStats())
        current.total += processed
        current.success += successful
        current.errors += errors
        current.last_sync_at = datetime.now(timezone.utc)
        return current

    def get_sync_stats(self, tenant_id: str) -> SyncStats | None:
        return self.stats.get(tenant_id)


@pytest.fixture
def salon_a() -> str:
    return SALON_A


@pytest.fixture
def salon_b() -> str:
    return SALON_B


@pytest.fixture
def body_factory():
    """Builder for notification bodies with selected lines replaced."""
    return make_body


@pytest.fixture
def sample_body() -> str:
    """Well-formed notification body."""
    return SAMPLE_BODY


@pytest.fixture
def sample_notification() -> IncomingNotification:
    """Notification with a provider event id."""
    return IncomingNotification(subject=SAMPLE_SUBJECT, body=SAMPLE_BODY, event_id="evt-1001")


@pytest.fixture
def sample_candidate() -> ParsedCandidate:
    """Parse result of SAMPLE_BODY."""
    return ParsedCandidate(
        client_name="Anna Kowalska",
        phone="123456789",
        email="anna@example.com",
        service_name="Strzyżenie damskie",
        price_cents=25000,
        date=date(2024, 10, 27),
        start_time=time(16, 0),
        end_time=time(17, 0),
        employee_first_name="Kasia",
    )


@pytest.fixture
def fake_db() -> FakeDatabase:
    """In-memory database with two seeded salons."""
    db = FakeDatabase()
    db.seed_salon(SALON_A)
    db.seed_salon(SALON_B)
    return db


@pytest.fixture
def mock_db():
    """Mock database for testing without real DB connection."""
    db = MagicMock()
    db.find_booking_by_event.return_value = None
    db.find_booking_in_slot.return_value = None
    db.get_sync_stats.return_value = None
    return db


@pytest.fixture
def mock_settings(monkeypatch):
    """Configure secrets on the shared settings object."""
    from booksy_ingest.config import settings

    monkeypatch.setattr(settings, "booksy_webhook_secret", "test-webhook-secret")
    monkeypatch.setattr(settings, "api_secret", "test-api-secret")
    return settings


@pytest.fixture
def client(fake_db, mock_settings):
    """TestClient wired to the in-memory database."""
    from fastapi.testclient import TestClient

    from booksy_ingest.dependencies import get_database
    from booksy_ingest.main import app

    app.dependency_overrides[get_database] = lambda: fake_db
    # No lifespan: schema init would need a real database
    yield TestClient(app)
    app.dependency_overrides.clear()
