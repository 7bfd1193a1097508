"""
Entity resolver: maps parsed notification fields onto salon records.
"""

from booksy_ingest.core.database import Database
from booksy_ingest.core.exceptions import UnresolvedReferenceError
from booksy_ingest.core.logging import get_logger
from booksy_ingest.core.models import Client, Employee, ParsedCandidate, ResolvedReferences, Service

log = get_logger(__name__)


def match_service(services: list[Service], service_name: str) -> Service:
    """
    Pick the service a notification refers to.

    A single case-insensitive exact match wins. Otherwise exactly one service
    whose name contains the requested name (or is contained in it) must exist.

    Raises:
        UnresolvedReferenceError: On zero or several candidates
    """
    wanted = service_name.strip().lower()

    exact = [s for s in services if s.name.strip().lower() == wanted]
    if len(exact) == 1:
        return exact[0]
    if len(exact) > 1:
        raise UnresolvedReferenceError("service", service_name, f"{len(exact)} services share this name")

    partial = [
        s for s in services
        if wanted in s.name.strip().lower() or s.name.strip().lower() in wanted
    ]
    if len(partial) == 1:
        return partial[0]
    if partial:
        names = ", ".join(sorted(s.name for s in partial))
        raise UnresolvedReferenceError("service", service_name, f"ambiguous: {names}")
    raise UnresolvedReferenceError("service", service_name, "no active service matches")


def match_employee(employees: list[Employee], first_name: str) -> Employee:
    """
    Pick the employee by first name (case-insensitive).

    Raises:
        UnresolvedReferenceError: On zero or several employees with that first name
    """
    wanted = first_name.strip().lower()
    matches = [e for e in employees if e.first_name.strip().lower() == wanted]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise UnresolvedReferenceError("employee", first_name, f"{len(matches)} active employees share this first name")
    raise UnresolvedReferenceError("employee", first_name, "no active employee matches")


class EntityResolver:
    """Resolves a candidate to client, service and employee ids of one salon."""

    def __init__(self, db: Database):
        self.db = db

    def resolve(self, tenant_id: str, candidate: ParsedCandidate) -> ResolvedReferences:
        """
        Resolve candidate references within a salon.

        Service and employee are matched first so a notification that cannot
        be booked does not leave a new client behind.

        Raises:
            UnresolvedReferenceError: If service or employee cannot be matched
            StoreError: On database failure
        """
        service = match_service(self.db.get_active_services(tenant_id), candidate.service_name)
        employee = match_employee(self.db.get_active_employees(tenant_id), candidate.employee_first_name)
        client = self.get_or_create_client(tenant_id, candidate)

        log.info(
            "notification_resolved",
            tenant_id=tenant_id,
            client_id=client.id,
            service_id=service.id,
            employee_id=employee.id,
        )
        return ResolvedReferences(client_id=client.id, service_id=service.id, employee_id=employee.id)

    def get_or_create_client(self, tenant_id: str, candidate: ParsedCandidate) -> Client:
        """Reuse the salon client with this phone number or create one."""
        existing = self.db.find_client_by_phone(tenant_id, candidate.phone)
        if existing:
            return existing

        return self.db.insert_client(
            tenant_id,
            full_name=candidate.client_name,
            phone=candidate.phone,
            email=candidate.email,
        )
