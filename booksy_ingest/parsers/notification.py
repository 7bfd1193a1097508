"""
Parser for Booksy "nowa rezerwacja" notification emails.

The body of a notification is a fixed sequence of lines:

    Anna Kowalska
    123 456 789
    anna@example.com

    Strzyżenie damskie
    250,00 zł

    27 października 2024, 16:00 — 17:00

    Pracownik:
    Kasia

    Zarządzaj swoimi rezerwacjami w aplikacji Booksy

The email line is optional and blank lines carry no meaning. Everything after
the employee name is ignored.
"""

import re
import unicodedata
from datetime import date, time
from enum import Enum

from booksy_ingest.core.exceptions import ParseError
from booksy_ingest.core.logging import get_logger
from booksy_ingest.core.models import ParsedCandidate

log = get_logger(__name__)

# Genitive month names as they appear in Polish dates
MONTHS_PL = {
    "stycznia": 1,
    "lutego": 2,
    "marca": 3,
    "kwietnia": 4,
    "maja": 5,
    "czerwca": 6,
    "lipca": 7,
    "sierpnia": 8,
    "września": 9,
    "października": 10,
    "listopada": 11,
    "grudnia": 12,
}

# UTF-8 text that was decoded as Windows-1252 somewhere along the forward chain
MOJIBAKE_REPLACEMENTS = {
    "â€”": "—",
    "â€“": "–",
    "Å‚": "ł",
    "Å›": "ś",
    "Ä…": "ą",
    "Ä‡": "ć",
    "Ä™": "ę",
    "Å„": "ń",
    "Ã³": "ó",
    "Åº": "ź",
    "Å¼": "ż",
    "Å»": "Ż",
}

PHONE_RE = re.compile(r"^\+?\d{9,15}$")
PHONE_SEPARATORS_RE = re.compile(r"[\s\-]")
EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$")
PRICE_RE = re.compile(r"^(\d{1,3}(?:[ \u00a0]\d{3})+|\d+),(\d{2})\s*zł$", re.IGNORECASE)
DATE_TIME_RE = re.compile(
    r"^(\d{1,2})\s+(\S+)\s+(\d{4}),\s*(\d{1,2}):(\d{2})\s*[-–—]\s*(\d{1,2}):(\d{2})$"
)
EMPLOYEE_MARKER_RE = re.compile(r"^Pracownik\s*:\s*(.*)$", re.IGNORECASE)


def _fold(text: str) -> str:
    """Lowercase and strip diacritics (października -> pazdziernika)."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


_FOLDED_MONTHS = {_fold(name): number for name, number in MONTHS_PL.items()}


class ExpectedLine(str, Enum):
    """Kinds of line the parser can expect next."""

    CLIENT_NAME = "client_name"
    PHONE = "phone"
    EMAIL = "email"
    SERVICE_NAME = "service_name"
    PRICE = "price"
    DATE_TIME = "date_time"
    EMPLOYEE_MARKER = "employee_marker"
    EMPLOYEE_NAME = "employee_name"
    DONE = "done"


def repair_text(text: str) -> str:
    """Undo common mojibake and normalize line endings and spaces."""
    for broken, fixed in MOJIBAKE_REPLACEMENTS.items():
        text = text.replace(broken, fixed)
    return text.replace("\r\n", "\n").replace("\r", "\n").replace("\u00a0", " ")


def parse_phone(line: str) -> str | None:
    """Return the phone number without separators, or None if the line is not one."""
    compact = PHONE_SEPARATORS_RE.sub("", line)
    return compact if PHONE_RE.match(compact) else None


def parse_price(line: str) -> int | None:
    """
    Convert a Polish price line into grosze.

    "250,00 zł" -> 25000, "1 250,00 zł" -> 125000. Returns None on mismatch.
    """
    match = PRICE_RE.match(line.strip())
    if not match:
        return None
    whole = int(re.sub(r"\s", "", match.group(1)))
    return whole * 100 + int(match.group(2))


def parse_month(name: str) -> int | None:
    """Resolve a Polish genitive month name to its number."""
    return MONTHS_PL.get(name.lower()) or _FOLDED_MONTHS.get(_fold(name))


def parse_date_time(line: str) -> tuple[date, time, time] | None:
    """
    Parse "27 października 2024, 16:00 — 17:00".

    Returns:
        (date, start_time, end_time), or None when the line does not match
        or names an impossible date or time.
    """
    match = DATE_TIME_RE.match(line.strip())
    if not match:
        return None
    day, month_name, year, start_h, start_m, end_h, end_m = match.groups()
    month = parse_month(month_name)
    if month is None:
        return None
    try:
        return (
            date(int(year), month, int(day)),
            time(int(start_h), int(start_m)),
            time(int(end_h), int(end_m)),
        )
    except ValueError:
        return None


class NotificationParser:
    """
    Line grammar parser for Booksy booking notifications.

    Walks the body line by line as a state machine over ExpectedLine. Each
    state either consumes the current line and moves on, or raises ParseError
    naming the step that failed. There is no partial result.
    """

    def parse(self, subject: str, body: str) -> ParsedCandidate:
        """
        Parse a notification into a booking candidate.

        Args:
            subject: Email subject (kept for log context, the grammar reads the body)
            body: Plain text email body

        Returns:
            ParsedCandidate with every required field set

        Raises:
            ParseError: If any required line is missing or malformed
        """
        lines = repair_text(body or "").split("\n")
        fields: dict = {}
        state = ExpectedLine.CLIENT_NAME
        index = 0

        handlers = {
            ExpectedLine.CLIENT_NAME: self._client_name,
            ExpectedLine.PHONE: self._phone,
            ExpectedLine.EMAIL: self._email,
            ExpectedLine.SERVICE_NAME: self._service_name,
            ExpectedLine.PRICE: self._price,
            ExpectedLine.DATE_TIME: self._date_time,
            ExpectedLine.EMPLOYEE_MARKER: self._employee_marker,
            ExpectedLine.EMPLOYEE_NAME: self._employee_name,
        }

        while state is not ExpectedLine.DONE:
            if index >= len(lines):
                raise ParseError(f"Notification ended while expecting {state.value}", step=state.value)

            line = lines[index].strip()
            if not line:
                index += 1
                continue

            state, consumed = handlers[state](line, fields)
            if consumed:
                index += 1

        log.debug("notification_parsed", subject=subject, service=fields["service_name"])
        return ParsedCandidate(**fields)

    # Each handler returns (next_state, consumed_current_line)

    def _client_name(self, line: str, fields: dict) -> tuple[ExpectedLine, bool]:
        fields["client_name"] = line
        return ExpectedLine.PHONE, True

    def _phone(self, line: str, fields: dict) -> tuple[ExpectedLine, bool]:
        phone = parse_phone(line)
        if phone is None:
            raise ParseError("Expected a phone number of 9-15 digits", step=ExpectedLine.PHONE.value, line=line)
        fields["phone"] = phone
        return ExpectedLine.EMAIL, True

    def _email(self, line: str, fields: dict) -> tuple[ExpectedLine, bool]:
        if EMAIL_RE.match(line):
            fields["email"] = line
            return ExpectedLine.SERVICE_NAME, True
        # No email; this line already belongs to the service block
        return ExpectedLine.SERVICE_NAME, False

    def _service_name(self, line: str, fields: dict) -> tuple[ExpectedLine, bool]:
        fields["service_name"] = line
        return ExpectedLine.PRICE, True

    def _price(self, line: str, fields: dict) -> tuple[ExpectedLine, bool]:
        price = parse_price(line)
        if price is None:
            raise ParseError('Expected a price like "250,00 zł"', step=ExpectedLine.PRICE.value, line=line)
        fields["price_cents"] = price
        return ExpectedLine.DATE_TIME, True

    def _date_time(self, line: str, fields: dict) -> tuple[ExpectedLine, bool]:
        parsed = parse_date_time(line)
        if parsed is None:
            raise ParseError(
                'Expected a date like "27 października 2024, 16:00 — 17:00"',
                step=ExpectedLine.DATE_TIME.value,
                line=line,
            )
        fields["date"], fields["start_time"], fields["end_time"] = parsed
        return ExpectedLine.EMPLOYEE_MARKER, True

    def _employee_marker(self, line: str, fields: dict) -> tuple[ExpectedLine, bool]:
        match = EMPLOYEE_MARKER_RE.match(line)
        if not match:
            raise ParseError('Expected the "Pracownik:" line', step=ExpectedLine.EMPLOYEE_MARKER.value, line=line)
        inline_name = match.group(1).strip()
        if inline_name:
            fields["employee_first_name"] = inline_name.split()[0]
            return ExpectedLine.DONE, True
        return ExpectedLine.EMPLOYEE_NAME, True

    def _employee_name(self, line: str, fields: dict) -> tuple[ExpectedLine, bool]:
        fields["employee_first_name"] = line.split()[0]
        return ExpectedLine.DONE, True


def parse_notification(subject: str, body: str) -> ParsedCandidate:
    """Parse a notification with a default NotificationParser."""
    return NotificationParser().parse(subject, body)
