"""Unit tests for the notification parser."""

from datetime import date, time

import pytest

from booksy_ingest.core.exceptions import ErrorKind, ParseError
from booksy_ingest.parsers import ExpectedLine, NotificationParser, parse_notification
from booksy_ingest.parsers.notification import (
    parse_date_time,
    parse_month,
    parse_phone,
    parse_price,
    repair_text,
)


class TestParsePrice:
    """Tests for price lines."""

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("250,00 zł", 25000),
            ("99,50 zł", 9950),
            ("0,00 zł", 0),
            ("1 250,00 zł", 125000),
            ("1\u00a0250,00 zł", 125000),
            ("250,00zł", 25000),
            ("250,00 ZŁ", 25000),
        ],
    )
    def test_valid_prices(self, line, expected):
        """Test grosze conversion of Polish prices."""
        assert parse_price(line) == expected

    @pytest.mark.parametrize("line", ["250 zł", "250.00 zł", "250,0 zł", "250,00", "cena: 250,00 zł", ""])
    def test_invalid_prices(self, line):
        """Test lines that are not prices."""
        assert parse_price(line) is None


class TestParseDateTime:
    """Tests for date/time lines."""

    def test_em_dash(self):
        """Test the standard notification format."""
        assert parse_date_time("27 października 2024, 16:00 — 17:00") == (
            date(2024, 10, 27),
            time(16, 0),
            time(17, 0),
        )

    @pytest.mark.parametrize("dash", ["-", "–", "—"])
    def test_dash_variants(self, dash):
        """Test hyphen, en dash and em dash separators."""
        result = parse_date_time(f"3 marca 2025, 9:30 {dash} 10:15")
        assert result == (date(2025, 3, 3), time(9, 30), time(10, 15))

    def test_month_without_diacritics(self):
        """Test month names stripped of Polish characters."""
        assert parse_date_time("1 wrzesnia 2024, 10:00 — 11:00")[0] == date(2024, 9, 1)

    def test_unknown_month(self):
        """Test that an unknown month name is rejected."""
        assert parse_date_time("27 october 2024, 16:00 — 17:00") is None

    def test_impossible_date(self):
        """Test that calendar-invalid dates are rejected."""
        assert parse_date_time("31 lutego 2024, 16:00 — 17:00") is None

    def test_impossible_time(self):
        """Test that out-of-range hours are rejected."""
        assert parse_date_time("27 października 2024, 25:00 — 26:00") is None


class TestHelpers:
    """Tests for phone, month and text helpers."""

    def test_parse_month_all(self):
        """Test every genitive month name."""
        names = [
            "stycznia", "lutego", "marca", "kwietnia", "maja", "czerwca",
            "lipca", "sierpnia", "września", "października", "listopada", "grudnia",
        ]
        assert [parse_month(n) for n in names] == list(range(1, 13))

    def test_parse_month_case_insensitive(self):
        assert parse_month("Października") == 10

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("123 456 789", "123456789"),
            ("123-456-789", "123456789"),
            ("+48 123 456 789", "+48123456789"),
            ("12345", None),
            ("Anna", None),
        ],
    )
    def test_parse_phone(self, line, expected):
        """Test phone normalization."""
        assert parse_phone(line) == expected

    def test_repair_text(self):
        """Test mojibake repair for Polish characters and dashes."""
        broken = "27 października 2024, 16:00 — 17:00 Strzyżenie".encode("utf-8").decode("cp1252")
        assert repair_text(broken) == "27 października 2024, 16:00 — 17:00 Strzyżenie"

    def test_repair_text_line_endings(self):
        assert repair_text("a\r\nb\rc") == "a\nb\nc"


class TestNotificationParser:
    """Tests for the full line grammar."""

    def test_parse_sample(self, sample_body, sample_candidate):
        """Test that a complete notification parses into every field."""
        assert NotificationParser().parse("Nowa rezerwacja", sample_body) == sample_candidate

    def test_module_function(self, sample_body):
        """Test the parse_notification shortcut."""
        candidate = parse_notification("subject", sample_body)
        assert candidate.price_cents == 25000
        assert candidate.employee_first_name == "Kasia"

    def test_without_email(self, body_factory):
        """Test that the email line is optional."""
        candidate = NotificationParser().parse("", body_factory(email=None))
        assert candidate.email is None
        assert candidate.service_name == "Strzyżenie damskie"
        assert candidate.phone == "123456789"

    def test_without_blank_lines(self):
        """Test a body with every blank line removed."""
        body = "Anna Kowalska\n123 456 789\nStrzyżenie damskie\n250,00 zł\n27 października 2024, 16:00 — 17:00\nPracownik:\nKasia"
        candidate = NotificationParser().parse("", body)
        assert candidate.email is None
        assert candidate.service_name == "Strzyżenie damskie"

    def test_email_then_service_without_blank(self):
        body = "Anna Kowalska\n123 456 789\nanna@example.com\nStrzyżenie damskie\n250,00 zł\n27 października 2024, 16:00 — 17:00\nPracownik: Kasia"
        candidate = NotificationParser().parse("", body)
        assert candidate.email == "anna@example.com"
        assert candidate.service_name == "Strzyżenie damskie"

    def test_crlf_body(self, sample_body):
        """Test Windows line endings."""
        candidate = NotificationParser().parse("", sample_body.replace("\n", "\r\n"))
        assert candidate.date == date(2024, 10, 27)

    def test_mojibake_body(self, sample_body, sample_candidate):
        """Test a body that went through a wrong charset conversion."""
        broken = sample_body.encode("utf-8").decode("cp1252")
        assert NotificationParser().parse("", broken) == sample_candidate

    def test_inline_employee(self, sample_body):
        """Test the employee name on the marker line."""
        body = sample_body.replace("Pracownik:\nKasia", "Pracownik: Kasia Nowak")
        assert NotificationParser().parse("", body).employee_first_name == "Kasia"

    def test_employee_first_token(self, body_factory):
        """Test that only the first name is taken."""
        assert NotificationParser().parse("", body_factory(employee="Marta Wiśniewska")).employee_first_name == "Marta"

    def test_extra_blank_lines_skipped(self, sample_body):
        """Test that blank lines between later fields are ignored."""
        body = sample_body.replace("250,00 zł\n", "250,00 zł\n\n\n")
        assert NotificationParser().parse("", body).price_cents == 25000

    def test_leading_whitespace(self, sample_body):
        """Test indented lines."""
        body = "\n".join("   " + line for line in sample_body.split("\n"))
        assert NotificationParser().parse("", body).client_name == "Anna Kowalska"

    def test_trailing_text_ignored(self, sample_body):
        """Test that anything after the employee name is ignored."""
        body = sample_body + "\n\nPracownik: Ola\nstopka"
        assert NotificationParser().parse("", body).employee_first_name == "Kasia"


class TestNotificationParserErrors:
    """Tests for the step reported on malformed notifications."""

    def _step(self, body: str) -> str:
        with pytest.raises(ParseError) as exc_info:
            NotificationParser().parse("", body)
        assert exc_info.value.kind is ErrorKind.MALFORMED_NOTIFICATION
        return exc_info.value.step

    def test_empty_body(self):
        """Test that an empty body fails on the client name."""
        assert self._step("") == ExpectedLine.CLIENT_NAME.value

    def test_bad_phone(self, body_factory):
        assert self._step(body_factory(phone="brak telefonu")) == ExpectedLine.PHONE.value

    def test_bad_price(self, body_factory):
        assert self._step(body_factory(price="dwieście złotych")) == ExpectedLine.PRICE.value

    def test_bad_date(self, body_factory):
        assert self._step(body_factory(when="jutro o 16")) == ExpectedLine.DATE_TIME.value

    def test_missing_employee_marker(self, sample_body):
        body = sample_body.replace("Pracownik:", "Fryzjer:")
        assert self._step(body) == ExpectedLine.EMPLOYEE_MARKER.value

    def test_truncated_body(self, sample_body):
        """Test a body that ends before the employee section."""
        body = sample_body.split("Pracownik:")[0]
        assert self._step(body) == ExpectedLine.EMPLOYEE_MARKER.value

    def test_truncated_after_marker(self, sample_body):
        body = sample_body.split("Kasia")[0]
        assert self._step(body) == ExpectedLine.EMPLOYEE_NAME.value

    def test_error_reason_mentions_kind(self, body_factory):
        """Test the triage reason built from a parse error."""
        with pytest.raises(ParseError) as exc_info:
            NotificationParser().parse("", body_factory(price="?"))
        assert exc_info.value.reason.startswith("MALFORMED_NOTIFICATION: ")
