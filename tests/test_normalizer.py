from unittest import TestCase

from opsync.normalizer import normalize_record, normalize_records, resolve_field
from syncs.incidents_sync import INCIDENTS_SCHEMA
from syncs.tickets_sync import TICKETS_SCHEMA


class ResolveFieldTests(TestCase):
    def test_first_present_non_empty_alias_wins(self) -> None:
        raw = {"ticketNo": "", "ticketNumber": "T-2", "Ticket Number": "T-3"}
        self.assertEqual(resolve_field(raw, ["ticketNo", "ticketNumber", "Ticket Number"]), "T-2")

    def test_missing_returns_none(self) -> None:
        self.assertIsNone(resolve_field({"other": "x"}, ["ticketNo"]))
        self.assertIsNone(resolve_field({"ticketNo": None}, ["ticketNo"]))

    def test_numbers_become_strings(self) -> None:
        self.assertEqual(resolve_field({"ticketNo": 12345}, ["ticketNo"]), "12345")
        self.assertEqual(resolve_field({"ticketNo": 12345.0}, ["ticketNo"]), "12345")


class NormalizeRecordTests(TestCase):
    def test_json_row_is_mapped_and_defaults_filled(self) -> None:
        record = normalize_record(
            {"ticketNo": " T-100 ", "subject": "Printer down", "status": "Pending", "date": "15/3/24"},
            TICKETS_SCHEMA,
        )

        self.assertEqual(record.natural_key, "T-100")
        self.assertEqual(record.subject, "Printer down")
        self.assertEqual(record.status, "Pending")
        self.assertEqual(record.type, "Incident")
        self.assertEqual(record.assignee, "Unassigned")
        self.assertEqual(record.severity, "Low")
        self.assertEqual(record.remark, "")
        self.assertEqual(record.timestamp, "2024-03-15T00:00:00Z")

    def test_csv_header_row_is_mapped(self) -> None:
        record = normalize_record(
            {
                "Ticket Number": "T-7",
                "Short Description & Detail": "VPN flapping",
                "Status": "Closed",
                "Ticket Type": "Request",
                "Assign": "Noi",
                "Ation": "Restarted tunnel",
                "Resolved detail": "Stable since 10:00",
                "Remark": "watch",
                "Date": "1/2/2025",
            },
            TICKETS_SCHEMA,
        )

        self.assertEqual(record.natural_key, "T-7")
        self.assertEqual(record.subject, "VPN flapping")
        self.assertEqual(record.status, "Closed")
        self.assertEqual(record.type, "Request")
        self.assertEqual(record.assignee, "Noi")
        self.assertEqual(record.action, "Restarted tunnel")
        self.assertEqual(record.resolution, "Stable since 10:00")
        self.assertEqual(record.remark, "watch")
        self.assertEqual(record.timestamp, "2025-02-01T00:00:00Z")

    def test_every_field_is_populated(self) -> None:
        record = normalize_record({"ticketNumber": "X"}, INCIDENTS_SCHEMA)
        for value in record.to_dict().values():
            self.assertIsInstance(value, str)
        self.assertEqual(record.subject, "Untitled")
        self.assertEqual(record.project, "General")
        self.assertEqual(record.severity, "Medium")
        self.assertTrue(record.timestamp.endswith("Z"))

    def test_incident_priority_falls_back_to_severity(self) -> None:
        record = normalize_record({"ticketNo": "INC-1", "severity": "High"}, INCIDENTS_SCHEMA)
        self.assertEqual(record.severity, "High")

    def test_empty_key_is_dropped(self) -> None:
        self.assertIsNone(normalize_record({"ticketNo": "   ", "status": "Open"}, TICKETS_SCHEMA))
        self.assertIsNone(normalize_record({"status": "Open"}, TICKETS_SCHEMA))


class NormalizeRecordsTests(TestCase):
    def test_skipped_rows_are_counted_and_order_kept(self) -> None:
        rows = [
            {"ticketNo": "A"},
            {"status": "Open"},
            "not a row",
            {"ticketNo": "B"},
            {"ticketNo": ""},
        ]

        records, skipped = normalize_records(rows, TICKETS_SCHEMA)

        self.assertEqual([r.natural_key for r in records], ["A", "B"])
        self.assertEqual(skipped, 3)
