from unittest import TestCase

from opsync.models import ClassificationKind, LocalRecord, NormalizedRecord
from opsync.reconcile import classify, deduplicate
from opsync.schema import CollectionSchema

ITEMS_SCHEMA = CollectionSchema(
    name="items",
    table="items",
    columns={'natural_key': 'key', 'status': 'status', 'remark': 'remark', 'timestamp': 'date'},
    aliases={'natural_key': ['key'], 'status': ['status'], 'remark': ['remark'], 'timestamp': ['date']},
    compare_fields=('status',),
)


def record(key: str, status: str = "Open", remark: str = "", timestamp: str = "2025-01-01T00:00:00Z") -> NormalizedRecord:
    return NormalizedRecord(natural_key=key, status=status, remark=remark, timestamp=timestamp)


def local(row: dict) -> LocalRecord:
    return ITEMS_SCHEMA.from_row(row)


class DeduplicateTests(TestCase):
    def test_later_record_replaces_earlier_entirely(self) -> None:
        first = record("A", status="Open", remark="from first")
        second = record("A", status="Closed", remark="")

        unique = deduplicate([first, record("B"), second])

        self.assertEqual(list(unique), ["A", "B"])
        self.assertIs(unique["A"], second)
        # No field survives from the replaced record, even when the winner left it at default
        self.assertEqual(unique["A"].remark, "")

    def test_keys_are_trimmed(self) -> None:
        unique = deduplicate([record("A "), record(" A", status="Closed")])
        self.assertEqual(list(unique), ["A"])
        self.assertEqual(unique["A"].status, "Closed")


class ClassifyTests(TestCase):
    def test_field_outside_whitelist_does_not_count(self) -> None:
        result = classify(
            {"A": record("A", status="Open", remark="y")},
            [local({"key": "A", "status": "Open", "remark": "x"})],
            ITEMS_SCHEMA,
        )

        self.assertEqual([r.natural_key for r in result.unchanged], ["A"])
        self.assertEqual(result.updated, [])
        self.assertFalse(result.has_changes)

    def test_whitelisted_field_change_is_updated(self) -> None:
        previous = local({"key": "A", "status": "Open", "remark": "x"})
        result = classify({"A": record("A", status="Pending", remark="x")}, [previous], ITEMS_SCHEMA)

        self.assertEqual(len(result.updated), 1)
        updated = result.updated[0]
        self.assertEqual(updated.kind, ClassificationKind.UPDATED)
        self.assertIs(updated.previous, previous)
        self.assertEqual(updated.changed_fields, ["status"])

    def test_missing_local_record_is_new(self) -> None:
        result = classify({"B": record("B")}, [local({"key": "A", "status": "Open"})], ITEMS_SCHEMA)

        self.assertEqual([r.natural_key for r in result.new], ["B"])
        self.assertIsNone(result.new[0].previous)

    def test_absent_local_field_compares_as_empty(self) -> None:
        result = classify({"A": record("A", status="")}, [local({"key": "A"})], ITEMS_SCHEMA)
        self.assertEqual(len(result.unchanged), 1)

        result = classify({"A": record("A", status="Open")}, [local({"key": "A", "status": None})], ITEMS_SCHEMA)
        self.assertEqual(len(result.updated), 1)

    def test_local_keys_are_trimmed(self) -> None:
        result = classify({"A": record("A")}, [local({"key": " A ", "status": "Open"})], ITEMS_SCHEMA)
        self.assertEqual(len(result.unchanged), 1)

    def test_lists_sorted_latest_first_with_stable_ties(self) -> None:
        incoming = deduplicate([
            record("old", timestamp="2024-01-01T00:00:00Z"),
            record("tie-1", timestamp="2025-06-01T00:00:00Z"),
            record("newest", timestamp="2025-12-31T23:00:00Z"),
            record("tie-2", timestamp="2025-06-01T00:00:00Z"),
            record("ms", timestamp="2025-06-01T00:00:00.500Z"),
        ])

        result = classify(incoming, [], ITEMS_SCHEMA)

        self.assertEqual(
            [r.natural_key for r in result.new],
            ["newest", "ms", "tie-1", "tie-2", "old"],
        )

    def test_summary_counts(self) -> None:
        incoming = deduplicate([record("A", status="Pending"), record("B"), record("C")])
        existing = [local({"key": "A", "status": "Open"}), local({"key": "C", "status": "Open"})]

        result = classify(incoming, existing, ITEMS_SCHEMA)

        self.assertEqual(result.summary()["new"], 1)
        self.assertEqual(result.summary()["updated"], 1)
        self.assertEqual(result.summary()["unchanged"], 1)
        self.assertEqual([r.natural_key for r in result.pending], ["B", "A"])
