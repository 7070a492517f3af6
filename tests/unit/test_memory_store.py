"""
Unit tests for the in-memory store.

Tests cover:
- Put/get with timestamps and timestamp ceilings
- Delete markers
- Column filters
- Ordered, lazy scans
- Row and table lifecycle
- Testing helpers
"""

import types

import pytest

from cellmap.store import (
    CellValue,
    Connection,
    InMemoryConnection,
    RowNotFound,
    Table,
    TableNotFound,
)


@pytest.fixture
def table():
    """Create a table with title and links families."""
    table = InMemoryConnection().table("pages")
    table.create_table(["title", "links"])
    return table


class TestPutGet:
    """Tests for put() and get()."""

    def test_put_returns_applied_timestamp(self, table):
        """An explicit timestamp is applied and returned."""
        assert table.put("k", {"title:": "T"}, timestamp=10) == 10

        snapshot = table.get("k")

        assert snapshot.cells["title:"] == CellValue("T", 10)
        assert snapshot.timestamp == 10

    def test_put_without_timestamp_uses_now(self, table):
        """Puts without a timestamp get the current time."""
        applied = table.put("k", {"title:": "T"})

        assert applied > 0
        assert table.get("k").timestamp == applied

    def test_missing_row_raises(self, table):
        """get() of an unknown key raises RowNotFound."""
        with pytest.raises(RowNotFound) as exc_info:
            table.get("nope")

        assert exc_info.value.key == "nope"
        assert exc_info.value.table_name == "pages"

    def test_missing_table_raises(self):
        """Operations on a missing table raise TableNotFound."""
        table = InMemoryConnection().table("missing")

        assert table.exists() is False
        with pytest.raises(TableNotFound):
            table.get("k")
        with pytest.raises(TableNotFound):
            table.put("k", {"title:": "T"})

    def test_none_value_is_delete_marker(self, table):
        """A None put hides older versions of the cell."""
        table.put("k", {"links:a": "x", "title:": "T"}, timestamp=10)
        table.put("k", {"links:a": None}, timestamp=20)

        assert "links:a" not in table.get("k").cells
        assert table.get("k", timestamp=15).cells["links:a"].value == "x"

    def test_row_with_only_deleted_cells_is_missing(self, table):
        """A row whose cells are all deleted does not exist."""
        table.put("k", {"links:a": "x"}, timestamp=10)
        table.put("k", {"links:a": None}, timestamp=20)

        with pytest.raises(RowNotFound):
            table.get("k")

    def test_timestamp_ceiling(self, table):
        """Reads with a ceiling see the newest version at or below it."""
        table.put("k", {"title:": "v1"}, timestamp=10)
        table.put("k", {"title:": "v2"}, timestamp=20)

        assert table.get("k", timestamp=15).cells["title:"].value == "v1"
        assert table.get("k", timestamp=20).cells["title:"].value == "v2"
        assert table.get("k").cells["title:"].value == "v2"
        with pytest.raises(RowNotFound):
            table.get("k", timestamp=5)

    def test_same_timestamp_overwrites(self, table):
        """A put at an existing timestamp replaces that version."""
        table.put("k", {"title:": "v1"}, timestamp=10)
        table.put("k", {"title:": "v2"}, timestamp=10)

        assert table.get("k", timestamp=10).cells["title:"].value == "v2"

    def test_columns_filter(self, table):
        """Column filters select families or exact addresses."""
        table.put("k", {"title:": "T", "links:a": "x", "links:b": "y"}, timestamp=10)

        assert set(table.get("k", columns=["links:"]).cells) == {"links:a", "links:b"}
        assert set(table.get("k", columns=["links"]).cells) == {"links:a", "links:b"}
        assert set(table.get("k", columns=["links:b"]).cells) == {"links:b"}


class TestScan:
    """Tests for scan()."""

    @pytest.fixture
    def filled(self, table):
        for key in ["c", "a", "e", "b", "d", "ba"]:
            table.put(key, {"title:": key.upper()}, timestamp=10)
        return table

    def test_scan_orders_keys(self, filled):
        """Rows come back in key order."""
        assert [row.key for row in filled.scan()] == ["a", "b", "ba", "c", "d", "e"]

    def test_scan_bounds(self, filled):
        """start_row is inclusive, stop_row exclusive."""
        keys = [row.key for row in filled.scan(start_row="b", stop_row="d")]

        assert keys == ["b", "ba", "c"]

    def test_scan_prefix(self, filled):
        """prefix restricts to matching keys."""
        assert [row.key for row in filled.scan(prefix="b")] == ["b", "ba"]

    def test_scan_is_lazy(self, filled):
        """scan() returns a generator."""
        assert isinstance(filled.scan(), types.GeneratorType)


class TestLifecycle:
    """Tests for deletes and table lifecycle."""

    def test_delete_row(self, table):
        """delete_row removes the row."""
        table.put("k", {"title:": "T"}, timestamp=10)

        table.delete_row("k")

        with pytest.raises(RowNotFound):
            table.get("k")

    def test_delete_row_up_to_timestamp(self, table):
        """delete_row with a timestamp keeps newer versions."""
        table.put("k", {"title:": "T"}, timestamp=10)
        table.put("k", {"links:a": "x"}, timestamp=20)

        table.delete_row("k", timestamp=15)

        assert set(table.get("k").cells) == {"links:a"}

    def test_delete_all_rows(self, table):
        """delete_all_rows empties the table."""
        table.put("a", {"title:": "A"})
        table.put("b", {"title:": "B"})

        table.delete_all_rows()

        assert table.row_keys() == []
        assert table.exists()

    def test_create_and_delete_table(self):
        """Tables appear in table_names until deleted."""
        connection = InMemoryConnection()
        table = connection.table("pages")
        table.create_table(["title"])

        assert connection.table_names() == ["pages"]
        assert table.column_families == ["title"]

        table.delete_table()

        assert connection.table_names() == []
        assert table.exists() is False

    def test_put_log(self, table):
        """Every put is recorded until cleared."""
        table.put("k", {"title:": "T"}, timestamp=10)
        table.put("k", {"links:a": None}, timestamp=11)

        assert [record.data for record in table.put_log] == [
            {"title:": "T"},
            {"links:a": None},
        ]
        assert table.put_log[0].timestamp == 10

        table.clear_put_log()

        assert table.put_log == []

    def test_satisfies_protocols(self, table):
        """In-memory classes satisfy the store protocols."""
        assert isinstance(table, Table)
        assert isinstance(InMemoryConnection(), Connection)
