"""
Unit tests for Cell and JsonCell elements (detached from rows).

Tests cover:
- JSON contents conversion and serialization
- Strict attributes with per-instance override
- Value equality
- Validation
- Merge rules
"""

import datetime as dt
import json

import pytest

from cellmap.errors import CellMapError, ConstraintViolation, TypeViolation, UnexpectedAttribute
from cellmap.model import Cell, JsonCell, Mergeable, required
from cellmap.schema import AttributeRegistry


class Link(JsonCell):
    registry = AttributeRegistry("Link")
    registry.define("rank", "integer")
    registry.define("seen", "date")
    registry.define("title", "string")

    validators = (required("title"),)


class StrictLink(JsonCell):
    registry = AttributeRegistry("StrictLink", strict=True)
    registry.define("title", "string")


class TestJsonCell:
    """Tests for JsonCell contents."""

    def test_attributes_convert_through_registry(self):
        """Keyword attributes are converted on assignment."""
        link = Link("example.com", rank="3")

        assert link["rank"] == 3

    def test_json_string_is_reparsed(self):
        """A JSON document in the constructor is parsed and converted."""
        link = Link("example.com", '{"rank": "4", "title": "Example"}')

        assert link["rank"] == 4
        assert link["title"] == "Example"

    def test_to_json_is_canonical(self):
        """to_json sorts keys and uses compact separators."""
        link = Link("example.com", {"title": "Example", "rank": 2})

        assert link.to_json() == '{"rank":2,"title":"Example"}'
        assert link.serialized_contents() == link.to_json()

    def test_dates_serialize_as_iso(self):
        """Dates are ISO strings in JSON and parse back to dates."""
        link = Link("example.com", seen="2024-05-01")

        assert link.serializable_hash() == {"seen": "2024-05-01"}
        assert Link("example.com", link.to_json())["seen"] == dt.date(2024, 5, 1)

    @pytest.mark.parametrize("contents", [5, "[1,2]", "3", b"\"text\""])
    def test_contents_must_be_mapping(self, contents):
        """Non-object contents raise TypeViolation."""
        with pytest.raises(TypeViolation) as exc_info:
            Link("example.com", contents)

        assert exc_info.value.attr_name == "example.com"
        assert exc_info.value.expected == "JSON object"

    def test_invalid_json_raises_type_violation(self):
        """Malformed JSON is a TypeViolation chained to the decode error."""
        with pytest.raises(TypeViolation) as exc_info:
            Link("example.com", "not json")

        assert isinstance(exc_info.value.__cause__, json.JSONDecodeError)
        assert exc_info.value.code == "TYPE_VIOLATION"

    def test_delete_attribute(self):
        """Attributes can be removed."""
        link = Link("example.com", title="x", rank=1)

        del link["rank"]

        assert link.keys() == ["title"]

    def test_subclass_gets_own_registry(self):
        """Subclasses copy their parent's declarations into a new registry."""

        class SubLink(Link):
            pass

        SubLink.registry.define("extra", "integer")

        assert SubLink.registry is not Link.registry
        assert "rank" in SubLink.registry
        assert "extra" not in Link.registry


class TestStrictCells:
    """Tests for strict JsonCell types."""

    def test_declared_attribute_accepted(self):
        """Declared attributes work on strict cells."""
        assert StrictLink("a", title="x")["title"] == "x"

    def test_undeclared_attribute_rejected(self):
        """Undeclared attributes raise on strict cells."""
        with pytest.raises(UnexpectedAttribute):
            StrictLink("a", other=1)
        with pytest.raises(UnexpectedAttribute):
            StrictLink("a")["other"]

    def test_instance_override(self):
        """strict=False on an instance accepts undeclared attributes."""
        link = StrictLink("a", strict=False, other=1)

        assert link["other"] == 1
        assert link.strict is False


class TestEquality:
    """Tests for value equality."""

    def test_json_cells_equal_by_key_and_contents(self):
        """Same key and same contents are equal, whatever the construction."""
        assert Link("a", title="x") == Link("a", {"title": "x"})
        assert hash(Link("a", title="x")) == hash(Link("a", '{"title": "x"}'))
        assert Link("a", title="x") != Link("b", title="x")
        assert Link("a", title="x") != Link("a", title="y")

    def test_plain_cells(self):
        """Plain cells compare key and contents."""
        assert Cell("a", "x") == Cell("a", "x")
        assert Cell("a", "x") != Cell("a", "y")
        assert Cell("a", "x").identity() == ("a", "x")


class TestValidation:
    """Tests for cell validation."""

    def test_invalid_cell_collects_errors(self):
        """is_valid fills errors instead of raising."""
        link = Link("a")

        assert link.is_valid() is False
        assert link.errors == ["title is required"]

    def test_valid_cell(self):
        """A cell passing all rules is valid."""
        assert Link("a", title="x").is_valid() is True

    def test_validate_raises(self):
        """validate raises ConstraintViolation with the errors."""
        with pytest.raises(ConstraintViolation) as exc_info:
            Link("a").validate()

        assert exc_info.value.errors == ["title is required"]


class TestMerge:
    """Tests for the merge rules used by merged associations."""

    def test_json_merge_overwrites_present_attributes(self):
        """Later attributes win; absent ones fall back to the earlier cell."""
        base = Link("k", {"title": "A", "rank": 1}, timestamp=100)
        edit = Link("k", {"title": "B"}, timestamp=200)

        merged = base.merged_clone()
        merged.merge_cell(edit)

        assert merged["title"] == "B"
        assert merged["rank"] == 1
        assert merged.timestamp == 200
        assert base["title"] == "A"

    def test_merge_keeps_greater_timestamp(self):
        """An older later-source cell does not lower the timestamp."""
        base = Link("k", {"title": "A"}, timestamp=300)
        edit = Link("k", {"title": "B"}, timestamp=50)

        merged = base.merged_clone()
        merged.merge_cell(edit)

        assert merged["title"] == "B"
        assert merged.timestamp == 300

    def test_plain_cell_merge(self):
        """Plain cells take the later contents."""
        merged = Cell("k", "x", timestamp=5).merged_clone()
        merged.merge_cell(Cell("k", "y", timestamp=9))

        assert merged.contents == "y"
        assert merged.timestamp == 9

    def test_clone_is_detached(self):
        """Merged clones belong to no proxy."""
        clone = Link("k", title="x", timestamp=1).merged_clone()

        assert clone.proxy is None
        with pytest.raises(CellMapError):
            clone.address

    def test_merge_contract_is_abstract(self):
        """Mergeable types must implement both merge methods."""

        class CloneOnly(Mergeable):
            def merged_clone(self):
                return self

        with pytest.raises(TypeError):
            Mergeable()
        with pytest.raises(TypeError):
            CloneOnly()
