"""
Integration tests for entity save/load through the in-memory store.

Tests cover:
- Typed attributes and strict mode on entities
- Name resolution (addresses, underscore form, aliases, family columns)
- One put per save, zero puts on invalid saves
- Lifecycle flags and timestamps
- Deletes, destroy and reload
"""

import datetime as dt

import pytest

from cellmap.errors import (
    CellMapError,
    ConstraintViolation,
    TypeViolation,
    UnexpectedAttribute,
    UnknownAttribute,
)
from cellmap.model import (
    Cell,
    Entity,
    EntitySchema,
    JsonCell,
    Repository,
    has_many,
    has_merged,
    required,
)
from cellmap.schema import AttributeRegistry
from cellmap.store import RowNotFound, TableNotFound

page_registry = AttributeRegistry("Page")
page_registry.define("count", "integer")
page_registry.define("title", "string")
page_registry.define("meta:published", "date")


class Link(JsonCell):
    registry = AttributeRegistry("Link")
    registry.define("title", "string")
    registry.define("rank", "integer")

    validators = (required("title"),)


class Page(Entity):
    schema = EntitySchema(
        families=("title", "count", "meta", "links", "drafts"),
        associations=(
            has_many("links", Link),
            has_many("drafts", Link, optional=True, validate=False),
        ),
        aliases={"published": "meta:published"},
        registry=page_registry,
        validators=(required("title"),),
    )


strict_registry = AttributeRegistry("StrictRow", strict=True)
strict_registry.define("count", "integer")


class StrictRow(Entity):
    schema = EntitySchema(families=("count", "x"), registry=strict_registry)


class LooseRow(Entity):
    schema = EntitySchema(families=("count", "x"))


@pytest.fixture
def pages(connection):
    """Repository of pages with its table created."""
    repo = Repository(Page, connection)
    repo.create_table()
    return repo


class TestTypedAttributes:
    """Tests for typed entity attributes."""

    def test_integer_attribute(self, pages):
        """count:int set to "12" reads back as 12."""
        page = pages.new("p")

        page["count"] = "12"

        assert page["count"] == 12

    def test_integer_attribute_rejects_garbage(self, pages):
        """count:int set to "abc" raises TypeViolation."""
        page = pages.new("p")

        with pytest.raises(TypeViolation):
            page["count"] = "abc"

    def test_strict_entity_rejects_undeclared(self):
        """Strict entities raise for undeclared attributes."""
        row = StrictRow("r")

        with pytest.raises(UnexpectedAttribute):
            row["x"] = 1

    def test_loose_entity_passes_undeclared_through(self):
        """Non-strict entities keep undeclared values untyped."""
        row = LooseRow("r")

        row["x"] = 1

        assert row["x"] == 1

    def test_name_forms(self, pages):
        """Addresses, underscore names, aliases and family names resolve."""
        page = pages.new("p")

        page["meta_author"] = "ann"
        page["published"] = "2024-05-01"
        page["title"] = "Example"

        assert page["meta:author"] == "ann"
        assert page["meta:published"] == dt.date(2024, 5, 1)
        assert page.attributes.get("title:") == "Example"
        assert "meta_author" in page

    def test_unknown_attribute(self, pages):
        """Unresolvable names raise UnknownAttribute with suggestions."""
        page = pages.new("p")

        with pytest.raises(UnknownAttribute) as exc_info:
            page["titel"]

        assert "title" in exc_info.value.suggestions
        with pytest.raises(KeyError):
            page["nope"] = 1


class TestSave:
    """Tests for saving entities."""

    @pytest.fixture
    def page(self, pages):
        page = pages.new("p", {"title": "Example", "count": "12", "published": "2024-05-01"})
        page.links.add(Link("example.com", title="Ex", rank="2"))
        return page

    def test_save_is_one_put(self, pages, page):
        """save() encodes every column into a single put."""
        timestamp = page.save()

        assert len(pages.table.put_log) == 1
        put = pages.table.put_log[0]
        assert put.timestamp == timestamp
        assert put.data == {
            "title:": "Example",
            "count:": "12",
            "meta:published": "2024-05-01",
            "links:example.com": '{"rank":2,"title":"Ex"}',
        }

    def test_round_trip(self, pages, page):
        """A saved entity loads back equal."""
        page.save()

        loaded = pages.get("p")

        assert loaded["count"] == 12
        assert loaded["published"] == dt.date(2024, 5, 1)
        assert loaded.links["example.com"]["rank"] == 2
        assert loaded == page

    def test_lifecycle_flags(self, page):
        """new_record and was_new_record follow the first save."""
        assert page.new_record is True
        assert page.was_new_record is False

        page.save()

        assert page.new_record is False
        assert page.was_new_record is True

        page.save()

        assert page.was_new_record is False

    def test_timestamps(self, pages, page):
        """The row timestamp is the applied put timestamp."""
        timestamp = page.save()

        assert page.timestamp == timestamp
        assert page["timestamp"] == timestamp
        assert pages.get("p").timestamp == timestamp

    def test_explicit_timestamp(self, pages, page):
        """save(timestamp) writes at that time."""
        page.save(timestamp=1234)

        assert pages.table.put_log[-1].timestamp == 1234
        assert page.timestamp == 1234
        assert page.links["example.com"].timestamp == 1234

    def test_invalid_element_blocks_save(self, pages, page):
        """An invalid cell raises ConstraintViolation and writes nothing."""
        page.links.add(Link("bad"))

        with pytest.raises(ConstraintViolation) as exc_info:
            page.save()

        assert "title is required in cell bad in association links" in exc_info.value.errors
        assert pages.table.put_log == []
        assert page.new_record is True

    def test_wrong_cell_class_is_an_error(self, pages, page):
        """Cells of another class are recorded as errors."""
        page.links.add(Cell("plain", "x"))

        assert page.is_valid() is False
        assert "plain is not a Link in association links" in page.errors

    def test_invalid_entity_blocks_save(self, pages):
        """Entity rules and the key are checked."""
        page = pages.new(None, {"count": 1})

        with pytest.raises(ConstraintViolation) as exc_info:
            page.save()

        assert exc_info.value.errors == ["key is required", "title is required"]
        assert pages.table.put_log == []

    def test_validate_false_association_is_skipped(self, pages, page):
        """Associations declared validate=False do not affect validity."""
        page.association("drafts", force=True).add(Link("draft"))

        assert page.is_valid() is True

    def test_unbound_entity_cannot_save(self):
        """Entities without a repository have no table."""
        page = Page("p", {"title": "T"})

        with pytest.raises(CellMapError, match="not bound"):
            page.save()


class TestAssociationsOnEntity:
    """Tests for association access through the entity."""

    def test_assign_mapping_to_has_many(self, pages):
        """Assigning a mapping builds cells of the configured class."""
        page = pages.new("p", {"title": "T"})

        page.links = {"a.com": {"title": "A"}}
        page.save()

        assert pages.get("p").links["a.com"]["title"] == "A"

    def test_optional_association(self, pages):
        """Optional associations are None until they have cells."""
        page = pages.create("p", {"title": "T"})

        assert page.drafts is None

        page.drafts = [Link("d1", title="Draft")]
        page.save()

        assert pages.get("p").drafts.keys() == ["d1"]

    def test_constructor_routes_associations(self, pages):
        """Constructor data may name associations."""
        page = pages.new("p", {"title": "T", "links": [Link("a.com", title="A")]})

        assert page.links.keys() == ["a.com"]

    def test_stored_bad_json_raises_on_load(self, pages):
        """A column that is not a JSON object fails to load as a Link."""
        pages.table.put("p", {"title:": "T", "links:bad": "not json"})
        page = pages.get("p")

        with pytest.raises(TypeViolation):
            page.links.keys()

    def test_unknown_association(self, pages):
        """Unknown association names raise UnknownAttribute."""
        page = pages.new("p")

        with pytest.raises(UnknownAttribute):
            page.association("nope")
        with pytest.raises(AttributeError):
            page.nope


class TestDeleteAndReload:
    """Tests for deleting columns and rows."""

    @pytest.fixture
    def saved(self, pages):
        return pages.create("p", {"title": "T", "count": 3})

    def test_delete_attribute(self, pages, saved):
        """Deleted columns are put as None and purged locally."""
        del saved["count"]
        saved.save()

        assert pages.table.put_log[-1].data["count:"] is None
        assert "count:" not in saved.attributes
        assert "count" not in pages.get("p")

    def test_failed_put_keeps_row_state(self, pages, saved):
        """A put that raises leaves the timestamp and lifecycle flags alone."""
        timestamp = saved.timestamp
        pages.delete_table()
        saved["title"] = "Changed"

        with pytest.raises(TableNotFound):
            saved.save()

        assert saved.timestamp == timestamp
        assert saved.new_record is False
        assert saved.was_new_record is True
        assert saved["title"] == "Changed"

    def test_destroy(self, pages, saved):
        """destroy removes the row from the store."""
        saved.destroy()

        assert pages.find("p") is None
        with pytest.raises(RowNotFound):
            pages.get("p")

    def test_reload(self, pages, saved):
        """reload picks up changes written elsewhere."""
        other = pages.get("p")
        other["title"] = "Changed"
        other.save()

        saved.reload()

        assert saved["title"] == "Changed"

    def test_equality(self, pages, saved):
        """Equal when same class, key and data; new records only equal themselves."""
        assert pages.get("p") == saved
        assert pages.new("p", {"title": "T", "count": 3}) != saved
        assert pages.new("x") != pages.new("x")


class TestSchemaChecks:
    """Tests for EntitySchema consistency checks."""

    def test_undeclared_association_family(self):
        """Associations must use declared families."""
        with pytest.raises(ValueError, match="undeclared family"):
            EntitySchema(families=("a",), associations=(has_many("links"),))

    def test_unknown_merged_source(self):
        """Merged sources must be declared associations."""
        with pytest.raises(ValueError, match="unknown source"):
            EntitySchema(
                families=("links",),
                associations=(has_many("links"), has_merged("all", ["links", "edits"])),
            )

    def test_reserved_association_name(self):
        """Association names cannot shadow entity attributes."""
        with pytest.raises(ValueError, match="reserved"):
            EntitySchema(families=("key",), associations=(has_many("key"),))

    def test_alias_target_must_resolve(self):
        """Aliases must point at declared families."""
        with pytest.raises(ValueError, match="Alias 'a'"):
            EntitySchema(families=("meta",), aliases={"a": "other:x"})
