"""
Unit tests for YAML/JSON registry documents.
"""

import json
import textwrap

import pytest

from cellmap.schema import (
    AttrKind,
    load_registry_file,
    load_registry_json,
    load_registry_yaml,
    validate_document,
)

PAGE_YAML = """
name: Page
strict: true
attributes:
  count: integer
  meta:author: string
  meta:published: date
"""


class TestLoadRegistry:
    """Tests for building registries from documents."""

    def test_load_yaml(self):
        """A YAML document declares kinds and strictness."""
        registry = load_registry_yaml(PAGE_YAML)

        assert registry.name == "Page"
        assert registry.strict is True
        assert registry.kind_of("count") is AttrKind.INTEGER
        assert registry.kind_of("meta:published") is AttrKind.DATE
        assert registry.convert("count", "12") == 12

    def test_load_list_form(self):
        """Attributes may be listed with descriptions."""
        registry = load_registry_yaml(
            textwrap.dedent(
                """
                attributes:
                  - name: rank
                    kind: int
                    description: Position in results
                """
            )
        )

        assert registry.get("rank").description == "Position in results"
        assert registry.kind_of("rank") is AttrKind.INTEGER

    def test_load_json(self):
        """JSON documents use the same shape."""
        registry = load_registry_json(json.dumps({"attributes": {"flag": "boolean"}}))

        assert registry.strict is False
        assert registry.convert("flag", "yes") is True

    def test_invalid_kind_raises(self):
        """Unknown kinds are reported."""
        with pytest.raises(ValueError, match="invalid kind 'decimal'"):
            load_registry_yaml("attributes:\n  price: decimal\n")

    def test_validate_document(self):
        """Structural problems are listed."""
        assert validate_document([]) == ["Registry document must be a mapping"]
        assert validate_document({"strict": "yes"}) == ["'strict' must be a boolean"]

    def test_to_yaml_round_trip(self):
        """to_yaml output loads back to the same declarations."""
        registry = load_registry_yaml(PAGE_YAML)

        restored = load_registry_yaml(registry.to_yaml())

        assert restored.to_dict() == registry.to_dict()
        assert restored.freeze() == registry.freeze()

    def test_load_file(self, tmp_path):
        """Files load by extension."""
        yaml_path = tmp_path / "page.yaml"
        yaml_path.write_text(PAGE_YAML)
        json_path = tmp_path / "page.json"
        json_path.write_text(json.dumps({"attributes": {"count": "integer"}}))

        assert load_registry_file(yaml_path).strict is True
        assert load_registry_file(json_path).kind_of("count") is AttrKind.INTEGER
