"""
Unit tests for definition file loading.

Tests cover:
- YAML and JSON parsing
- Named function resolution
- Error reporting
"""

import json

import pytest

from kbschema.errors import SchemaDefinitionError
from kbschema.schema import compile_schema
from kbschema.schema.loader import load_file, load_files, parse_json, parse_yaml
from kbschema.schema.util import cast_string, looks_like_rid, time_stamp_now

YAML_DEFINITIONS = """
Base:
  properties:
    - name: id
      mandatory: true
      nullable: false
      cast: castString
    - name: createdAt
      type: long
      default: {factory: timeStampNow}
    - name: parent
      check: looksLikeRID
Child:
  inherits: [Base]
  properties:
    - name: extra
"""


class TestParse:
    """Tests for parse_yaml and parse_json."""

    def test_yaml(self):
        """YAML definitions resolve named functions."""
        definitions = parse_yaml(YAML_DEFINITIONS)
        props = {p["name"]: p for p in definitions["Base"]["properties"]}

        assert props["id"]["cast"] is cast_string
        assert props["createdAt"]["default"] is time_stamp_now
        assert props["parent"]["check"] is looks_like_rid
        assert definitions["Child"]["inherits"] == ["Base"]

    def test_yaml_compiles(self):
        """Parsed definitions compile."""
        registry = compile_schema(parse_yaml(YAML_DEFINITIONS))
        assert set(registry["Child"].effective_properties()) == {"id", "createdAt", "parent", "extra"}

    def test_json(self):
        """JSON definitions are parsed the same way."""
        definitions = parse_json(json.dumps({"A": {"properties": [{"name": "x", "cast": "uppercase"}]}}))
        assert definitions["A"]["properties"][0]["cast"].__name__ == "uppercase"

    def test_empty_document(self):
        """An empty document has no classes."""
        assert parse_yaml("") == {}

    def test_unknown_function(self):
        """Unknown function names are definition errors."""
        with pytest.raises(SchemaDefinitionError, match="unknown cast function"):
            parse_yaml("A:\n  properties:\n    - name: x\n      cast: castFloat\n")

    def test_unknown_factory(self):
        """Unknown default factories are definition errors."""
        with pytest.raises(SchemaDefinitionError, match="unknown default function"):
            parse_yaml("A:\n  properties:\n    - {name: x, default: {factory: nope}}\n")

    def test_not_a_mapping(self):
        """The document must map class names to definitions."""
        with pytest.raises(SchemaDefinitionError, match="must map class names"):
            parse_yaml("- A\n- B\n")

    def test_invalid_yaml(self):
        """Malformed YAML is a definition error."""
        with pytest.raises(SchemaDefinitionError, match="Invalid YAML"):
            parse_yaml("A: [unclosed")

    def test_invalid_json(self):
        """Malformed JSON is a definition error."""
        with pytest.raises(SchemaDefinitionError, match="Invalid JSON"):
            parse_json("{")


class TestLoadFile:
    """Tests for load_file and load_files."""

    def test_load_yaml_file(self, tmp_path):
        """YAML files are loaded by suffix."""
        path = tmp_path / "defs.yml"
        path.write_text(YAML_DEFINITIONS)
        assert set(load_file(path)) == {"Base", "Child"}

    def test_load_json_file(self, tmp_path):
        """JSON files are loaded by suffix."""
        path = tmp_path / "defs.json"
        path.write_text(json.dumps({"A": {}}))
        assert load_file(str(path)) == {"A": {}}

    def test_unsupported_suffix(self, tmp_path):
        """Other suffixes are rejected."""
        path = tmp_path / "defs.txt"
        path.write_text("A: {}")
        with pytest.raises(SchemaDefinitionError, match="Unsupported"):
            load_file(path)

    def test_load_files(self, tmp_path):
        """Each file becomes one definition set."""
        first = tmp_path / "a.yaml"
        second = tmp_path / "b.json"
        first.write_text("A: {}\n")
        second.write_text(json.dumps({"B": {"inherits": ["A"]}}))

        sets = load_files([first, second])

        assert sets == [{"A": {}}, {"B": {"inherits": ["A"]}}]
        assert compile_schema(sets)["B"].ancestors() == ["A"]
