"""
Unit tests for record validation.

Tests cover:
- Failure aggregation
- Defaults and generated properties
- Update, extra and missing options
- Edge endpoints
- Embedded records
"""

import pytest

from kbschema.errors import FailureKind, ValidationError
from kbschema.schema.registry import compile_schema
from kbschema.schema.util import RecordId
from kbschema.schema.validate import format_record, validate_record


def kinds(failures):
    return sorted((f.property_name, f.kind) for f in failures)


@pytest.fixture
def registry():
    """Classes exercising each validation feature."""
    return compile_schema(
        {
            "Thing": {
                "properties": [
                    {"name": "id", "mandatory": True, "nullable": False},
                    {"name": "code", "mandatory": True, "nullable": False, "pattern": r"^[a-z]+\d+$"},
                    {"name": "label", "pattern": r"^[a-z]+$"},
                    {"name": "size", "type": "integer", "min": 0, "max": 10},
                    {"name": "status", "choices": ["pending", "passed"], "default": "pending"},
                    {"name": "note", "mandatory": True},
                    {"name": "uuid", "readOnly": True, "default": lambda record: "generated"},
                    {
                        "name": "createdAt",
                        "type": "long",
                        "mandatory": True,
                        "nullable": False,
                        "generated": True,
                        "default": lambda record: 1000,
                    },
                    {
                        "name": "displayName",
                        "default": lambda record: f"{record.get('id')}:{record.get('code')}",
                        "generationDependencies": True,
                    },
                ],
            },
            "Part": {
                "embedded": True,
                "properties": [
                    {"name": "name", "mandatory": True, "nullable": False},
                    {"name": "serial", "readOnly": True},
                ],
            },
            "NamedPart": {
                "embedded": True,
                "inherits": ["Part"],
                "properties": [{"name": "alias"}],
            },
            "Other": {"embedded": True, "properties": [{"name": "x"}]},
            "Holder": {
                "properties": [
                    {"name": "part", "type": "embedded", "linkedClass": "Part"},
                    {"name": "parts", "type": "embeddedlist", "linkedClass": "Part"},
                ],
            },
            "Link": {
                "isEdge": True,
                "properties": [{"name": "weight", "type": "integer"}],
            },
        }
    )


class TestAggregation:
    """Tests for failure aggregation."""

    def test_all_failures_reported(self, registry):
        """Two missing mandatory properties and a pattern violation give three failures."""
        _, failures = validate_record(registry["Thing"], {"label": "ABC1"})

        assert kinds(failures) == [
            ("code", FailureKind.MISSING),
            ("id", FailureKind.MISSING),
            ("label", FailureKind.PATTERN),
        ]

    def test_failures_name_property_and_value(self, registry):
        """Failures carry the property and rejected value only."""
        _, failures = validate_record(registry["Thing"], {"id": "a", "code": "a1", "size": "big"})

        assert len(failures) == 1
        assert failures[0].kind == FailureKind.CAST
        assert failures[0].property_name == "size"
        assert failures[0].value == "big"

    def test_format_record_raises(self, registry):
        """format_record raises with every failure."""
        with pytest.raises(ValidationError) as exc_info:
            format_record(registry["Thing"], {"size": 11})

        error = exc_info.value
        assert error.class_name == "Thing"
        assert {f.property_name for f in error.failures} == {"id", "code", "size"}
        assert len(error.errors) == 3

    def test_valid_record(self, registry):
        """A valid record is cast and defaulted."""
        record = format_record(registry["Thing"], {"id": " A ", "code": "ab12", "size": "3"})

        assert record["id"] == "a"
        assert record["size"] == 3
        assert record["status"] == "pending"
        assert record["uuid"] == "generated"
        assert record["createdAt"] == 1000
        assert record["note"] is None

    def test_input_not_modified(self, registry):
        """The input record is left alone."""
        record = {"id": "A", "code": "ab12"}
        format_record(registry["Thing"], record)
        assert record == {"id": "A", "code": "ab12"}


class TestDefaults:
    """Tests for defaults and generated properties."""

    def test_generation_dependencies_last(self, registry):
        """Dependent defaults see the formatted record."""
        record = format_record(registry["Thing"], {"id": "A", "code": "AB12"})
        assert record["displayName"] == "a:ab12"

    def test_no_defaults(self, registry):
        """add_defaults=False skips defaults; generated properties are never missing."""
        record, failures = validate_record(
            registry["Thing"], {"id": "a", "code": "ab12"}, add_defaults=False
        )
        assert failures == []
        assert "status" not in record
        assert "createdAt" not in record
        assert "displayName" not in record

    def test_default_sees_read_only_view(self):
        """Default functions cannot modify the record."""
        registry = compile_schema(
            {
                "Thing": {
                    "properties": [
                        {"name": "a"},
                        {"name": "b", "default": lambda record: record.__setitem__("a", "x")},
                    ]
                }
            }
        )
        _, failures = validate_record(registry["Thing"], {"a": "y"})
        assert [f.kind for f in failures] == [FailureKind.DEFAULT]

    def test_default_error_reported(self):
        """Any error raised by a default function becomes a failure."""
        registry = compile_schema(
            {
                "Thing": {
                    "properties": [
                        {"name": "a", "default": lambda record: record["missing"]},
                        {
                            "name": "b",
                            "default": lambda record: 1 / 0,
                            "generationDependencies": True,
                        },
                    ]
                }
            }
        )
        _, failures = validate_record(registry["Thing"], {})
        assert kinds(failures) == [("a", FailureKind.DEFAULT), ("b", FailureKind.DEFAULT)]

    def test_constant_default_copied(self):
        """Mutable constant defaults are not shared between records."""
        registry = compile_schema(
            {"Thing": {"properties": [{"name": "tags", "type": "embeddedlist", "default": []}]}}
        )
        first = format_record(registry["Thing"], {})
        first["tags"].append("x")
        second = format_record(registry["Thing"], {})
        assert second["tags"] == []


class TestOptions:
    """Tests for validation options."""

    def test_read_only_on_update(self, registry):
        """Read-only properties cannot be updated."""
        _, failures = validate_record(
            registry["Thing"], {"uuid": "x"}, is_update=True, ignore_missing=True
        )
        assert kinds(failures) == [("uuid", FailureKind.READ_ONLY)]

    def test_read_only_on_create(self, registry):
        """Read-only properties may be given on create."""
        record = format_record(registry["Thing"], {"id": "a", "code": "ab12", "uuid": "x"})
        assert record["uuid"] == "x"

    def test_ignore_missing(self, registry):
        """ignore_missing skips mandatory checks."""
        _, failures = validate_record(registry["Thing"], {}, ignore_missing=True)
        assert failures == []

    def test_drop_extra(self, registry):
        """Unknown attributes are dropped by default."""
        record = format_record(registry["Thing"], {"id": "a", "code": "ab12", "colour": "red"})
        assert "colour" not in record

    def test_unexpected_attribute(self, registry):
        """Unknown attributes are reported when kept."""
        _, failures = validate_record(
            registry["Thing"], {"id": "a", "code": "ab12", "sise": 1}, drop_extra=False
        )
        assert kinds(failures) == [("sise", FailureKind.UNEXPECTED)]
        assert "Did you mean: size" in failures[0].message

    def test_ignore_extra(self, registry):
        """ignore_extra keeps unknown attributes silently."""
        record, failures = validate_record(
            registry["Thing"], {"id": "a", "code": "ab12", "colour": "red"},
            drop_extra=False, ignore_extra=True,
        )
        assert failures == []
        assert record["colour"] == "red"


class TestEdges:
    """Tests for edge endpoints."""

    def test_endpoints_required(self, registry):
        """out and in are mandatory on edges."""
        _, failures = validate_record(registry["Link"], {})
        assert kinds(failures) == [("in", FailureKind.MISSING), ("out", FailureKind.MISSING)]

    def test_endpoints_cast(self, registry):
        """out and in are cast as record identifiers."""
        record = format_record(registry["Link"], {"out": "#1:2", "in": {"@rid": "#3:4"}})
        assert record["out"] == RecordId(1, 2)
        assert record["in"] == RecordId(3, 4)

    def test_endpoint_cast_failure(self, registry):
        """Bad endpoints are cast failures."""
        _, failures = validate_record(registry["Link"], {"out": "bad", "in": "#3:4"})
        assert kinds(failures) == [("out", FailureKind.CAST)]

    def test_endpoints_not_reported_unexpected(self, registry):
        """out and in are not unknown attributes of an edge."""
        _, failures = validate_record(
            registry["Link"], {"out": "#1:2", "in": "#3:4"}, drop_extra=False
        )
        assert failures == []


class TestEmbedded:
    """Tests for embedded records."""

    def test_embedded_validated(self, registry):
        """Embedded values are validated against the linked class."""
        _, failures = validate_record(registry["Holder"], {"part": {}})
        assert kinds(failures) == [("part.name", FailureKind.MISSING)]

    def test_embedded_cast(self, registry):
        """Embedded values are cast."""
        record = format_record(registry["Holder"], {"part": {"name": " Wheel "}})
        assert record["part"] == {"name": "wheel"}

    def test_embedded_list_paths(self, registry):
        """Failures in embedded lists carry the element index."""
        _, failures = validate_record(registry["Holder"], {"parts": [{"name": "a"}, {}]})
        assert kinds(failures) == [("parts.1.name", FailureKind.MISSING)]

    def test_embedded_subclass(self, registry):
        """@class selects a subclass of the linked class."""
        record = format_record(
            registry["Holder"], {"part": {"@class": "NamedPart", "name": "a", "alias": "b"}}
        )
        assert record["part"] == {"name": "a", "alias": "b"}

    def test_embedded_wrong_class(self, registry):
        """@class must be the linked class or a descendant."""
        _, failures = validate_record(registry["Holder"], {"part": {"@class": "Other", "x": 1}})
        assert kinds(failures) == [("part", FailureKind.LINKED_CLASS)]

    def test_embedded_not_mapping(self, registry):
        """Embedded values must be records."""
        _, failures = validate_record(registry["Holder"], {"part": "wheel"})
        assert kinds(failures) == [("part", FailureKind.LINKED_CLASS)]

    def test_permissions_embedded(self):
        """Group permissions are checked against the Permissions class."""
        registry = compile_schema(
            {
                "Thing": {},
                "Group": {
                    "properties": [
                        {"name": "permissions", "type": "embedded", "linkedClass": "Permissions"}
                    ]
                },
            }
        )
        record = format_record(registry["Group"], {"permissions": {"Thing": "15", "Group": 4}})
        assert record["permissions"] == {"Thing": 15, "Group": 4}

        _, failures = validate_record(registry["Group"], {"permissions": {"Thing": 16}})
        assert kinds(failures) == [("permissions.Thing", FailureKind.MAX)]

    def test_embedded_read_only_on_update(self, registry):
        """Read-only properties of embedded records cannot be updated."""
        _, failures = validate_record(
            registry["Holder"],
            {"part": {"name": "a", "serial": "x"}},
            is_update=True,
            ignore_missing=True,
        )
        assert kinds(failures) == [("part.serial", FailureKind.READ_ONLY)]

    def test_embedded_ignore_missing(self, registry):
        """ignore_missing applies to embedded records."""
        _, failures = validate_record(
            registry["Holder"], {"parts": [{}]}, is_update=True, ignore_missing=True
        )
        assert failures == []
