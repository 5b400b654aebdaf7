"""
Unit tests for class models.

Tests cover:
- Inheritance composition and override order
- Linking operations and the frozen state
- Routes, permissions and route names
- Hierarchy helpers
- Index declarations
"""

import pytest

from kbschema.errors import RegistryFrozenError, SchemaDefinitionError, UnknownClassError
from kbschema.schema.constants import EXPOSE_NONE, PERMISSIONS
from kbschema.schema.model import ClassModel, IndexDefinition, IndexKind, ModelState
from kbschema.schema.property import Property, PropertyType


def make_model(name, *prop_names, **kwargs):
    return ClassModel(name, [Property(p) for p in prop_names], **kwargs)


class TestEffectiveProperties:
    """Tests for composed property sets."""

    def test_child_inherits(self):
        """Children see their parents' properties."""
        base = make_model("Base", "id")
        child = make_model("Child", "extra")
        child.add_parent(base)

        assert set(child.effective_properties()) == {"id", "extra"}
        assert child.effective_properties()["id"] is base.own_properties["id"]

    def test_own_property_wins(self):
        """A class's own descriptor overrides inherited ones."""
        base = make_model("Base", "name")
        own = Property("name", mandatory=True)
        child = ClassModel("Child", [own])
        child.add_parent(base)

        assert child.effective_properties()["name"] is own

    def test_later_parent_wins(self):
        """Among parents, the later-declared one wins."""
        first = ClassModel("First", [Property("name", description="first")])
        second = ClassModel("Second", [Property("name", description="second")])
        child = ClassModel("Child")
        child.add_parent(first)
        child.add_parent(second)

        assert child.effective_properties()["name"].description == "second"

    def test_diamond_shares_descriptor(self):
        """A descriptor reached through two paths is the same object."""
        root = make_model("Root", "id")
        left = make_model("Left")
        right = make_model("Right")
        left.add_parent(root)
        right.add_parent(root)
        bottom = make_model("Bottom")
        bottom.add_parent(left)
        bottom.add_parent(right)
        conflicts = []

        bottom.freeze(lambda *args: conflicts.append(args))

        assert conflicts == []
        assert bottom.effective_properties()["id"] is root.own_properties["id"]

    def test_conflict_handler_called(self):
        """Different descriptors from two parents are reported."""
        first = make_model("First", "name")
        second = make_model("Second", "name")
        child = make_model("Child")
        child.add_parent(first)
        child.add_parent(second)
        conflicts = []

        child.freeze(lambda model, name, current, incoming: conflicts.append((model.name, name)))

        assert conflicts == [("Child", "name")]

    def test_required_and_optional(self):
        """required/optional split on mandatory."""
        model = ClassModel("Thing", [Property("id", mandatory=True), Property("note")])
        assert model.required() == ["id"]
        assert model.optional() == ["note"]

    def test_duplicate_property(self):
        """Two own properties with one name fail."""
        with pytest.raises(SchemaDefinitionError, match="duplicate property"):
            make_model("Thing", "name", "name")


class TestLinking:
    """Tests for add_parent, resolve_link and freeze."""

    def test_add_parent_records_child(self):
        """add_parent keeps the back reference."""
        base = make_model("Base")
        child = make_model("Child")
        child.add_parent(base)

        assert child.parents == (base,)
        assert base.children == (child,)
        assert child.state == ModelState.LINKING

    def test_duplicate_parent(self):
        """The same parent cannot be added twice."""
        base = make_model("Base")
        child = make_model("Child")
        child.add_parent(base)

        with pytest.raises(SchemaDefinitionError, match="duplicate parent"):
            child.add_parent(base)

    def test_self_parent(self):
        """A model cannot be its own parent."""
        model = make_model("Loop")
        with pytest.raises(SchemaDefinitionError, match="itself"):
            model.add_parent(model)

    def test_resolve_link(self):
        """The placeholder is replaced with the model."""
        source = make_model("Source")
        model = ClassModel("Term", [Property("source", type=PropertyType.LINK, linked_class="Source")])

        model.resolve_link("source", source)

        assert model.own_properties["source"].linked_class is source

    def test_resolve_link_twice(self):
        """Resolving an already resolved link fails."""
        source = make_model("Source")
        model = ClassModel("Term", [Property("source", type=PropertyType.LINK, linked_class="Source")])
        model.resolve_link("source", source)

        with pytest.raises(SchemaDefinitionError, match="already resolved"):
            model.resolve_link("source", source)

    def test_resolve_missing_property(self):
        """Resolving an undefined property fails."""
        model = make_model("Term")
        with pytest.raises(SchemaDefinitionError, match="undefined property"):
            model.resolve_link("nope", make_model("Source"))

    def test_resolve_inherited_link(self):
        """An inherited property is resolved on the declaring ancestor."""
        source = make_model("Source")
        base = ClassModel("Base", [Property("source", type=PropertyType.LINK, linked_class="Source")])
        child = make_model("Child")
        child.add_parent(base)

        child.resolve_link("source", source)

        assert base.own_properties["source"].linked_class is source
        assert child.effective_properties()["source"].linked_class is source

    def test_freeze_rejects_unresolved(self):
        """A model with an unresolved link cannot be frozen."""
        model = ClassModel("Term", [Property("source", type=PropertyType.LINK, linked_class="Source")])
        with pytest.raises(SchemaDefinitionError, match="never resolved"):
            model.freeze()

    def test_frozen_model_rejects_changes(self):
        """Linking operations fail after freeze."""
        base = make_model("Base")
        model = ClassModel("Term", [Property("source", type=PropertyType.LINK)])
        model.freeze()

        assert model.linked
        with pytest.raises(RegistryFrozenError):
            model.add_parent(base)
        with pytest.raises(RegistryFrozenError):
            model.resolve_link("source", base)

    def test_freeze_caches(self):
        """Effective properties are cached when frozen."""
        model = make_model("Thing", "a")
        model.freeze()
        assert model.effective_properties() is model.effective_properties()


class TestRoutesAndPermissions:
    """Tests for routes, permissions and route names."""

    def test_default_routes(self):
        """Concrete classes expose everything."""
        model = make_model("Disease")
        assert all(model.routes.values())
        assert model.permissions["default"] == PERMISSIONS.ALL
        assert model.permissions["readonly"] == PERMISSIONS.READ

    def test_abstract_routes(self):
        """Abstract classes expose nothing by default."""
        model = make_model("Ontology", is_abstract=True)
        assert dict(model.routes) == dict(EXPOSE_NONE)
        assert model.permissions["default"] == PERMISSIONS.NONE
        assert not model.expose

    def test_edge_routes(self):
        """Edges are not patched."""
        model = make_model("AliasOf", is_edge=True)
        assert model.routes["PATCH"] is False
        assert model.permissions["default"] == 13

    def test_endpoints_make_edge(self):
        """Giving an endpoint class makes an edge."""
        model = make_model("Infers", source_model="Variant", target_model="Variant")
        assert model.is_edge

    def test_routes_merge(self):
        """Raw routes merge over the defaults."""
        model = make_model("Statement", routes={"DELETE": False})
        assert model.routes["DELETE"] is False
        assert model.routes["POST"] is True

    def test_unknown_route(self):
        """Unknown operations are rejected."""
        with pytest.raises(SchemaDefinitionError, match="unknown route"):
            make_model("Statement", routes={"PUT": True})

    def test_permissions_merge(self):
        """Explicit roles merge over derived ones; readonly stays READ."""
        model = make_model("Source", permissions={"admin": 15, "readonly": 15})
        assert model.permissions["admin"] == 15
        assert model.permissions["readonly"] == PERMISSIONS.READ
        assert model.permissions_for("nobody") == model.permissions["default"]

    def test_permissions_out_of_range(self):
        """Bitmasks outside 0..15 are rejected."""
        with pytest.raises(SchemaDefinitionError, match="out of range"):
            make_model("Source", permissions={"admin": 16})

    def test_allows(self):
        """allows checks a single bit."""
        model = make_model("Source", permissions={"default": int(PERMISSIONS.READ)})
        assert model.allows("default", PERMISSIONS.READ)
        assert not model.allows("default", PERMISSIONS.DELETE)

    @pytest.mark.parametrize(
        "name,is_edge,route",
        [
            ("V", False, "/v"),
            ("Disease", False, "/diseases"),
            ("Therapy", False, "/therapies"),
            ("Evidence", False, "/evidence"),
            ("Vocabulary", False, "/vocabulary"),
            ("AliasOf", True, "/aliasof"),
            ("Survey", False, "/surveys"),
        ],
    )
    def test_route_name(self, name, is_edge, route):
        """Route names are pluralised for vertex classes."""
        assert make_model(name, is_edge=is_edge).route_name == route


class TestHierarchy:
    """Tests for ancestry helpers."""

    @pytest.fixture
    def tree(self):
        v = make_model("V", "uuid")
        ontology = make_model("Ontology", "name", is_abstract=True)
        disease = make_model("Disease")
        therapy = make_model("Therapy", "mechanism")
        ontology.add_parent(v)
        disease.add_parent(ontology)
        therapy.add_parent(ontology)
        return {"V": v, "Ontology": ontology, "Disease": disease, "Therapy": therapy}

    def test_ancestors(self, tree):
        """Ancestors are listed nearest first."""
        assert tree["Disease"].ancestors() == ["Ontology", "V"]

    def test_is_descendant_of(self, tree):
        """A class descends from itself and its ancestors."""
        assert tree["Disease"].is_descendant_of("V")
        assert tree["Disease"].is_descendant_of(tree["Disease"])
        assert not tree["V"].is_descendant_of("Disease")

    def test_subclass_names(self, tree):
        """Descendants are listed breadth first."""
        assert tree["V"].subclass_names() == ["Ontology", "Disease", "Therapy"]

    def test_descendant_tree_excludes_abstract(self, tree):
        """Abstract classes can be skipped."""
        names = [m.name for m in tree["Ontology"].descendant_tree(exclude_abstract=True)]
        assert names == ["Disease", "Therapy"]

    def test_subclass_model(self, tree):
        """Subclasses are found by name."""
        assert tree["Ontology"].subclass_model("Therapy") is tree["Therapy"]
        with pytest.raises(UnknownClassError):
            tree["Therapy"].subclass_model("Disease")

    def test_inherits_property(self, tree):
        """Inherited properties are detected."""
        assert tree["Disease"].inherits_property("uuid")
        assert not tree["Therapy"].inherits_property("mechanism")

    def test_query_properties(self, tree):
        """Query properties include subclass properties."""
        assert "mechanism" in tree["Ontology"].query_properties()
        assert "mechanism" not in tree["Ontology"].effective_properties()


class TestIndexDefinition:
    """Tests for IndexDefinition."""

    def test_from_dict(self):
        """Parses raw index definitions."""
        index = IndexDefinition.from_dict(
            {
                "name": "Source.active",
                "type": "unique",
                "properties": ["name", "version"],
                "metadata": {"ignoreNullValues": False},
            },
            "Source",
        )
        assert index.kind == IndexKind.UNIQUE
        assert index.class_name == "Source"
        assert index.properties == ("name", "version")
        assert index.ignore_null_values is False

    def test_invalid_kind(self):
        """Unknown index types are definition errors."""
        with pytest.raises(SchemaDefinitionError, match="Invalid index type"):
            IndexDefinition.from_dict({"name": "x", "type": "BTREE", "properties": ["a"]}, "C")

    @pytest.mark.parametrize(
        "raw",
        [
            {"name": "x", "type": "UNIQUE", "properties": ["a"], "metadata": ["ignoreNullValues"]},
            {"name": "x", "type": "UNIQUE", "properties": "name"},
        ],
    )
    def test_malformed_shapes(self, raw):
        """metadata must be a mapping and properties a list."""
        with pytest.raises(SchemaDefinitionError, match="must be a"):
            IndexDefinition.from_dict(raw, "C")

    def test_marks(self):
        """Only single property hash / fulltext indices mark properties."""
        hash_index = IndexDefinition("a", IndexKind.NOTUNIQUE_HASH_INDEX, ("name",), "C")
        fulltext = IndexDefinition("b", IndexKind.FULLTEXT, ("name",), "C")
        composite = IndexDefinition("c", IndexKind.NOTUNIQUE_HASH_INDEX, ("a", "b"), "C")
        assert hash_index.marks_indexed and not hash_index.marks_fulltext
        assert fulltext.marks_fulltext and not fulltext.marks_indexed
        assert not composite.marks_indexed

    def test_active_properties(self):
        """The <Name>.active index lists the active properties."""
        index = IndexDefinition("Thing.active", IndexKind.UNIQUE, ("name", "deletedAt"), "Thing")
        model = ClassModel("Thing", [Property("name"), Property("deletedAt")], indices=[index])
        assert model.active_properties() == ["name", "deletedAt"]
        assert make_model("Other").active_properties() is None
