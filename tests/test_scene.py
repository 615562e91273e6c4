"""Test the in-memory scene graph and its JSON document format."""
from __future__ import annotations

import json

import pytest

from annotation_engine.scene import NodeRemovedError, SceneGraph, load_document, write_document
from annotation_engine.types import FRAME, GROUP, PAGE


def _document() -> dict:
    return {
        "id": "0:0",
        "type": "DOCUMENT",
        "name": "Doc",
        "children": [
            {
                "id": "0:1",
                "type": "PAGE",
                "name": "Page 1",
                "pluginData": {"legendFrames": [{"id": "1:1", "legendId": None}]},
                "children": [
                    {
                        "id": "1:1",
                        "type": "FRAME",
                        "name": "Login",
                        "x": 0,
                        "y": 0,
                        "width": 400,
                        "height": 400,
                        "pluginData": {"keystopList": '[{"id":"1:2","position":1}]'},
                        "children": [
                            {"id": "1:2", "type": "RECTANGLE", "name": "Button", "x": 10, "y": 300},
                        ],
                    }
                ],
            }
        ],
    }


class TestDocumentIO:
    def test_load_builds_tree(self):
        graph = SceneGraph.from_dict(_document())
        button = graph.get_node_by_id("1:2")

        assert len(graph) == 4
        assert [p.id for p in graph.pages] == ["0:1"]
        assert button.parent.id == "1:1"
        assert button.parent.parent.type == PAGE
        assert (button.x, button.y) == (10, 300)

    def test_plugin_data_values_are_strings(self):
        graph = SceneGraph.from_dict(_document())
        page = graph.get_node_by_id("0:1")

        raw = page.get_plugin_data("legendFrames")
        assert isinstance(raw, str)
        assert json.loads(raw) == [{"id": "1:1", "legendId": None}]
        assert graph.get_node_by_id("1:1").get_plugin_data("keystopList") == '[{"id":"1:2","position":1}]'

    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "doc.json"
        write_document(SceneGraph.from_dict(_document()), path)
        graph = load_document(path)

        assert graph.get_node_by_id("1:1").name == "Login"
        assert graph.to_dict() == load_document(path).to_dict()

    @pytest.mark.parametrize("field", ["id", "type"])
    def test_missing_field_names_path(self, field):
        data = _document()
        del data["children"][0]["children"][0][field]

        with pytest.raises(ValueError, match=rf"root\.children\[0\]\.children\[0\]: missing field {field}"):
            SceneGraph.from_dict(data)

    def test_duplicate_id_is_rejected(self):
        data = _document()
        data["children"][0]["children"][0]["children"][0]["id"] = "1:1"

        with pytest.raises(ValueError, match="duplicate node id"):
            SceneGraph.from_dict(data)

    def test_non_object_document(self):
        with pytest.raises(ValueError):
            SceneGraph.from_dict([])


class TestMutation:
    def test_remove_drops_subtree(self, doc):
        f = doc.frame("f")
        g = doc.node("g", f, GROUP)
        a = doc.node("a", g)
        g.remove()

        assert "g" not in doc.graph
        assert "a" not in doc.graph
        assert a.removed and a.parent is None
        assert f.children == []

    def test_write_to_removed_node_raises(self, doc):
        a = doc.node("a")
        a.remove()

        with pytest.raises(NodeRemovedError):
            a.set_plugin_data("k", "v")
        # reads stay harmless
        assert a.get_plugin_data("k") == ""

    def test_plugin_data_must_be_string(self, doc):
        with pytest.raises(TypeError):
            doc.node("a").set_plugin_data("k", 1)

    def test_empty_value_clears_key(self, doc):
        a = doc.node("a")
        a.set_plugin_data("k", "v")
        a.set_plugin_data("k", "")

        assert a.plugin_data == {}

    def test_move_and_index(self, doc):
        f = doc.frame("f")
        a = doc.node("a", f)
        b = doc.node("b")
        doc.graph.move(b, f, index=0)

        assert [c.id for c in f.children] == ["b", "a"]
        assert b.parent is f

    def test_cannot_move_into_own_subtree(self, doc):
        f = doc.frame("f")
        g = doc.node("g", f, GROUP)

        with pytest.raises(ValueError):
            g.append_child(f)

    def test_generated_ids_are_unique(self, doc):
        a = doc.graph.create_node(FRAME, parent=doc.page)
        b = doc.graph.create_node(FRAME, parent=doc.page)
        assert a.id != b.id


class TestLookups:
    def test_find_helpers(self, doc):
        f = doc.frame("f")
        g = doc.node("g", f, GROUP, name="Annotations")
        a = doc.node("a", g)
        doc.node("b", f)

        assert f.find_one(lambda n: n.id == "a") is a
        assert [n.id for n in f.find_all(lambda n: n.type == "RECTANGLE")] == ["a", "b"]
        assert f.find_child(lambda n: n.name == "Annotations") is g
        assert f.find_child(lambda n: n.id == "a") is None

    def test_unknown_and_empty_ids(self, doc):
        assert doc.graph.get_node_by_id("nope") is None
        assert doc.graph.get_node_by_id("") is None
        assert doc.graph.get_node_by_id(None) is None
