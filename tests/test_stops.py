"""Test StopResolver ordering.

Tests cover:
1. Assignable child discovery and pass-through rules
2. Ordering stability, idempotence and deletion tolerance
3. Explicit node scoping
4. Repaint/persist cycle
"""
from __future__ import annotations

import pytest

from annotation_engine.stops import StopResolver, get_ordered_stop_nodes
from annotation_engine.types import GROUP, HEADING, KEYSTOP, LABEL
from annotation_engine.peer_data import HeadingData


@pytest.fixture
def resolver(doc) -> StopResolver:
    return StopResolver(doc.config, doc.store)


def ids(nodes):
    return [n.id for n in nodes]


@pytest.fixture
def scenario(doc):
    """Frame F with a recorded stop n1 and two new keystop children."""
    f = doc.frame("F", x=0, y=0, width=400, height=400)
    doc.keystop(doc.node("n1", f, x=10, y=300))
    doc.keystop(doc.node("n2", f, x=10, y=10))
    doc.keystop(doc.node("n3", f, x=10, y=200))
    doc.record(f, KEYSTOP, "n1")
    return f


# ═══════════════════════════════════════════════════════════════════════════════
# ASSIGNED CHILD NODES
# ═══════════════════════════════════════════════════════════════════════════════

class TestAssignedChildNodes:
    def _container(self, doc, passthrough):
        f = doc.frame("F", height=400)
        c = doc.keystop(doc.node("C", f, GROUP), passthrough=passthrough)
        doc.keystop(doc.node("G", c))
        return f

    def test_keystop_without_passthrough_stops_at_node(self, doc, resolver):
        f = self._container(doc, passthrough=False)
        assert ids(resolver.get_assigned_child_nodes(f.children, [], KEYSTOP)) == ["C"]

    def test_keystop_with_passthrough_descends(self, doc, resolver):
        f = self._container(doc, passthrough=True)
        assert ids(resolver.get_assigned_child_nodes(f.children, [], KEYSTOP)) == ["C", "G"]

    def test_labels_always_pass_through(self, doc, resolver):
        f = doc.frame("F")
        c = doc.label(doc.node("C", f, GROUP))
        doc.label(doc.node("G", c), role="image")

        assert ids(resolver.get_assigned_child_nodes(f.children, [], LABEL)) == ["C", "G"]

    def test_unassigned_containers_are_transparent(self, doc, resolver):
        f = doc.frame("F")
        g = doc.node("group", f, GROUP)
        doc.keystop(doc.node("inside", g))

        assert ids(resolver.get_assigned_child_nodes(f.children, [], KEYSTOP)) == ["inside"]

    def test_exclusion_list_is_honoured(self, doc, resolver):
        f = doc.frame("F")
        a = doc.keystop(doc.node("a", f))
        doc.keystop(doc.node("b", f, y=50))

        assert ids(resolver.get_assigned_child_nodes(f.children, [a], KEYSTOP)) == ["b"]

    def test_other_kind_metadata_does_not_count(self, doc, resolver):
        f = doc.frame("F")
        doc.label(doc.node("a", f))

        assert resolver.get_assigned_child_nodes(f.children, [], KEYSTOP) == []

    def test_headings_need_a_level(self, doc, resolver):
        f = doc.frame("F")
        doc.store.set_metadata(doc.node("h1", f), HeadingData(level=1, text="Title"))
        doc.store.set_metadata(doc.node("plain", f, y=40), HeadingData(level=None))

        assert ids(resolver.get_assigned_child_nodes(f.children, [], HEADING)) == ["h1"]


# ═══════════════════════════════════════════════════════════════════════════════
# ORDERED STOP NODES
# ═══════════════════════════════════════════════════════════════════════════════

class TestOrderedStopNodes:
    def test_recorded_first_then_new_in_visual_order(self, scenario, resolver):
        assert ids(resolver.get_ordered_stop_nodes(KEYSTOP, [scenario])) == ["n1", "n2", "n3"]

    def test_deleted_recorded_node_is_dropped(self, doc, scenario, resolver):
        doc.graph.get_node_by_id("n1").remove()

        assert ids(resolver.get_ordered_stop_nodes(KEYSTOP, [scenario])) == ["n2", "n3"]
        # the stored list is only rewritten when the caller persists a new order
        assert doc.stored(scenario, KEYSTOP) == [{"id": "n1", "position": 1}]

    def test_idempotent(self, scenario, resolver):
        first = resolver.get_ordered_stop_nodes(KEYSTOP, [scenario])
        second = resolver.get_ordered_stop_nodes(KEYSTOP, [scenario])
        assert ids(first) == ids(second)

    def test_new_nodes_never_jump_ahead_of_recorded_ones(self, doc, resolver):
        f = doc.frame("F", height=400)
        doc.keystop(doc.node("A", f, y=200))
        doc.keystop(doc.node("B", f, y=100))
        doc.record(f, KEYSTOP, "A", "B")
        doc.keystop(doc.node("C", f, y=0))

        assert ids(resolver.get_ordered_stop_nodes(KEYSTOP, [f])) == ["A", "B", "C"]

        doc.graph.get_node_by_id("A").remove()
        assert ids(resolver.get_ordered_stop_nodes(KEYSTOP, [f])) == ["B", "C"]

    def test_new_only(self, scenario, resolver):
        assert ids(resolver.get_ordered_stop_nodes(KEYSTOP, [scenario], new_only=True)) == ["n2", "n3"]

    def test_selected_children_are_ordered_too(self, doc, resolver):
        f = doc.frame("F", height=400)
        plain = doc.node("plain", f, y=100)
        doc.keystop(doc.node("stop", f, y=0))

        assert ids(resolver.get_ordered_stop_nodes(KEYSTOP, [plain])) == ["stop", "plain"]

    def test_no_top_frame_gives_empty_result(self, doc, resolver):
        loose = doc.keystop(doc.node("loose"))

        assert resolver.get_ordered_stop_nodes(KEYSTOP, [loose]) == []
        assert resolver.get_ordered_stop_nodes(KEYSTOP, []) == []

    def test_frames_follow_selection_order(self, doc, resolver):
        f1 = doc.frame("F1", y=0)
        f2 = doc.frame("F2", y=1000)
        doc.keystop(doc.node("a", f1))
        doc.keystop(doc.node("b", f2))
        doc.record(f1, KEYSTOP, "a")
        doc.record(f2, KEYSTOP, "b")

        assert ids(resolver.get_ordered_stop_nodes(KEYSTOP, [f2, f1])) == ["b", "a"]

    def test_new_nodes_follow_selection_frame_order(self, doc, resolver):
        f1 = doc.frame("F1", y=0)
        f2 = doc.frame("F2", y=1000)
        doc.keystop(doc.node("a", f1))
        doc.keystop(doc.node("b", f2))

        assert ids(resolver.get_ordered_stop_nodes(KEYSTOP, [f2, f1])) == ["b", "a"]
        assert ids(resolver.get_ordered_stop_nodes(KEYSTOP, [f1, f2])) == ["a", "b"]

    def test_recorded_then_new_per_frame_across_frames(self, doc, resolver):
        f1 = doc.frame("F1", y=0)
        f2 = doc.frame("F2", y=1000)
        doc.keystop(doc.node("a1", f1))
        doc.keystop(doc.node("a2", f1, y=50))
        doc.keystop(doc.node("b1", f2))
        doc.keystop(doc.node("b2", f2, y=50))
        doc.record(f1, KEYSTOP, "a1")
        doc.record(f2, KEYSTOP, "b1")

        assert ids(resolver.get_ordered_stop_nodes(KEYSTOP, [f2, f1])) == ["b1", "a1", "b2", "a2"]

    def test_labels_resolved_through_labelled_container(self, doc, resolver):
        f = doc.frame("F", height=400)
        card = doc.label(doc.node("card", f, GROUP, y=0, height=100), role="group")
        doc.label(doc.node("icon", card, y=10), role="image")
        doc.label(doc.node("footer", f, y=200))
        doc.keystop(doc.node("stop_only", f, y=300))

        assert ids(resolver.get_ordered_stop_nodes(LABEL, [f])) == ["card", "icon", "footer"]

    def test_explicit_nodes_replace_working_set(self, doc, resolver):
        f = doc.frame("F", height=400)
        doc.keystop(doc.node("z", f, y=0))
        x = doc.node("x", f, y=100)
        y = doc.node("y", f, y=50)

        result = resolver.get_ordered_stop_nodes(KEYSTOP, [f], explicit_nodes=[x, y])
        assert ids(result) == ["y", "x"]

    def test_explicit_nodes_scope_from_selection(self, doc, resolver):
        f1 = doc.frame("F1")
        f2 = doc.frame("F2", y=1000)
        a = doc.node("a", f1)
        doc.node("b", f2)
        doc.record(f2, KEYSTOP, "b")

        # containers come from the selection (F2), not from the explicit node (in F1)
        result = resolver.get_ordered_stop_nodes(KEYSTOP, [f2], explicit_nodes=[a])
        assert ids(result) == ["b", "a"]

    def test_reset_only_for_selection_resolution(self, doc, scenario, resolver):
        n2 = doc.graph.get_node_by_id("n2")

        resolver.get_ordered_stop_nodes(KEYSTOP, [scenario], explicit_nodes=[n2], reset_data=True)
        assert doc.stored(scenario, KEYSTOP) == [{"id": "n1", "position": 1}]

        resolver.get_ordered_stop_nodes(KEYSTOP, [scenario], reset_data=True)
        assert doc.stored(scenario, KEYSTOP) == []

    def test_module_level_function(self, doc, scenario):
        assert ids(get_ordered_stop_nodes(KEYSTOP, [scenario], False)) == ["n1", "n2", "n3"]


# ═══════════════════════════════════════════════════════════════════════════════
# REPAINT / LIST LIFECYCLE
# ═══════════════════════════════════════════════════════════════════════════════

class TestRepaint:
    def test_repaint_records_new_order(self, doc, scenario, resolver):
        nodes = resolver.repaint(KEYSTOP, [scenario])

        assert ids(nodes) == ["n1", "n2", "n3"]
        assert doc.stored(scenario, KEYSTOP) == [
            {"id": "n1", "position": 1},
            {"id": "n2", "position": 2},
            {"id": "n3", "position": 3},
        ]

    def test_repaint_compacts_deleted_entries(self, doc, scenario, resolver):
        doc.graph.get_node_by_id("n1").remove()
        resolver.repaint(KEYSTOP, [scenario])

        assert doc.stored(scenario, KEYSTOP) == [
            {"id": "n2", "position": 1},
            {"id": "n3", "position": 2},
        ]

    def test_repeated_repaint_is_stable(self, doc, scenario, resolver):
        first = resolver.repaint(KEYSTOP, [scenario])
        second = resolver.repaint(KEYSTOP, [scenario])

        assert ids(first) == ids(second)
        assert len(doc.stored(scenario, KEYSTOP)) == 3

    def test_stop_position_and_removal(self, doc, scenario, resolver):
        resolver.repaint(KEYSTOP, [scenario])
        n2 = doc.graph.get_node_by_id("n2")

        assert resolver.get_stop_position(KEYSTOP, n2) == 2
        assert resolver.remove_stops(KEYSTOP, [n2]) == ["n2"]
        assert resolver.get_stop_position(KEYSTOP, n2) is None
        assert [e["id"] for e in doc.stored(scenario, KEYSTOP)] == ["n1", "n3"]
