"""Tests for hierarchical branch labels."""

import pytest

from services.labels import ROOT_LABEL, child_label, generate_label, sibling_letter
from services.models import Node
from services.tree_store import TreeStore


def build(store: TreeStore, node_id: str, parent_id=None) -> Node:
    node = Node(
        id=node_id,
        hierarchical_label=generate_label(parent_id, store.nodes),
        parent_id=parent_id,
    )
    store.add_node(node)
    return node


class TestSiblingLetter:
    """Test suite for the alphabetic segment."""

    def test_first_letters(self):
        assert sibling_letter(0) == "a"
        assert sibling_letter(1) == "b"
        assert sibling_letter(25) == "z"

    def test_overflow_extends_to_two_letters(self):
        assert sibling_letter(26) == "aa"
        assert sibling_letter(27) == "ab"
        assert sibling_letter(51) == "az"
        assert sibling_letter(52) == "ba"
        assert sibling_letter(701) == "zz"
        assert sibling_letter(702) == "aaa"

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            sibling_letter(-1)


class TestGenerateLabel:
    """Test suite for label generation against a tree."""

    def test_root_label(self):
        assert generate_label(None, {}) == ROOT_LABEL == "1"

    def test_children_of_root_are_lettered(self):
        store = TreeStore()
        build(store, "root")
        first = build(store, "n1", "root")
        second = build(store, "n2", "root")

        assert first.hierarchical_label == "1.a"
        assert second.hierarchical_label == "1.b"

    def test_children_of_lettered_node_are_numbered(self):
        store = TreeStore()
        build(store, "root")
        build(store, "a", "root")
        first = build(store, "a1", "a")
        second = build(store, "a2", "a")

        assert first.hierarchical_label == "1.a.1"
        assert second.hierarchical_label == "1.a.2"

    def test_segments_alternate_by_depth(self):
        store = TreeStore()
        build(store, "root")
        build(store, "a", "root")
        build(store, "a1", "a")
        deepest = build(store, "a1a", "a1")

        assert deepest.hierarchical_label == "1.a.1.a"

    def test_same_creation_order_gives_same_labels(self):
        def run():
            store = TreeStore()
            build(store, "root")
            build(store, "x", "root")
            build(store, "y", "root")
            build(store, "z", "x")
            return {n.id: n.hierarchical_label for n in store.nodes.values()}

        assert run() == run()

    def test_label_ignores_node_ids(self):
        store = TreeStore()
        build(store, "zzz")
        child = build(store, "aaa", "zzz")
        assert child.hierarchical_label == "1.a"

    def test_unknown_parent_raises(self):
        with pytest.raises(KeyError):
            generate_label("missing", {})

    def test_overflow_past_z(self):
        assert child_label("1", 26) == "1.aa"
        assert child_label("1.a", 26) == "1.a.27"
