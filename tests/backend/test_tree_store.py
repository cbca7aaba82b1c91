"""Tests for the tree store and path resolution."""

import pytest

from services.errors import BrokenChainError
from services.models import Message, Node, NodeSync, NodeSyncState, Role
from services.tree_store import (
    PathStatus,
    TreeStore,
    flatten,
    is_temporary_id,
    new_temporary_id,
)


def make_node(node_id, parent_id=None, label="1", messages=None):
    return Node(id=node_id, hierarchical_label=label, parent_id=parent_id, messages=messages or [])


@pytest.fixture
def chain() -> TreeStore:
    """root -> a -> b, with two messages per node."""
    store = TreeStore()
    for node_id, parent_id, label in [("root", None, "1"), ("a", "root", "1.a"), ("b", "a", "1.a.1")]:
        store.add_node(make_node(node_id, parent_id, label, [
            Message(role=Role.USER, content=f"{node_id}-q", ordinal=0),
            Message(role=Role.ASSISTANT, content=f"{node_id}-r", ordinal=1),
        ]))
    store.set_current("b")
    return store


class TestTreeStoreMutation:
    """Test suite for building the tree."""

    def test_add_root_sets_root_pointer(self):
        store = TreeStore()
        store.add_node(make_node("root"))
        assert store.root_node_id == "root"

    def test_second_root_rejected(self):
        store = TreeStore()
        store.add_node(make_node("root"))
        with pytest.raises(ValueError):
            store.add_node(make_node("other"))

    def test_child_linked_under_parent(self, chain):
        assert chain.get("root").child_ids == ["a"]
        assert chain.get("a").child_ids == ["b"]

    def test_missing_parent_rejected(self):
        store = TreeStore()
        with pytest.raises(KeyError):
            store.add_node(make_node("orphan", parent_id="nowhere"))

    def test_duplicate_id_rejected(self, chain):
        with pytest.raises(ValueError):
            chain.add_node(make_node("a", parent_id="root"))

    def test_append_message_enforces_next_ordinal(self, chain):
        chain.append_message("b", Message(role=Role.USER, content="next", ordinal=2))
        assert [m.ordinal for m in chain.get("b").messages] == [0, 1, 2]

        with pytest.raises(ValueError):
            chain.append_message("b", Message(role=Role.USER, content="gap", ordinal=5))

    def test_set_current_unknown_node(self, chain):
        with pytest.raises(KeyError):
            chain.set_current("nope")


class TestConfirmNode:
    """Test suite for rekeying optimistic placeholders."""

    def test_confirm_rekeys_placeholder(self, chain):
        temp_id = new_temporary_id()
        chain.add_node(Node(
            id=temp_id,
            hierarchical_label="1.b",
            parent_id="root",
            sync=NodeSync.pending(temp_id),
        ))
        chain.set_current(temp_id)

        node = chain.confirm_node(temp_id, "persisted-1")

        assert temp_id not in chain
        assert chain.get("persisted-1") is node
        assert node.sync.state == NodeSyncState.CONFIRMED
        assert node.sync.persisted_id == "persisted-1"
        assert chain.get("root").child_ids == ["a", "persisted-1"]
        assert chain.current_node_id == "persisted-1"
        assert not any(is_temporary_id(i) for i in chain.nodes)

    def test_confirm_root_placeholder_moves_root_pointer(self):
        store = TreeStore()
        temp_id = new_temporary_id()
        store.add_node(Node(id=temp_id, hierarchical_label="1", parent_id=None, sync=NodeSync.pending(temp_id)))

        store.confirm_node(temp_id, "real-root")

        assert store.root_node_id == "real-root"

    def test_confirm_requires_pending_node(self, chain):
        with pytest.raises(ValueError):
            chain.confirm_node("a", "other")

    def test_nodes_from_storage_are_confirmed(self):
        node = make_node("x")
        assert not node.is_pending
        assert node.sync.persisted_id == "x"


class TestSnapshot:
    """Test suite for snapshot/restore."""

    def test_restore_discards_later_changes(self, chain):
        snapshot = chain.snapshot()
        chain.append_message("b", Message(role=Role.USER, content="later", ordinal=2))
        chain.add_node(make_node("c", parent_id="b", label="1.a.1.a"))
        chain.set_current("c")

        chain.restore(snapshot)

        assert "c" not in chain
        assert chain.get("b").child_ids == []
        assert len(chain.get("b").messages) == 2
        assert chain.current_node_id == "b"


class TestResolvePath:
    """Test suite for the path resolver."""

    def test_path_is_root_to_leaf(self, chain):
        path = chain.resolve_path("b")
        assert [n.id for n in path.nodes] == ["root", "a", "b"]
        assert path.status == PathStatus.COMPLETE

    def test_flatten_orders_by_node_then_ordinal(self, chain):
        # Insert out of order; flatten must sort by ordinal
        chain.get("a").messages.reverse()
        messages = chain.resolve_path("b").messages()
        assert [m.content for m in messages] == ["root-q", "root-r", "a-q", "a-r", "b-q", "b-r"]

    def test_flatten_function_matches_path_messages(self, chain):
        path = chain.resolve_path("a")
        assert flatten(path.nodes) == path.messages()

    def test_none_is_empty_not_broken(self):
        path = TreeStore().resolve_path(None)
        assert path.status == PathStatus.EMPTY
        assert path.nodes == []
        assert not path.is_broken

    def test_missing_ancestor_returns_partial_prefix(self, chain):
        del chain.nodes["root"]

        path = chain.resolve_path("b")

        assert path.status == PathStatus.BROKEN
        assert [n.id for n in path.nodes] == ["a", "b"]
        assert path.missing_parent_id == "root"

    def test_unknown_start_node_is_broken(self, chain):
        path = chain.resolve_path("ghost")
        assert path.is_broken
        assert path.nodes == []

    def test_strict_raises_on_broken_chain(self, chain):
        del chain.nodes["a"]

        with pytest.raises(BrokenChainError) as exc_info:
            chain.resolve_path_strict("b")

        assert exc_info.value.node_id == "b"
        assert exc_info.value.missing_parent_id == "a"

    def test_strict_allows_empty(self):
        assert TreeStore().resolve_path_strict(None).status == PathStatus.EMPTY

    def test_cycle_is_reported_as_broken(self, chain):
        chain.get("root").parent_id = "b"
        path = chain.resolve_path("b")
        assert path.is_broken
