"""In-memory tree store and path resolution for one active session.

The store owns the node map plus the root/current pointers. It knows
nothing about persistence: the send coordinator writes optimistic
placeholders into it, confirms them, and finally replaces its contents
with what the persistence service reports.
"""

import copy
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from config import TEMP_NODE_PREFIX
from services.errors import BrokenChainError
from services.models import Message, Node, NodeSync, NodeSyncState


class PathStatus(Enum):
    """Outcome of walking a node's ancestry."""
    EMPTY = "empty"        # No node id given: there is no history yet
    COMPLETE = "complete"  # Reached the root
    BROKEN = "broken"      # A parent pointer did not resolve; prefix only


@dataclass
class ResolvedPath:
    """Ancestor chain root -> leaf, plus how the walk ended."""
    nodes: List[Node] = field(default_factory=list)
    status: PathStatus = PathStatus.EMPTY
    missing_parent_id: Optional[str] = None

    @property
    def is_broken(self) -> bool:
        return self.status == PathStatus.BROKEN

    def messages(self) -> List[Message]:
        return flatten(self.nodes)


def flatten(path: List[Node]) -> List[Message]:
    """Concatenate each node's messages (sorted by ordinal) in path order."""
    messages: List[Message] = []
    for node in path:
        messages.extend(node.sorted_messages())
    return messages


def new_temporary_id() -> str:
    """Temporary id for an optimistic placeholder node."""
    return f"{TEMP_NODE_PREFIX}{uuid.uuid4().hex}"


def is_temporary_id(node_id: Optional[str]) -> bool:
    return bool(node_id) and node_id.startswith(TEMP_NODE_PREFIX)


@dataclass
class TreeSnapshot:
    """Deep copy of the store's state, used to roll back a failed send."""
    nodes: Dict[str, Node]
    root_node_id: Optional[str]
    current_node_id: Optional[str]


class TreeStore:
    """Node map plus root/current pointers for the active session."""

    def __init__(self):
        self.nodes: Dict[str, Node] = {}
        self.root_node_id: Optional[str] = None
        self.current_node_id: Optional[str] = None

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, node_id: str) -> Node:
        if node_id not in self.nodes:
            raise KeyError(f"Node not found: {node_id}")
        return self.nodes[node_id]

    @property
    def current_node(self) -> Optional[Node]:
        if self.current_node_id is None:
            return None
        return self.nodes.get(self.current_node_id)

    def pending_nodes(self) -> List[Node]:
        return [n for n in self.nodes.values() if n.is_pending]

    # =========================================================================
    # Mutation
    # =========================================================================

    def add_node(self, node: Node) -> None:
        """Insert a node and link it under its parent.

        The tree shape is fixed at insertion: parent_id is never rewritten
        afterwards except when a placeholder is rekeyed by confirm_node.
        """
        if node.id in self.nodes:
            raise ValueError(f"Node already exists: {node.id}")

        if node.parent_id is None:
            if self.root_node_id is not None:
                raise ValueError("Root already exists")
            self.root_node_id = node.id
        else:
            parent = self.get(node.parent_id)
            if node.id not in parent.child_ids:
                parent.child_ids.append(node.id)

        self.nodes[node.id] = node

    def append_message(self, node_id: str, message: Message) -> None:
        node = self.get(node_id)
        expected = node.next_ordinal()
        if message.ordinal != expected:
            raise ValueError(
                f"Ordinal {message.ordinal} out of sequence for node {node_id} (expected {expected})"
            )
        node.messages.append(message)

    def set_current(self, node_id: Optional[str]) -> None:
        if node_id is not None and node_id not in self.nodes:
            raise KeyError(f"Node not found: {node_id}")
        self.current_node_id = node_id

    def confirm_node(self, temporary_id: str, persisted_id: str) -> Node:
        """Rekey a pending placeholder under its persisted id.

        Rewrites the parent's child list and any pointer that referenced the
        temporary id, so no trace of it remains.
        """
        node = self.get(temporary_id)
        if node.sync.state != NodeSyncState.PENDING:
            raise ValueError(f"Node {temporary_id} is not pending")
        if persisted_id in self.nodes:
            raise ValueError(f"Node already exists: {persisted_id}")

        del self.nodes[temporary_id]
        node.id = persisted_id
        node.sync = NodeSync.confirmed(persisted_id)
        self.nodes[persisted_id] = node

        if node.parent_id is not None and node.parent_id in self.nodes:
            parent = self.nodes[node.parent_id]
            parent.child_ids = [persisted_id if c == temporary_id else c for c in parent.child_ids]

        if self.root_node_id == temporary_id:
            self.root_node_id = persisted_id
        if self.current_node_id == temporary_id:
            self.current_node_id = persisted_id

        return node

    def replace_all(
        self,
        nodes: Dict[str, Node],
        root_node_id: Optional[str],
        current_node_id: Optional[str],
    ) -> None:
        """Replace the store's contents wholesale with authoritative data."""
        self.nodes = dict(nodes)
        self.root_node_id = root_node_id
        self.current_node_id = current_node_id

    def snapshot(self) -> TreeSnapshot:
        return TreeSnapshot(
            nodes=copy.deepcopy(self.nodes),
            root_node_id=self.root_node_id,
            current_node_id=self.current_node_id,
        )

    def restore(self, snapshot: TreeSnapshot) -> None:
        self.replace_all(copy.deepcopy(snapshot.nodes), snapshot.root_node_id, snapshot.current_node_id)

    # =========================================================================
    # Path resolution
    # =========================================================================

    def resolve_path(self, node_id: Optional[str]) -> ResolvedPath:
        """Walk parent pointers from node_id up to the root.

        Fail-soft: a missing ancestor stops the walk and the partial prefix
        is returned with status BROKEN, never as an empty path.
        """
        if node_id is None:
            return ResolvedPath()

        if node_id not in self.nodes:
            return ResolvedPath(status=PathStatus.BROKEN, missing_parent_id=node_id)

        path: List[Node] = []
        seen = set()
        current_id: Optional[str] = node_id

        while current_id is not None:
            node = self.nodes.get(current_id)
            if node is None or current_id in seen:
                return ResolvedPath(nodes=path, status=PathStatus.BROKEN, missing_parent_id=current_id)
            seen.add(current_id)
            path.insert(0, node)
            current_id = node.parent_id

        return ResolvedPath(nodes=path, status=PathStatus.COMPLETE)

    def resolve_path_strict(self, node_id: Optional[str]) -> ResolvedPath:
        """Like resolve_path, but a broken chain raises BrokenChainError."""
        resolved = self.resolve_path(node_id)
        if resolved.is_broken:
            # The first node on the prefix is the one whose parent is missing
            orphan_id = resolved.nodes[0].id if resolved.nodes else node_id
            raise BrokenChainError(orphan_id, resolved.missing_parent_id)
        return resolved

    def to_dict(self) -> Dict[str, object]:
        return {
            "nodes": {node_id: node.to_dict() for node_id, node in self.nodes.items()},
            "root_node_id": self.root_node_id,
            "current_node_id": self.current_node_id,
        }
