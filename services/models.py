"""Core records for the branching conversation tree.

A conversation is a tree of nodes. Each node holds an ordered run of
messages (ordinal 0, 1, 2, ...) and points at its parent; the root is
the only node without one. Nodes live in the in-memory tree store either
as optimistic placeholders (``PENDING``, keyed by a temporary id) or as
rows confirmed by the persistence service (``CONFIRMED``).
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from config import PENDING_NODE_TITLE


class Role(str, Enum):
    """Author of a message."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """A single message inside a node."""
    role: Role
    content: str
    ordinal: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "ordinal": self.ordinal,
            "timestamp": self.timestamp,
        }


class NodeSyncState(Enum):
    """Whether a node has been confirmed by the persistence service."""
    PENDING = "pending"      # Optimistic placeholder, keyed by a temporary id
    CONFIRMED = "confirmed"  # Keyed by the persisted id


@dataclass
class NodeSync:
    """Tagged sync state: Pending{temporary_id} or Confirmed{persisted_id}."""
    state: NodeSyncState
    temporary_id: Optional[str] = None
    persisted_id: Optional[str] = None

    @classmethod
    def pending(cls, temporary_id: str) -> "NodeSync":
        return cls(state=NodeSyncState.PENDING, temporary_id=temporary_id)

    @classmethod
    def confirmed(cls, persisted_id: str) -> "NodeSync":
        return cls(state=NodeSyncState.CONFIRMED, persisted_id=persisted_id)

    def to_dict(self) -> Dict[str, Any]:
        if self.state == NodeSyncState.PENDING:
            return {"state": self.state.value, "temporary_id": self.temporary_id}
        return {"state": self.state.value, "persisted_id": self.persisted_id}


@dataclass
class Node:
    """A turn in the conversation tree."""
    id: str
    hierarchical_label: str
    parent_id: Optional[str]
    messages: List[Message] = field(default_factory=list)
    title: str = PENDING_NODE_TITLE
    timestamp: float = field(default_factory=time.time)
    child_ids: List[str] = field(default_factory=list)
    is_branch_point: bool = False
    sync: Optional[NodeSync] = None

    def __post_init__(self):
        # Anything built without an explicit state came from storage
        if self.sync is None:
            self.sync = NodeSync.confirmed(self.id)

    @property
    def is_pending(self) -> bool:
        return self.sync.state == NodeSyncState.PENDING

    def sorted_messages(self) -> List[Message]:
        return sorted(self.messages, key=lambda m: m.ordinal)

    def next_ordinal(self) -> int:
        """Ordinal the next message appended to this node will receive."""
        return len(self.messages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hierarchical_label": self.hierarchical_label,
            "parent_id": self.parent_id,
            "messages": [m.to_dict() for m in self.sorted_messages()],
            "title": self.title,
            "timestamp": self.timestamp,
            "child_ids": list(self.child_ids),
            "is_branch_point": self.is_branch_point,
            "sync": self.sync.to_dict(),
        }


@dataclass
class SessionHeader:
    """Persisted top-level record for one conversation tree."""
    id: str
    title: str
    root_node_id: Optional[str]
    current_node_id: Optional[str]
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "root_node_id": self.root_node_id,
            "current_node_id": self.current_node_id,
            "created_at": self.created_at,
        }
