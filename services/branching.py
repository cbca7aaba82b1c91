"""Branching state: does the next send continue the leaf or fork a child?"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from services.tree_store import TreeStore


class BranchMode(Enum):
    CONTINUING = "continuing"
    PENDING_BRANCH = "pending_branch"


@dataclass
class BranchingState:
    """Continuing, or PendingBranch(origin_id)."""
    mode: BranchMode = BranchMode.CONTINUING
    origin_id: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.mode == BranchMode.PENDING_BRANCH

    def designate(self, store: TreeStore, origin_id: str) -> None:
        """Mark origin_id as the parent of the next node and show its context.

        No node is created until the next send.
        """
        store.set_current(origin_id)
        self.mode = BranchMode.PENDING_BRANCH
        self.origin_id = origin_id

    def cancel(self) -> None:
        """Back to Continuing; the current node stays where designate put it."""
        self.mode = BranchMode.CONTINUING
        self.origin_id = None

    def select(self, store: TreeStore, node_id: str) -> None:
        """Jump to an existing node and continue linearly from it."""
        store.set_current(node_id)
        self.cancel()

    def complete(self) -> None:
        """Called once the branch node has been created."""
        self.cancel()

    def to_dict(self):
        return {"mode": self.mode.value, "origin_id": self.origin_id}
