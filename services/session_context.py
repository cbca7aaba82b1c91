"""Explicit per-session state passed by reference into every operation."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from services.branching import BranchingState
from services.models import SessionHeader
from services.tree_store import TreeStore


class SendPhase(Enum):
    """Phases of one send cycle, in order."""
    IDLE = "idle"
    CONVERSATION_ENSURED = "conversation_ensured"
    NODE_ENSURED = "node_ensured"
    USER_MESSAGE_PERSISTED = "user_message_persisted"
    RESPONSE_GENERATING = "response_generating"
    RESPONSE_PERSISTED = "response_persisted"
    TITLE_SYNCED = "title_synced"
    CONVERGED = "converged"


@dataclass
class SessionContext:
    """Workspace for the active conversation.

    conversation_id is None until the first send creates the conversation.
    """
    conversation_id: Optional[str] = None
    store: TreeStore = field(default_factory=TreeStore)
    branching: BranchingState = field(default_factory=BranchingState)
    headers: List[SessionHeader] = field(default_factory=list)
    in_flight: bool = False
    phase: SendPhase = SendPhase.IDLE
    send_task: Optional[asyncio.Task] = None
    cancel_requested: bool = False

    @property
    def pending_branch_origin_id(self) -> Optional[str]:
        return self.branching.origin_id if self.branching.is_pending else None

    def header(self, conversation_id: Optional[str] = None) -> Optional[SessionHeader]:
        conversation_id = conversation_id or self.conversation_id
        if conversation_id is None:
            return None
        return next((h for h in self.headers if h.id == conversation_id), None)

    def reset(self) -> None:
        """Discard the workspace. The header list is kept."""
        self.conversation_id = None
        self.store = TreeStore()
        self.branching = BranchingState()
        self.in_flight = False
        self.phase = SendPhase.IDLE
        self.send_task = None
        self.cancel_requested = False

    def to_dict(self):
        data = self.store.to_dict()
        data.update({
            "conversation_id": self.conversation_id,
            "pending_branch_origin_id": self.pending_branch_origin_id,
            "branching": self.branching.to_dict(),
            "in_flight": self.in_flight,
            "phase": self.phase.value,
        })
        return data
