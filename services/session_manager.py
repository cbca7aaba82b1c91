"""Session lifecycle: starting, opening, switching and deleting conversations.

The manager holds no workspace of its own. Callers own a SessionContext and
pass it into every call; switching conversations discards the context's
workspace rather than merging it.
"""

import asyncio
import contextlib
from typing import List, Optional

from config import PENDING_NODE_TITLE, UNTITLED_SESSION_TITLE
from services.errors import BranchChatError, SendCancelledError, SendInProgressError
from services.models import SessionHeader
from services.send_coordinator import SendCoordinator, SendResult
from services.session_context import SessionContext
from services.tree_store import ResolvedPath


class SessionManager:
    """Lifecycle operations over a caller-owned SessionContext."""

    def __init__(self, persistence, coordinator: SendCoordinator):
        self.persistence = persistence
        self.coordinator = coordinator

    # =========================================================================
    # Sessions
    # =========================================================================

    async def refresh_sessions(self, ctx: SessionContext) -> List[SessionHeader]:
        ctx.headers = await self.persistence.fetch_conversations()
        return ctx.headers

    async def new_session(self, ctx: SessionContext) -> None:
        """Start an empty workspace. Nothing is persisted until the first send."""
        await self._abandon_in_flight(ctx)
        ctx.reset()
        print("[SESSION] Started new session")

    async def open_session(self, ctx: SessionContext, conversation_id: str) -> SessionHeader:
        """Load an existing conversation, replacing the current workspace.

        Raises:
            KeyError: If the conversation does not exist
            PersistenceError: If loading fails
        """
        headers = await self.persistence.fetch_conversations()
        header = next((h for h in headers if h.id == conversation_id), None)
        if header is None:
            raise KeyError(f"Conversation not found: {conversation_id}")

        nodes = await self.persistence.fetch_conversation_detail(conversation_id)

        await self._abandon_in_flight(ctx)
        ctx.reset()
        ctx.headers = headers
        ctx.conversation_id = conversation_id

        root_node_id = header.root_node_id if header.root_node_id in nodes else None
        if root_node_id is None:
            root_node_id = next((n.id for n in nodes.values() if n.parent_id is None), None)
        current_node_id = header.current_node_id if header.current_node_id in nodes else root_node_id
        ctx.store.replace_all(nodes, root_node_id, current_node_id)

        print(f"[SESSION] Opened {conversation_id} with {len(nodes)} nodes")
        return header

    async def delete_session(self, ctx: SessionContext, conversation_id: str) -> bool:
        if conversation_id == ctx.conversation_id:
            await self._abandon_in_flight(ctx)
            ctx.reset()
        deleted = await self.persistence.delete_conversation(conversation_id)
        await self.refresh_sessions(ctx)
        return deleted

    async def clear_all(self, ctx: SessionContext) -> int:
        """Delete every conversation and reset the workspace."""
        await self._abandon_in_flight(ctx)
        ctx.reset()
        count = await self.persistence.delete_all_conversations()
        ctx.headers = []
        print(f"[SESSION] Cleared {count} conversations")
        return count

    # =========================================================================
    # Sending
    # =========================================================================

    async def send(self, ctx: SessionContext, text: str) -> SendResult:
        """Run one send cycle as a cancellable task.

        Raises:
            SendInProgressError: If a send is already in flight
            SendCancelledError: If cancel_send interrupted this send
        """
        if ctx.in_flight or ctx.send_task is not None:
            raise SendInProgressError("A message is already being sent")

        task = asyncio.ensure_future(self.coordinator.send(ctx, text))
        ctx.send_task = task
        ctx.cancel_requested = False
        try:
            return await task
        except asyncio.CancelledError:
            if ctx.cancel_requested:
                raise SendCancelledError("Send was cancelled and rolled back") from None
            raise
        finally:
            if ctx.send_task is task:
                ctx.send_task = None
                ctx.cancel_requested = False

    def cancel_send(self, ctx: SessionContext) -> bool:
        """Cancel the in-flight send, if any. Returns whether one was cancelled."""
        task = ctx.send_task
        if task is None or task.done():
            return False
        ctx.cancel_requested = True
        task.cancel()
        return True

    async def _abandon_in_flight(self, ctx: SessionContext) -> None:
        task = ctx.send_task
        if task is None or task.done():
            return
        self.cancel_send(ctx)
        # Failures were already delivered to whoever awaited send()
        with contextlib.suppress(asyncio.CancelledError, BranchChatError):
            await task

    # =========================================================================
    # Branching / navigation
    # =========================================================================

    def designate_branch(self, ctx: SessionContext, node_id: str) -> None:
        """Make node_id the parent of the next send's node.

        Raises:
            KeyError: If node_id is not in the tree store
        """
        self._ensure_idle(ctx)
        ctx.branching.designate(ctx.store, node_id)

    def _ensure_idle(self, ctx: SessionContext) -> None:
        if ctx.in_flight:
            raise SendInProgressError("Cannot move while a message is being sent")

    def cancel_branch(self, ctx: SessionContext) -> None:
        ctx.branching.cancel()

    def select_node(self, ctx: SessionContext, node_id: str) -> None:
        """Continue linearly from node_id.

        Raises:
            KeyError: If node_id is not in the tree store
        """
        self._ensure_idle(ctx)
        ctx.branching.select(ctx.store, node_id)

    # =========================================================================
    # Views
    # =========================================================================

    def transcript(self, ctx: SessionContext, node_id: Optional[str] = None) -> ResolvedPath:
        """Ancestor path of node_id (default: the current node)."""
        if node_id is None:
            node_id = ctx.store.current_node_id
        return ctx.store.resolve_path(node_id)

    def current_title(self, ctx: SessionContext) -> str:
        node = ctx.store.current_node
        if node is None or not node.title or node.title == PENDING_NODE_TITLE:
            return UNTITLED_SESSION_TITLE
        return node.title
