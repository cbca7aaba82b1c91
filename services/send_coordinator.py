"""Optimistic send cycle for the branching conversation tree.

One send walks these phases:

    IDLE -> CONVERSATION_ENSURED -> NODE_ENSURED -> USER_MESSAGE_PERSISTED
         -> RESPONSE_GENERATING -> RESPONSE_PERSISTED -> TITLE_SYNCED -> CONVERGED

When the send needs a new node (first send of a conversation, or a send
from a designated branch point) a PENDING placeholder is written into the
tree store before the create call returns, then confirmed under the
persisted id. Every successful cycle ends by replacing the tree store with
what the persistence service reports.

Generation and title failures fall back to canned text and never stop the
cycle. A PersistenceError, or cancellation, rolls the tree store back to
its pre-send snapshot and deletes whatever this cycle already persisted.
"""

import asyncio
import dataclasses
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from config import DEFAULT_CONVERSATION_TITLE, PENDING_NODE_TITLE, TITLE_TIMEOUT_SECONDS
from services.branching import BranchingState
from services.errors import GenerationError, PersistenceError, SendInProgressError
from services.fallbacks import Fallbacks, validate_title
from services.labels import generate_label
from services.models import Message, Node, NodeSync, Role
from services.session_context import SendPhase, SessionContext
from services.tree_store import TreeSnapshot, new_temporary_id


@dataclass
class SendResult:
    """Outcome of one converged send cycle."""
    conversation_id: str
    node_id: str
    user_ordinal: int
    assistant_ordinal: int
    response_text: str
    created_conversation: bool = False
    created_node: bool = False
    title: Optional[str] = None
    used_fallback_response: bool = False
    used_fallback_title: bool = False
    phase: SendPhase = SendPhase.CONVERGED

    def to_dict(self) -> Dict[str, Any]:
        data = dataclasses.asdict(self)
        data["phase"] = self.phase.value
        return data


@dataclass
class _PreSendState:
    """What a failed cycle restores."""
    conversation_id: Optional[str]
    tree: TreeSnapshot
    branching: BranchingState


@dataclass
class _Persisted:
    """Rows the current cycle may have written, for compensation.

    Each entry is recorded before its remote call is awaited, so a write
    that committed but was never acknowledged is still undone.
    """
    conversation_id: Optional[str] = None
    node_id: Optional[str] = None
    messages: List[Tuple[str, int]] = field(default_factory=list)
    pointers_moved: bool = False
    previous_title: Optional[str] = None
    create_call: Optional[asyncio.Future] = None


class SendCoordinator:
    """Drives send cycles against a persistence and a generation service."""

    def __init__(self, persistence, generator, fallbacks: Optional[Fallbacks] = None):
        self.persistence = persistence
        self.generator = generator
        self.fallbacks = fallbacks or Fallbacks()

    async def send(self, ctx: SessionContext, text: str) -> SendResult:
        """Run one send cycle for ctx.

        Raises:
            SendInProgressError: If ctx already has a send in flight
            ValueError: If text is empty
            PersistenceError: If any storage call fails; ctx is rolled back
            BrokenChainError: If the path being extended has a missing ancestor
        """
        if ctx.in_flight:
            raise SendInProgressError("A message is already being sent")
        if not text or not text.strip():
            raise ValueError("Message text is empty")

        ctx.in_flight = True
        ctx.phase = SendPhase.IDLE
        before = _PreSendState(
            conversation_id=ctx.conversation_id,
            tree=ctx.store.snapshot(),
            branching=dataclasses.replace(ctx.branching),
        )
        persisted = _Persisted()

        try:
            return await self._run(ctx, text, persisted)
        except PersistenceError as e:
            e.phase = ctx.phase.value
            print(f"[SEND] Persistence failure after {ctx.phase.value}: {e}")
            await self._rollback(ctx, before, persisted)
            raise
        except asyncio.CancelledError:
            print(f"[SEND] Cancelled after {ctx.phase.value}, rolling back")
            await self._rollback(ctx, before, persisted)
            raise
        except Exception as e:
            print(f"[SEND] Unexpected failure after {ctx.phase.value}: {e}")
            await self._rollback(ctx, before, persisted)
            raise
        finally:
            ctx.in_flight = False
            ctx.phase = SendPhase.IDLE

    # =========================================================================
    # Cycle
    # =========================================================================

    async def _run(self, ctx: SessionContext, text: str, persisted: _Persisted) -> SendResult:
        store = ctx.store
        is_new_conversation = ctx.conversation_id is None
        is_branching = ctx.branching.is_pending
        # An empty tree (new or never-populated conversation) needs its root
        needs_node = is_new_conversation or is_branching or store.current_node_id is None

        # Refuse to build on a corrupted ancestry before anything is written
        store.resolve_path_strict(ctx.branching.origin_id if is_branching else store.current_node_id)

        # --- Conversation ---
        if is_new_conversation:
            persisted.conversation_id = str(uuid.uuid4())
            conversation = await self.persistence.create_conversation(
                DEFAULT_CONVERSATION_TITLE, conversation_id=persisted.conversation_id
            )
            ctx.conversation_id = conversation["id"]
        conversation_id = ctx.conversation_id
        ctx.phase = SendPhase.CONVERSATION_ENSURED

        # --- Node ---
        if needs_node:
            parent_id = ctx.branching.origin_id if is_branching else None
            node_id = await self._create_node_optimistically(ctx, text, parent_id, is_branching, persisted)
            user_ordinal = 0
            is_root = parent_id is None
            persisted.pointers_moved = True
            if is_root:
                await self.persistence.update_conversation_state(
                    conversation_id, root_node_id=node_id, current_node_id=node_id
                )
            else:
                await self.persistence.update_conversation_state(conversation_id, current_node_id=node_id)
        else:
            node_id = store.current_node_id
            is_root = False
            user_ordinal = store.get(node_id).next_ordinal()
            store.append_message(node_id, Message(role=Role.USER, content=text, ordinal=user_ordinal))
            header = ctx.header()
            if header is None or header.current_node_id != node_id:
                persisted.pointers_moved = True
                await self.persistence.update_conversation_state(conversation_id, current_node_id=node_id)
        ctx.phase = SendPhase.NODE_ENSURED

        # --- User message ---
        persisted.messages.append((node_id, user_ordinal))
        await self.persistence.create_message(node_id, Role.USER, text, user_ordinal)
        ctx.phase = SendPhase.USER_MESSAGE_PERSISTED

        # --- Generation ---
        ctx.phase = SendPhase.RESPONSE_GENERATING
        path = store.resolve_path_strict(node_id)
        # The prompt travels separately; drop it from the tail of the context
        context = path.messages()[:-1]
        response_text, used_fallback_response = await self._generate_response(text, context)

        assistant_ordinal = user_ordinal + 1
        persisted.messages.append((node_id, assistant_ordinal))
        await self.persistence.create_message(node_id, Role.ASSISTANT, response_text, assistant_ordinal)
        store.append_message(
            node_id, Message(role=Role.ASSISTANT, content=response_text, ordinal=assistant_ordinal)
        )
        ctx.phase = SendPhase.RESPONSE_PERSISTED

        # --- Titles ---
        title = None
        used_fallback_title = False
        if needs_node:
            title, used_fallback_title = await self._generate_title(text, response_text)
            await self.persistence.update_node_title(node_id, title)
            store.get(node_id).title = title
            if is_root:
                header = ctx.header()
                persisted.previous_title = header.title if header else DEFAULT_CONVERSATION_TITLE
                await self.persistence.update_conversation_state(conversation_id, title=title)
        ctx.phase = SendPhase.TITLE_SYNCED

        await self._converge(ctx)
        ctx.phase = SendPhase.CONVERGED

        print(f"[SEND] Converged on node {node_id} (ordinals {user_ordinal}, {assistant_ordinal})")
        return SendResult(
            conversation_id=conversation_id,
            node_id=node_id,
            user_ordinal=user_ordinal,
            assistant_ordinal=assistant_ordinal,
            response_text=response_text,
            created_conversation=is_new_conversation,
            created_node=needs_node,
            title=title,
            used_fallback_response=used_fallback_response,
            used_fallback_title=used_fallback_title,
        )

    async def _create_node_optimistically(
        self,
        ctx: SessionContext,
        text: str,
        parent_id: Optional[str],
        is_branching: bool,
        persisted: _Persisted,
    ) -> str:
        """Issue create_node, show a placeholder meanwhile, then confirm it."""
        store = ctx.store
        label = generate_label(parent_id, store.nodes)

        persisted.node_id = str(uuid.uuid4())
        create_call = asyncio.ensure_future(self.persistence.create_node(
            conversation_id=ctx.conversation_id,
            parent_id=parent_id,
            hierarchical_label=label,
            is_branch_point=is_branching,
            title=PENDING_NODE_TITLE,
            node_id=persisted.node_id,
        ))
        persisted.create_call = create_call

        temporary_id = new_temporary_id()
        try:
            store.add_node(Node(
                id=temporary_id,
                hierarchical_label=label,
                parent_id=parent_id,
                messages=[Message(role=Role.USER, content=text, ordinal=0)],
                is_branch_point=is_branching,
                sync=NodeSync.pending(temporary_id),
            ))
            store.set_current(temporary_id)
            ctx.branching.complete()
        except Exception:
            create_call.cancel()
            raise

        created = await create_call
        node_id = created["id"]
        store.confirm_node(temporary_id, node_id)
        return node_id

    async def _generate_response(self, prompt: str, context: List[Message]) -> Tuple[str, bool]:
        try:
            text = await self.generator.generate_response(prompt, context)
            if not text or not text.strip():
                raise GenerationError("Empty response")
            return text, False
        except Exception as e:
            print(f"[GENERATION] Using fallback response: {e}")
            return self.fallbacks.response(), True

    async def _generate_title(self, prompt: str, response_text: str) -> Tuple[str, bool]:
        try:
            raw = await asyncio.wait_for(
                self.generator.generate_title(prompt, response_text),
                timeout=TITLE_TIMEOUT_SECONDS,
            )
            return validate_title(raw, prompt), False
        except Exception as e:
            print(f"[TITLE] Using fallback title: {e}")
            return self.fallbacks.title(), True

    async def _converge(self, ctx: SessionContext) -> None:
        """Replace the tree store and header list with persisted data."""
        headers = await self.persistence.fetch_conversations()
        nodes = await self.persistence.fetch_conversation_detail(ctx.conversation_id)

        root_node_id = ctx.store.root_node_id
        current_node_id = ctx.store.current_node_id
        ctx.headers = headers
        header = ctx.header()
        if header is not None and (
            header.root_node_id != root_node_id or header.current_node_id != current_node_id
        ):
            print(f"[SEND] Header pointers differ from workspace for {ctx.conversation_id}; using header")
            root_node_id = header.root_node_id
            current_node_id = header.current_node_id

        ctx.store.replace_all(nodes, root_node_id, current_node_id)

    # =========================================================================
    # Rollback
    # =========================================================================

    async def _rollback(self, ctx: SessionContext, before: _PreSendState, persisted: _Persisted) -> None:
        """Restore the pre-send workspace and undo rows this cycle wrote."""
        ctx.store.restore(before.tree)
        ctx.branching = before.branching
        ctx.conversation_id = before.conversation_id

        # A cancelled create_node may still be committing; let it settle first
        if persisted.create_call is not None and not persisted.create_call.done():
            await asyncio.wait({persisted.create_call})

        # Deletes are no-ops for rows that never landed
        try:
            if persisted.conversation_id:
                await self.persistence.delete_conversation(persisted.conversation_id)
                return
            if persisted.node_id:
                await self.persistence.delete_node(persisted.node_id)
            else:
                for node_id, ordinal in reversed(persisted.messages):
                    await self.persistence.delete_message(node_id, ordinal)

            restore: Dict[str, Any] = {}
            if persisted.pointers_moved:
                restore["root_node_id"] = before.tree.root_node_id
                restore["current_node_id"] = before.tree.current_node_id
            if persisted.previous_title is not None:
                restore["title"] = persisted.previous_title
            if restore:
                await self.persistence.update_conversation_state(before.conversation_id, **restore)
        except PersistenceError as e:
            print(f"[SEND] Compensation incomplete, storage may hold partial rows: {e}")
