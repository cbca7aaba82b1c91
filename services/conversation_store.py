"""SQLite-based persistence for branching conversations.

Three tables:
- conversations: header rows (title, root/current node pointers)
- nodes: one row per tree node, parent pointer + hierarchical label
- messages: ordered by (node_id, ordinal)

Every failure is raised as PersistenceError so callers can treat storage
problems as a single, actionable class of error.
"""

import functools
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

from config import DATABASE_PATH, DEFAULT_CONVERSATION_TITLE, PENDING_NODE_TITLE
from services.errors import PersistenceError
from services.models import Message, Node, Role, SessionHeader

# Sentinel for "leave this column alone" in partial updates
_UNSET = object()


def _persistence_op(func):
    """Translate sqlite/filesystem failures into PersistenceError."""
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except PersistenceError:
            raise
        except (aiosqlite.Error, OSError) as e:
            print(f"[STORE] {func.__name__} failed: {e}")
            raise PersistenceError(str(e), operation=func.__name__) from e
    return wrapper


class ConversationStore:
    """SQLite-based storage for conversation trees."""

    def __init__(self, db_path: str = DATABASE_PATH):
        self.db_path = db_path

    @asynccontextmanager
    async def _connect(self):
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("PRAGMA foreign_keys = ON")
            yield db

    @_persistence_op
    async def initialize(self):
        """Initialize the database schema."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    root_node_id TEXT,
                    current_node_id TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS nodes (
                    id TEXT PRIMARY KEY,
                    conversation_id TEXT NOT NULL,
                    parent_id TEXT,
                    hierarchical_label TEXT NOT NULL,
                    is_branch_point INTEGER NOT NULL DEFAULT 0,
                    title TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE,
                    FOREIGN KEY (parent_id) REFERENCES nodes(id) ON DELETE CASCADE,
                    UNIQUE (conversation_id, hierarchical_label)
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    node_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    ordinal INTEGER NOT NULL,
                    created_at REAL NOT NULL,
                    FOREIGN KEY (node_id) REFERENCES nodes(id) ON DELETE CASCADE,
                    UNIQUE (node_id, ordinal)
                )
            """)
            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_nodes_conversation
                ON nodes(conversation_id)
            """)
            await db.commit()

    # =========================================================================
    # Conversations
    # =========================================================================

    @_persistence_op
    async def create_conversation(
        self,
        title: str = DEFAULT_CONVERSATION_TITLE,
        conversation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a new conversation header with no nodes.

        The caller may choose the id; otherwise one is generated.
        """
        conversation_id = conversation_id or str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()

        async with self._connect() as db:
            await db.execute(
                """INSERT INTO conversations (id, title, root_node_id, current_node_id, created_at, updated_at)
                   VALUES (?, ?, NULL, NULL, ?, ?)""",
                (conversation_id, title, now, now)
            )
            await db.commit()

        print(f"[STORE] Created conversation {conversation_id}")
        return {"id": conversation_id}

    @_persistence_op
    async def fetch_conversations(self) -> List[SessionHeader]:
        """List all conversation headers, newest first."""
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """SELECT id, title, root_node_id, current_node_id, created_at
                   FROM conversations ORDER BY created_at DESC, rowid DESC"""
            )
            return [
                SessionHeader(
                    id=row["id"],
                    title=row["title"],
                    root_node_id=row["root_node_id"],
                    current_node_id=row["current_node_id"],
                    created_at=row["created_at"],
                )
                async for row in cursor
            ]

    @_persistence_op
    async def fetch_conversation_detail(self, conversation_id: str) -> Dict[str, Node]:
        """Load every node of a conversation, messages and child links included."""
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row

            cursor = await db.execute(
                "SELECT * FROM nodes WHERE conversation_id = ? ORDER BY rowid",
                (conversation_id,)
            )
            node_rows = [dict(row) async for row in cursor]

            cursor = await db.execute(
                """SELECT m.* FROM messages m
                   JOIN nodes n ON n.id = m.node_id
                   WHERE n.conversation_id = ?
                   ORDER BY m.node_id, m.ordinal""",
                (conversation_id,)
            )
            message_rows = [dict(row) async for row in cursor]

        nodes: Dict[str, Node] = {}
        for row in node_rows:
            nodes[row["id"]] = Node(
                id=row["id"],
                hierarchical_label=row["hierarchical_label"],
                parent_id=row["parent_id"],
                title=row["title"],
                timestamp=row["created_at"],
                is_branch_point=bool(row["is_branch_point"]),
            )

        # Rows are in creation order, so child lists come out in sibling order
        for row in node_rows:
            parent_id = row["parent_id"]
            if parent_id is not None and parent_id in nodes:
                nodes[parent_id].child_ids.append(row["id"])

        for row in message_rows:
            node = nodes.get(row["node_id"])
            if node is None:
                continue
            node.messages.append(Message(
                role=Role(row["role"]),
                content=row["content"],
                ordinal=row["ordinal"],
                timestamp=row["created_at"],
            ))

        return nodes

    @_persistence_op
    async def update_conversation_state(
        self,
        conversation_id: str,
        root_node_id: Any = _UNSET,
        current_node_id: Any = _UNSET,
        title: Any = _UNSET,
    ) -> None:
        """Update any of root_node_id, current_node_id and title."""
        updates = []
        params: List[Any] = []

        if root_node_id is not _UNSET:
            updates.append("root_node_id = ?")
            params.append(root_node_id)
        if current_node_id is not _UNSET:
            updates.append("current_node_id = ?")
            params.append(current_node_id)
        if title is not _UNSET:
            updates.append("title = ?")
            params.append(title)

        if not updates:
            return

        updates.append("updated_at = ?")
        params.append(datetime.now(timezone.utc).isoformat())
        params.append(conversation_id)

        async with self._connect() as db:
            cursor = await db.execute(
                f"UPDATE conversations SET {', '.join(updates)} WHERE id = ?",
                params
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise PersistenceError(
                    f"Conversation not found: {conversation_id}",
                    operation="update_conversation_state"
                )

    @_persistence_op
    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation with all its nodes and messages."""
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM conversations WHERE id = ?",
                (conversation_id,)
            )
            await db.commit()
            return cursor.rowcount > 0

    @_persistence_op
    async def delete_all_conversations(self) -> int:
        """Delete every conversation. Returns how many were removed."""
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM conversations")
            await db.commit()
            return cursor.rowcount

    # =========================================================================
    # Nodes
    # =========================================================================

    @_persistence_op
    async def create_node(
        self,
        conversation_id: str,
        parent_id: Optional[str],
        hierarchical_label: str,
        is_branch_point: bool = False,
        title: str = PENDING_NODE_TITLE,
        node_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a node. The parent must belong to the same conversation.

        The caller may choose the id; otherwise one is generated.
        """
        node_id = node_id or str(uuid.uuid4())

        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT 1 FROM conversations WHERE id = ?",
                (conversation_id,)
            )
            if not await cursor.fetchone():
                raise PersistenceError(f"Conversation not found: {conversation_id}", operation="create_node")

            if parent_id is None:
                cursor = await db.execute(
                    "SELECT 1 FROM nodes WHERE conversation_id = ? AND parent_id IS NULL",
                    (conversation_id,)
                )
                if await cursor.fetchone():
                    raise PersistenceError(
                        f"Conversation {conversation_id} already has a root node",
                        operation="create_node"
                    )
            else:
                cursor = await db.execute(
                    "SELECT 1 FROM nodes WHERE id = ? AND conversation_id = ?",
                    (parent_id, conversation_id)
                )
                if not await cursor.fetchone():
                    raise PersistenceError(f"Parent node not found: {parent_id}", operation="create_node")

            await db.execute(
                """INSERT INTO nodes (id, conversation_id, parent_id, hierarchical_label, is_branch_point, title, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (node_id, conversation_id, parent_id, hierarchical_label, int(is_branch_point), title, time.time())
            )
            await db.commit()

        print(f"[STORE] Created node {hierarchical_label} ({node_id})")
        return {"id": node_id}

    @_persistence_op
    async def update_node_title(self, node_id: str, title: str) -> None:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE nodes SET title = ? WHERE id = ?",
                (title, node_id)
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise PersistenceError(f"Node not found: {node_id}", operation="update_node_title")

    @_persistence_op
    async def delete_node(self, node_id: str) -> bool:
        """Delete a node, its messages and its descendants."""
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM nodes WHERE id = ?", (node_id,))
            await db.commit()
            return cursor.rowcount > 0

    # =========================================================================
    # Messages
    # =========================================================================

    @_persistence_op
    async def create_message(self, node_id: str, role: Role, content: str, ordinal: int) -> None:
        """Add a message to a node. (node_id, ordinal) must be unused."""
        async with self._connect() as db:
            cursor = await db.execute("SELECT 1 FROM nodes WHERE id = ?", (node_id,))
            if not await cursor.fetchone():
                raise PersistenceError(f"Node not found: {node_id}", operation="create_message")

            await db.execute(
                """INSERT INTO messages (id, node_id, role, content, ordinal, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (str(uuid.uuid4()), node_id, Role(role).value, content, ordinal, time.time())
            )
            await db.commit()

    @_persistence_op
    async def delete_message(self, node_id: str, ordinal: int) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM messages WHERE node_id = ? AND ordinal = ?",
                (node_id, ordinal)
            )
            await db.commit()
            return cursor.rowcount > 0
