"""Conversation management endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from api.deps import get_session_context, get_session_manager
from services.errors import PersistenceError
from services.session_context import SessionContext
from services.session_manager import SessionManager

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


def persistence_http_error(e: PersistenceError) -> HTTPException:
    """Storage failures block the user with a distinct, actionable error."""
    return HTTPException(
        status_code=503,
        detail={
            "error": "persistence",
            "message": str(e),
            "operation": e.operation,
            "phase": e.phase,
        },
    )


def workspace_snapshot(manager: SessionManager, ctx: SessionContext) -> dict:
    data = ctx.to_dict()
    data["title"] = manager.current_title(ctx)
    return data


@router.get("")
async def list_conversations(
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """List all conversation headers."""
    try:
        headers = await manager.refresh_sessions(ctx)
    except PersistenceError as e:
        raise persistence_http_error(e)
    return {
        "conversations": [h.to_dict() for h in headers],
        "active_conversation_id": ctx.conversation_id,
    }


@router.post("/new")
async def new_conversation(
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """Start a fresh workspace. The conversation is created on the first send."""
    await manager.new_session(ctx)
    return workspace_snapshot(manager, ctx)


@router.get("/active")
async def get_active_conversation(
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """Get the active workspace: nodes, pointers and branching state."""
    return workspace_snapshot(manager, ctx)


@router.post("/{conversation_id}/open")
async def open_conversation(
    conversation_id: str,
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """Load a conversation into the workspace, discarding the previous one."""
    try:
        await manager.open_session(ctx, conversation_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except PersistenceError as e:
        raise persistence_http_error(e)
    return workspace_snapshot(manager, ctx)


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """Delete a conversation."""
    try:
        success = await manager.delete_session(ctx, conversation_id)
    except PersistenceError as e:
        raise persistence_http_error(e)
    if not success:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"success": True}


@router.delete("")
async def clear_conversations(
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """Delete every conversation."""
    try:
        count = await manager.clear_all(ctx)
    except PersistenceError as e:
        raise persistence_http_error(e)
    return {"success": True, "deleted": count}
