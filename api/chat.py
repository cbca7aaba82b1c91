"""Chat endpoints: sending, cancelling, branching and navigation."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from api.conversations import persistence_http_error, workspace_snapshot
from api.deps import get_session_context, get_session_manager
from services.errors import BrokenChainError, PersistenceError, SendCancelledError, SendInProgressError
from services.session_context import SessionContext
from services.session_manager import SessionManager

router = APIRouter(prefix="/api/chat", tags=["chat"])


class SendRequest(BaseModel):
    """Request body for the send endpoint."""
    text: str


class NodeRequest(BaseModel):
    """Request naming a node of the active conversation."""
    node_id: str


@router.post("/send")
async def send_message(
    request: SendRequest,
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """Send a user message and wait for the cycle to converge.

    Continues the current node, or creates a child of the designated
    branch point when branching is pending.
    """
    try:
        result = await manager.send(ctx, request.text)
    except SendInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SendCancelledError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except BrokenChainError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "error": "broken_chain",
                "message": str(e),
                "node_id": e.node_id,
                "missing_parent_id": e.missing_parent_id,
            },
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise persistence_http_error(e)

    return {
        "result": result.to_dict(),
        "workspace": workspace_snapshot(manager, ctx),
    }


@router.post("/cancel")
async def cancel_send(
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """Cancel the in-flight send; its partial state is rolled back."""
    return {"cancelled": manager.cancel_send(ctx)}


@router.get("/transcript")
async def get_transcript(
    node_id: Optional[str] = Query(None, description="Node to resolve; defaults to the current node"),
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """Get the linear message history leading to a node."""
    path = manager.transcript(ctx, node_id)
    return {
        "status": path.status.value,
        "missing_parent_id": path.missing_parent_id,
        "path": [
            {"id": n.id, "hierarchical_label": n.hierarchical_label, "title": n.title}
            for n in path.nodes
        ],
        "messages": [m.to_dict() for m in path.messages()],
    }


@router.post("/branch")
async def designate_branch(
    request: NodeRequest,
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """Designate a node as the parent of the next message's node."""
    try:
        manager.designate_branch(ctx, request.node_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Node not found")
    except SendInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return workspace_snapshot(manager, ctx)


@router.post("/branch/cancel")
async def cancel_branch(
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """Stop branching; the next message continues the current node."""
    manager.cancel_branch(ctx)
    return workspace_snapshot(manager, ctx)


@router.post("/select")
async def select_node(
    request: NodeRequest,
    manager: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session_context),
):
    """Make a node current and continue linearly from it."""
    try:
        manager.select_node(ctx, request.node_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Node not found")
    except SendInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return workspace_snapshot(manager, ctx)
