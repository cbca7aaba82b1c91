"""FastAPI application entry point for Branch Chat."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from api import chat_router, conversations_router
from api.deps import get_session_manager, initialize_all, shutdown_all
from services.session_context import SessionContext

# Load environment variables
load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: Initialize all services via DI
    await initialize_all()

    # The single active workspace, owned by the app and passed to each route
    app.state.session_context = SessionContext()
    await get_session_manager().refresh_sessions(app.state.session_context)

    yield

    # Shutdown: abandon any in-flight send and drop services
    await get_session_manager().new_session(app.state.session_context)
    shutdown_all()


# Create FastAPI app
app = FastAPI(
    title="Branch Chat",
    description="Branching conversations with an AI assistant",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
app.include_router(chat_router)
app.include_router(conversations_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=8079, reload=True)
