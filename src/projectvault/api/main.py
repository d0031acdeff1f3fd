# Project Vault - FastAPI Backend
#
# Local HTTP API over the vault: project listing, search, and
# password-protected export/import of whole projects.

import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_settings
from ..core import EventSeverity, EventType, get_audit_logger
from .security import get_session_token, initialize_session_token
from .transfer_routes import router as transfer_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Project Vault API",
    description="Project infrastructure and credential vault",
    version=__version__,
)

# Local origins only
_allowed_origins = [
    "http://localhost:3000", "http://127.0.0.1:3000",
    "http://localhost:8000", "http://127.0.0.1:8000",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(transfer_router)


@app.on_event("startup")
async def startup_event():
    """Generate the session token for this API instance."""
    initialize_session_token(get_settings().api_token)
    logger.info("Project Vault API started")


@app.on_event("shutdown")
async def shutdown_event():
    """Close the shared store."""
    from . import transfer_routes

    if transfer_routes._store is not None:
        transfer_routes._store.close()
        transfer_routes._store = None


@app.get("/api/session")
async def get_session():
    """
    Get the session token.

    Unprotected: a local client calls it once and sends the token in the
    X-Session-Token header afterwards. The token changes on every restart
    unless PROJECTVAULT_API_TOKEN pins it.
    """
    return {"session_token": get_session_token()}


@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Project Vault API",
        "version": __version__,
        "status": "operational",
    }


def start_api_server(host: str = "127.0.0.1", port: int = 8000):
    """
    Start the FastAPI server.

    Args:
        host: Host to bind to (default: localhost only)
        port: Port to listen on
    """
    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="Project Vault API starting",
        details={"version": __version__, "host": host, "port": port},
    )
    uvicorn.run(app, host=host, port=port, log_level="info")
