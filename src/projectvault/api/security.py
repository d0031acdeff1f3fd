# Project Vault - API session token
#
# Every route that reads or writes vault contents requires the token in the
# X-Session-Token header, so other local processes cannot pull credentials
# or archives out of the vault over HTTP. The token is random per start
# unless PROJECTVAULT_API_TOKEN pins it for scripted clients.

import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-Session-Token"

_SESSION_TOKEN: Optional[str] = None


def initialize_session_token(token: Optional[str] = None) -> str:
    """Set the session token for this API instance.

    Args:
        token: Pinned token from the settings. When None a random 256-bit
            token is generated.

    Returns:
        The active token.
    """
    global _SESSION_TOKEN
    if token is None:
        token = secrets.token_urlsafe(32)
    else:
        logger.info("Using the configured API token")
    _SESSION_TOKEN = token
    return token


def get_session_token() -> str:
    """
    Get the current session token.

    Raises:
        RuntimeError: If the token hasn't been initialized
    """
    if _SESSION_TOKEN is None:
        raise RuntimeError("Session token not initialized. Call initialize_session_token() first.")
    return _SESSION_TOKEN


async def verify_session_token(
    x_session_token: Optional[str] = Header(None, alias=TOKEN_HEADER),
) -> str:
    """FastAPI dependency guarding every vault route.

    Raises:
        HTTPException: 503 before startup, 401 if the token is missing or wrong
    """
    if _SESSION_TOKEN is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session token not initialized"
        )

    if not x_session_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {TOKEN_HEADER} header"
        )

    if not secrets.compare_digest(x_session_token.encode(), _SESSION_TOKEN.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token"
        )

    return x_session_token
