"""
WebSocket Message Utilities

Message envelopes for the re-migration progress stream.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import WebSocket

from app.core.migration.models import MigrationProgress, MigrationResult
from app.schemas import BaseSchema, WSDoneMessage, WSErrorMessage, WSProgressMessage

logger = logging.getLogger(__name__)


# WebSocket message types
WS_MSG_TYPE_PROGRESS = "progress"
WS_MSG_TYPE_ERROR = "error"
WS_MSG_TYPE_DONE = "done"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _send(websocket: WebSocket, message: BaseSchema) -> bool:
    # The operator may close the page mid-run; the run itself carries on.
    try:
        await websocket.send_json(message.model_dump())
        return True
    except Exception as e:
        logger.warning("Failed to send %s message via WebSocket: %s", getattr(message, "type", "?"), e)
        return False


async def send_progress(websocket: WebSocket, progress: MigrationProgress) -> bool:
    """
    Send a progress update after a category finished copying.

    Args:
        websocket: WebSocket connection
        progress: Snapshot taken after the category completed
    """
    return await _send(websocket, WSProgressMessage(
        type=WS_MSG_TYPE_PROGRESS,
        step=progress.step,
        current=progress.current,
        total=progress.total,
        itemName=progress.item_name,
        percent=progress.percent,
    ))


async def send_error(
    websocket: WebSocket,
    message: str,
    details: Optional[str] = None,
) -> bool:
    """
    Send an error message via WebSocket.

    Args:
        websocket: WebSocket connection
        message: Error message shown to the operator
        details: Optional extra context
    """
    return await _send(websocket, WSErrorMessage(
        type=WS_MSG_TYPE_ERROR,
        message=message,
        details=details,
        timestamp=_timestamp(),
    ))


async def send_done(websocket: WebSocket, result: MigrationResult) -> bool:
    """Send the terminal result of a successful run."""
    return await _send(websocket, WSDoneMessage(
        type=WS_MSG_TYPE_DONE,
        migratedCount=result.migrated_count,
        categories=[dt.value for dt in result.categories_copied],
        documentsCopied=result.documents_copied,
        timestamp=_timestamp(),
    ))
