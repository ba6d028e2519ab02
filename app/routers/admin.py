from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError as PydanticValidationError

from app.config import MIGRATION_ENABLED, logger
from app.core import saas
from app.core.firebase_client import decode_bearer_token, get_current_user
from app.core.migration import MigrationInProgressError, MigrationProgress, MigrationResult, default_selection
from app.core.migration.service import create_tracker, list_data_types
from app.core.security import log_security_event
from app.core.websocket_messages import send_done, send_error, send_progress
from app.schemas import (
    DataTypeInfo,
    DataTypesResponse,
    MigrationRequest,
    MigrationResponse,
    WSMigrationRequest,
)

router = APIRouter(prefix="/api/admin", tags=["Admin"])
ws_router = APIRouter(tags=["Admin"])

MIGRATION_DISABLED_DETAIL = "Migration not enabled or legacy database not available"


def require_superadmin(user: Dict[str, Any]) -> str:
    """Dependency to require superadmin role."""
    uid = user["uid"]
    if not saas.is_super_admin(uid):
        log_security_event(
            "unauthorized_admin_access",
            user_id=uid,
            details={"endpoint": "admin_migration"}
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return uid


def _to_response(result: MigrationResult) -> MigrationResponse:
    return MigrationResponse(
        state=result.state.value,
        success=result.succeeded,
        target_uid=result.target_uid,
        legacy_uid=result.legacy_uid,
        migrated_count=result.migrated_count,
        categories=[dt.value for dt in result.categories_copied],
        documents_copied=result.documents_copied,
        error=result.error,
    )


# -----------------------------------------------------------------------------
# Re-migration Endpoints
# -----------------------------------------------------------------------------

@router.get("/migration/data-types", response_model=DataTypesResponse)
async def get_migration_data_types(
    user: Dict[str, Any] = Depends(get_current_user),
) -> DataTypesResponse:
    """Data categories available for re-migration (superadmin only)."""
    require_superadmin(user)
    return DataTypesResponse(
        data_types=[DataTypeInfo(**item) for item in list_data_types()],
        default_selection=[dt.value for dt in default_selection()],
    )


@router.post("/migration", response_model=MigrationResponse)
async def run_migration(
    payload: MigrationRequest,
    user: Dict[str, Any] = Depends(get_current_user),
) -> MigrationResponse:
    """
    Re-migrate a user's team data and wait for the outcome (superadmin only).

    Validation and copy failures come back as a failed result rather than an
    HTTP error so the operator sees which categories were already copied.
    """
    uid = require_superadmin(user)
    if not MIGRATION_ENABLED:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=MIGRATION_DISABLED_DETAIL)

    logger.info("Re-migration of %s requested by %s", payload.target_uid, uid)
    tracker = create_tracker()
    try:
        result = await tracker.run(payload.email, payload.target_uid, payload.data_types)
    except MigrationInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _to_response(result)


@ws_router.websocket("/ws/admin/migration")
async def migration_websocket(websocket: WebSocket):
    """Re-migrate via WebSocket with a progress message per copied category."""
    await websocket.accept()
    uid = None

    try:
        raw_data = await websocket.receive_json()

        try:
            request_data = WSMigrationRequest.model_validate(raw_data)
        except PydanticValidationError as e:
            errors = e.errors()
            error_msg = "; ".join(
                f"{err['loc'][0] if err['loc'] else 'request'}: {err['msg']}" for err in errors[:3]
            )
            await send_error(websocket, f"Invalid request: {error_msg}")
            log_security_event(
                "ws_validation_failed",
                request=websocket,
                details={"errors": str(errors)[:500]}
            )
            return

        try:
            identity = decode_bearer_token(request_data.token)
        except Exception as e:
            logger.warning("WebSocket auth failed: %s", e)
            await send_error(websocket, "Authentication failed")
            log_security_event("ws_auth_failed", request=websocket)
            return

        uid = identity["uid"]
        if not saas.is_super_admin(uid):
            log_security_event(
                "unauthorized_admin_access",
                request=websocket,
                user_id=uid,
                details={"endpoint": "ws_admin_migration"}
            )
            await send_error(websocket, "Not authorized")
            return

        if not MIGRATION_ENABLED:
            await send_error(websocket, MIGRATION_DISABLED_DETAIL)
            return

        logger.info("Re-migration of %s requested by %s over WebSocket", request_data.target_uid, uid)

        async def on_progress(progress: MigrationProgress) -> None:
            await send_progress(websocket, progress)

        tracker = create_tracker()
        result = await tracker.run(
            request_data.email,
            request_data.target_uid,
            request_data.data_types,
            on_progress=on_progress,
        )

        if result.succeeded:
            await send_done(websocket, result)
        else:
            await send_error(websocket, result.error or "Re-migration failed")

    except WebSocketDisconnect:
        logger.info("Migration WebSocket disconnected (user=%s)", uid)
    except Exception as e:
        logger.error("Migration WebSocket failed (user=%s): %s", uid, e, exc_info=True)
        await send_error(websocket, "Re-migration failed", details=e.__class__.__name__)
