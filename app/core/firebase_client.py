import os
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import auth, credentials, firestore
from fastapi import Header, HTTPException, status

from app.config import (
    FIREBASE_CREDENTIALS_PATH,
    FIREBASE_PROJECT_ID,
    LEGACY_FIREBASE_CREDENTIALS_PATH,
    LEGACY_FIREBASE_PROJECT_ID,
    PROJECT_ROOT,
    logger,
)

LEGACY_APP_NAME = "legacy"

_firebase_app: Optional[firebase_admin.App] = None
_db: Optional[firestore.Client] = None
_legacy_app: Optional[firebase_admin.App] = None
_legacy_db: Optional[firestore.Client] = None


def _resolve_credentials_path(credentials_path: str) -> str:
    """Resolve a credentials file path relative to the project root or cwd."""
    if os.path.isabs(credentials_path):
        if not os.path.exists(credentials_path):
            raise FileNotFoundError(f"Firebase credentials file not found at: {credentials_path}")
        return credentials_path

    possible_paths = [
        os.path.join(str(PROJECT_ROOT), credentials_path),
        os.path.join(str(PROJECT_ROOT), os.path.basename(credentials_path)),
        credentials_path,
    ]
    for path in possible_paths:
        if os.path.exists(path):
            logger.debug("Found Firebase credentials at: %s", path)
            return os.path.abspath(path)

    raise FileNotFoundError(
        f"Firebase credentials file not found. Tried: {', '.join(possible_paths)}. "
        f"Set the credentials path to an absolute path or ensure the file exists."
    )


def _init_firebase() -> None:
    global _firebase_app, _db
    if _firebase_app is not None and _db is not None:
        return
    if not FIREBASE_PROJECT_ID or not FIREBASE_CREDENTIALS_PATH:
        raise RuntimeError("FIREBASE_PROJECT_ID and FIREBASE_CREDENTIALS_PATH must be configured")

    cred = credentials.Certificate(_resolve_credentials_path(FIREBASE_CREDENTIALS_PATH))
    _firebase_app = firebase_admin.initialize_app(cred, {"projectId": FIREBASE_PROJECT_ID})
    _db = firestore.client(app=_firebase_app)
    logger.info("Firebase initialized for project %s", FIREBASE_PROJECT_ID)


def _init_legacy_firebase() -> None:
    global _legacy_app, _legacy_db
    if _legacy_app is not None and _legacy_db is not None:
        return
    if not LEGACY_FIREBASE_PROJECT_ID or not LEGACY_FIREBASE_CREDENTIALS_PATH:
        raise RuntimeError(
            "LEGACY_FIREBASE_PROJECT_ID and LEGACY_FIREBASE_CREDENTIALS_PATH must be configured"
        )

    cred = credentials.Certificate(_resolve_credentials_path(LEGACY_FIREBASE_CREDENTIALS_PATH))
    _legacy_app = firebase_admin.initialize_app(
        cred,
        {"projectId": LEGACY_FIREBASE_PROJECT_ID},
        name=LEGACY_APP_NAME,
    )
    _legacy_db = firestore.client(app=_legacy_app)
    logger.info("Legacy Firebase initialized for project %s", LEGACY_FIREBASE_PROJECT_ID)


def get_firestore_client() -> firestore.Client:
    if _db is None:
        _init_firebase()
    assert _db is not None
    return _db


def get_legacy_firestore_client() -> firestore.Client:
    """Firestore client for the legacy project data is re-migrated from."""
    if _legacy_db is None:
        _init_legacy_firebase()
    assert _legacy_db is not None
    return _legacy_db


def verify_id_token(id_token: str) -> Dict[str, Any]:
    _init_firebase()
    try:
        # Allow 5 minutes of clock skew for dev environments
        return auth.verify_id_token(id_token, app=_firebase_app, clock_skew_seconds=300)
    except Exception as exc:
        logger.warning("Failed to verify Firebase ID token: %s", exc)
        raise


def decode_bearer_token(token: str) -> Dict[str, Any]:
    """Verify a raw ID token and return the caller identity."""
    decoded = verify_id_token(token)
    uid = decoded.get("uid")
    if not uid:
        raise ValueError("Invalid token payload")
    return {"uid": uid, "email": decoded.get("email")}


async def get_current_user(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization header")
    token = authorization.split(" ", 1)[1]
    try:
        return decode_bearer_token(token)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
