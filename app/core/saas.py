from datetime import datetime, timezone
from typing import Any, Dict, Optional

from google.cloud.firestore_v1 import FieldFilter
from pydantic import ValidationError

from app.config import logger
from app.core.entitlements.models import SubscriptionState, SubscriptionTier
from app.core.entitlements.subscription import effective_tier, tier_to_entitlement
from app.core.firebase_client import get_firestore_client

SUPERADMIN_ROLE = "superadmin"


def get_or_create_user(uid: str, email: Optional[str] = None) -> Dict[str, Any]:
    db = get_firestore_client()
    ref = db.collection("users").document(uid)
    snap = ref.get()
    if not snap.exists:
        data: Dict[str, Any] = {
            "uid": uid,
            "email": email,
            "subscription": SubscriptionState().model_dump(mode="json"),
            "created_at": datetime.now(timezone.utc),
        }
        ref.set(data)
        return data
    data = snap.to_dict() or {}
    if email and not data.get("email"):
        ref.update({"email": email})
        data["email"] = email
    return data


def get_user(uid: str) -> Optional[Dict[str, Any]]:
    db = get_firestore_client()
    snap = db.collection("users").document(uid).get()
    if not snap.exists:
        return None
    data = snap.to_dict() or {}
    data["uid"] = snap.id
    return data


def find_user_id_by_email(email: str) -> Optional[str]:
    """Current-project uid for an email, or None."""
    if not email:
        return None
    db = get_firestore_client()
    query = db.collection("users").where(filter=FieldFilter("email", "==", email)).limit(1)
    for doc in query.stream():
        return doc.id
    return None


def get_user_subscription(uid: str) -> SubscriptionState:
    """
    Subscription record stored on the user document.

    Missing or malformed records read as an inactive free subscription.
    """
    user = get_user(uid)
    raw = (user or {}).get("subscription") or {}
    try:
        return SubscriptionState.model_validate(raw)
    except ValidationError as e:
        logger.warning("Malformed subscription on user %s, treating as free: %s", uid, e)
        return SubscriptionState()


def get_user_tier(uid: str) -> SubscriptionTier:
    return effective_tier(get_user_subscription(uid))


def set_user_subscription(uid: str, state: SubscriptionState) -> SubscriptionState:
    """Record a subscription on the user document (merge)."""
    state = state.model_copy(
        update={
            "entitlement": tier_to_entitlement(state.tier),
            "last_verified": datetime.now(timezone.utc),
        }
    )
    db = get_firestore_client()
    ref = db.collection("users").document(uid)
    ref.set({"subscription": state.model_dump(mode="json")}, merge=True)
    logger.info("Subscription for user %s set to %s (active=%s)", uid, state.tier.value, state.is_active)
    return state


def is_super_admin(uid: str) -> bool:
    """Return True if the user has the superadmin role.

    Role is stored on the user document as `role = "superadmin"` and can be
    managed via the Firestore console.
    """
    db = get_firestore_client()
    doc = db.collection("users").document(uid).get()
    if not doc.exists:
        return False
    data = doc.to_dict() or {}
    return data.get("role") == SUPERADMIN_ROLE
