"""
Document transforms applied while copying legacy team data.

Rewrites user ids through the legacy-to-current uid map, re-points tag
references at the current project and adds readable timestamps.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping

from app.core.migration.models import DataType

TagRefFactory = Callable[[str], Any]


def _is_document_reference(value: Any) -> bool:
    return not isinstance(value, (str, bytes, dict)) and hasattr(value, "path") and hasattr(value, "id")


def _remap_uid(value: Any, uid_map: Mapping[str, str]) -> Any:
    if isinstance(value, str) and value in uid_map:
        return uid_map[value]
    return value


def _remap_tags(tags: List[Any], tag_ref: TagRefFactory) -> List[Any]:
    return [tag_ref(tag.id) if _is_document_reference(tag) else tag for tag in tags]


def _remap_activity_tags(activities: List[Any], tag_ref: TagRefFactory) -> List[Any]:
    updated = []
    for activity in activities:
        if isinstance(activity, dict) and isinstance(activity.get("tags"), list):
            activity = {**activity, "tags": _remap_tags(activity["tags"], tag_ref)}
        updated.append(activity)
    return updated


def _millis_to_datetime(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def add_readable_timestamps(data: Dict[str, Any]) -> Dict[str, Any]:
    """Add created_t / modified_t from millisecond created / modified fields."""
    updated = dict(data)
    for source, target in (("created", "created_t"), ("modified", "modified_t")):
        converted = _millis_to_datetime(updated.get(source))
        if converted is not None:
            updated[target] = converted
    return updated


def transform_document(
    data: Mapping[str, Any],
    data_type: DataType,
    uid_map: Mapping[str, str],
    tag_ref: TagRefFactory,
) -> Dict[str, Any]:
    """
    Transform one legacy document for the current project.

    Args:
        data: Legacy document data
        data_type: Category the document belongs to
        uid_map: Legacy uid -> current uid
        tag_ref: Builds the current project's reference for a tag id

    Returns:
        New document data; the input is not modified
    """
    updated: Dict[str, Any] = dict(data)

    if data_type in (DataType.PLANS, DataType.TEMPLATES):
        if data_type == DataType.PLANS and "uid" in updated:
            updated["uid"] = _remap_uid(updated["uid"], uid_map)
        if isinstance(updated.get("tags"), list):
            updated["tags"] = _remap_tags(updated["tags"], tag_ref)
        if isinstance(updated.get("activities"), list):
            updated["activities"] = _remap_activity_tags(updated["activities"], tag_ref)

    elif data_type == DataType.COACHES:
        if "userId" in updated:
            updated["userId"] = _remap_uid(updated["userId"], uid_map)

    elif data_type == DataType.FILES:
        # File tags are plain strings
        if "uploadedBy" in updated:
            updated["uploadedBy"] = _remap_uid(updated["uploadedBy"], uid_map)

    elif data_type == DataType.ANNOUNCEMENTS:
        if "createdBy" in updated:
            updated["createdBy"] = _remap_uid(updated["createdBy"], uid_map)
        if isinstance(updated.get("readBy"), list):
            updated["readBy"] = [_remap_uid(uid, uid_map) for uid in updated["readBy"]]

    updated = add_readable_timestamps(updated)
    updated.pop("ref", None)
    return updated
