# bugtracker/serializers.py
from datetime import datetime, timezone
from bson import ObjectId
from bson.errors import InvalidId


# -----------------------------
# Helper: Convert ObjectId/datetime to JSON-ready values (recursive for nested dicts/lists)
# -----------------------------
def serialize_doc(doc):
    if doc is None:
        return None

    def serialize(obj):
        if isinstance(obj, dict):
            return {k: serialize(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [serialize(i) for i in obj]
        elif isinstance(obj, ObjectId):
            return str(obj)
        elif isinstance(obj, datetime):
            # Mongo hands datetimes back naive; they are stored as UTC
            if obj.tzinfo is None:
                obj = obj.replace(tzinfo=timezone.utc)
            return obj.isoformat()
        else:
            return obj

    return serialize(doc)


def parse_object_id(value) -> ObjectId | None:
    """Return value as an ObjectId, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    # ObjectId(None) would mint a fresh id
    if value is None:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def public_user(user: dict) -> dict:
    """Strip credential material from a user document."""
    return {k: v for k, v in user.items() if k != "password"}
