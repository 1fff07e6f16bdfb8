from datetime import datetime
from bson import ObjectId


def serialize(value):
    """
    Converts a Mongo document (or any nested value) into something jsonify can emit.
    ObjectIds become strings and datetimes become ISO-8601 strings; `_id` keeps its key.
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    return value
