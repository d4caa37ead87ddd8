"""
Helpers for moving MongoDB documents across the API boundary.
"""

import re

from bson import ObjectId
from bson.errors import InvalidId

from placement_cell.core.errors import NotFoundError

# Clients sometimes send ids copied from the mongo shell: ObjectId("...")
_OBJECT_ID_WRAPPER = re.compile(r"ObjectId\(\s*['\"]?([0-9a-fA-F]+)['\"]?\s*\)", re.IGNORECASE)


def clean_id(raw: str) -> str:
    """Strip ObjectId(...) wrappers, quotes and whitespace from an id."""
    value = str(raw or "")
    match = _OBJECT_ID_WRAPPER.search(value)
    if match:
        value = match.group(1)
    return value.replace('"', "").replace("'", "").strip()


def parse_object_id(raw: str, entity: str = "Exam") -> ObjectId:
    """Convert a client-supplied id to ObjectId. Malformed ids are reported as not found."""
    value = clean_id(raw)
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{entity} not found")


def new_id() -> str:
    return str(ObjectId())
