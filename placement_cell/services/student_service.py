"""
Student profile store - the `students` collection.

Only the fields exam eligibility needs live here; the document _id is the
student id carried in the portal's JWT.
"""

from typing import Optional

from pymongo import ReturnDocument
from pymongo.collection import Collection

from placement_cell.db.mongodb import get_collection, COLLECTIONS
from placement_cell.utils.dates import utcnow

PROFILE_FIELDS = (
    "name", "email", "department", "branch", "semester",
    "cgpa", "percentage", "backlogs", "batch",
)


def profile_to_dict(doc: dict) -> dict:
    out = {field: doc.get(field) for field in PROFILE_FIELDS}
    out["student_id"] = str(doc["_id"])
    return out


class StudentService:
    """Handles student profile documents."""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["students"])

    def get(self, student_id: str) -> Optional[dict]:
        doc = self.collection.find_one({"_id": student_id})
        return profile_to_dict(doc) if doc else None

    def upsert_profile(self, student_id: str, fields: dict) -> dict:
        """Create or update a profile. Only provided (non-None) fields are written."""
        updates = {k: v for k, v in fields.items() if k in PROFILE_FIELDS and v is not None}
        updates["updated_at"] = utcnow()
        doc = self.collection.find_one_and_update(
            {"_id": student_id},
            {"$set": updates, "$setOnInsert": {"created_at": utcnow()}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return profile_to_dict(doc)


def get_student_service() -> StudentService:
    """Get student service instance."""
    return StudentService()
