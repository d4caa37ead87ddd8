"""
Attempt Store - the `exam_attempts` collection.

One document per (exam, student) attempt. It is both the live session
record and, once terminal, the result record queried by result pages.

Every write to an attempt is conditional on status == "InProgress", so a
terminal attempt can never be modified through this service and a double
submit loses the race instead of re-scoring.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from placement_cell.core.errors import PersistenceError
from placement_cell.db.mongodb import get_collection, COLLECTIONS
from placement_cell.schemas.schemas import AttemptStatus

logger = logging.getLogger(__name__)

IN_PROGRESS = AttemptStatus.in_progress.value
FINISHED_STATUSES = [AttemptStatus.completed.value, AttemptStatus.timed_out.value]


class AttemptService:
    """
    Handles exam attempt storage.
    exam_id and student_id are stored as strings.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["attempts"])

    def find_latest(self, exam_id: str, student_id: str) -> Optional[dict]:
        """Most recently started attempt, whatever its status."""
        return self.collection.find_one(
            {"exam_id": exam_id, "student_id": student_id},
            sort=[("start_time", DESCENDING)]
        )

    def find_in_progress(self, exam_id: str, student_id: str) -> Optional[dict]:
        return self.collection.find_one(
            {"exam_id": exam_id, "student_id": student_id, "status": IN_PROGRESS}
        )

    def find_or_create_in_progress(
        self,
        exam_id: str,
        student_id: str,
        now: datetime,
        exam_title: str = None
    ) -> Tuple[dict, bool]:
        """
        Atomically return the live attempt, creating it if there is none.

        Returns:
            (attempt, created)

        Two concurrent calls cannot both insert: the upsert is a single
        server-side operation and the partial unique index on
        (exam_id, student_id, status=InProgress) rejects a second insert,
        in which case the winner's document is returned.
        """
        query = {"exam_id": exam_id, "student_id": student_id, "status": IN_PROGRESS}
        attempt_id = ObjectId()
        try:
            doc = self.collection.find_one_and_update(
                query,
                {"$setOnInsert": {
                    "_id": attempt_id,
                    "exam_title": exam_title,
                    "start_time": now,
                    "end_time": None,
                    "responses": [],
                    "score": 0,
                    "max_score": 0,
                    "percentage_score": 0,
                    "passed": False,
                }},
                upsert=True,
                return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            logger.info("Concurrent start for exam %s student %s, reusing live attempt", exam_id, student_id)
            doc = self.collection.find_one(query)
            if doc is None:
                raise PersistenceError("Could not start the exam. Please try again.")
            return doc, False

        return doc, doc["_id"] == attempt_id

    def save_responses(self, attempt_id: ObjectId, responses: List[dict], now: datetime) -> bool:
        result = self.collection.update_one(
            {"_id": attempt_id, "status": IN_PROGRESS},
            {"$set": {"responses": responses, "last_saved_at": now}}
        )
        return result.modified_count > 0

    def finish(self, attempt_id: ObjectId, status: AttemptStatus, fields: dict) -> bool:
        """
        Move a live attempt to a terminal status with its final score fields.
        Returns False when the attempt was no longer InProgress.
        """
        updates = dict(fields)
        updates["status"] = status.value
        result = self.collection.update_one(
            {"_id": attempt_id, "status": IN_PROGRESS},
            {"$set": updates}
        )
        return result.modified_count > 0

    def find_latest_result(self, exam_id: str, student_id: str) -> Optional[dict]:
        """Most recent finished (Completed or TimedOut) attempt."""
        return self.collection.find_one(
            {"exam_id": exam_id, "student_id": student_id, "status": {"$in": FINISHED_STATUSES}},
            sort=[("end_time", DESCENDING)]
        )

    def list_for_student(self, student_id: str) -> List[dict]:
        cursor = self.collection.find(
            {"student_id": student_id, "status": {"$in": FINISHED_STATUSES}}
        ).sort("end_time", DESCENDING)
        return list(cursor)

    def list_for_exam(self, exam_id: str) -> List[dict]:
        cursor = self.collection.find(
            {"exam_id": exam_id, "status": {"$in": FINISHED_STATUSES}}
        ).sort("percentage_score", DESCENDING)
        return list(cursor)

    def delete_for_exam(self, exam_id: str) -> int:
        result = self.collection.delete_many({"exam_id": exam_id})
        return result.deleted_count


def attempt_summary(attempt: dict) -> dict:
    return {
        "attempt_id": str(attempt["_id"]),
        "exam_id": attempt.get("exam_id"),
        "exam_title": attempt.get("exam_title"),
        "student_id": attempt.get("student_id"),
        "status": attempt.get("status"),
        "score": attempt.get("score") or 0,
        "max_score": attempt.get("max_score") or 0,
        "percentage": round(attempt.get("percentage_score") or 0, 2),
        "passed": bool(attempt.get("passed")),
        "start_time": attempt.get("start_time"),
        "end_time": attempt.get("end_time"),
    }


def get_attempt_service() -> AttemptService:
    """Get attempt service instance."""
    return AttemptService()
