"""
Audit Log Service - activity, error and exam event logs in MongoDB.

These are secondary writes. A failure here is logged and swallowed: it
must never fail the request that triggered it.
"""

import logging
import traceback
from typing import Any, Dict, Optional

from pymongo.collection import Collection

from placement_cell.core.config import get_settings
from placement_cell.db.mongodb import get_collection, COLLECTIONS
from placement_cell.utils.dates import utcnow

logger = logging.getLogger(__name__)


class AuditLogService:
    """
    Fire-and-forget audit sink.

    activity_logs - who did what (created exam, started exam, ...)
    error_logs    - failures worth keeping beyond the process log
    exam_logs     - per exam/student events, used for exam statistics
    """

    def __init__(self):
        self.activity: Collection = get_collection(COLLECTIONS["activity_logs"])
        self.errors: Collection = get_collection(COLLECTIONS["error_logs"])
        self.exam_events: Collection = get_collection(COLLECTIONS["exam_logs"])

    def _insert(self, collection: Collection, doc: dict) -> bool:
        try:
            collection.insert_one(doc)
            return True
        except Exception as e:
            logger.warning("Failed to write %s entry: %s", collection.name, e)
            return False

    def log_activity(
        self,
        action: str,
        details: str,
        user_id: Optional[str] = None,
        user_type: str = "System",
        resource: Optional[str] = None,
        resource_id: Optional[str] = None,
        status: str = "info"
    ) -> bool:
        return self._insert(self.activity, {
            "action": action,
            "details": details,
            "user_id": user_id,
            "user_type": user_type,
            "resource": resource,
            "resource_id": resource_id,
            "status": status,
            "timestamp": utcnow(),
        })

    def log_error(
        self,
        message: str,
        error: Optional[BaseException] = None,
        user_id: Optional[str] = None,
        user_type: str = "Unknown",
        path: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        doc = {
            "error_message": message,
            "user_id": user_id,
            "user_type": user_type,
            "path": path,
            "metadata": metadata or {},
            "timestamp": utcnow(),
        }
        if error is not None and get_settings().debug:
            doc["error_stack"] = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return self._insert(self.errors, doc)

    def log_exam_event(
        self,
        exam_id: str,
        student_id: str,
        action: str,
        metadata: Optional[Dict[str, Any]] = None,
        error: Optional[BaseException] = None
    ) -> bool:
        doc = {
            "exam_id": exam_id,
            "student_id": student_id,
            "action": action,
            "metadata": metadata or {},
            "timestamp": utcnow(),
        }
        if error is not None:
            doc["error"] = {"message": str(error)}
        return self._insert(self.exam_events, doc)

    def exam_stats(self, exam_id: str) -> Dict[str, int]:
        """Event counts per action for one exam, e.g. {"start": 40, "submit": 37}."""
        pipeline = [
            {"$match": {"exam_id": exam_id}},
            {"$group": {"_id": "$action", "count": {"$sum": 1}}},
        ]
        return {row["_id"]: row["count"] for row in self.exam_events.aggregate(pipeline)}

    def delete_exam_events(self, exam_id: str) -> int:
        return self.exam_events.delete_many({"exam_id": exam_id}).deleted_count


def get_audit_log_service() -> AuditLogService:
    """Get audit log service instance."""
    return AuditLogService()
