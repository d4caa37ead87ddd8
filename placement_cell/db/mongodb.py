"""
MongoDB Connection Utility

MongoDB stores everything the exam engine touches:
- Exam definitions (sections, questions, answer keys, registrations)
- Exam attempts (one document per student attempt, also the result record)
- Student profiles (eligibility data)
- Audit trail (activity, error and exam logs)

WHY MongoDB for these?
- Exams are naturally nested documents: exam -> sections -> questions
- Answers are free-form (string, number, list, selection map)
- Atomic single-document updates give us the attempt invariants
"""
import logging

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from placement_cell.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri)
    return _client


def get_mongo_db() -> Database:
    """Get the application database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def get_collection(name: str) -> Collection:
    """
    Get a specific collection.
    Use the COLLECTIONS constants below for the name.
    """
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except PyMongoError as e:
        logger.error("MongoDB connection failed: %s", e)
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "exams": "exams",
    "attempts": "exam_attempts",
    "students": "students",
    "activity_logs": "activity_logs",
    "error_logs": "error_logs",
    "exam_logs": "exam_logs",
}


def init_mongo_indexes():
    """
    Create indexes for better query performance.
    Call this once during app startup.
    """
    db = get_mongo_db()

    exams = db[COLLECTIONS["exams"]]
    exams.create_index([("status", ASCENDING), ("scheduled_for", ASCENDING)])
    exams.create_index([("created_by", ASCENDING), ("status", ASCENDING)])
    exams.create_index("registered_students.student_id")

    attempts = db[COLLECTIONS["attempts"]]
    # At most one live attempt per (exam, student). The start path relies on
    # this to turn a concurrent double-start into a DuplicateKeyError.
    attempts.create_index(
        [("exam_id", ASCENDING), ("student_id", ASCENDING)],
        unique=True,
        partialFilterExpression={"status": "InProgress"},
        name="one_live_attempt_per_student"
    )
    attempts.create_index([
        ("exam_id", ASCENDING),
        ("student_id", ASCENDING),
        ("end_time", DESCENDING)
    ])
    attempts.create_index([("student_id", ASCENDING), ("status", ASCENDING)])

    db[COLLECTIONS["activity_logs"]].create_index([("timestamp", DESCENDING)])
    db[COLLECTIONS["error_logs"]].create_index([("timestamp", DESCENDING)])
    db[COLLECTIONS["exam_logs"]].create_index([
        ("exam_id", ASCENDING),
        ("student_id", ASCENDING),
        ("action", ASCENDING)
    ])

    logger.info("MongoDB indexes created successfully")
