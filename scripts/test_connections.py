#!/usr/bin/env python3
"""
Connection Test Script

Run this to verify the MongoDB connection and indexes.
Usage: python scripts/test_connections.py
"""
import sys
sys.path.insert(0, '.')

from placement_cell.db.mongodb import test_mongo_connection, init_mongo_indexes, get_mongo_db, COLLECTIONS
from placement_cell.core.config import get_settings


def main():
    settings = get_settings()
    print("=" * 50)
    print("PLACEMENT CELL EXAM ENGINE - CONNECTION TEST")
    print("=" * 50)

    print("\n[1] Testing MongoDB...")
    print(f"    URI: {settings.mongodb_uri}")
    print(f"    Database: {settings.mongodb_db}")
    if not test_mongo_connection():
        print("    ❌ MongoDB: FAILED")
        sys.exit(1)
    print("    ✅ MongoDB: CONNECTED")

    print("\n[2] Creating indexes...")
    init_mongo_indexes()
    db = get_mongo_db()
    for name in COLLECTIONS.values():
        print(f"    {name}: {db[name].estimated_document_count()} documents, "
              f"{len(db[name].index_information())} indexes")

    print("\n[3] Exam engine settings...")
    print(f"    Negative marking: {settings.exam_negative_marking}")
    print(f"    Default duration: {settings.exam_default_duration} min")
    if settings.exam_force_active:
        print("    ⚠️  EXAM_FORCE_ACTIVE is on: exam windows are ignored")

    print("\n" + "=" * 50)
    print("Connection test complete!")
    print("=" * 50)


if __name__ == "__main__":
    main()
