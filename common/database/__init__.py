"""
Database module - Generic async MongoDB connection using Motor.

Usage:
    from common.database import MongoDB, to_object_id

    db = MongoDB()
    await db.connect(uri, database_name)
    users = db.db["users"]
"""

from common.database.mongodb import MongoDB, to_object_id

__all__ = [
    "MongoDB",
    "to_object_id",
]
