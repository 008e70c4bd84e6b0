from .db_manager import Track, db, initialize_database, utcnow

__all__ = ["Track", "db", "initialize_database", "utcnow"]
