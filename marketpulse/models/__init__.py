"""SQLAlchemy ORM models."""

from marketpulse.models.kv_entry import KeyValueEntry

__all__ = ["KeyValueEntry"]
