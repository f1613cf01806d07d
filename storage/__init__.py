"""Record storage."""

from functools import lru_cache

from config import get_settings
from storage.base import (
    RECORD_KEYS,
    RecordStore,
    Tables,
    parse_record,
    parse_records,
    to_record,
)
from storage.memory import InMemoryRecordStore
from storage.postgrest import PostgrestRecordStore


@lru_cache
def get_storage() -> RecordStore:
    """Get the singleton record store for the configured backend."""
    settings = get_settings()
    if settings.store_url:
        store = PostgrestRecordStore(
            settings.store_url,
            settings.store_api_key or "",
            timeout_s=settings.store_timeout_seconds,
        )
        store.check_connection()
        return store
    return InMemoryRecordStore()


__all__ = [
    "RECORD_KEYS",
    "RecordStore",
    "Tables",
    "InMemoryRecordStore",
    "PostgrestRecordStore",
    "get_storage",
    "parse_record",
    "parse_records",
    "to_record",
]
