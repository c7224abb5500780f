"""Record cache backends."""

from shopscrape.store.record_cache import RecordCache, build_record_cache, cache_key

__all__ = ["RecordCache", "build_record_cache", "cache_key"]
