from persistent_cache.models.cache import CacheRecord

__all__ = ["CacheRecord"]
