from persistent_cache.services.keys import derive_key
from persistent_cache.services.memoize import function_id, invalidate_cache, memoize

__all__ = ["derive_key", "function_id", "invalidate_cache", "memoize"]
