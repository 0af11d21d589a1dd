from content_index.cache.base import CachedContent, ContentCacheBase
from content_index.cache.factory import get_content_cache

__all__ = ["CachedContent", "ContentCacheBase", "get_content_cache"]
