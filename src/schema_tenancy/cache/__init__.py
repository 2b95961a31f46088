"""Host resolution cache."""

from schema_tenancy.cache.resolver_cache import DEFAULT_TTL_MS, CacheHit, ResolverCache

__all__ = ["DEFAULT_TTL_MS", "CacheHit", "ResolverCache"]
