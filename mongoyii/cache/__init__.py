from .cache import CacheBackend, InMemoryCache, RedisCache
from .dependency import CacheDependency, ExpressionDependency

__all__ = [
	"CacheBackend",
	"InMemoryCache",
	"RedisCache",
	"CacheDependency",
	"ExpressionDependency",
]
