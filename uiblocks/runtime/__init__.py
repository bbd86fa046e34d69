from uiblocks.runtime.vnode import VNode, el, h
from uiblocks.runtime.block_cache import (
    BlockCache,
    CacheEntry,
    CacheStats,
    clear_cache,
    default_cache,
    get_cache_stats,
    memoize,
    patch_memoize,
    should_update,
)

__all__ = [
    'BlockCache',
    'CacheEntry',
    'CacheStats',
    'VNode',
    'clear_cache',
    'default_cache',
    'el',
    'get_cache_stats',
    'h',
    'memoize',
    'patch_memoize',
    'should_update',
]
