"""
Block Cache
===========

Runtime store behind memoized and fine-patched blocks.

Each block id moves through two states:

    Empty  --first render-->  Cached
    Cached --deps unchanged--> Cached (same element, render_fn not called)
    Cached --deps changed-->   Cached (new element)

``memoize`` re-invokes the render function on any change. ``patch_memoize``
also invokes it to obtain fresh slot values, but copies only the slots whose
edits are triggered by a changed dependency into a copy of the cached
element. Every other slot keeps the exact value (and identity) it had.

The cache is not thread-safe: all calls on one instance must come from one
render thread, or be serialized by the caller.
"""

import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence

from ..model.patch import ChildEdit, PatchInstruction, edit_triggers
from ..utils.helpers import Timer
from .vnode import VNode

logger = logging.getLogger(__name__)


_IMMUTABLE_SCALARS = (str, bytes, int, float, complex, bool, type(None))


def _same(old: Any, new: Any) -> bool:
    if old is new:
        return True
    return (type(old) is type(new)
            and isinstance(old, _IMMUTABLE_SCALARS)
            and old == new)


def should_update(prev_deps: Sequence[Any], next_deps: Sequence[Any]) -> bool:
    """True when the dependency lists differ in length or in any position."""
    if len(prev_deps) != len(next_deps):
        return True
    return any(not _same(a, b) for a, b in zip(prev_deps, next_deps))


def _changed_indices(prev_deps: Sequence[Any], next_deps: Sequence[Any]) -> List[int]:
    return [i for i, (a, b) in enumerate(zip(prev_deps, next_deps)) if not _same(a, b)]


def instruction_keys(instructions: Sequence[PatchInstruction]) -> List[str]:
    """Dependency keys in order of first appearance across the instructions."""
    keys: List[str] = []
    for instruction in instructions:
        for key in instruction.dependency_keys:
            if key not in keys:
                keys.append(key)
    return keys


@dataclass
class CacheEntry:
    """Last render of one block."""
    block_id: str
    last_element: Any
    last_dependencies: List[Any]
    patch_instructions: Optional[List[PatchInstruction]] = None
    last_timestamp: float = 0.0
    render_ns: int = 0


@dataclass
class CacheStats:
    total_blocks: int = 0
    cache_hit_rate: float = 0.0
    average_render_time: float = 0.0
    hits: int = 0
    misses: int = 0
    patches: int = 0
    average_render_duration_ns: float = 0.0

    @property
    def lookups(self) -> int:
        return self.hits + self.misses + self.patches


class _PatchBailout(Exception):
    """A triggered edit could not be applied to the cached element."""


class BlockCache:
    """
    Keyed store of rendered blocks.

    Usage:
        cache = BlockCache()
        node = cache.memoize('Counter:block_0', [count], lambda count: el(...))
        node = cache.patch_memoize('Card:block_1', [title, color], instructions,
                                   render, keys=['title', 'color'])
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0
        self.patches = 0

    # ───────────────────────────────────────────────────────────────
    #  Coarse memoization
    # ───────────────────────────────────────────────────────────────

    def memoize(self, block_id: str, deps: Sequence[Any],
                render_fn: Callable[..., Any]) -> Any:
        deps = list(deps)
        entry = self._entries.get(block_id)
        if entry is not None and not should_update(entry.last_dependencies, deps):
            self.hits += 1
            logger.debug("Cache hit for %s", block_id)
            return entry.last_element

        self.misses += 1
        self._render(block_id, deps, render_fn)
        return self._entries[block_id].last_element

    # ───────────────────────────────────────────────────────────────
    #  Fine-grained patching
    # ───────────────────────────────────────────────────────────────

    def patch_memoize(self, block_id: str, deps: Sequence[Any],
                      instructions: Sequence[PatchInstruction],
                      render_fn: Callable[..., Any],
                      keys: Optional[Sequence[str]] = None) -> Any:
        """
        Return the block's element, patching only the slots whose edits are
        triggered by a changed dependency.

        ``keys`` names each position of ``deps``. When omitted, positions are
        matched to dependency keys in order of first appearance across the
        instructions.
        """
        deps = list(deps)
        instructions = list(instructions)
        keys = list(keys) if keys is not None else instruction_keys(instructions)
        entry = self._entries.get(block_id)

        if entry is not None and not should_update(entry.last_dependencies, deps):
            self.hits += 1
            logger.debug("Cache hit for %s", block_id)
            return entry.last_element

        # Changed positions can only be patched when every one has a key
        if (entry is None
                or len(entry.last_dependencies) != len(deps)
                or len(keys) != len(deps)):
            self.misses += 1
            self._render(block_id, deps, render_fn, instructions)
            return self._entries[block_id].last_element

        changed_idx = _changed_indices(entry.last_dependencies, deps)
        changed = frozenset(keys[i] for i in changed_idx)
        with Timer() as t:
            fresh = render_fn(*deps)
            try:
                patched = self._apply(entry.last_element, fresh, instructions, changed)
            except _PatchBailout as exc:
                logger.debug("Patch bail-out for %s: %s; using fresh render", block_id, exc)
                patched = fresh

        self.patches += 1
        entry.last_element = patched
        entry.last_dependencies = deps
        entry.patch_instructions = instructions
        entry.last_timestamp = time.time()
        entry.render_ns = t.elapsed_ns
        logger.debug("Patched %s (changed: %s)", block_id, sorted(changed))
        return patched

    def _apply(self, cached: Any, fresh: Any,
               instructions: List[PatchInstruction], changed: FrozenSet[str]) -> VNode:
        if not isinstance(cached, VNode) or not isinstance(fresh, VNode):
            raise _PatchBailout("element is not a VNode")
        if cached.tag != fresh.tag:
            raise _PatchBailout("root tag changed")

        covered = set()
        for instruction in instructions:
            for edit in instruction.edits:
                covered.update(edit_triggers(edit))
        uncovered = changed - covered
        if uncovered:
            raise _PatchBailout(f"no edit for {sorted(uncovered)}")

        root = cached.copy()
        copied = {id(root)}
        for instruction in instructions:
            edits = instruction.triggered_edits(changed)
            if not edits:
                continue
            target = self._copy_along(root, instruction.element_path, copied)
            source = fresh.at_path(instruction.element_path)
            if target is None or source is None or target.tag != source.tag:
                raise _PatchBailout(f"path {list(instruction.element_path)} does not resolve")
            for edit in edits:
                if isinstance(edit, ChildEdit):
                    if (edit.index >= len(source.children)
                            or edit.index >= len(target.children)):
                        raise _PatchBailout(f"child slot {edit.index} out of range")
                    target.children[edit.index] = source.children[edit.index]
                elif edit.prop_name in source.props:
                    target.props[edit.prop_name] = source.props[edit.prop_name]
                else:
                    target.props.pop(edit.prop_name, None)
        return root

    @staticmethod
    def _copy_along(root: VNode, path: Sequence[int], copied: set) -> Optional[VNode]:
        """Copy-on-write the nodes along ``path``; untouched subtrees stay shared."""
        node = root
        for index in path:
            if not 0 <= index < len(node.children):
                return None
            child = node.children[index]
            if not isinstance(child, VNode):
                return None
            if id(child) not in copied:
                child = child.copy()
                copied.add(id(child))
                node.children[index] = child
            node = child
        return node

    # ───────────────────────────────────────────────────────────────
    #  Decorator form
    # ───────────────────────────────────────────────────────────────

    def block(self, render_fn: Callable = None, *, block_id: Optional[str] = None):
        """
        Wrap a render function so calls with unchanged arguments reuse the
        previous element.

        Usage:
            @cache.block
            def row(label, value):
                return el("textlabel", {"Text": f"{label}: {value}"})
        """
        if render_fn is None:
            return lambda f: self.block(f, block_id=block_id)

        key = block_id or f"{render_fn.__module__}.{render_fn.__qualname__}"

        @functools.wraps(render_fn)
        def wrapper(*deps):
            return self.memoize(key, deps, render_fn)

        wrapper.__uiblocks_block_id__ = key
        return wrapper

    # ───────────────────────────────────────────────────────────────
    #  Management
    # ───────────────────────────────────────────────────────────────

    def get(self, block_id: str) -> Optional[CacheEntry]:
        return self._entries.get(block_id)

    def invalidate(self, block_id: str) -> bool:
        return self._entries.pop(block_id, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0
        self.patches = 0

    def get_stats(self) -> CacheStats:
        lookups = self.hits + self.misses + self.patches
        stats = CacheStats(
            total_blocks=len(self._entries),
            cache_hit_rate=self.hits / lookups if lookups else 0.0,
            hits=self.hits,
            misses=self.misses,
            patches=self.patches,
        )
        if self._entries:
            entries = list(self._entries.values())
            stats.average_render_time = sum(e.last_timestamp for e in entries) / len(entries)
            stats.average_render_duration_ns = sum(e.render_ns for e in entries) / len(entries)
        return stats

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, block_id: str) -> bool:
        return block_id in self._entries

    def _render(self, block_id: str, deps: List[Any], render_fn: Callable[..., Any],
                instructions: Optional[List[PatchInstruction]] = None) -> None:
        with Timer() as t:
            element = render_fn(*deps)
        self._entries[block_id] = CacheEntry(
            block_id=block_id,
            last_element=element,
            last_dependencies=deps,
            patch_instructions=instructions,
            last_timestamp=time.time(),
            render_ns=t.elapsed_ns,
        )
        logger.debug("Cache miss for %s, rendered in %d ns", block_id, t.elapsed_ns)


# ═══════════════════════════════════════════════════════════════════════════
# Default instance
# ═══════════════════════════════════════════════════════════════════════════

default_cache = BlockCache()


def memoize(block_id: str, deps: Sequence[Any], render_fn: Callable[..., Any]) -> Any:
    return default_cache.memoize(block_id, deps, render_fn)


def patch_memoize(block_id: str, deps: Sequence[Any],
                  instructions: Sequence[PatchInstruction],
                  render_fn: Callable[..., Any],
                  keys: Optional[Sequence[str]] = None) -> Any:
    return default_cache.patch_memoize(block_id, deps, instructions, render_fn, keys)


def clear_cache() -> None:
    default_cache.clear()


def get_cache_stats() -> CacheStats:
    return default_cache.get_stats()
