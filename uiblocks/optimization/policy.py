"""
Memoization Decision Policy
===========================

Pure function from a BlockInfo to one of four strategies:

  StaticExtract  - the subtree never changes; build it once and reuse it
  BasicRebuild   - rebuild on every render (memoization not worth it, or
                   unsafe because of an externally held reference)
  CoarseMemoize  - re-invoke the whole render function when any
                   dependency changes
  FinePatch      - patch only the slots whose dependency changed

Coarse memoization is cheap bookkeeping but re-renders everything on any
change. Fine patching pays for instruction lists and slot copies, which only
pays off above the complexity threshold.
"""

import logging
from enum import IntEnum
from typing import Optional

from ..analysis.classifier import BlockInfo

logger = logging.getLogger(__name__)


class Decision(IntEnum):
    STATIC_EXTRACT = 0
    BASIC_REBUILD = 1
    COARSE_MEMOIZE = 2
    FINE_PATCH = 3

    @property
    def is_optimized(self) -> bool:
        """Whether the block avoids plain rebuilding (diagnostics only)."""
        return self != Decision.BASIC_REBUILD

    @property
    def is_memoized(self) -> bool:
        return self in (Decision.COARSE_MEMOIZE, Decision.FINE_PATCH)


class MemoizationPolicy:
    """
    Chooses an optimization strategy per block.

    The thresholds are heuristics rather than a cost model; override them
    per instance:

        policy = MemoizationPolicy(min_dependencies=3)
    """

    MIN_DEPENDENCIES = 2    # Fewer deps (and no dynamic children) -> rebuild
    MIN_COMPLEXITY = 2      # |dynamic attrs| + 2 * dynamic children

    def __init__(
        self,
        min_dependencies: Optional[int] = None,
        min_complexity: Optional[int] = None,
    ):
        if min_dependencies is not None:
            self.MIN_DEPENDENCIES = min_dependencies
        if min_complexity is not None:
            self.MIN_COMPLEXITY = min_complexity

    def should_memoize(self, info: BlockInfo) -> bool:
        """Whether memoization overhead is justified for this block."""
        if info.is_static:
            return False
        if len(info.dependencies) < self.MIN_DEPENDENCIES and not info.has_dynamic_children:
            return False
        if info.complexity < self.MIN_COMPLEXITY:
            return False
        return bool(info.dependencies)

    def decide(self, info: BlockInfo, fine_patch: bool = True) -> Decision:
        """
        Pick a strategy for ``info``.

        ``fine_patch`` is the caller's request for patch instructions; when
        False, memoizable blocks are coarsely memoized instead.
        """
        if info.is_static:
            decision = Decision.STATIC_EXTRACT
        elif not self.should_memoize(info):
            decision = Decision.BASIC_REBUILD
        elif info.has_external_refs:
            logger.debug("Bail-out for %s: externally held reference prop", info.id)
            decision = Decision.BASIC_REBUILD
        elif fine_patch:
            decision = Decision.FINE_PATCH
        else:
            decision = Decision.COARSE_MEMOIZE

        logger.debug(
            "%s <%s>: complexity=%d deps=%d -> %s",
            info.id, info.tag, info.complexity, len(info.dependencies), decision.name,
        )
        return decision


_default_policy = MemoizationPolicy()


def decide(info: BlockInfo, fine_patch: bool = True) -> Decision:
    """Decide using the default thresholds."""
    return _default_policy.decide(info, fine_patch)
