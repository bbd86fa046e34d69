"""
uiblocks: Static/Dynamic Block Optimization for Declarative UI Trees
====================================================================

uiblocks speeds up re-rendering of declarative element trees by working
out, ahead of time, which parts of a tree never change and which parts
change only along specific data dependencies.

Core Components:
    - model: authored elements, components and patch instruction types
    - analysis: purity oracle, dynamism checks and the block classifier
    - optimization: the memoization decision policy
    - compiler: patch-instruction generation, static hoisting and codegen
    - runtime: rendered VNodes and the memo/patch block cache

Usage:
    >>> import uiblocks
    >>> from uiblocks.runtime import el
    >>> @uiblocks.optimize
    ... def Badge(label: str, color):
    ...     return el("textlabel", {"Text": label, "TextColor3": color})
    >>> node = Badge("new", "red")
    >>> print(Badge.__uiblocks_report__.summary())
"""

__version__ = "1.0.0"

from uiblocks.errors import ElementSyntaxError, HoistCycleError, UIBlocksError
from uiblocks.model import (
    Element,
    PatchInstruction,
    element,
    parse_component,
    parse_element,
    skip_optimization,
)
from uiblocks.analysis import (
    BlockClassifier,
    BlockInfo,
    HelperPurityAnalyzer,
    KnownPurityOracle,
    PurityOracle,
)
from uiblocks.optimization import Decision, MemoizationPolicy, decide
from uiblocks.compiler import (
    BlockOptimizer,
    OptimizationReport,
    OptimizerOptions,
    PatchGenerator,
    StaticHoister,
    optimize,
)
from uiblocks.runtime import (
    BlockCache,
    CacheStats,
    VNode,
    clear_cache,
    el,
    get_cache_stats,
    memoize,
    patch_memoize,
)
