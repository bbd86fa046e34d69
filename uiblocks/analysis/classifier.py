"""
Static/Dynamic Classifier
=========================

Walks an Element and summarises it as a :class:`BlockInfo`:

  - which attributes are static and which are dynamic,
  - the ordered, deduplicated set of dependencies (with optional type hints
    taken from the component's parameter annotations),
  - whether any child is dynamic,
  - whether the subtree holds an externally managed reference prop that
    forbids fine-grained patching.

Results are memoized per Element *identity*: a structurally identical but
distinct node is classified again and receives its own block id.
"""

import ast
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from ..model.element import Element, Text
from .expressions import DependencyCollector, DynamismChecker
from .purity import KnownPurityOracle, PurityOracle

logger = logging.getLogger(__name__)


DEFAULT_BAILOUT_PROPS: FrozenSet[str] = frozenset({'ref'})


@dataclass
class BlockInfo:
    """Classification summary for one element."""
    id: str
    tag: str = ''
    static_attrs: List[str] = field(default_factory=list)
    dynamic_attrs: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    dependency_types: Dict[str, Optional[str]] = field(default_factory=dict)
    has_dynamic_children: bool = False
    is_component: bool = False
    has_external_refs: bool = False

    @property
    def is_static(self) -> bool:
        return (not self.dynamic_attrs
                and not self.has_dynamic_children
                and not self.is_component)

    @property
    def complexity(self) -> int:
        return len(self.dynamic_attrs) + (2 if self.has_dynamic_children else 0)


class BlockClassifier:
    """
    Classifies elements into static and dynamic parts.

    Usage:
        classifier = BlockClassifier()
        info = classifier.classify(parse_element('el("frame", {"Visible": shown})'))
        info.dynamic_attrs    # ['Visible']
        info.dependencies     # ['shown']
    """

    def __init__(
        self,
        oracle: Optional[PurityOracle] = None,
        *,
        type_hints: Optional[Dict[str, Optional[str]]] = None,
        bailout_props: Optional[Iterable[str]] = None,
        id_prefix: str = 'block',
    ):
        self.oracle = oracle if oracle is not None else KnownPurityOracle()
        self.type_hints: Dict[str, Optional[str]] = dict(type_hints or {})
        self.bailout_props = frozenset(
            p.lower() for p in (bailout_props if bailout_props is not None
                                else DEFAULT_BAILOUT_PROPS)
        )
        self.id_prefix = id_prefix
        self._dynamism = DynamismChecker(self.oracle)
        self._block_counter = 0
        # id(element) -> (element, info); the element is held so ids stay unique
        self._blocks: Dict[int, Tuple[Element, BlockInfo]] = {}

    # ───────────────────────────────────────────────────────────────
    #  Expression-level queries
    # ───────────────────────────────────────────────────────────────

    def is_dynamic(self, expr: ast.expr) -> bool:
        return self._dynamism.is_dynamic(expr)

    def extract_dependencies(self, expr: ast.expr,
                             into: Optional[List[str]] = None) -> List[str]:
        return DependencyCollector(self.oracle).collect(expr, into)

    @property
    def fallback_count(self) -> int:
        """Expression shapes that fell back to dynamic."""
        return self._dynamism.fallbacks

    # ───────────────────────────────────────────────────────────────
    #  Element classification
    # ───────────────────────────────────────────────────────────────

    def classify(self, element: Element) -> BlockInfo:
        cached = self._blocks.get(id(element))
        if cached is not None and cached[0] is element:
            return cached[1]

        info = BlockInfo(
            id=f'{self.id_prefix}_{self._block_counter}',
            tag=element.tag,
            is_component=element.is_component,
        )
        self._block_counter += 1

        if element.is_component:
            # Components may hold state of their own
            root = element.component_root
            self._add_dependency(info, root, self.type_hints.get(root))

        for name, value in element.attributes.items():
            if name.lower() in self.bailout_props:
                info.has_external_refs = True
            if self.is_dynamic(value):
                info.dynamic_attrs.append(name)
                self._collect_into(info, value)
            else:
                info.static_attrs.append(name)

        for child in element.children:
            if isinstance(child, Element):
                child_info = self.classify(child)
                if child_info.has_external_refs:
                    info.has_external_refs = True
                if not child_info.is_static:
                    info.has_dynamic_children = True
                    for dep in child_info.dependencies:
                        self._add_dependency(info, dep, child_info.dependency_types.get(dep))
            elif isinstance(child, Text):
                continue
            elif self.is_dynamic(child):
                info.has_dynamic_children = True
                self._collect_into(info, child)

        self._blocks[id(element)] = (element, info)
        logger.debug(
            "Classified %s <%s>: static=%s deps=%s",
            info.id, info.tag, info.is_static, info.dependencies,
        )
        return info

    def is_completely_static(self, element: Element) -> bool:
        """True when the element and every descendant are static."""
        if not self.classify(element).is_static:
            return False
        return all(
            self.is_completely_static(child)
            for _, child in element.child_elements()
        )

    def get_block_info(self, element: Element) -> Optional[BlockInfo]:
        cached = self._blocks.get(id(element))
        if cached is not None and cached[0] is element:
            return cached[1]
        return None

    def all_blocks(self) -> List[BlockInfo]:
        return [info for _, info in self._blocks.values()]

    def reset(self) -> None:
        self._blocks.clear()
        self._block_counter = 0

    # ───────────────────────────────────────────────────────────────
    #  Helpers
    # ───────────────────────────────────────────────────────────────

    def _collect_into(self, info: BlockInfo, expr: ast.expr) -> None:
        for dep in self.extract_dependencies(expr):
            self._add_dependency(info, dep, self.type_hints.get(dep))

    @staticmethod
    def _add_dependency(info: BlockInfo, name: str, hint: Optional[str] = None) -> None:
        if name not in info.dependency_types:
            info.dependencies.append(name)
            info.dependency_types[name] = hint
        elif hint is not None and info.dependency_types[name] is None:
            info.dependency_types[name] = hint
