"""
Static Hoisting
===============

Fully static subtrees are lifted out of the render path into stand-alone
artifacts that are built once and then referenced by identity.

Structurally identical static subtrees share one artifact. A static parent
that contains a static child references the child's artifact, so artifacts
must be emitted in dependency order:

Before:
    def Card(title):
        return el("frame", {"Title": title}, [
            el("frame", {"Size": UDim2.fromScale(1, 1)}, [el("uicorner")]),
        ])

After:
    STATIC_ELEMENT_UICORNER_0 = el("uicorner")
    STATIC_PROPS_FRAME_1 = {"Size": UDim2.fromScale(1, 1)}
    STATIC_ELEMENT_FRAME_1 = el("frame", STATIC_PROPS_FRAME_1, [STATIC_ELEMENT_UICORNER_0])

    def Card(title):
        return el("frame", {"Title": title}, [STATIC_ELEMENT_FRAME_1])
"""

import ast
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from ..analysis.classifier import BlockClassifier
from ..errors import HoistCycleError
from ..model.element import Element, Text

logger = logging.getLogger(__name__)


@dataclass
class StaticArtifact:
    """A hoisted static subtree."""
    id: str
    element: Element
    props_table_id: Optional[str] = None
    references: Tuple[str, ...] = ()
    key: str = ''
    uses: int = 1


def structural_key(element: Element) -> str:
    """Key equal for structurally identical elements (positions ignored)."""
    parts = [element.tag]
    for name, value in element.attributes.items():
        parts.append(f'{name}={ast.dump(value)}')
    children = []
    for child in element.children:
        if isinstance(child, Element):
            children.append(structural_key(child))
        elif isinstance(child, Text):
            children.append(repr(child.value))
        else:
            children.append(ast.dump(child))
    return f"{'|'.join(parts)}[{','.join(children)}]"


def topological_order(
    graph: Mapping[str, Sequence[str]],
    *,
    strict: bool = False,
    skipped: Optional[List[Tuple[str, str]]] = None,
) -> List[str]:
    """
    Order node ids so every node follows the nodes it references.

    A back edge (cycle) is skipped and logged; with ``strict=True`` it raises
    :class:`HoistCycleError` instead. Skipped edges are appended to
    ``skipped`` when given. References to unknown ids are ignored.
    """
    order: List[str] = []
    visited: Set[str] = set()
    visiting: List[str] = []

    def visit(node: str):
        if node in visited:
            return
        visiting.append(node)
        for ref in graph.get(node, ()):
            if ref not in graph:
                continue
            if ref in visiting:
                cycle = visiting[visiting.index(ref):] + [ref]
                if strict:
                    raise HoistCycleError(cycle)
                logger.warning("Skipping circular static reference %s -> %s", node, ref)
                if skipped is not None:
                    skipped.append((node, ref))
                continue
            visit(ref)
        visiting.pop()
        visited.add(node)
        order.append(node)

    for node in graph:
        visit(node)
    return order


class StaticHoister:
    """
    Collects and deduplicates static artifacts.

    Usage:
        hoister = StaticHoister(classifier)
        artifact = hoister.hoist(element)      # None if not fully static
        for artifact in hoister.ordered():
            ...
    """

    def __init__(self, classifier: Optional[BlockClassifier] = None, *,
                 strict: bool = False, prefix: str = 'STATIC'):
        self.classifier = classifier if classifier is not None else BlockClassifier()
        self.strict = strict
        self.prefix = prefix
        self.artifacts: Dict[str, StaticArtifact] = {}
        self.skipped_edges: List[Tuple[str, str]] = []
        self._by_key: Dict[str, StaticArtifact] = {}
        self._by_element: Dict[int, Tuple[Element, StaticArtifact]] = {}
        self._counter = 0

    def hoist(self, element: Element) -> Optional[StaticArtifact]:
        """Hoist ``element`` if it is static throughout; children first."""
        cached = self._by_element.get(id(element))
        if cached is not None and cached[0] is element:
            return cached[1]
        if not self.classifier.is_completely_static(element):
            return None

        references = []
        for _, child in element.child_elements():
            child_artifact = self.hoist(child)
            if child_artifact is not None:
                references.append(child_artifact.id)

        key = structural_key(element)
        artifact = self._by_key.get(key)
        if artifact is not None:
            artifact.uses += 1
            logger.debug("Reusing static artifact %s for <%s>", artifact.id, element.tag)
        else:
            n = self._counter
            self._counter += 1
            tag = self._sanitize(element.tag)
            artifact = StaticArtifact(
                id=f'{self.prefix}_ELEMENT_{tag}_{n}',
                element=element,
                props_table_id=(f'{self.prefix}_PROPS_{tag}_{n}'
                                if element.attributes else None),
                references=tuple(references),
                key=key,
            )
            self.artifacts[artifact.id] = artifact
            self._by_key[key] = artifact
            logger.debug("Hoisted <%s> as %s", element.tag, artifact.id)

        self._by_element[id(element)] = (element, artifact)
        return artifact

    def artifact_for(self, element: Element) -> Optional[StaticArtifact]:
        cached = self._by_element.get(id(element))
        if cached is not None and cached[0] is element:
            return cached[1]
        return None

    def ordered(self) -> List[StaticArtifact]:
        """Artifacts in emission order (referenced artifacts first)."""
        graph = {aid: a.references for aid, a in self.artifacts.items()}
        ids = topological_order(graph, strict=self.strict, skipped=self.skipped_edges)
        return [self.artifacts[aid] for aid in ids]

    @staticmethod
    def _sanitize(tag: str) -> str:
        return re.sub(r'\W', '_', tag).upper()
