"""
Patch-Instruction Generator
===========================

For blocks that are fine-grained patched, assigns a stable path to every
element of the block and emits one Edit per dynamic attribute or child.

Paths are child-index sequences assigned in pre-order: the root is ``()``
and the k-th child of a node is ``parent + (k,)``. Every authored child
(text, computed expression, nested element) occupies one index, so a path
addresses the rendered tree directly.

Each Edit names the dependency that triggers it. ``dependency_key`` is the
first dependency extracted from the slot's expression; ``trigger_keys``
lists every dependency that must trigger it (all of them when fan-out is
enabled, otherwise only the first).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from ..analysis.classifier import BlockClassifier, BlockInfo
from ..model.element import Element, Text
from ..model.patch import (
    AttributeEdit,
    ChildEdit,
    Edit,
    EditKind,
    EventEdit,
    PatchInstruction,
    PropEdit,
    StyleEdit,
)

logger = logging.getLogger(__name__)


@dataclass
class FinePatchBlock:
    """BlockInfo plus the instructions and paths for fine-grained patching."""
    info: BlockInfo
    instructions: List[PatchInstruction] = field(default_factory=list)
    element_paths: Dict[int, Tuple[int, ...]] = field(default_factory=dict)

    def path_of(self, element: Element) -> Optional[Tuple[int, ...]]:
        return self.element_paths.get(id(element))

    @property
    def edit_count(self) -> int:
        return sum(len(i.edits) for i in self.instructions)


# ═══════════════════════════════════════════════════════════════════════════
# Edit kind classification
# ═══════════════════════════════════════════════════════════════════════════

_STYLE_TOKENS: Tuple[str, ...] = ('style', 'color')

# Visual-state props that don't say "style" or "color" in their name
_VISUAL_STATE_PROPS: FrozenSet[str] = frozenset({
    'BackgroundTransparency', 'TextTransparency', 'ImageTransparency',
    'Transparency', 'Visible', 'ZIndex', 'Font', 'FontFace', 'TextSize',
    'className', 'class',
})

_EVENT_TOKENS: Tuple[str, ...] = (
    'Event', 'Click', 'Changed', 'Activated', 'Handler', 'Input',
)
_EVENT_PREFIXES: Tuple[str, ...] = ('on', 'Mouse', 'Touch')


def classify_edit_kind(prop_name: str) -> EditKind:
    """Categorise a prop by how it is updated."""
    lowered = prop_name.lower()
    if any(tok in lowered for tok in _STYLE_TOKENS) or prop_name in _VISUAL_STATE_PROPS:
        return EditKind.STYLE
    if prop_name.startswith(_EVENT_PREFIXES) or any(tok in prop_name for tok in _EVENT_TOKENS):
        return EditKind.EVENT
    return EditKind.ATTRIBUTE


_PROP_EDIT_TYPES = {
    EditKind.ATTRIBUTE: AttributeEdit,
    EditKind.STYLE: StyleEdit,
    EditKind.EVENT: EventEdit,
}


def make_prop_edit(prop_name: str, dependencies: Sequence[str],
                   fan_out: bool = True) -> PropEdit:
    edit_type = _PROP_EDIT_TYPES[classify_edit_kind(prop_name)]
    triggers = tuple(dependencies) if fan_out else (dependencies[0],)
    return edit_type(prop_name=prop_name, dependency_key=dependencies[0],
                     trigger_keys=triggers)


# ═══════════════════════════════════════════════════════════════════════════
# Generator
# ═══════════════════════════════════════════════════════════════════════════

class PatchGenerator:
    """
    Produces patch instructions for a block.

    Usage:
        generator = PatchGenerator(classifier)
        block = generator.generate(element)
        for instruction in block.instructions:
            print(instruction.element_path, instruction.edits)
    """

    def __init__(self, classifier: Optional[BlockClassifier] = None, *, fan_out: bool = True):
        self.classifier = classifier if classifier is not None else BlockClassifier()
        self.fan_out = fan_out

    def generate(self, element: Element) -> FinePatchBlock:
        info = self.classifier.classify(element)
        block = FinePatchBlock(info=info)
        self._visit(element, (), block)
        logger.debug(
            "Generated %d instruction(s), %d edit(s) for %s",
            len(block.instructions), block.edit_count, info.id,
        )
        return block

    def assign_paths(self, element: Element) -> Dict[int, Tuple[int, ...]]:
        """Map id(element) -> path for every element of the subtree."""
        paths: Dict[int, Tuple[int, ...]] = {}

        def assign(node: Element, path: Tuple[int, ...]):
            paths[id(node)] = path
            for index, child in node.child_elements():
                assign(child, path + (index,))

        assign(element, ())
        return paths

    def _visit(self, node: Element, path: Tuple[int, ...], block: FinePatchBlock) -> None:
        block.element_paths[id(node)] = path

        edits: List[Edit] = []
        for name, value in node.attributes.items():
            if not self.classifier.is_dynamic(value):
                continue
            deps = self.classifier.extract_dependencies(value)
            if not deps:
                # Dynamic shape with nothing external to trigger on
                continue
            edits.append(make_prop_edit(name, deps, self.fan_out))

        for index, child in enumerate(node.children):
            if isinstance(child, (Element, Text)):
                continue
            if not self.classifier.is_dynamic(child):
                continue
            deps = self.classifier.extract_dependencies(child)
            if deps:
                edits.append(self._child_edit(index, deps))

        if edits:
            block.instructions.append(PatchInstruction(element_path=path, edits=tuple(edits)))

        for index, child in node.child_elements():
            self._visit(child, path + (index,), block)

    def _child_edit(self, index: int, deps: List[str]) -> ChildEdit:
        triggers = tuple(deps) if self.fan_out else (deps[0],)
        return ChildEdit(index=index, dependency_key=deps[0], trigger_keys=triggers)
