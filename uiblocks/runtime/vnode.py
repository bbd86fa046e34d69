"""
Rendered element representation.

A VNode is what a render function returns: a tag, a props dict, and one
child slot per authored child. Because slots are never flattened or
filtered, a child-index path computed from the authored source addresses
the same node in every rendered tree.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence


class VNode:
    """A rendered UI node."""

    __slots__ = ('tag', 'props', 'children')

    def __init__(self, tag: Any, props: Optional[Dict[str, Any]] = None,
                 children: Optional[Iterable[Any]] = None):
        self.tag = tag
        self.props: Dict[str, Any] = dict(props) if props else {}
        self.children: List[Any] = list(children) if children else []

    def copy(self) -> 'VNode':
        """Shallow copy: new props dict and child list, shared children."""
        return VNode(self.tag, self.props, self.children)

    def clone(self) -> 'VNode':
        """Copy the node structure; leaf values are shared."""
        return VNode(
            self.tag,
            self.props,
            [c.clone() if isinstance(c, VNode) else c for c in self.children],
        )

    def at_path(self, path: Sequence[int]) -> Optional['VNode']:
        node = self
        for index in path:
            if not 0 <= index < len(node.children):
                return None
            child = node.children[index]
            if not isinstance(child, VNode):
                return None
            node = child
        return node

    def __eq__(self, other):
        if not isinstance(other, VNode):
            return NotImplemented
        return (self.tag == other.tag
                and self.props == other.props
                and self.children == other.children)

    __hash__ = None

    def __repr__(self) -> str:
        tag = self.tag if isinstance(self.tag, str) else getattr(self.tag, '__name__', self.tag)
        return f"VNode({tag!r}, {self.props!r}, children={len(self.children)})"


def el(tag: Any, props: Optional[Dict[str, Any]] = None,
       children: Optional[Iterable[Any]] = None) -> VNode:
    """Element factory used by authored and generated render code."""
    return VNode(tag, props, children)


h = el
