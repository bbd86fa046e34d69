"""
Element Model
=============

In-memory representation of an authored UI node.

Elements are written in Python source as calls to an element factory::

    el("frame", {"Size": UDim2.fromScale(1, 1)}, [
        el("textlabel", {"Text": f"Count: {count}"}),
        "plain text",
        count * 2,
    ])

and lifted into :class:`Element` objects whose attribute values and computed
children are plain ``ast.expr`` nodes. The analysis passes only ever ask an
expression whether it is a literal, a reference, or an invocation; anything
deeper is delegated to the purity oracle.

Lowercase string tags are intrinsic; a tag referenced by name (``Counter``,
``ui.Counter``) is a component and is never considered static.
"""

import ast
import inspect
import textwrap
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Optional, Tuple, Union

from ..errors import ElementSyntaxError


ELEMENT_FACTORIES: FrozenSet[str] = frozenset({'el', 'h'})

_LITERAL_TYPES = (str, bytes, int, float, complex, bool, type(None))


@dataclass(frozen=True)
class Text:
    """A literal text child."""
    value: str


@dataclass(frozen=True, eq=False)
class Element:
    """
    An authored UI node.

    Instances compare and hash by identity: two structurally identical
    elements are still two distinct blocks.
    """
    tag: str
    attributes: Dict[str, ast.expr] = field(default_factory=dict)
    children: Tuple['Child', ...] = ()
    tag_node: Optional[ast.expr] = None
    node: Optional[ast.Call] = None

    @property
    def is_component(self) -> bool:
        return bool(self.tag) and self.tag[0].isupper()

    @property
    def component_root(self) -> str:
        """The name a component tag is looked up by (``ui`` for ``ui.Counter``)."""
        return self.tag.split('.', 1)[0]

    def child_elements(self) -> List[Tuple[int, 'Element']]:
        return [(i, c) for i, c in enumerate(self.children) if isinstance(c, Element)]

    def __repr__(self) -> str:
        return (
            f"Element({self.tag!r}, attrs={list(self.attributes)}, "
            f"children={len(self.children)})"
        )


Child = Union[Element, ast.expr, Text]


@dataclass
class Component:
    """A component function and the element calls it returns."""
    name: str
    params: Dict[str, Optional[str]]
    func_node: ast.FunctionDef
    element_calls: List[ast.Call]
    skip: bool = False

    @property
    def type_hints(self) -> Dict[str, Optional[str]]:
        return dict(self.params)


# ═══════════════════════════════════════════════════════════════════════════
# Expression predicates
# ═══════════════════════════════════════════════════════════════════════════

def is_literal(expr: ast.expr) -> bool:
    """String, number, boolean or None literal."""
    return isinstance(expr, ast.Constant) and isinstance(expr.value, _LITERAL_TYPES)


def is_reference(expr: ast.expr) -> bool:
    """Identifier or member reference (``name`` / ``obj.attr``)."""
    return isinstance(expr, (ast.Name, ast.Attribute))


def is_invocation(expr: ast.expr) -> bool:
    """Call or constructor expression."""
    return isinstance(expr, ast.Call)


def dotted_name(node: ast.expr) -> Optional[str]:
    """``a.b.c`` for a chain of attribute accesses rooted at a name."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = dotted_name(node.value)
        if base:
            return f'{base}.{node.attr}'
    return None


def parse_expr(source: str) -> ast.expr:
    """Parse a single Python expression."""
    try:
        return ast.parse(source.strip(), mode='eval').body
    except SyntaxError as exc:
        raise ElementSyntaxError(f"Invalid expression {source!r}: {exc.msg}") from exc


# ═══════════════════════════════════════════════════════════════════════════
# Building elements
# ═══════════════════════════════════════════════════════════════════════════

def is_element_call(node: ast.AST, factories: FrozenSet[str] = ELEMENT_FACTORIES) -> bool:
    if not isinstance(node, ast.Call):
        return False
    func = node.func
    if isinstance(func, ast.Name):
        return func.id in factories
    if isinstance(func, ast.Attribute):
        return func.attr in factories
    return False


def element(tag: str, attributes: Optional[Dict[str, Any]] = None,
            children: Optional[List[Any]] = None) -> Element:
    """
    Build an Element programmatically.

    Attribute values and computed children may be given as ``ast.expr``
    nodes or as source strings; plain ``str`` children are text. Use
    :func:`parse_expr` for string-valued expression children.
    """
    attrs: Dict[str, ast.expr] = {}
    for name, value in (attributes or {}).items():
        attrs[name] = value if isinstance(value, ast.expr) else parse_expr(value)

    kids: List[Child] = []
    for child in children or []:
        if isinstance(child, (Element, ast.expr, Text)):
            kids.append(child)
        elif isinstance(child, str):
            kids.append(Text(child))
        else:
            raise ElementSyntaxError(f"Unsupported child {child!r}")

    tag_node: ast.expr
    if tag and tag[0].isupper():
        tag_node = parse_expr(tag)
    else:
        tag_node = ast.Constant(value=tag)
    return Element(tag=tag, attributes=attrs, children=tuple(kids), tag_node=tag_node)


def element_from_ast(call: ast.Call, factories: FrozenSet[str] = ELEMENT_FACTORIES) -> Element:
    """Lift an ``el(tag, props, children)`` call into an Element."""
    if not is_element_call(call, factories):
        raise ElementSyntaxError("Not an element factory call", call)

    args = list(call.args)
    kwargs = {kw.arg: kw.value for kw in call.keywords if kw.arg is not None}
    if any(kw.arg is None for kw in call.keywords):
        raise ElementSyntaxError("Keyword unpacking is not supported in el()", call)
    if not args:
        raise ElementSyntaxError("el() requires a tag", call)

    tag_node = args[0]
    props_node = args[1] if len(args) > 1 else kwargs.get('props')
    children_node = args[2] if len(args) > 2 else kwargs.get('children')
    if len(args) > 3:
        raise ElementSyntaxError("el() takes at most three positional arguments", call)

    tag = _tag_name(tag_node)

    attributes: Dict[str, ast.expr] = {}
    if props_node is not None and not (
            isinstance(props_node, ast.Constant) and props_node.value is None):
        if not isinstance(props_node, ast.Dict):
            raise ElementSyntaxError("el() props must be a dict literal", props_node)
        for key, value in zip(props_node.keys, props_node.values):
            if key is None:
                raise ElementSyntaxError("Spread props are not supported", props_node)
            if not (isinstance(key, ast.Constant) and isinstance(key.value, str)):
                raise ElementSyntaxError("Prop names must be string literals", key)
            attributes[key.value] = value

    children: List[Child] = []
    if children_node is not None and not (
            isinstance(children_node, ast.Constant) and children_node.value is None):
        if not isinstance(children_node, (ast.List, ast.Tuple)):
            raise ElementSyntaxError("el() children must be a list literal", children_node)
        for child in children_node.elts:
            if is_element_call(child, factories):
                children.append(element_from_ast(child, factories))
            elif isinstance(child, ast.Constant) and isinstance(child.value, str):
                children.append(Text(child.value))
            else:
                children.append(child)

    return Element(
        tag=tag,
        attributes=attributes,
        children=tuple(children),
        tag_node=tag_node,
        node=call,
    )


def _tag_name(node: ast.expr) -> str:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        if not node.value:
            raise ElementSyntaxError("Empty tag", node)
        if node.value[0].isupper():
            raise ElementSyntaxError(
                f"Component tag {node.value!r} must be referenced by name, not by string",
                node,
            )
        return node.value
    name = dotted_name(node)
    if name is None:
        raise ElementSyntaxError("Tag must be a string literal or a (dotted) name", node)
    return name


def parse_element(source: str, factories: FrozenSet[str] = ELEMENT_FACTORIES) -> Element:
    """Parse source text containing a single ``el(...)`` expression."""
    expr = parse_expr(textwrap.dedent(source))
    if not isinstance(expr, ast.Call):
        raise ElementSyntaxError("Source is not an element call", expr)
    return element_from_ast(expr, factories)


def walk(root: Element) -> Iterator[Element]:
    """Pre-order traversal over an element and its nested elements."""
    yield root
    for child in root.children:
        if isinstance(child, Element):
            yield from walk(child)


# ═══════════════════════════════════════════════════════════════════════════
# Components
# ═══════════════════════════════════════════════════════════════════════════

SKIP_MARKER = '@uiblocks: skip'


class _OutermostElementFinder(ast.NodeVisitor):
    """Collects element calls that are not nested inside another element call."""

    def __init__(self, factories: FrozenSet[str]):
        self.factories = factories
        self.calls: List[ast.Call] = []
        self._depth = 0

    def visit_FunctionDef(self, node):
        if self._depth > 0:
            # Nested helper definitions are analysed on their own
            return
        self._depth += 1
        self.generic_visit(node)
        self._depth -= 1

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_Call(self, node: ast.Call):
        if is_element_call(node, self.factories):
            self.calls.append(node)
            return
        self.generic_visit(node)


def parse_component(func_or_source: Union[Callable, str],
                    factories: FrozenSet[str] = ELEMENT_FACTORIES) -> Component:
    """
    Parse a component function.

    Accepts either the function object (its source is fetched with
    ``inspect``) or source text containing a function definition.
    """
    if isinstance(func_or_source, str):
        source = textwrap.dedent(func_or_source)
    else:
        inner = func_or_source
        while hasattr(inner, '__wrapped__'):
            inner = inner.__wrapped__
        source = textwrap.dedent(inspect.getsource(inner))

    tree = ast.parse(source)
    func_node = None
    for node in ast.walk(tree):
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            func_node = node
            break
    if func_node is None:
        raise ElementSyntaxError("No function definition found in source")

    params: Dict[str, Optional[str]] = {}
    all_args = (func_node.args.posonlyargs + func_node.args.args
                + func_node.args.kwonlyargs)
    for arg in all_args:
        params[arg.arg] = ast.unparse(arg.annotation) if arg.annotation else None
    for arg in (func_node.args.vararg, func_node.args.kwarg):
        if arg is not None:
            params[arg.arg] = ast.unparse(arg.annotation) if arg.annotation else None

    finder = _OutermostElementFinder(factories)
    finder.visit(func_node)

    return Component(
        name=func_node.name,
        params=params,
        func_node=func_node,
        element_calls=finder.calls,
        skip=_has_skip_marker(func_node),
    )


def _has_skip_marker(func_node: ast.FunctionDef) -> bool:
    for deco in func_node.decorator_list:
        if dotted_name(deco) in ('skip_optimization', 'uiblocks.skip_optimization'):
            return True
    doc = ast.get_docstring(func_node)
    return bool(doc) and SKIP_MARKER in doc


def skip_optimization(func: Callable) -> Callable:
    """Decorator that opts a component out of block optimization."""
    func.__uiblocks_skip__ = True
    return func
