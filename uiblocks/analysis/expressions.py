"""
Expression analysis: dynamism and dependency extraction.

Both passes are AST visitors over the same set of expression shapes:

    DynamismChecker.visit(expr) -> bool
        Does the expression's value possibly change between renders?

    DependencyCollector.collect(expr) -> List[str]
        Which externally supplied names does its value depend on?

Unrecognised shapes are dynamic. Classification is therefore total: a
missing visitor method can make a block less optimized, never incorrect.
"""

import ast
import logging
from typing import Iterable, List, Optional, Set

from ..model.element import is_literal
from .purity import KnownPurityOracle, PurityOracle

logger = logging.getLogger(__name__)


def _is_pure_callee(oracle: PurityOracle, call: ast.Call) -> bool:
    return oracle.is_pure_construction(call) or oracle.is_pure_call(call)


class DynamismChecker(ast.NodeVisitor):
    """
    Decides whether an expression is dynamic.

    Usage:
        checker = DynamismChecker(KnownPurityOracle())
        checker.visit(parse_expr('Color3.fromRGB(255, 0, 0)'))   # False
        checker.visit(parse_expr('Color3.fromRGB(r, 0, 0)'))     # True
    """

    def __init__(self, oracle: Optional[PurityOracle] = None):
        self.oracle = oracle if oracle is not None else KnownPurityOracle()
        self.fallbacks = 0

    def is_dynamic(self, expr: ast.expr) -> bool:
        return bool(self.visit(expr))

    def _any(self, nodes: Iterable[Optional[ast.AST]]) -> bool:
        return any(self.visit(n) for n in nodes if n is not None)

    # ---- leaves ----

    def visit_Constant(self, node: ast.Constant) -> bool:
        return not is_literal(node)

    def visit_Name(self, node: ast.Name) -> bool:
        return True

    def visit_Attribute(self, node: ast.Attribute) -> bool:
        return not self.oracle.is_pure_member_access(node)

    def visit_Subscript(self, node: ast.Subscript) -> bool:
        return True

    def visit_IfExp(self, node: ast.IfExp) -> bool:
        return True

    def visit_Lambda(self, node: ast.Lambda) -> bool:
        return True

    # ---- calls: purity does not propagate through dynamic arguments ----

    def visit_Call(self, node: ast.Call) -> bool:
        if not _is_pure_callee(self.oracle, node):
            return True
        return self._any(node.args) or self._any(kw.value for kw in node.keywords)

    # ---- composites ----

    def visit_JoinedStr(self, node: ast.JoinedStr) -> bool:
        return self._any(node.values)

    def visit_FormattedValue(self, node: ast.FormattedValue) -> bool:
        return self.visit(node.value) or self._any([node.format_spec])

    def visit_BinOp(self, node: ast.BinOp) -> bool:
        return self.visit(node.left) or self.visit(node.right)

    def visit_BoolOp(self, node: ast.BoolOp) -> bool:
        return self._any(node.values)

    def visit_Compare(self, node: ast.Compare) -> bool:
        return self.visit(node.left) or self._any(node.comparators)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> bool:
        return self.visit(node.operand)

    def visit_List(self, node: ast.List) -> bool:
        return self._any(node.elts)

    visit_Tuple = visit_List
    visit_Set = visit_List

    def visit_Dict(self, node: ast.Dict) -> bool:
        for key, value in zip(node.keys, node.values):
            if key is None:
                # **spread behaves like a shorthand property
                return True
            if self.visit(key) or self.visit(value):
                return True
        return False

    def generic_visit(self, node: ast.AST) -> bool:
        self.fallbacks += 1
        logger.debug("Unrecognised expression shape %s, treating as dynamic",
                     type(node).__name__)
        return True


class DependencyCollector(ast.NodeVisitor):
    """
    Collects the leaf identifiers (or member roots) an expression reads.

    Names bound inside the expression (lambda parameters, comprehension
    targets) are not dependencies. Callees recognised by the oracle are
    skipped; only their arguments count.
    """

    def __init__(self, oracle: Optional[PurityOracle] = None):
        self.oracle = oracle if oracle is not None else KnownPurityOracle()
        self._deps: List[str] = []
        self._seen: Set[str] = set()
        self._bound: List[Set[str]] = []

    def collect(self, expr: ast.expr, into: Optional[List[str]] = None) -> List[str]:
        """Return the ordered, deduplicated dependencies of ``expr``.

        When ``into`` is given, new names are appended to it in place.
        """
        self._deps = into if into is not None else []
        self._seen = set(self._deps)
        self._bound = []
        self.visit(expr)
        return self._deps

    def _add(self, name: str) -> None:
        if any(name in scope for scope in self._bound):
            return
        if name not in self._seen:
            self._seen.add(name)
            self._deps.append(name)

    def visit_Name(self, node: ast.Name):
        if isinstance(node.ctx, ast.Load):
            self._add(node.id)

    def visit_Attribute(self, node: ast.Attribute):
        if self.oracle.is_pure_member_access(node):
            return
        self.visit(node.value)

    def visit_Call(self, node: ast.Call):
        if not _is_pure_callee(self.oracle, node):
            self.visit(node.func)
        for arg in node.args:
            self.visit(arg)
        for kw in node.keywords:
            self.visit(kw.value)

    def visit_Dict(self, node: ast.Dict):
        for key, value in zip(node.keys, node.values):
            if key is not None:
                self.visit(key)
            self.visit(value)

    def visit_Lambda(self, node: ast.Lambda):
        args = node.args
        for default in args.defaults + [d for d in args.kw_defaults if d is not None]:
            self.visit(default)
        names = {a.arg for a in args.posonlyargs + args.args + args.kwonlyargs}
        for extra in (args.vararg, args.kwarg):
            if extra is not None:
                names.add(extra.arg)
        self._bound.append(names)
        self.visit(node.body)
        self._bound.pop()

    def _visit_comprehension(self, generators, results):
        scope: Set[str] = set()
        self._bound.append(scope)
        for gen in generators:
            # The first iterable is evaluated in the enclosing scope
            self.visit(gen.iter)
            scope.update(
                n.id for n in ast.walk(gen.target) if isinstance(n, ast.Name)
            )
            for cond in gen.ifs:
                self.visit(cond)
        for result in results:
            self.visit(result)
        self._bound.pop()

    def visit_ListComp(self, node):
        self._visit_comprehension(node.generators, [node.elt])

    visit_SetComp = visit_ListComp
    visit_GeneratorExp = visit_ListComp

    def visit_DictComp(self, node: ast.DictComp):
        self._visit_comprehension(node.generators, [node.key, node.value])

    def visit_NamedExpr(self, node: ast.NamedExpr):
        self.visit(node.value)


def is_dynamic(expr: ast.expr, oracle: Optional[PurityOracle] = None) -> bool:
    return DynamismChecker(oracle).is_dynamic(expr)


def extract_dependencies(expr: ast.expr, oracle: Optional[PurityOracle] = None) -> List[str]:
    return DependencyCollector(oracle).collect(expr)
