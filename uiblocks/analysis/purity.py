"""
Purity Oracle
=============

Answers one question for the classifier: is this call, constructor or
member access referentially pure regardless of runtime state?

A pure construct evaluated with static arguments always yields an
equivalent value, so an attribute such as ``Color3.fromRGB(255, 0, 0)`` can
be hoisted out of the render path even though it is syntactically a call.

The classifier only depends on the :class:`PurityOracle` protocol. This
module ships a registry-backed default, :class:`KnownPurityOracle`, which
recognises common UI value types, pure builtins and ``math`` functions, and
which can learn about project helpers by statically analysing them with
:class:`HelperPurityAnalyzer`.

The helper analysis classifies functions into a purity lattice:

    PURE ⊂ READ_ONLY ⊂ LOCALLY_IMPURE ⊂ IMPURE

Only PURE helpers are registered with the oracle; everything the oracle
does not know about is treated as impure (dynamic).
"""

import ast
import builtins
import inspect
import logging
import textwrap
from dataclasses import dataclass, field
from enum import IntEnum
from typing import (
    Callable, Dict, FrozenSet, Iterable, List, Optional, Protocol, Set,
    runtime_checkable,
)

from ..model.element import dotted_name

logger = logging.getLogger(__name__)


@runtime_checkable
class PurityOracle(Protocol):
    """External authority on side-effect-free constructs."""

    def is_pure_call(self, call: ast.Call) -> bool:
        ...

    def is_pure_construction(self, call: ast.Call) -> bool:
        ...

    def is_pure_member_access(self, expr: ast.Attribute) -> bool:
        ...


# ═══════════════════════════════════════════════════════════════════════════
# Known-pure and known-impure registries
# ═══════════════════════════════════════════════════════════════════════════

# Immutable value types whose construction has no side effects
_KNOWN_VALUE_TYPES: FrozenSet[str] = frozenset({
    'Axes', 'BrickColor', 'CFrame', 'Color3', 'ColorSequence',
    'ColorSequenceKeypoint', 'Faces', 'Font', 'NumberRange',
    'NumberSequence', 'NumberSequenceKeypoint', 'PhysicalProperties',
    'Ray', 'Rect', 'Region3', 'TweenInfo', 'UDim', 'UDim2',
    'Vector2', 'Vector2int16', 'Vector3', 'Vector3int16',
})

# Static factory methods on value types (Type.method(...))
_KNOWN_STATIC_FACTORIES: Dict[str, FrozenSet[str]] = {
    'BrickColor': frozenset({'new', 'palette', 'random', 'White', 'Black',
                             'Red', 'Green', 'Blue', 'Gray'}),
    'CFrame': frozenset({'new', 'lookAt', 'fromEulerAnglesXYZ',
                         'fromEulerAnglesYXZ', 'fromOrientation', 'Angles',
                         'fromAxisAngle', 'fromMatrix'}),
    'Color3': frozenset({'new', 'fromRGB', 'fromHSV', 'fromHex'}),
    'Font': frozenset({'new', 'fromEnum', 'fromName', 'fromId'}),
    'UDim': frozenset({'new'}),
    'UDim2': frozenset({'new', 'fromScale', 'fromOffset'}),
    'Vector2': frozenset({'new'}),
    'Vector3': frozenset({'new', 'FromNormalId', 'FromAxis'}),
}

_KNOWN_PURE_FUNCTIONS: FrozenSet[str] = frozenset({
    # builtins
    'abs', 'all', 'any', 'ascii', 'bin', 'bool', 'bytes', 'chr',
    'complex', 'divmod', 'float', 'format', 'frozenset', 'hex', 'int',
    'len', 'max', 'min', 'oct', 'ord', 'pow', 'repr', 'round', 'sorted',
    'str', 'sum', 'tuple',
    # math module
    'math.ceil', 'math.copysign', 'math.cos', 'math.degrees',
    'math.exp', 'math.fabs', 'math.floor', 'math.fmod', 'math.hypot',
    'math.isclose', 'math.log', 'math.log10', 'math.log2', 'math.pow',
    'math.radians', 'math.sin', 'math.sqrt', 'math.tan', 'math.trunc',
})

# Namespaces whose members are constants (Enum.Font.SourceSans, math.pi)
_KNOWN_PURE_NAMESPACES: FrozenSet[str] = frozenset({'Enum', 'math'})

_KNOWN_IO_FUNCTIONS: FrozenSet[str] = frozenset({
    'print', 'input', 'open', 'exec', 'eval', 'compile',
    '__import__', 'exit', 'quit', 'breakpoint',
})

_KNOWN_NONDETERMINISTIC: FrozenSet[str] = frozenset({
    'random.random', 'random.randint', 'random.choice',
    'random.shuffle', 'random.sample', 'random.uniform',
    'time.time', 'time.perf_counter', 'time.monotonic', 'time.time_ns',
    'uuid.uuid4', 'uuid.uuid1', 'os.urandom', 'id',
    'BrickColor.random',
})

_KNOWN_MUTATION_METHODS: FrozenSet[str] = frozenset({
    'append', 'extend', 'insert', 'remove', 'pop', 'clear',
    'sort', 'reverse', 'add', 'discard', 'update', 'setdefault', 'popitem',
})


class KnownPurityOracle:
    """
    Registry-backed purity oracle.

    Usage:
        oracle = KnownPurityOracle(extra_pure={'format_count'})
        oracle.is_pure_call(parse_expr('format_count(3)'))   # True

    Unknown callees and members are impure; the oracle never guesses.
    """

    def __init__(
        self,
        *,
        extra_pure: Optional[Iterable[str]] = None,
        extra_impure: Optional[Iterable[str]] = None,
        value_types: Optional[Iterable[str]] = None,
        pure_namespaces: Optional[Iterable[str]] = None,
    ):
        self._value_types: Set[str] = set(_KNOWN_VALUE_TYPES)
        self._static_factories: Dict[str, Set[str]] = {
            k: set(v) for k, v in _KNOWN_STATIC_FACTORIES.items()
        }
        self._pure_functions: Set[str] = set(_KNOWN_PURE_FUNCTIONS)
        self._impure_functions: Set[str] = (
            set(_KNOWN_IO_FUNCTIONS) | set(_KNOWN_NONDETERMINISTIC)
        )
        self._pure_namespaces: Set[str] = set(_KNOWN_PURE_NAMESPACES)

        if value_types:
            self._value_types |= set(value_types)
        if pure_namespaces:
            self._pure_namespaces |= set(pure_namespaces)
        if extra_pure:
            self._pure_functions |= set(extra_pure)
        if extra_impure:
            self._impure_functions |= set(extra_impure)
            self._pure_functions -= self._impure_functions

        self._helper_analyzer = HelperPurityAnalyzer(known_pure=self._pure_functions)

    # ───────────────────────────────────────────────────────────────
    #  PurityOracle protocol
    # ───────────────────────────────────────────────────────────────

    def is_pure_call(self, call: ast.Call) -> bool:
        name = dotted_name(call.func)
        if name is None or name in self._impure_functions:
            return False
        if name in self._pure_functions:
            return True
        if '.' in name:
            owner, method = name.rsplit('.', 1)
            return method in self._static_factories.get(owner, ())
        return False

    def is_pure_construction(self, call: ast.Call) -> bool:
        name = dotted_name(call.func)
        if name is None or name in self._impure_functions:
            return False
        return name in self._value_types

    def is_pure_member_access(self, expr: ast.Attribute) -> bool:
        name = dotted_name(expr)
        if name is None:
            return False
        return name.split('.', 1)[0] in self._pure_namespaces

    # ───────────────────────────────────────────────────────────────
    #  Registry management
    # ───────────────────────────────────────────────────────────────

    def add_pure(self, *names: str) -> None:
        for name in names:
            self._impure_functions.discard(name)
            self._pure_functions.add(name)

    def add_value_type(self, name: str, factories: Iterable[str] = ()) -> None:
        self._value_types.add(name)
        if factories:
            self._static_factories.setdefault(name, set()).update(factories)

    def register_helper(self, func: Callable) -> 'HelperPurityReport':
        """
        Analyse a render helper and register it as pure if it provably is.

        Returns the analysis report either way.
        """
        report = self._helper_analyzer.analyze(func)
        if report.level == PurityLevel.PURE:
            self._pure_functions.add(report.function_name)
            logger.debug("Registered pure helper %s", report.function_name)
        else:
            logger.debug(
                "Helper %s not registered (%s): %s",
                report.function_name, report.level.name, '; '.join(report.reasons),
            )
        return report


# ═══════════════════════════════════════════════════════════════════════════
# Helper purity analysis
# ═══════════════════════════════════════════════════════════════════════════

class PurityLevel(IntEnum):
    """
    Graduated purity classification.

    Higher values = more impure.
    """
    PURE = 0
    READ_ONLY = 1
    LOCALLY_IMPURE = 2
    IMPURE = 3
    UNKNOWN = 4


@dataclass
class HelperPurityReport:
    """Why a helper is or isn't pure."""
    function_name: str
    level: PurityLevel
    reasons: List[str] = field(default_factory=list)

    global_reads: Set[str] = field(default_factory=set)
    global_writes: Set[str] = field(default_factory=set)
    io_calls: Set[str] = field(default_factory=set)
    unknown_calls: Set[str] = field(default_factory=set)
    mutation_calls: Set[str] = field(default_factory=set)
    nondeterministic_calls: Set[str] = field(default_factory=set)
    attribute_mutations: Set[str] = field(default_factory=set)
    has_yield: bool = False
    has_await: bool = False

    @property
    def is_pure(self) -> bool:
        return self.level == PurityLevel.PURE


class HelperPurityAnalyzer:
    """
    Analyses a helper function's AST to determine its purity level.

    A helper is PURE when it only combines its parameters with literals and
    with calls that are themselves known to be pure. Reading a module-level
    name makes it READ_ONLY; calling an unknown function makes it UNKNOWN.
    """

    def __init__(self, known_pure: Optional[Set[str]] = None):
        self._known_pure = known_pure if known_pure is not None else set(_KNOWN_PURE_FUNCTIONS)

    def analyze(self, func: Callable) -> HelperPurityReport:
        name = getattr(func, '__name__', '<anonymous>')
        inner = func
        while hasattr(inner, '__wrapped__'):
            inner = inner.__wrapped__
        try:
            source = textwrap.dedent(inspect.getsource(inner))
            tree = ast.parse(source)
        except (OSError, TypeError, IndentationError, SyntaxError):
            return HelperPurityReport(
                function_name=name,
                level=PurityLevel.UNKNOWN,
                reasons=['Could not retrieve source code'],
            )
        return self.analyze_ast(tree, name)

    def analyze_ast(self, tree: ast.AST, func_name: str = '<ast>') -> HelperPurityReport:
        for node in ast.walk(tree):
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                return self._analyze_funcdef(node, func_name)
        return HelperPurityReport(
            function_name=func_name,
            level=PurityLevel.UNKNOWN,
            reasons=['No function definition in AST'],
        )

    def _analyze_funcdef(self, node: ast.FunctionDef, name: str) -> HelperPurityReport:
        params = {a.arg for a in node.args.posonlyargs + node.args.args + node.args.kwonlyargs}
        for extra in (node.args.vararg, node.args.kwarg):
            if extra is not None:
                params.add(extra.arg)
        local_vars = params | {
            n.id for n in ast.walk(node)
            if isinstance(n, ast.Name) and isinstance(n.ctx, ast.Store)
        }

        visitor = _HelperPurityVisitor(
            local_vars=local_vars,
            params=params,
            func_name=name,
            known_pure=self._known_pure,
        )
        visitor.visit(node)

        report = HelperPurityReport(
            function_name=name,
            level=PurityLevel.PURE,
            global_reads=visitor.global_reads,
            global_writes=visitor.global_writes,
            io_calls=visitor.io_calls,
            unknown_calls=visitor.unknown_calls,
            mutation_calls=visitor.mutation_calls,
            nondeterministic_calls=visitor.nondeterministic_calls,
            attribute_mutations=visitor.attribute_mutations,
            has_yield=visitor.has_yield,
            has_await=isinstance(node, ast.AsyncFunctionDef) or visitor.has_await,
        )
        report.level = self._determine_level(report)
        report.reasons = self._generate_reasons(report)
        return report

    @staticmethod
    def _determine_level(report: HelperPurityReport) -> PurityLevel:
        if (report.io_calls or report.global_writes or report.nondeterministic_calls
                or report.attribute_mutations or report.has_yield or report.has_await):
            return PurityLevel.IMPURE
        if report.mutation_calls:
            return PurityLevel.LOCALLY_IMPURE
        if report.unknown_calls:
            return PurityLevel.UNKNOWN
        if report.global_reads:
            return PurityLevel.READ_ONLY
        return PurityLevel.PURE

    @staticmethod
    def _generate_reasons(report: HelperPurityReport) -> List[str]:
        reasons = []
        for label, names in (
            ('Writes to global variables', report.global_writes),
            ('I/O function calls', report.io_calls),
            ('Nondeterministic calls', report.nondeterministic_calls),
            ('Attribute mutations', report.attribute_mutations),
            ('Mutation method calls', report.mutation_calls),
            ('Calls to unknown functions', report.unknown_calls),
            ('Reads global variables', report.global_reads),
        ):
            if names:
                reasons.append(f"{label}: {', '.join(sorted(names))}")
        if report.has_yield:
            reasons.append("Contains yield (generator function)")
        if report.has_await:
            reasons.append("Contains await (async function)")
        if not reasons:
            reasons.append("Function is pure")
        return reasons


class _HelperPurityVisitor(ast.NodeVisitor):
    """Collects purity-violation evidence from a helper body."""

    def __init__(self, *, local_vars: Set[str], params: Set[str],
                 func_name: str, known_pure: Set[str]):
        self.local_vars = local_vars
        self.params = params
        self.func_name = func_name
        self.known_pure = known_pure

        self.global_reads: Set[str] = set()
        self.global_writes: Set[str] = set()
        self.io_calls: Set[str] = set()
        self.unknown_calls: Set[str] = set()
        self.mutation_calls: Set[str] = set()
        self.nondeterministic_calls: Set[str] = set()
        self.attribute_mutations: Set[str] = set()
        self.has_yield = False
        self.has_await = False

        self._builtins = set(dir(builtins))
        self._depth = 0

    def visit_FunctionDef(self, node):
        if self._depth > 0:
            return
        self._depth += 1
        self.generic_visit(node)
        self._depth -= 1

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_Global(self, node: ast.Global):
        self.global_writes.update(node.names)

    def visit_Nonlocal(self, node: ast.Nonlocal):
        self.global_writes.update(node.names)

    def visit_Name(self, node: ast.Name):
        if (isinstance(node.ctx, ast.Load)
                and node.id not in self.local_vars
                and node.id not in self._builtins
                and node.id not in _KNOWN_PURE_NAMESPACES
                and node.id != self.func_name):
            self.global_reads.add(node.id)

    def visit_Call(self, node: ast.Call):
        name = dotted_name(node.func)
        method = node.func.attr if isinstance(node.func, ast.Attribute) else None
        if name in _KNOWN_IO_FUNCTIONS:
            self.io_calls.add(name)
        elif name in _KNOWN_NONDETERMINISTIC:
            self.nondeterministic_calls.add(name)
        elif method in _KNOWN_MUTATION_METHODS:
            self.mutation_calls.add(name or f'?.{method}')
        elif name is not None and (name in self.known_pure or name == self.func_name):
            pass
        elif method is not None and self._is_str_method(node.func):
            pass
        else:
            self.unknown_calls.add(name or '<dynamic>')
        # Don't report the callee name itself as a global read
        for arg in node.args:
            self.visit(arg)
        for kw in node.keywords:
            self.visit(kw.value)
        if isinstance(node.func, ast.Attribute):
            self.visit(node.func.value)

    def visit_Attribute(self, node: ast.Attribute):
        if isinstance(node.ctx, (ast.Store, ast.Del)):
            receiver = dotted_name(node.value) or '?'
            self.attribute_mutations.add(f'{receiver}.{node.attr}')
        self.generic_visit(node)

    def visit_Subscript(self, node: ast.Subscript):
        if isinstance(node.ctx, (ast.Store, ast.Del)):
            receiver = dotted_name(node.value)
            if (receiver is None or receiver not in self.local_vars
                    or receiver in self.params):
                self.attribute_mutations.add(f'{receiver or "?"}[...]')
        self.generic_visit(node)

    def visit_Yield(self, node):
        self.has_yield = True
        self.generic_visit(node)

    visit_YieldFrom = visit_Yield

    def visit_Await(self, node):
        self.has_await = True
        self.generic_visit(node)

    @staticmethod
    def _is_str_method(func: ast.Attribute) -> bool:
        # "...".format(...) / "...".join(...) on a literal receiver
        return (isinstance(func.value, ast.Constant)
                and isinstance(func.value.value, str)
                and func.attr in {'format', 'join', 'upper', 'lower', 'strip'})
