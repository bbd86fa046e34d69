"""
Block Code Generation
=====================

Rewrites a component function so every outermost ``el(...)`` call renders
through the strategy chosen for it:

  StaticExtract  ->  a constant built once, when the component is optimized
                         STATIC_ELEMENT_FRAME_0
  BasicRebuild   ->  the call as authored, children optimized independently
                         el("frame", {...}, [<optimized children>])
  CoarseMemoize  ->  __uiblocks_cache__.memoize(
                         "Card:block_1", [title, color],
                         lambda title, color: el(...))
  FinePatch      ->  __uiblocks_cache__.patch_memoize(
                         "Card:block_1", [title, color],
                         __uiblocks_instructions__["Card:block_1"],
                         lambda title, color: el(...),
                         ("title", "color"))

The rewritten source is compiled inside a factory function whose globals are
the live module globals of the component, so late-bound helpers and
constants resolve exactly as they do for the authored function. Anything
that prevents a safe rewrite (unavailable source, closures, malformed
element calls, statics that cannot be built yet) leaves the function or the
call exactly as authored.
"""

import ast
import copy
import dataclasses
import logging
import types
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from ..analysis.classifier import BlockClassifier, BlockInfo
from ..analysis.purity import KnownPurityOracle, PurityOracle
from ..errors import ElementSyntaxError
from ..model.element import Element, Text, element_from_ast, parse_component
from ..optimization.policy import Decision, MemoizationPolicy
from ..runtime.block_cache import BlockCache, default_cache
from .hoisting import StaticArtifact, StaticHoister
from .patch_generator import PatchGenerator, PatchInstruction

logger = logging.getLogger(__name__)


CACHE_NAME = '__uiblocks_cache__'
INSTRUCTIONS_NAME = '__uiblocks_instructions__'
FACTORY_NAME = '__uiblocks_factory__'


@dataclass
class OptimizerOptions:
    """Pipeline configuration."""
    fine_patch: bool = True
    hoist_static: bool = True
    strict_hoisting: bool = False
    fan_out_edits: bool = True
    min_dependencies: Optional[int] = None
    min_complexity: Optional[int] = None
    extra_pure: FrozenSet[str] = frozenset()
    bailout_props: Optional[FrozenSet[str]] = None
    enable_logging: bool = False


@dataclass
class BlockPlan:
    element: Element
    info: BlockInfo
    decision: Decision
    children: List['BlockPlan'] = field(default_factory=list)


@dataclass
class MemoArtifact:
    block_id: str
    dependencies: List[str]
    decision: Decision
    instructions: Optional[List[PatchInstruction]] = None


@dataclass
class Emission:
    """Everything the placement step needs for one element tree."""
    statics: List[StaticArtifact] = field(default_factory=list)
    memos: List[MemoArtifact] = field(default_factory=list)
    expression: Optional[ast.expr] = None


@dataclass
class BlockReport:
    block_id: str
    tag: str
    decision: Decision
    optimized: bool
    dependencies: List[str] = field(default_factory=list)


@dataclass
class OptimizationReport:
    """Per-block diagnostics for one optimized component."""
    component: str
    blocks: List[BlockReport] = field(default_factory=list)
    static_artifacts: int = 0
    skipped: bool = False
    reason: Optional[str] = None

    @property
    def optimized_count(self) -> int:
        return sum(1 for b in self.blocks if b.optimized)

    def decisions(self) -> Dict[str, Decision]:
        return {b.block_id: b.decision for b in self.blocks}

    def summary(self) -> str:
        if self.skipped:
            return f"{self.component}: not optimized ({self.reason})"
        counts: Dict[str, int] = defaultdict(int)
        for block in self.blocks:
            counts[block.decision.name] += 1
        parts = ', '.join(f'{name}={n}' for name, n in sorted(counts.items()))
        return (f"{self.component}: {self.optimized_count}/{len(self.blocks)} blocks "
                f"optimized ({parts}), {self.static_artifacts} static artifact(s)")


class _EmitContext:
    """State shared while rewriting the element calls of one component."""

    def __init__(self, classifier: BlockClassifier, hoister: StaticHoister,
                 generator: PatchGenerator, block_prefix: str):
        self.classifier = classifier
        self.hoister = hoister
        self.generator = generator
        self.block_prefix = block_prefix
        self.memos: List[MemoArtifact] = []
        self.instructions: Dict[str, List[PatchInstruction]] = {}
        self.reports: List[BlockReport] = []

    def block_id(self, info: BlockInfo) -> str:
        return f'{self.block_prefix}:{info.id}' if self.block_prefix else info.id


class _CallReplacer(ast.NodeTransformer):
    def __init__(self, replacements: Dict[int, ast.expr]):
        self.replacements = replacements

    def visit_Call(self, node: ast.Call):
        replacement = self.replacements.get(id(node))
        if replacement is not None:
            return ast.copy_location(replacement, node)
        return self.generic_visit(node)


class BlockOptimizer:
    """
    Plans, emits and applies block optimizations.

    Usage:
        optimizer = BlockOptimizer(fine_patch=True)

        def Card(title: str, color):
            return el("frame", {"Title": title, "BackgroundColor3": color}, [
                el("uicorner", {"CornerRadius": UDim.new(0, 8)}),
            ])

        fast_card = optimizer.optimize(Card)
        print(optimizer.get_optimized_source(Card))
        print(fast_card.__uiblocks_report__.summary())
    """

    def __init__(
        self,
        options: Optional[OptimizerOptions] = None,
        *,
        oracle: Optional[PurityOracle] = None,
        cache: Optional[BlockCache] = None,
        **overrides: Any,
    ):
        options = options if options is not None else OptimizerOptions()
        self.options = dataclasses.replace(options, **overrides) if overrides else options
        self.oracle = oracle if oracle is not None else KnownPurityOracle(
            extra_pure=self.options.extra_pure)
        self.cache = cache if cache is not None else default_cache
        self.policy = MemoizationPolicy(
            min_dependencies=self.options.min_dependencies,
            min_complexity=self.options.min_complexity,
        )
        self.stats = defaultdict(int)

        if self.options.enable_logging:
            logging.basicConfig(level=logging.DEBUG)

    # ───────────────────────────────────────────────────────────────
    #  Planning and emission
    # ───────────────────────────────────────────────────────────────

    def new_classifier(self, type_hints: Optional[Dict[str, Optional[str]]] = None) -> BlockClassifier:
        return BlockClassifier(
            self.oracle,
            type_hints=type_hints,
            bailout_props=self.options.bailout_props,
        )

    def plan(self, element: Element,
             classifier: Optional[BlockClassifier] = None) -> BlockPlan:
        """Classify and decide ``element`` and, recursively, its children."""
        classifier = classifier if classifier is not None else self.new_classifier()
        info = classifier.classify(element)
        decision = self.policy.decide(info, self.options.fine_patch)
        plan = BlockPlan(element=element, info=info, decision=decision)
        for _, child in element.child_elements():
            plan.children.append(self.plan(child, classifier))
        return plan

    def emit(self, element: Element, block_prefix: str = '') -> Emission:
        """Produce the artifacts and the rewritten expression for ``element``."""
        ctx = self._new_context(self.new_classifier(), block_prefix)
        expression = self._rewrite(self.plan(element, ctx.classifier), ctx)
        return Emission(
            statics=ctx.hoister.ordered(),
            memos=ctx.memos,
            expression=expression,
        )

    # ───────────────────────────────────────────────────────────────
    #  Function rewriting
    # ───────────────────────────────────────────────────────────────

    def optimize(self, func: Callable) -> Callable:
        """
        Return an optimized version of the component ``func``.

        The original function is returned unchanged when it opts out or
        cannot be rewritten safely; the reason is logged.
        """
        if getattr(func, '__uiblocks_skip__', False):
            logger.debug("Skipping %s: marked skip_optimization", func.__qualname__)
            return func
        code_obj = getattr(func, '__code__', None)
        if code_obj is None:
            logger.debug("Skipping %r: not a plain function", func)
            return func
        if code_obj.co_freevars:
            logger.debug("Skipping %s: closures are not rewritten", func.__qualname__)
            return func

        try:
            module, ctx, report = self._transform(func)
        except (OSError, TypeError, SyntaxError, ElementSyntaxError) as e:
            logger.debug("Skipping %s: source unavailable (%s)", func.__qualname__, e)
            return func
        if report.skipped:
            logger.debug("Skipping %s: %s", func.__qualname__, report.reason)
            return func

        code = compile(_as_factory(module, func.__name__),
                       f'<uiblocks-optimized:{func.__name__}>', 'exec')

        # Statics, cache and instructions are closure cells; every other
        # name resolves in the live module globals at call time.
        scratch: Dict[str, Any] = {}
        try:
            exec(code, scratch)
            factory = types.FunctionType(
                scratch[FACTORY_NAME].__code__, func.__globals__, FACTORY_NAME)
            optimized_func = factory(self.cache, ctx.instructions)
        except Exception as e:
            logger.warning("Optimized %s failed to load, using original: %s",
                           func.__qualname__, e)
            return func

        optimized_func.__wrapped__ = func
        optimized_func.__uiblocks_original__ = func
        optimized_func.__uiblocks_optimized__ = True
        optimized_func.__uiblocks_report__ = report
        optimized_func.__qualname__ = func.__qualname__
        optimized_func.__doc__ = func.__doc__

        self.stats['components_optimized'] += 1
        logger.debug(report.summary())
        return optimized_func

    def get_optimized_source(self, func: Callable) -> str:
        """Return the rewritten source of ``func`` as a string."""
        module, _, _ = self._transform(func)
        return ast.unparse(module)

    def _transform(self, func: Callable):
        component = parse_component(func)
        report = OptimizationReport(component=component.name)
        if component.skip:
            report.skipped = True
            report.reason = 'opt-out marker'

        ctx = self._new_context(self.new_classifier(component.type_hints), component.name)
        replacements: Dict[int, ast.expr] = {}
        if not report.skipped:
            for call in component.element_calls:
                try:
                    element = element_from_ast(call)
                except ElementSyntaxError as e:
                    logger.debug("Leaving element call as authored: %s", e)
                    self.stats['calls_left_as_authored'] += 1
                    continue
                replacements[id(call)] = self._rewrite(self.plan(element, ctx.classifier), ctx)

        func_node = component.func_node
        func_node.decorator_list = []
        _CallReplacer(replacements).visit(func_node)

        prelude = self._static_prelude(ctx.hoister)
        module = ast.Module(body=prelude + [func_node], type_ignores=[])
        ast.fix_missing_locations(module)

        report.blocks = ctx.reports
        report.static_artifacts = len(ctx.hoister.artifacts)
        return module, ctx, report

    # ───────────────────────────────────────────────────────────────
    #  Expression rewriting
    # ───────────────────────────────────────────────────────────────

    def _new_context(self, classifier: BlockClassifier, block_prefix: str) -> _EmitContext:
        return _EmitContext(
            classifier,
            StaticHoister(classifier, strict=self.options.strict_hoisting),
            PatchGenerator(classifier, fan_out=self.options.fan_out_edits),
            block_prefix,
        )

    def _rewrite(self, plan: BlockPlan, ctx: _EmitContext) -> ast.expr:
        info, decision, element = plan.info, plan.decision, plan.element
        block_id = ctx.block_id(info)
        ctx.reports.append(BlockReport(
            block_id=block_id,
            tag=info.tag,
            decision=decision,
            optimized=decision.is_optimized,
            dependencies=list(info.dependencies),
        ))
        self.stats[decision.name.lower()] += 1

        if decision == Decision.STATIC_EXTRACT and self.options.hoist_static:
            artifact = ctx.hoister.hoist(element)
            if artifact is not None:
                return ast.Name(id=artifact.id, ctx=ast.Load())

        if not decision.is_memoized:
            children = [self._rewrite(p, ctx) for p in plan.children]
            return self._element_call(element, ctx, iter(children))

        deps = list(info.dependencies)
        render = ast.Lambda(
            args=ast.arguments(
                posonlyargs=[],
                args=[ast.arg(arg=d) for d in deps],
                kwonlyargs=[], kw_defaults=[], defaults=[],
            ),
            body=self._element_call(element, ctx),
        )
        dep_list = ast.List(elts=[ast.Name(id=d, ctx=ast.Load()) for d in deps], ctx=ast.Load())

        if decision == Decision.FINE_PATCH:
            instructions = ctx.generator.generate(element).instructions
            ctx.instructions[block_id] = instructions
            ctx.memos.append(MemoArtifact(block_id, deps, decision, instructions))
            return self._cache_call('patch_memoize', [
                ast.Constant(value=block_id),
                dep_list,
                ast.Subscript(
                    value=ast.Name(id=INSTRUCTIONS_NAME, ctx=ast.Load()),
                    slice=ast.Constant(value=block_id),
                    ctx=ast.Load(),
                ),
                render,
                ast.Tuple(elts=[ast.Constant(value=d) for d in deps], ctx=ast.Load()),
            ])

        ctx.memos.append(MemoArtifact(block_id, deps, decision))
        return self._cache_call('memoize', [ast.Constant(value=block_id), dep_list, render])

    def _element_call(self, element: Element, ctx: _EmitContext,
                      rewritten_children=None) -> ast.Call:
        """
        Rebuild ``el(tag, props, children)`` for ``element``.

        Element children come from ``rewritten_children`` when given;
        otherwise static children are hoisted and the rest rebuilt as authored.
        """
        children: List[ast.expr] = []
        for child in element.children:
            if isinstance(child, Element):
                if rewritten_children is not None:
                    children.append(next(rewritten_children))
                    continue
                artifact = None
                if self.options.hoist_static and ctx.classifier.is_completely_static(child):
                    artifact = ctx.hoister.hoist(child)
                if artifact is not None:
                    children.append(ast.Name(id=artifact.id, ctx=ast.Load()))
                else:
                    children.append(self._element_call(child, ctx))
            elif isinstance(child, Text):
                children.append(ast.Constant(value=child.value))
            else:
                children.append(copy.deepcopy(child))

        props = self._props_dict(element)
        return self._factory_call(element, props, children)

    def _static_prelude(self, hoister: StaticHoister) -> List[ast.stmt]:
        body: List[ast.stmt] = []
        for artifact in hoister.ordered():
            element = artifact.element
            props: Optional[ast.expr] = None
            if artifact.props_table_id:
                body.append(_assign(artifact.props_table_id, self._props_dict(element)))
                props = ast.Name(id=artifact.props_table_id, ctx=ast.Load())

            children: List[ast.expr] = []
            for child in element.children:
                if isinstance(child, Element):
                    child_artifact = hoister.artifact_for(child)
                    children.append(ast.Name(id=child_artifact.id, ctx=ast.Load()))
                elif isinstance(child, Text):
                    children.append(ast.Constant(value=child.value))
                else:
                    children.append(copy.deepcopy(child))
            body.append(_assign(artifact.id, self._factory_call(element, props, children)))
        return body

    @staticmethod
    def _props_dict(element: Element) -> Optional[ast.Dict]:
        if not element.attributes:
            return None
        return ast.Dict(
            keys=[ast.Constant(value=name) for name in element.attributes],
            values=[copy.deepcopy(v) for v in element.attributes.values()],
        )

    @staticmethod
    def _factory_call(element: Element, props: Optional[ast.expr],
                      children: List[ast.expr]) -> ast.Call:
        if element.node is not None:
            func = copy.deepcopy(element.node.func)
        else:
            func = ast.Name(id='el', ctx=ast.Load())
        if element.tag_node is not None:
            tag = copy.deepcopy(element.tag_node)
        else:
            tag = ast.Constant(value=element.tag)

        args: List[ast.expr] = [tag]
        if props is not None or children:
            args.append(props if props is not None else ast.Constant(value=None))
        if children:
            args.append(ast.List(elts=children, ctx=ast.Load()))
        return ast.Call(func=func, args=args, keywords=[])

    @staticmethod
    def _cache_call(method: str, args: List[ast.expr]) -> ast.Call:
        return ast.Call(
            func=ast.Attribute(
                value=ast.Name(id=CACHE_NAME, ctx=ast.Load()),
                attr=method,
                ctx=ast.Load(),
            ),
            args=args,
            keywords=[],
        )


def _assign(name: str, value: ast.expr) -> ast.Assign:
    return ast.Assign(targets=[ast.Name(id=name, ctx=ast.Store())], value=value)


def _as_factory(module: ast.Module, func_name: str) -> ast.Module:
    """
    Wrap the rewritten module in ``def FACTORY(cache, instructions)`` that
    builds the statics and returns the component.

    Annotations are dropped from the compiled copy; ``__wrapped__`` keeps
    them reachable through the original function.
    """
    factory = ast.parse(
        f"def {FACTORY_NAME}({CACHE_NAME}, {INSTRUCTIONS_NAME}):\n"
        f"    return {func_name}\n"
    )
    factory_def = factory.body[0]

    body = copy.deepcopy(module.body)
    for node in body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            args = node.args
            for arg in args.posonlyargs + args.args + args.kwonlyargs:
                arg.annotation = None
            for arg in (args.vararg, args.kwarg):
                if arg is not None:
                    arg.annotation = None
            node.returns = None
    factory_def.body = body + factory_def.body
    ast.fix_missing_locations(factory)
    return factory


_default_optimizer = BlockOptimizer()


def optimize(func: Callable = None, **kwargs) -> Callable:
    """
    Decorator that optimizes a component with block memoization.

    Usage:
        @uiblocks.optimize
        def Counter(count: int, color): ...

        @uiblocks.optimize(fine_patch=False)
        def Counter(count: int, color): ...
    """
    if func is None:
        return lambda f: optimize(f, **kwargs)
    optimizer = BlockOptimizer(**kwargs) if kwargs else _default_optimizer
    return optimizer.optimize(func)
