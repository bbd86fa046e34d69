from uiblocks.compiler.patch_generator import (
    FinePatchBlock,
    PatchGenerator,
    classify_edit_kind,
    make_prop_edit,
)
from uiblocks.compiler.hoisting import (
    StaticArtifact,
    StaticHoister,
    structural_key,
    topological_order,
)
from uiblocks.compiler.codegen import (
    BlockOptimizer,
    BlockPlan,
    BlockReport,
    Emission,
    MemoArtifact,
    OptimizationReport,
    OptimizerOptions,
    optimize,
)

__all__ = [
    'BlockOptimizer',
    'BlockPlan',
    'BlockReport',
    'Emission',
    'FinePatchBlock',
    'MemoArtifact',
    'OptimizationReport',
    'OptimizerOptions',
    'PatchGenerator',
    'StaticArtifact',
    'StaticHoister',
    'classify_edit_kind',
    'make_prop_edit',
    'optimize',
    'structural_key',
    'topological_order',
]
