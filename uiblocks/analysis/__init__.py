from uiblocks.analysis.purity import (
    HelperPurityAnalyzer,
    HelperPurityReport,
    KnownPurityOracle,
    PurityLevel,
    PurityOracle,
)
from uiblocks.analysis.expressions import (
    DependencyCollector,
    DynamismChecker,
    extract_dependencies,
    is_dynamic,
)
from uiblocks.analysis.classifier import BlockClassifier, BlockInfo

__all__ = [
    'BlockClassifier',
    'BlockInfo',
    'DependencyCollector',
    'DynamismChecker',
    'HelperPurityAnalyzer',
    'HelperPurityReport',
    'KnownPurityOracle',
    'PurityLevel',
    'PurityOracle',
    'extract_dependencies',
    'is_dynamic',
]
