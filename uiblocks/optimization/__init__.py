from uiblocks.optimization.policy import Decision, MemoizationPolicy, decide

__all__ = ['Decision', 'MemoizationPolicy', 'decide']
