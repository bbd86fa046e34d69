from uiblocks.utils.helpers import Timer, format_ns, format_speedup

__all__ = ['Timer', 'format_ns', 'format_speedup']
