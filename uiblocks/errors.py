"""Exception types raised by uiblocks.

Classification and memoization decisions never raise: every unknown shape
falls back to the always-correct "render as authored" path. Exceptions are
reserved for malformed authored input and for opt-in strict modes.
"""


class UIBlocksError(Exception):
    """Base class for all uiblocks errors."""


class ElementSyntaxError(UIBlocksError, ValueError):
    """An ``el(...)`` call could not be turned into an Element."""

    def __init__(self, message: str, node=None):
        lineno = getattr(node, 'lineno', None)
        if lineno is not None:
            message = f"{message} (line {lineno})"
        super().__init__(message)
        self.node = node


class HoistCycleError(UIBlocksError):
    """Static artifacts reference each other in a cycle."""

    def __init__(self, cycle):
        self.cycle = list(cycle)
        super().__init__(
            f"Circular reference among static artifacts: {' -> '.join(self.cycle)}"
        )
