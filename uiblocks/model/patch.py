"""
Patch instruction data types.

An Edit is one slot mutation tied to the dependencies that trigger it; a
PatchInstruction groups the edits that apply at one element path.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, FrozenSet, List, Tuple, Union


class EditKind(IntEnum):
    ATTRIBUTE = 1
    CHILD = 2
    EVENT = 4
    STYLE = 8


@dataclass(frozen=True)
class AttributeEdit:
    prop_name: str
    dependency_key: str
    trigger_keys: Tuple[str, ...] = ()
    kind: ClassVar[EditKind] = EditKind.ATTRIBUTE


@dataclass(frozen=True)
class StyleEdit:
    prop_name: str
    dependency_key: str
    trigger_keys: Tuple[str, ...] = ()
    kind: ClassVar[EditKind] = EditKind.STYLE


@dataclass(frozen=True)
class EventEdit:
    prop_name: str
    dependency_key: str
    trigger_keys: Tuple[str, ...] = ()
    kind: ClassVar[EditKind] = EditKind.EVENT


@dataclass(frozen=True)
class ChildEdit:
    index: int
    dependency_key: str
    trigger_keys: Tuple[str, ...] = ()
    kind: ClassVar[EditKind] = EditKind.CHILD


PropEdit = Union[AttributeEdit, StyleEdit, EventEdit]
Edit = Union[AttributeEdit, StyleEdit, EventEdit, ChildEdit]


def edit_triggers(edit: Edit) -> Tuple[str, ...]:
    return edit.trigger_keys or (edit.dependency_key,)


@dataclass(frozen=True)
class PatchInstruction:
    """An element address plus the edits to apply there."""
    element_path: Tuple[int, ...]
    edits: Tuple[Edit, ...]

    def triggered_edits(self, changed: FrozenSet[str]) -> List[Edit]:
        return [e for e in self.edits if any(k in changed for k in edit_triggers(e))]

    @property
    def dependency_keys(self) -> List[str]:
        keys: List[str] = []
        for edit in self.edits:
            for key in edit_triggers(edit):
                if key not in keys:
                    keys.append(key)
        return keys
