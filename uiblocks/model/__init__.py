from uiblocks.model.element import (
    ELEMENT_FACTORIES,
    Child,
    Component,
    Element,
    Text,
    dotted_name,
    element,
    element_from_ast,
    is_element_call,
    is_invocation,
    is_literal,
    is_reference,
    parse_component,
    parse_element,
    parse_expr,
    skip_optimization,
    walk,
)
from uiblocks.model.patch import (
    AttributeEdit,
    ChildEdit,
    Edit,
    EditKind,
    EventEdit,
    PatchInstruction,
    PropEdit,
    StyleEdit,
    edit_triggers,
)

__all__ = [
    'AttributeEdit',
    'ChildEdit',
    'ELEMENT_FACTORIES',
    'Child',
    'Component',
    'Edit',
    'EditKind',
    'Element',
    'EventEdit',
    'PatchInstruction',
    'PropEdit',
    'StyleEdit',
    'Text',
    'dotted_name',
    'edit_triggers',
    'element',
    'element_from_ast',
    'is_element_call',
    'is_invocation',
    'is_literal',
    'is_reference',
    'parse_component',
    'parse_element',
    'parse_expr',
    'skip_optimization',
    'walk',
]
