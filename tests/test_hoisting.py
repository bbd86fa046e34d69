"""
Tests for static hoisting and artifact ordering.
"""

import logging

import pytest

from uiblocks.analysis import BlockClassifier
from uiblocks.compiler import StaticHoister, structural_key, topological_order
from uiblocks.errors import HoistCycleError
from uiblocks.model import parse_element


class TestTopologicalOrder:
    def test_references_come_first(self):
        graph = {'parent': ['child'], 'child': ['leaf'], 'leaf': []}
        assert topological_order(graph) == ['leaf', 'child', 'parent']

    def test_independent_nodes_keep_insertion_order(self):
        assert topological_order({'a': [], 'b': [], 'c': []}) == ['a', 'b', 'c']

    def test_shared_reference_emitted_once(self):
        graph = {'x': ['shared'], 'y': ['shared'], 'shared': []}
        assert topological_order(graph) == ['shared', 'x', 'y']

    def test_unknown_references_are_ignored(self):
        assert topological_order({'a': ['missing']}) == ['a']

    def test_cycle_is_skipped_with_warning(self, caplog):
        skipped = []
        with caplog.at_level(logging.WARNING, logger='uiblocks.compiler.hoisting'):
            order = topological_order({'a': ['b'], 'b': ['a']}, skipped=skipped)
        assert sorted(order) == ['a', 'b']
        assert skipped == [('b', 'a')]
        assert 'circular' in caplog.text.lower()

    def test_cycle_raises_when_strict(self):
        with pytest.raises(HoistCycleError) as excinfo:
            topological_order({'a': ['b'], 'b': ['c'], 'c': ['a']}, strict=True)
        assert excinfo.value.cycle == ['a', 'b', 'c', 'a']


class TestStructuralKey:
    def test_equal_for_identical_structure(self):
        a = parse_element('el("frame", {"Size": UDim2.fromScale(1, 1)}, ["x"])')
        b = parse_element('el("frame",   {"Size": UDim2.fromScale(1, 1)},\n ["x"])')
        assert structural_key(a) == structural_key(b)

    def test_differs_on_values(self):
        a = parse_element('el("frame", {"Size": UDim2.fromScale(1, 1)})')
        b = parse_element('el("frame", {"Size": UDim2.fromScale(1, 0)})')
        assert structural_key(a) != structural_key(b)

    def test_differs_on_attribute_order(self):
        a = parse_element('el("frame", {"A": 1, "B": 2})')
        b = parse_element('el("frame", {"B": 2, "A": 1})')
        assert structural_key(a) != structural_key(b)


class TestStaticHoister:
    def setup_method(self):
        self.hoister = StaticHoister(BlockClassifier())

    def test_dynamic_element_is_not_hoisted(self):
        assert self.hoister.hoist(parse_element('el("textlabel", {"Text": t})')) is None
        assert self.hoister.artifacts == {}

    def test_ids_are_deterministic(self):
        artifact = self.hoister.hoist(parse_element('el("frame", {"Size": UDim2.fromScale(1, 1)})'))
        assert artifact.id == 'STATIC_ELEMENT_FRAME_0'
        assert artifact.props_table_id == 'STATIC_PROPS_FRAME_0'

    def test_no_props_table_without_props(self):
        artifact = self.hoister.hoist(parse_element('el("uicorner")'))
        assert artifact.props_table_id is None

    def test_children_are_hoisted_first(self):
        root = parse_element('el("frame", None, [el("uicorner"), el("uistroke")])')
        artifact = self.hoister.hoist(root)
        assert artifact.id == 'STATIC_ELEMENT_FRAME_2'
        assert artifact.references == ('STATIC_ELEMENT_UICORNER_0', 'STATIC_ELEMENT_UISTROKE_1')
        assert [a.id for a in self.hoister.ordered()] == [
            'STATIC_ELEMENT_UICORNER_0',
            'STATIC_ELEMENT_UISTROKE_1',
            'STATIC_ELEMENT_FRAME_2',
        ]

    def test_duplicates_share_one_artifact(self):
        a = parse_element('el("uicorner", {"CornerRadius": UDim.new(0, 8)})')
        b = parse_element('el("uicorner", {"CornerRadius": UDim.new(0, 8)})')
        first = self.hoister.hoist(a)
        second = self.hoister.hoist(b)
        assert first is second
        assert first.uses == 2
        assert len(self.hoister.artifacts) == 1
        assert self.hoister.artifact_for(b) is first

    def test_same_element_hoisted_once(self):
        node = parse_element('el("uicorner")')
        assert self.hoister.hoist(node) is self.hoister.hoist(node)
        assert self.hoister.hoist(node).uses == 1

    def test_component_is_not_hoisted(self):
        assert self.hoister.hoist(parse_element('el(Counter)')) is None

    def test_tag_is_sanitised(self):
        artifact = self.hoister.hoist(parse_element('el("ui-list.layout")'))
        assert artifact.id == 'STATIC_ELEMENT_UI_LIST_LAYOUT_0'
