"""
Tests for the runtime block cache and VNodes.

Validates:
  - memoize round trip: unchanged deps return the identical element
  - patch_memoize updates only slots whose dependency changed
  - bail-out to the fresh render when a patch cannot be applied
  - real hit/miss/patch statistics
"""

import pytest

from uiblocks.model import AttributeEdit, ChildEdit, EventEdit, PatchInstruction, StyleEdit
from uiblocks.runtime import (
    BlockCache,
    VNode,
    clear_cache,
    default_cache,
    el,
    get_cache_stats,
    memoize,
    patch_memoize,
    should_update,
)


class Counter:
    """Render function that counts its invocations."""

    def __init__(self, render):
        self.render = render
        self.calls = 0

    def __call__(self, *deps):
        self.calls += 1
        return self.render(*deps)


def label(text, color):
    return el("textlabel", {"Text": text, "Color": color})


LABEL_INSTRUCTIONS = [
    PatchInstruction(element_path=(), edits=(
        AttributeEdit('Text', 'text', ('text',)),
        StyleEdit('Color', 'color', ('color',)),
    )),
]


class TestVNode:
    def test_factory(self):
        node = el("frame", {"Visible": True}, ["a", el("uicorner")])
        assert node.tag == "frame"
        assert node.props == {"Visible": True}
        assert len(node.children) == 2

    def test_defaults(self):
        node = el("frame")
        assert node.props == {}
        assert node.children == []

    def test_structural_equality(self):
        assert el("a", {"x": 1}, ["t"]) == el("a", {"x": 1}, ["t"])
        assert el("a", {"x": 1}) != el("a", {"x": 2})

    def test_clone_copies_structure_shares_leaves(self):
        handler = object()
        original = el("frame", {"onClick": handler}, [el("textlabel", {"Text": "a"})])
        clone = original.clone()
        assert clone == original
        assert clone is not original
        assert clone.children[0] is not original.children[0]
        assert clone.props["onClick"] is handler
        clone.children[0].props["Text"] = "b"
        assert original.children[0].props["Text"] == "a"

    def test_at_path(self):
        inner = el("textlabel")
        root = el("frame", None, ["text", el("frame", None, [inner])])
        assert root.at_path(()) is root
        assert root.at_path((1, 0)) is inner
        assert root.at_path((0,)) is None
        assert root.at_path((5,)) is None


class TestShouldUpdate:
    def test_identity(self):
        obj = object()
        assert not should_update([obj], [obj])
        assert should_update([object()], [object()])

    def test_equal_scalars(self):
        assert not should_update(["a" * 3], ["aaa"])
        assert not should_update([1000 + 1], [1001])

    def test_scalar_type_matters(self):
        assert should_update([1], [1.0])
        assert should_update([1], [True])

    def test_mutable_values_compared_by_identity(self):
        assert should_update([[1]], [[1]])

    def test_length_change(self):
        assert should_update([1], [1, 2])


class TestMemoize:
    def setup_method(self):
        self.cache = BlockCache()

    def test_round_trip_unchanged(self):
        render = Counter(lambda v: el("textlabel", {"Text": v}))
        first = self.cache.memoize('b', ["x"], render)
        second = self.cache.memoize('b', ["x"], render)
        assert second is first
        assert render.calls == 1

    def test_changed_dependency_rerenders(self):
        render = Counter(lambda v: el("textlabel", {"Text": v}))
        first = self.cache.memoize('b', ["x"], render)
        second = self.cache.memoize('b', ["y"], render)
        assert second is not first
        assert second == el("textlabel", {"Text": "y"})
        assert render.calls == 2

    def test_blocks_are_independent(self):
        self.cache.memoize('a', [1], lambda v: el("a"))
        self.cache.memoize('b', [1], lambda v: el("b"))
        assert len(self.cache) == 2
        assert 'a' in self.cache

    def test_invalidate(self):
        render = Counter(lambda v: el("a"))
        self.cache.memoize('a', [1], render)
        assert self.cache.invalidate('a')
        assert not self.cache.invalidate('a')
        self.cache.memoize('a', [1], render)
        assert render.calls == 2

    def test_clear(self):
        self.cache.memoize('a', [1], lambda v: el("a"))
        self.cache.clear()
        assert len(self.cache) == 0
        assert self.cache.get_stats().total_blocks == 0

    def test_entry(self):
        self.cache.memoize('a', [1, "x"], lambda *deps: el("a"))
        entry = self.cache.get('a')
        assert entry.block_id == 'a'
        assert entry.last_dependencies == [1, "x"]
        assert entry.patch_instructions is None
        assert entry.last_timestamp > 0

    def test_block_decorator(self):
        @self.cache.block
        def row(name, value):
            return el("textlabel", {"Text": f"{name}: {value}"})

        first = row("a", 1)
        assert row("a", 1) is first
        assert row("a", 2) is not first
        assert row.__uiblocks_block_id__.endswith('row')

    def test_block_decorator_with_id(self):
        @self.cache.block(block_id='rows')
        def row(name):
            return el("textlabel", {"Text": name})

        row("a")
        assert 'rows' in self.cache


class TestPatchMemoize:
    def setup_method(self):
        self.cache = BlockCache()

    def test_first_render(self):
        node = self.cache.patch_memoize('l', ["a", "red"], LABEL_INSTRUCTIONS, label)
        assert node == label("a", "red")
        assert self.cache.get('l').patch_instructions == LABEL_INSTRUCTIONS

    def test_unchanged_returns_identical_element(self):
        render = Counter(label)
        first = self.cache.patch_memoize('l', ["a", "red"], LABEL_INSTRUCTIONS, render)
        second = self.cache.patch_memoize('l', ["a", "red"], LABEL_INSTRUCTIONS, render)
        assert second is first
        assert render.calls == 1

    def test_only_changed_slot_is_patched(self):
        first = self.cache.patch_memoize('l', ["a", "red"], LABEL_INSTRUCTIONS, label)
        color_before = first.props["Color"]
        patched = self.cache.patch_memoize('l', ["b", "red"], LABEL_INSTRUCTIONS, label)
        assert patched is not first
        assert patched.props["Text"] == "b"
        assert patched.props["Color"] == "red"
        assert patched.props["Color"] is color_before
        # The previously returned element is never mutated
        assert first.props["Text"] == "a"

    def test_untriggered_slot_keeps_cached_value(self):
        marker = object()

        def render(text, color):
            # Second render returns a fresh object for Color with the same dep
            return el("textlabel", {"Text": text, "Color": (color, object())})

        first = self.cache.patch_memoize('l', ["a", marker], LABEL_INSTRUCTIONS, render)
        patched = self.cache.patch_memoize('l', ["b", marker], LABEL_INSTRUCTIONS, render)
        assert patched.props["Color"] is first.props["Color"]

    def test_keys_derived_from_instructions(self):
        self.cache.patch_memoize('l', ["a", "red"], LABEL_INSTRUCTIONS, label)
        patched = self.cache.patch_memoize('l', ["a", "blue"], LABEL_INSTRUCTIONS, label)
        assert patched.props == {"Text": "a", "Color": "blue"}

    def test_unkeyed_dependency_still_hits(self):
        theme = object()
        text_only = [PatchInstruction((), (AttributeEdit('Text', 'text', ('text',)),))]
        render = Counter(lambda text, theme: el("textlabel", {"Text": text, "Theme": theme}))

        first = self.cache.patch_memoize('b', ["a", theme], text_only, render)
        second = self.cache.patch_memoize('b', ["a", theme], text_only, render)
        assert second is first
        assert render.calls == 1
        stats = self.cache.get_stats()
        assert (stats.hits, stats.misses) == (1, 1)

        # A change that cannot be mapped to a key re-renders in full
        other = object()
        third = self.cache.patch_memoize('b', ["a", other], text_only, render)
        assert third.props["Theme"] is other
        assert render.calls == 2
        assert self.cache.get_stats().misses == 2

    def test_explicit_keys(self):
        def render(color, text):
            return label(text, color)

        self.cache.patch_memoize('l', ["red", "a"], LABEL_INSTRUCTIONS, render,
                                 keys=['color', 'text'])
        patched = self.cache.patch_memoize('l', ["red", "b"], LABEL_INSTRUCTIONS, render,
                                           keys=['color', 'text'])
        assert patched.props == {"Text": "b", "Color": "red"}

    def test_nested_path_copy_on_write(self):
        def card(title, count):
            return el("frame", None, [
                el("textlabel", {"Text": title}),
                el("frame", None, [el("uicorner"), el("textlabel", {"Text": count})]),
            ])

        instructions = [
            PatchInstruction((0,), (AttributeEdit('Text', 'title', ('title',)),)),
            PatchInstruction((1, 1), (AttributeEdit('Text', 'count', ('count',)),)),
        ]
        first = self.cache.patch_memoize('c', ["T", 1], instructions, card)
        patched = self.cache.patch_memoize('c', ["T", 2], instructions, card)
        assert patched.at_path((1, 1)).props["Text"] == 2
        assert first.at_path((1, 1)).props["Text"] == 1
        # Untouched subtrees are shared with the previous element
        assert patched.children[0] is first.children[0]
        assert patched.at_path((1, 0)) is first.at_path((1, 0))

    def test_child_edit(self):
        def counter(count):
            return el("frame", None, ["n = ", count])

        instructions = [PatchInstruction((), (ChildEdit(1, 'count', ('count',)),))]
        self.cache.patch_memoize('n', [1], instructions, counter)
        patched = self.cache.patch_memoize('n', [2], instructions, counter)
        assert patched.children == ["n = ", 2]

    def test_removed_prop_is_removed(self):
        def button(handler):
            props = {"Text": "go"}
            if handler is not None:
                props["onClick"] = handler
            return el("textbutton", props)

        instructions = [PatchInstruction((), (EventEdit('onClick', 'handler', ('handler',)),))]
        self.cache.patch_memoize('btn', [print], instructions, button)
        patched = self.cache.patch_memoize('btn', [None], instructions, button)
        assert patched.props == {"Text": "go"}

    def test_unresolvable_path_falls_back_to_fresh_render(self):
        def shape(flag):
            if flag:
                return el("frame", None, [el("textlabel", {"Text": "on"})])
            return el("frame", None, ["off"])

        instructions = [PatchInstruction((0,), (AttributeEdit('Text', 'flag', ('flag',)),))]
        self.cache.patch_memoize('s', [True], instructions, shape)
        result = self.cache.patch_memoize('s', [False], instructions, shape)
        assert result == shape(False)

    def test_uncovered_dependency_falls_back_to_fresh_render(self):
        instructions = [PatchInstruction((), (AttributeEdit('Text', 'text', ('text',)),))]

        def render(text, color):
            return label(text, color)

        self.cache.patch_memoize('l', ["a", "red"], instructions, render, keys=['text', 'color'])
        result = self.cache.patch_memoize('l', ["a", "blue"], instructions, render,
                                          keys=['text', 'color'])
        assert result.props["Color"] == "blue"

    def test_dependency_count_change_rerenders(self):
        render = Counter(lambda *deps: el("a", {"n": len(deps)}))
        instructions = [PatchInstruction((), (AttributeEdit('n', 'x', ('x',)),))]
        self.cache.patch_memoize('a', [1], instructions, render)
        result = self.cache.patch_memoize('a', [1, 2], instructions, render, keys=['x', 'y'])
        assert result.props == {"n": 2}
        assert self.cache.misses == 2


class TestCacheStats:
    def setup_method(self):
        self.cache = BlockCache()

    def test_empty(self):
        stats = self.cache.get_stats()
        assert stats.total_blocks == 0
        assert stats.cache_hit_rate == 0.0
        assert stats.average_render_time == 0.0

    def test_hit_rate_is_measured(self):
        self.cache.memoize('a', [1], lambda v: el("a"))
        self.cache.memoize('a', [1], lambda v: el("a"))
        self.cache.memoize('a', [1], lambda v: el("a"))
        self.cache.memoize('a', [2], lambda v: el("a"))
        stats = self.cache.get_stats()
        assert stats.hits == 2
        assert stats.misses == 2
        assert stats.cache_hit_rate == pytest.approx(0.5)
        assert stats.lookups == 4

    def test_patches_counted(self):
        self.cache.patch_memoize('l', ["a", "red"], LABEL_INSTRUCTIONS, label)
        self.cache.patch_memoize('l', ["b", "red"], LABEL_INSTRUCTIONS, label)
        stats = self.cache.get_stats()
        assert stats.patches == 1
        assert stats.misses == 1

    def test_render_times(self):
        self.cache.memoize('a', [1], lambda v: el("a"))
        self.cache.memoize('b', [1], lambda v: el("b"))
        stats = self.cache.get_stats()
        assert stats.total_blocks == 2
        assert stats.average_render_time > 0
        assert stats.average_render_duration_ns >= 0


class TestDefaultCache:
    def setup_method(self):
        clear_cache()

    def teardown_method(self):
        clear_cache()

    def test_module_functions_share_default_instance(self):
        first = memoize('m', [1], lambda v: el("a", {"v": v}))
        assert memoize('m', [1], lambda v: el("a", {"v": v})) is first
        patch_memoize('p', ["a", "red"], LABEL_INSTRUCTIONS, label)
        assert 'm' in default_cache
        assert get_cache_stats().total_blocks == 2

    def test_clear_cache(self):
        memoize('m', [1], lambda v: el("a"))
        clear_cache()
        assert get_cache_stats().total_blocks == 0
