"""
Integration tests for the uiblocks pipeline.

End-to-end tests that validate the full optimization pipeline:
  Element -> Classifier -> Policy -> {Hoisting | Patch Generation} -> Codegen -> Runtime Cache
"""

import random

import pytest

import uiblocks
from uiblocks import (
    BlockCache,
    BlockClassifier,
    BlockOptimizer,
    Decision,
    KnownPurityOracle,
    MemoizationPolicy,
    PatchGenerator,
    el,
    parse_element,
)
from uiblocks.model import EditKind


# ---------- Value types ----------

class Color3:
    def __init__(self, r, g, b):
        self.rgb = (r, g, b)

    def __eq__(self, other):
        return isinstance(other, Color3) and self.rgb == other.rgb

    def __hash__(self):
        return hash(self.rgb)

    @staticmethod
    def fromRGB(r, g, b):
        return Color3(r, g, b)


class UDim:
    def __init__(self, scale, offset):
        self.value = (scale, offset)

    def __eq__(self, other):
        return isinstance(other, UDim) and self.value == other.value

    def __hash__(self):
        return hash(self.value)

    @staticmethod
    def new(scale, offset):
        return UDim(scale, offset)


def concat(*parts):
    return "".join(str(p) for p in parts)


# ---------- Realistic Workloads ----------

def StatCard(title, value, accent):
    return el("frame", {"BackgroundColor3": accent, "BorderSizePixel": 0}, [
        el("uicorner", {"CornerRadius": UDim.new(0, 8)}),
        el("textlabel", {"Text": title, "TextSize": 14}),
        el("textlabel", {"Text": value, "TextSize": 24}),
    ])


def Counter(count: int, color, onClick):
    return el("frame", None, [
        el("textlabel", {"Text": concat("Count: ", count)}),
        el("textbutton", {"Color": color, "Handler": onClick, "Text": concat("n=", count)}),
        el("uipadding", {"PaddingTop": UDim.new(0, 4)}),
    ])


def Header(title):
    return el("frame", {"BackgroundColor3": Color3.fromRGB(30, 30, 30)}, [
        el("textlabel", {"Text": "Dashboard", "TextColor3": Color3.fromRGB(255, 255, 255)}),
        el("uicorner"),
    ])


# ---------- Scenarios ----------

class TestScenarios:
    def setup_method(self):
        self.classifier = BlockClassifier(KnownPurityOracle(extra_pure={'concat'}))
        self.policy = MemoizationPolicy()

    def test_pure_construction_is_static(self):
        info = self.classifier.classify(parse_element('el("frame", {"Color": Color3(255, 0, 0)})'))
        assert info.is_static
        assert self.policy.decide(info) == Decision.STATIC_EXTRACT

    def test_single_dependency_rebuilds(self):
        info = self.classifier.classify(
            parse_element('el("textlabel", {"Text": concat("Count: ", count)})'))
        assert info.dependencies == ['count']
        assert not info.is_static
        assert info.complexity == 1
        assert self.policy.decide(info) == Decision.BASIC_REBUILD

    def test_button_is_fine_patched(self):
        element = parse_element(
            'el("textbutton", {"Color": color, "Handler": onClick, "Text": concat("n=", count)})')
        info = self.classifier.classify(element)
        assert self.policy.decide(info) == Decision.FINE_PATCH

        instruction, = PatchGenerator(self.classifier).generate(element).instructions
        assert [(e.dependency_key, e.kind) for e in instruction.edits] == [
            ('color', EditKind.STYLE),
            ('onClick', EditKind.EVENT),
            ('count', EditKind.ATTRIBUTE),
        ]

    def test_patch_leaves_unchanged_attribute(self):
        element = parse_element('el("textlabel", {"Text": text, "Color": color})')
        instructions = PatchGenerator(self.classifier).generate(element).instructions
        cache = BlockCache()

        def render(text, color):
            return el("textlabel", {"Text": text, "Color": color})

        first = cache.patch_memoize('label', ["a", "red"], instructions, render)
        second = cache.patch_memoize('label', ["b", "red"], instructions, render)
        assert second.props == {"Text": "b", "Color": "red"}
        assert second.props["Color"] is first.props["Color"]
        assert first.props["Text"] == "a"


# ---------- End-to-end ----------

class TestEndToEndOptimize:
    def setup_method(self):
        self.cache = BlockCache()
        self.optimizer = BlockOptimizer(extra_pure=frozenset({'concat'}), cache=self.cache)

    def test_stat_card_matches_original(self):
        fast = self.optimizer.optimize(StatCard)
        rng = random.Random(7)
        accents = [Color3(255, 0, 0), Color3(0, 255, 0)]
        calls = []
        for _ in range(25):
            args = (rng.choice(["Users", "Sales"]), str(rng.randint(0, 3)), rng.choice(accents))
            calls.extend([args, args])
        for args in calls:
            assert fast(*args) == StatCard(*args)
        stats = self.cache.get_stats()
        assert stats.total_blocks == 1
        assert stats.hits + stats.misses + stats.patches == 50
        assert stats.hits >= 25
        assert stats.patches > 0

    def test_counter_matches_original(self):
        fast = self.optimizer.optimize(Counter)
        handler = object()
        for count in [0, 0, 1, 2, 2, 3]:
            for color in ["red", "blue"]:
                assert fast(count, color, handler) == Counter(count, color, handler)

    def test_counter_decisions(self):
        report = self.optimizer.optimize(Counter).__uiblocks_report__
        assert report.decisions() == {
            'Counter:block_0': Decision.FINE_PATCH,
        }
        source = self.optimizer.get_optimized_source(Counter)
        assert 'STATIC_ELEMENT_UIPADDING_0' in source

    def test_header_is_fully_hoisted(self):
        fast = self.optimizer.optimize(Header)
        assert fast("a") is fast("b")
        assert fast("a") == Header("a")
        assert len(self.cache) == 0

    def test_coarse_and_fine_render_alike(self):
        coarse = BlockOptimizer(fine_patch=False, cache=BlockCache()).optimize(StatCard)
        fine = self.optimizer.optimize(StatCard)
        accent = Color3(1, 2, 3)
        for value in ["1", "2", "2", "3"]:
            assert coarse("Users", value, accent) == fine("Users", value, accent)

    def test_fresh_cache_per_optimizer(self):
        other = BlockCache()
        a = self.optimizer.optimize(StatCard)
        b = BlockOptimizer(cache=other).optimize(StatCard)
        accent = Color3(1, 2, 3)
        a("Users", "1", accent)
        b("Users", "1", accent)
        assert len(self.cache) == 1
        assert len(other) == 1
        self.cache.clear()
        assert len(other) == 1


class TestPackageNamespace:
    def setup_method(self):
        uiblocks.clear_cache()

    def teardown_method(self):
        uiblocks.clear_cache()

    def test_module_level_cache(self):
        node = uiblocks.memoize('ns:badge', ["x"], lambda x: el("textlabel", {"Text": x}))
        assert uiblocks.memoize('ns:badge', ["x"], lambda x: None) is node
        stats = uiblocks.get_cache_stats()
        assert stats.total_blocks == 1
        assert stats.cache_hit_rate == pytest.approx(0.5)

    def test_decorator_on_default_cache(self):
        @uiblocks.optimize
        def Tag(label, color):
            return el("textlabel", {"Text": label, "TextColor3": color})

        assert Tag("new", "red") is Tag("new", "red")
        assert uiblocks.get_cache_stats().total_blocks == 1

    def test_version(self):
        assert uiblocks.__version__
