"""
uiblocks Render Benchmark
=========================

Renders a settings panel for a number of frames, changing one piece of
state per frame, and compares:

  - rebuild:  the component as authored
  - coarse:   CoarseMemoize blocks (re-render on any change)
  - fine:     FinePatch blocks (copy and patch only triggered slots)

Usage:
    python benchmarks/benchmark_render.py [--frames N] [--json results.json]
"""

import argparse
import gc
import json
import statistics
import sys
from pathlib import Path
from typing import Callable, Dict, List

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from uiblocks import BlockCache, BlockOptimizer, el
from uiblocks.utils import Timer, format_ns, format_speedup


FRAMES = 2000
WARMUP = 100


class Color3:
    __slots__ = ('r', 'g', 'b')

    def __init__(self, r, g, b):
        self.r, self.g, self.b = r, g, b

    def __eq__(self, other):
        return isinstance(other, Color3) and (self.r, self.g, self.b) == (other.r, other.g, other.b)

    __hash__ = None

    @staticmethod
    def fromRGB(r, g, b):
        return Color3(r, g, b)


class UDim:
    __slots__ = ('scale', 'offset')

    def __init__(self, scale, offset):
        self.scale, self.offset = scale, offset

    def __eq__(self, other):
        return isinstance(other, UDim) and (self.scale, self.offset) == (other.scale, other.offset)

    __hash__ = None

    @staticmethod
    def new(scale, offset):
        return UDim(scale, offset)


def SettingsPanel(title, volume, muted, accent, onToggle):
    return el("frame", {"BackgroundColor3": accent, "Visible": True}, [
        el("uicorner", {"CornerRadius": UDim.new(0, 8)}),
        el("uipadding", {"PaddingTop": UDim.new(0, 6), "PaddingLeft": UDim.new(0, 6)}),
        el("textlabel", {"Text": title, "TextColor3": Color3.fromRGB(240, 240, 240)}),
        el("frame", None, [
            el("textlabel", {"Text": "Volume", "TextSize": 14}),
            el("textlabel", {"Text": volume, "TextSize": 14}),
            el("uilistlayout", {"Padding": UDim.new(0, 4)}),
        ]),
        el("textbutton", {"Text": muted, "Handler": onToggle, "TextColor3": accent}),
        el("frame", None, [
            el("imagelabel", {"Image": "rbxassetid://1", "ImageTransparency": 0.5}),
            el("imagelabel", {"Image": "rbxassetid://2", "ImageTransparency": 0.5}),
            el("imagelabel", {"Image": "rbxassetid://3", "ImageTransparency": 0.5}),
        ]),
    ])


def frame_states(frames: int) -> List[tuple]:
    """One state tuple per frame; mostly volume changes, occasionally others."""
    accents = [Color3(0, 120, 215), Color3(215, 60, 0)]
    handler = object()
    states = []
    for i in range(frames):
        states.append((
            "Audio" if i % 500 < 250 else "Sound",
            i % 101,
            i % 37 == 0,
            accents[(i // 300) % 2],
            handler,
        ))
    return states


def run_frames(render: Callable, states: List[tuple]) -> List[int]:
    for state in states[:WARMUP]:
        render(*state)
    times = []
    for state in states:
        gc.disable()
        with Timer() as t:
            render(*state)
        gc.enable()
        times.append(t.elapsed_ns)
    return times


def run(frames: int = FRAMES) -> Dict[str, Dict[str, float]]:
    states = frame_states(frames)
    coarse_cache = BlockCache()
    fine_cache = BlockCache()
    variants = {
        'rebuild': SettingsPanel,
        'coarse': BlockOptimizer(fine_patch=False, cache=coarse_cache).optimize(SettingsPanel),
        'fine': BlockOptimizer(cache=fine_cache).optimize(SettingsPanel),
    }

    # Every variant must render the same tree
    for state in states[:200]:
        expected = SettingsPanel(*state)
        for name, render in variants.items():
            assert render(*state) == expected, f"{name} diverged on {state}"

    results = {}
    for name, render in variants.items():
        times = run_frames(render, states)
        results[name] = {
            'median_ns': statistics.median(times),
            'mean_ns': statistics.mean(times),
            'stdev_ns': statistics.stdev(times) if len(times) > 1 else 0.0,
        }

    for name, cache in (('coarse', coarse_cache), ('fine', fine_cache)):
        stats = cache.get_stats()
        results[name]['hit_rate'] = stats.cache_hit_rate
        results[name]['patches'] = stats.patches
    return results


def print_results(results: Dict[str, Dict[str, float]]) -> None:
    baseline = results['rebuild']['median_ns']
    print(f"{'variant':<10} {'median':>12} {'mean':>12}  speedup")
    print('-' * 52)
    for name, r in results.items():
        speedup = format_speedup(baseline, r['median_ns']) if name != 'rebuild' else '-'
        print(f"{name:<10} {format_ns(r['median_ns']):>12} {format_ns(r['mean_ns']):>12}  {speedup}")
    for name in ('coarse', 'fine'):
        print(f"{name} hit rate: {results[name]['hit_rate']:.1%}, "
              f"patches: {results[name]['patches']}")


def main():
    parser = argparse.ArgumentParser(description="uiblocks render benchmark")
    parser.add_argument('--frames', type=int, default=FRAMES)
    parser.add_argument('--json', type=Path, default=None)
    args = parser.parse_args()

    results = run(args.frames)
    print_results(results)
    if args.json is not None:
        args.json.write_text(json.dumps(results, indent=2))
        print(f"Results written to {args.json}")


if __name__ == '__main__':
    main()
