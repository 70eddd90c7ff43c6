#!/usr/bin/env python3
# -*- coding:utf-8 -*-
"""
CPU 热点分析器

基于解析后的调用栈做聚合：
- 热点函数: 函数出现在栈中任意位置即计入（同一样本内去重，递归不重复计时）
- 叶子函数: 只看栈顶（index 0）帧，即采样时正在执行的函数
- 模块汇总: 按模块累计时间（同一样本内去重）
- 调用频率 / 常见调用栈模式 / 调用树
"""

import argparse
import json
import sys
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from sleepy_analyzer.errors import SleepyError
from sleepy_analyzer.profile_model import (
    UNKNOWN_MODULE,
    UNRESOLVED_MODULE,
    Profile,
    ResolvedFrame,
    function_signature,
    resolve_sample,
)

DEFAULT_TOP_N = 10
DEFAULT_PATTERN_DEPTH = 5

# (module, function)
FunctionKey = Tuple[str, str]


@dataclass
class Hotspot:
    """热点函数"""
    function: str
    module: str
    source_file: str = ""
    line_number: int = 0
    total_time: float = 0.0         # 秒
    sample_count: int = 0
    percentage: float = 0.0         # 占总时间百分比
    sample_refs: List[int] = field(default_factory=list)   # 命中样本的下标 (0 开始)

    @property
    def signature(self) -> str:
        return function_signature(self.module, self.function)


@dataclass
class ModuleTime:
    module: str
    time: float = 0.0
    percentage: float = 0.0


@dataclass
class FunctionFrequency:
    """函数在多少个样本中出现（每个样本最多计一次）"""
    function: str
    module: str
    count: int = 0
    percentage: float = 0.0


@dataclass
class CallstackPattern:
    """叶子端若干帧相同的调用栈归为同一模式"""
    frames: List[str] = field(default_factory=list)
    occurrences: int = 0
    total_time: float = 0.0
    percentage: float = 0.0

    @property
    def pattern(self) -> str:
        return ' <- '.join(self.frames)


@dataclass
class CallChainNode:
    """调用树节点，children 以 (module, function) 为 key"""
    function: str
    module: str
    total_time: float = 0.0
    sample_count: int = 0
    children: Dict[FunctionKey, 'CallChainNode'] = field(default_factory=dict)

    @property
    def signature(self) -> str:
        return function_signature(self.module, self.function)

    def child(self, frame: ResolvedFrame) -> 'CallChainNode':
        node = self.children.get(frame.key)
        if node is None:
            node = CallChainNode(function=frame.function, module=frame.module)
            self.children[frame.key] = node
        return node


def walk_call_tree(roots: Iterable[CallChainNode], max_children: int = 0):
    """
    先序遍历调用树，产出 (depth, node)

    用显式栈而不是递归，栈深上千帧也不会超出解释器递归上限。
    同层节点按耗时降序；max_children > 0 时每层只取前 N 个。
    """
    def ordered(nodes):
        nodes = sorted(nodes, key=lambda n: n.total_time, reverse=True)
        return _top(nodes, max_children)

    stack = [(0, node) for node in reversed(ordered(roots))]
    while stack:
        depth, node = stack.pop()
        yield depth, node
        stack.extend((depth + 1, child) for child in reversed(ordered(node.children.values())))


def flatten_call_tree(roots: Iterable[CallChainNode]) -> List[dict]:
    """调用树转为扁平行列表（parent 为父节点下标，根为 -1），用于 JSON 输出"""
    rows = []
    parents = []    # parents[d] 为当前路径上深度 d 的节点下标
    for depth, node in walk_call_tree(roots):
        del parents[depth:]
        rows.append({
            'id': len(rows),
            'parent': parents[-1] if parents else -1,
            'depth': depth,
            'function': node.function,
            'module': node.module,
            'total_time': node.total_time,
            'sample_count': node.sample_count,
        })
        parents.append(len(rows) - 1)
    return rows


def _percent(part: float, total: float) -> float:
    if total > 0:
        return part * 100.0 / total
    return 0.0


def _top(items: list, top_n: int) -> list:
    if 0 < top_n < len(items):
        return items[:top_n]
    return items


def _new_hotspot(frame: ResolvedFrame) -> Hotspot:
    return Hotspot(
        function=frame.function,
        module=frame.module,
        source_file=frame.source_file,
        line_number=frame.line_number,
    )


def _finish_ranking(hotspots: Dict[FunctionKey, Hotspot], total_time: float, top_n: int) -> List[Hotspot]:
    result = list(hotspots.values())
    for hs in result:
        hs.percentage = _percent(hs.total_time, total_time)
    # sorted 是稳定排序，时间相同的保持首次出现的顺序
    result = sorted(result, key=lambda h: h.total_time, reverse=True)
    return _top(result, top_n)


def rank_hotspots(profile: Profile, top_n: int = DEFAULT_TOP_N) -> List[Hotspot]:
    """
    找出耗时最多的函数

    函数出现在样本栈中任意位置即把该样本的耗时计入；同一样本里出现多次
    （递归）只计一次。top_n <= 0 返回全部。
    """
    hotspots: Dict[FunctionKey, Hotspot] = {}
    total_time = 0.0

    for idx, sample in enumerate(profile.samples):
        total_time += sample.duration

        seen = set()
        for frame in resolve_sample(profile, sample):
            key = frame.key
            if key in seen:
                continue
            seen.add(key)

            hs = hotspots.get(key)
            if hs is None:
                hs = hotspots[key] = _new_hotspot(frame)
            hs.total_time += sample.duration
            hs.sample_count += 1
            hs.sample_refs.append(idx)

    return _finish_ranking(hotspots, total_time, top_n)


def rank_leaf_functions(profile: Profile, top_n: int = DEFAULT_TOP_N) -> List[Hotspot]:
    """找出叶子函数（栈顶，实际消耗 CPU 的地方）"""
    hotspots: Dict[FunctionKey, Hotspot] = {}
    total_time = 0.0

    for idx, sample in enumerate(profile.samples):
        total_time += sample.duration

        frames = resolve_sample(profile, sample)
        if not frames:
            continue

        leaf = frames[0]
        hs = hotspots.get(leaf.key)
        if hs is None:
            hs = hotspots[leaf.key] = _new_hotspot(leaf)
        hs.total_time += sample.duration
        hs.sample_count += 1
        hs.sample_refs.append(idx)

    return _finish_ranking(hotspots, total_time, top_n)


def normalize_module(module: str) -> str:
    if not module or module == UNRESOLVED_MODULE:
        return UNKNOWN_MODULE
    return module


def rollup_modules(profile: Profile) -> Dict[str, float]:
    """按模块累计时间，未解析的地址归入 [unknown]；结果不排序"""
    module_time: Dict[str, float] = {}

    for sample in profile.samples:
        seen = set()
        for frame in resolve_sample(profile, sample):
            module = normalize_module(frame.module)
            if module in seen:
                continue
            seen.add(module)
            module_time[module] = module_time.get(module, 0.0) + sample.duration

    return module_time


def rank_modules(profile: Profile, top_n: int = 0) -> List[ModuleTime]:
    """模块按时间降序排列，百分比相对于 profile 总时间"""
    total_time = profile.total_time
    modules = [
        ModuleTime(module=name, time=t, percentage=_percent(t, total_time))
        for name, t in rollup_modules(profile).items()
    ]
    modules.sort(key=lambda m: m.time, reverse=True)
    return _top(modules, top_n)


def function_frequencies(profile: Profile) -> List[FunctionFrequency]:
    """统计每个函数出现在多少个样本中，按次数降序"""
    counts: Dict[FunctionKey, FunctionFrequency] = {}
    total = len(profile.samples)

    for sample in profile.samples:
        seen = set()
        for frame in resolve_sample(profile, sample):
            key = frame.key
            if key in seen:
                continue
            seen.add(key)

            freq = counts.get(key)
            if freq is None:
                freq = counts[key] = FunctionFrequency(function=frame.function, module=frame.module)
            freq.count += 1

    result = list(counts.values())
    for freq in result:
        freq.percentage = _percent(freq.count, total)
    result.sort(key=lambda f: f.count, reverse=True)
    return result


def find_callstack_patterns(profile: Profile, depth: int = DEFAULT_PATTERN_DEPTH,
                            top_n: int = DEFAULT_TOP_N) -> List[CallstackPattern]:
    """按叶子端 depth 帧对样本分组，找出最耗时的调用栈模式"""
    patterns: Dict[Tuple[FunctionKey, ...], CallstackPattern] = {}
    total_time = 0.0

    for sample in profile.samples:
        total_time += sample.duration
        frames = resolve_sample(profile, sample)[:max(depth, 0)]
        key = tuple(f.key for f in frames)

        p = patterns.get(key)
        if p is None:
            p = patterns[key] = CallstackPattern(frames=[f.signature for f in frames])
        p.occurrences += 1
        p.total_time += sample.duration

    result = list(patterns.values())
    for p in result:
        p.percentage = _percent(p.total_time, total_time)
    result.sort(key=lambda p: p.total_time, reverse=True)
    return _top(result, top_n)


def build_call_tree(profile: Profile, depth: int = 0) -> Dict[FunctionKey, CallChainNode]:
    """
    构建调用树

    以叶子函数为根，沿栈向外（调用者方向）展开。depth 为每个样本最多
    展开的帧数，0 表示不限。
    """
    roots: Dict[FunctionKey, CallChainNode] = {}

    for sample in profile.samples:
        frames = resolve_sample(profile, sample)
        if not frames:
            continue
        if depth > 0:
            frames = frames[:depth]

        leaf = frames[0]
        node = roots.get(leaf.key)
        if node is None:
            node = roots[leaf.key] = CallChainNode(function=leaf.function, module=leaf.module)
        node.total_time += sample.duration
        node.sample_count += 1

        for frame in frames[1:]:
            node = node.child(frame)
            node.total_time += sample.duration
            node.sample_count += 1

    return roots


def print_report(profile: Profile, top_n: int = DEFAULT_TOP_N, leaf: bool = False):
    """打印热点报告"""
    # 避免循环导入
    from sleepy_analyzer.report_formatter import format_hotspots, format_leaf_functions

    if leaf:
        print(format_leaf_functions(rank_leaf_functions(profile, top_n)))
    else:
        print(format_hotspots(rank_hotspots(profile, top_n)))


def main():
    from sleepy_analyzer.sleepy_parser import load_profile

    parser = argparse.ArgumentParser(
        description="Very Sleepy CPU 热点分析器",
        epilog="""
示例:
  python3 -m sleepy_analyzer.hotspot_analyzer capture.sleepy
  python3 -m sleepy_analyzer.hotspot_analyzer capture.sleepy --leaf -n 20
        """,
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('file', help='.sleepy 文件路径')
    parser.add_argument('-n', '--top', type=int, default=DEFAULT_TOP_N, help='显示前 N 项 (默认 10, <=0 显示全部)')
    parser.add_argument('--leaf', action='store_true', help='只统计叶子函数')
    parser.add_argument('--json', action='store_true', help='输出 JSON 格式')
    args = parser.parse_args()

    try:
        profile = load_profile(args.file)
    except SleepyError as e:
        print(f"错误: {e}", file=sys.stderr)
        return 1

    if args.json:
        ranking = rank_leaf_functions if args.leaf else rank_hotspots
        print(json.dumps([asdict(h) for h in ranking(profile, args.top)], indent=2, ensure_ascii=False))
    else:
        print_report(profile, args.top, leaf=args.leaf)
    return 0


if __name__ == '__main__':
    sys.exit(main())
