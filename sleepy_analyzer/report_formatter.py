# -*- coding:utf-8 -*-
"""
分析结果的文本/JSON 输出

所有 format_* 函数返回字符串，由调用方决定打印还是写文件。
"""

import json
from dataclasses import asdict, is_dataclass
from typing import Dict, List

from sleepy_analyzer.hotspot_analyzer import (
    CallChainNode,
    CallstackPattern,
    FunctionFrequency,
    FunctionKey,
    Hotspot,
    ModuleTime,
    flatten_call_tree,
    walk_call_tree,
)
from sleepy_analyzer.issue_detector import (
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    PerformanceIssue,
    group_by_severity,
)
from sleepy_analyzer.profile_model import UNRESOLVED_MODULE, ResolvedFrame, Sample, format_address
from sleepy_analyzer.profile_statistics import ProfileStatistics

RULE = "═" * 51
MAX_BAR_LENGTH = 50


def _header(title: str) -> List[str]:
    return [title, RULE, ""]


def _has_source(source_file: str) -> bool:
    return bool(source_file) and source_file != '[unknown]'


def format_hotspot(hs: Hotspot, rank: int) -> str:
    lines = [
        f"#{rank}: {hs.module}!{hs.function}",
        f"    Time: {hs.total_time:.6f} seconds ({hs.percentage:.2f}%)",
        f"    Samples: {hs.sample_count}",
    ]
    if _has_source(hs.source_file):
        lines.append(f"    Source: {hs.source_file}:{hs.line_number}")
    return "\n".join(lines) + "\n"


def format_hotspots(hotspots: List[Hotspot]) -> str:
    lines = _header("TOP CPU HOTSPOTS (Functions Consuming Most Time)")
    if not hotspots:
        lines.append("No hotspots found.")
    for i, hs in enumerate(hotspots, 1):
        lines.append(format_hotspot(hs, i))
    return "\n".join(lines)


def format_leaf_functions(hotspots: List[Hotspot]) -> str:
    lines = _header("LEAF FUNCTIONS (Where Actual CPU Work Happens)")
    lines.append("These are the functions at the bottom of callstacks - the actual CPU-intensive operations.")
    lines.append("")
    if not hotspots:
        lines.append("No leaf functions found.")
    for i, hs in enumerate(hotspots, 1):
        lines.append(format_hotspot(hs, i))
    return "\n".join(lines)


def format_modules(modules: List[ModuleTime]) -> str:
    lines = _header("MODULE TIME ANALYSIS")
    if not modules:
        lines.append("No modules found.")
    for i, m in enumerate(modules, 1):
        bar = "█" * min(int(m.percentage / 2), MAX_BAR_LENGTH)
        lines.append(f"{i}. {m.module}")
        lines.append(f"   Time: {m.time:.6f} seconds ({m.percentage:.2f}%)")
        lines.append(f"   {bar}")
        lines.append("")
    return "\n".join(lines)


def format_issues(issues: List[PerformanceIssue]) -> str:
    lines = _header("AUTOMATED PERFORMANCE ISSUE DETECTION")
    if not issues:
        lines.append("No significant performance issues detected!")
        return "\n".join(lines)

    groups = group_by_severity(issues)
    titles = {
        SEVERITY_CRITICAL: "CRITICAL ISSUES:",
        SEVERITY_HIGH: "HIGH PRIORITY ISSUES:",
    }
    for severity, title in titles.items():
        if not groups[severity]:
            continue
        lines.append(title)
        lines.append("")
        for i, issue in enumerate(groups[severity], 1):
            lines.append(f"{i}. [{issue.category}] {issue.description}")
            if issue.function:
                lines.append(f"   Function: {issue.module}!{issue.function}")
            if issue.impact > 0:
                lines.append(f"   Impact: {issue.impact:.2f}%")
            lines.append("")

    lines.append("SUMMARY:")
    for severity in (SEVERITY_CRITICAL, SEVERITY_HIGH, SEVERITY_MEDIUM, SEVERITY_LOW):
        lines.append(f"   {severity}: {len(groups[severity])}")
    return "\n".join(lines)


def format_statistics(stats: ProfileStatistics) -> str:
    lines = _header("PROFILE STATISTICS")
    lines += [
        f"Total Execution Time: {stats.total_time:.6f} seconds",
        f"Total Callstacks: {stats.total_samples}",
        f"Total Symbols: {stats.total_symbols}",
        "",
        "Call Stack Depth Statistics:",
        f"  Average: {stats.average_stack_depth:.2f} frames",
        f"  Maximum: {stats.max_stack_depth} frames",
        f"  Minimum: {stats.min_stack_depth} frames",
        "",
        "Unique Elements:",
        f"  Modules: {stats.unique_modules}",
        f"  Functions: {stats.unique_functions}",
    ]
    return "\n".join(lines)


def format_callstack(index: int, sample: Sample, frames: List[ResolvedFrame]) -> str:
    lines = _header(f"CALLSTACK #{index}")
    lines += [
        f"Duration: {sample.duration:.6f} seconds",
        f"Stack Depth: {len(frames)} frames",
        "",
        "Call Stack (bottom to top):",
        "",
    ]
    for i, frame in enumerate(frames):
        if frame.module and frame.module != UNRESOLVED_MODULE:
            lines.append(f"{i}. {frame.module}!{frame.function}")
        else:
            lines.append(f"{i}. {frame.function}")
        if _has_source(frame.source_file):
            lines.append(f"   {frame.source_file}:{frame.line_number}")
        lines.append(f"   [{format_address(frame.address)}]")
        lines.append("")
    return "\n".join(lines)


def format_frequencies(frequencies: List[FunctionFrequency], top_n: int = 0) -> str:
    lines = _header("FUNCTION PRESENCE IN CALLSTACKS")
    if 0 < top_n < len(frequencies):
        frequencies = frequencies[:top_n]
    for i, freq in enumerate(frequencies, 1):
        lines.append(f"{i}. {freq.module}!{freq.function}  {freq.count} callstacks ({freq.percentage:.2f}%)")
    return "\n".join(lines)


def format_patterns(patterns: List[CallstackPattern]) -> str:
    lines = _header("COMMON CALLSTACK PATTERNS")
    if not patterns:
        lines.append("No callstacks found.")
    for i, p in enumerate(patterns, 1):
        lines.append(f"#{i}: {p.pattern or '(empty stack)'}")
        lines.append(f"    Time: {p.total_time:.6f} seconds ({p.percentage:.2f}%)")
        lines.append(f"    Occurrences: {p.occurrences}")
        lines.append("")
    return "\n".join(lines)


def format_call_tree(roots: Dict[FunctionKey, CallChainNode], top_n: int = 10) -> str:
    """top_n 同时限制根节点数和每层子节点数"""
    lines = _header("CALL TREE (leaf -> callers)")
    for depth, node in walk_call_tree(roots.values(), top_n):
        lines.append(f"{'  ' * depth}{node.signature}  {node.total_time:.6f}s ({node.sample_count} samples)")
    return "\n".join(lines)


def _is_call_tree(value) -> bool:
    return isinstance(value, dict) and bool(value) and all(isinstance(v, CallChainNode) for v in value.values())


def _to_plain(value):
    # 调用树可能很深，不能交给递归的 asdict / json
    if isinstance(value, CallChainNode):
        return flatten_call_tree([value])
    if _is_call_tree(value):
        return flatten_call_tree(value.values())
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


def to_json(result, indent: int = 2) -> str:
    """任意分析结果（dataclass / 列表 / dict）转为 JSON；调用树输出为扁平行列表"""
    return json.dumps(_to_plain(result), indent=indent, ensure_ascii=False)
