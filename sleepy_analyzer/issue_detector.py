#!/usr/bin/env python3
# -*- coding:utf-8 -*-
"""
性能问题启发式检测

规则互相独立，全部执行：
1. 调用栈过深: 最大栈深度 > 50 帧 (High)
2. CPU 热点: 前 10 个热点中占比 > 20% (Critical) 或 > 10% (High)
3. 热循环: 函数出现在 > 80% 的样本中 (Critical)

结果按影响（百分比）降序排列，没有数值影响的规则记为 0 排在最后。
"""

import argparse
import json
import sys
from dataclasses import asdict, dataclass
from typing import List, Optional

from sleepy_analyzer.errors import SleepyError
from sleepy_analyzer.hotspot_analyzer import function_frequencies, rank_hotspots
from sleepy_analyzer.profile_model import Profile
from sleepy_analyzer.profile_statistics import compute_statistics

SEVERITY_CRITICAL = 'Critical'
SEVERITY_HIGH = 'High'
SEVERITY_MEDIUM = 'Medium'
SEVERITY_LOW = 'Low'
SEVERITIES = (SEVERITY_CRITICAL, SEVERITY_HIGH, SEVERITY_MEDIUM, SEVERITY_LOW)

CATEGORY_DEEP_STACK = 'Deep Call Stack'
CATEGORY_CPU_HOTSPOT = 'CPU Hotspot'
CATEGORY_HOT_LOOP = 'Hot Loop'


@dataclass
class IssueThresholds:
    """检测阈值配置"""
    deep_stack_frames: int = 50
    hotspot_top_n: int = 10
    critical_hotspot_percent: float = 20.0
    high_hotspot_percent: float = 10.0
    hot_loop_percent: float = 80.0


@dataclass
class PerformanceIssue:
    severity: str
    category: str
    description: str
    function: str = ""
    module: str = ""
    impact: float = 0.0        # 占总时间/样本的百分比


def _check_stack_depth(profile: Profile, tc: IssueThresholds) -> List[PerformanceIssue]:
    max_depth = compute_statistics(profile).max_stack_depth
    if max_depth <= tc.deep_stack_frames:
        return []
    return [PerformanceIssue(
        severity=SEVERITY_HIGH,
        category=CATEGORY_DEEP_STACK,
        description=f"Maximum stack depth of {max_depth} frames detected. "
                    f"This may indicate deep recursion or complex call chains.",
    )]


def _check_hotspots(profile: Profile, tc: IssueThresholds) -> List[PerformanceIssue]:
    issues = []
    for hs in rank_hotspots(profile, tc.hotspot_top_n):
        if hs.percentage > tc.critical_hotspot_percent:
            severity = SEVERITY_CRITICAL
        elif hs.percentage > tc.high_hotspot_percent:
            severity = SEVERITY_HIGH
        else:
            continue
        issues.append(PerformanceIssue(
            severity=severity,
            category=CATEGORY_CPU_HOTSPOT,
            description=f"Function consumes {hs.percentage:.2f}% of total execution time",
            function=hs.function,
            module=hs.module,
            impact=hs.percentage,
        ))
    return issues


def _check_hot_loops(profile: Profile, tc: IssueThresholds) -> List[PerformanceIssue]:
    issues = []
    for freq in function_frequencies(profile):
        if freq.percentage > tc.hot_loop_percent:
            issues.append(PerformanceIssue(
                severity=SEVERITY_CRITICAL,
                category=CATEGORY_HOT_LOOP,
                description=f"Function appears in {freq.percentage:.2f}% of all callstacks "
                            f"- likely in a hot loop",
                function=freq.function,
                module=freq.module,
                impact=freq.percentage,
            ))
    return issues


def detect_issues(profile: Profile, thresholds: Optional[IssueThresholds] = None) -> List[PerformanceIssue]:
    """执行全部规则，按影响降序返回"""
    tc = thresholds or IssueThresholds()

    issues = []
    issues.extend(_check_stack_depth(profile, tc))
    issues.extend(_check_hotspots(profile, tc))
    issues.extend(_check_hot_loops(profile, tc))

    issues.sort(key=lambda i: i.impact, reverse=True)
    return issues


def group_by_severity(issues: List[PerformanceIssue]) -> dict:
    groups = {s: [] for s in SEVERITIES}
    for issue in issues:
        groups.setdefault(issue.severity, []).append(issue)
    return groups


def add_threshold_arguments(parser: argparse.ArgumentParser):
    """在命令行中暴露检测阈值"""
    defaults = IssueThresholds()
    group = parser.add_argument_group('检测阈值', '覆盖启发式规则的默认阈值')
    group.add_argument('--deep-stack-frames', type=int, metavar='N', default=defaults.deep_stack_frames,
                       help=f'栈深度超过 N 帧视为过深 (默认 {defaults.deep_stack_frames})')
    group.add_argument('--hotspot-critical', type=float, metavar='%', default=defaults.critical_hotspot_percent,
                       help=f'热点 Critical 阈值 (默认 {defaults.critical_hotspot_percent}%%)')
    group.add_argument('--hotspot-high', type=float, metavar='%', default=defaults.high_hotspot_percent,
                       help=f'热点 High 阈值 (默认 {defaults.high_hotspot_percent}%%)')
    group.add_argument('--hot-loop', type=float, metavar='%', default=defaults.hot_loop_percent,
                       help=f'热循环样本占比阈值 (默认 {defaults.hot_loop_percent}%%)')


def thresholds_from_args(args) -> IssueThresholds:
    return IssueThresholds(
        deep_stack_frames=args.deep_stack_frames,
        critical_hotspot_percent=args.hotspot_critical,
        high_hotspot_percent=args.hotspot_high,
        hot_loop_percent=args.hot_loop,
    )


def print_report(profile: Profile, thresholds: Optional[IssueThresholds] = None):
    from sleepy_analyzer.report_formatter import format_issues

    print(format_issues(detect_issues(profile, thresholds)))


def main():
    from sleepy_analyzer.sleepy_parser import load_profile

    parser = argparse.ArgumentParser(description="Very Sleepy 性能问题自动检测")
    parser.add_argument('file', help='.sleepy 文件路径')
    parser.add_argument('--json', action='store_true', help='输出 JSON 格式')
    add_threshold_arguments(parser)
    args = parser.parse_args()

    try:
        profile = load_profile(args.file)
    except SleepyError as e:
        print(f"错误: {e}", file=sys.stderr)
        return 1

    thresholds = thresholds_from_args(args)
    if args.json:
        issues = detect_issues(profile, thresholds)
        print(json.dumps([asdict(i) for i in issues], indent=2, ensure_ascii=False))
    else:
        print_report(profile, thresholds)
    return 0


if __name__ == '__main__':
    sys.exit(main())
