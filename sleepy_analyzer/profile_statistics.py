#!/usr/bin/env python3
# -*- coding:utf-8 -*-
"""Profile 整体统计：总时间、栈深度、模块/函数去重计数"""

import argparse
import json
import sys
from dataclasses import asdict, dataclass

from sleepy_analyzer.errors import SleepyError
from sleepy_analyzer.profile_model import UNRESOLVED_MODULE, Profile, resolve_sample


@dataclass
class ProfileStatistics:
    total_time: float = 0.0
    total_samples: int = 0
    total_symbols: int = 0
    average_stack_depth: float = 0.0
    max_stack_depth: int = 0
    min_stack_depth: int = 0
    unique_modules: int = 0
    unique_functions: int = 0


def compute_statistics(profile: Profile) -> ProfileStatistics:
    """一次遍历计算所有统计项；没有样本时除符号数外全部为 0"""
    stats = ProfileStatistics(
        total_samples=len(profile.samples),
        total_symbols=len(profile.symbols),
    )
    if not profile.samples:
        return stats

    total_depth = 0
    min_depth = None
    modules = set()
    functions = set()

    for sample in profile.samples:
        stats.total_time += sample.duration

        depth = sample.depth
        total_depth += depth
        stats.max_stack_depth = max(stats.max_stack_depth, depth)
        if min_depth is None or depth < min_depth:
            min_depth = depth

        for frame in resolve_sample(profile, sample):
            if frame.module and frame.module != UNRESOLVED_MODULE:
                modules.add(frame.module)
            functions.add(frame.key)

    stats.average_stack_depth = total_depth / stats.total_samples
    stats.min_stack_depth = min_depth or 0
    stats.unique_modules = len(modules)
    stats.unique_functions = len(functions)
    return stats


def print_report(profile: Profile):
    from sleepy_analyzer.report_formatter import format_statistics

    print(format_statistics(compute_statistics(profile)))


def main():
    from sleepy_analyzer.sleepy_parser import load_profile

    parser = argparse.ArgumentParser(description="Very Sleepy profile 统计")
    parser.add_argument('file', help='.sleepy 文件路径')
    parser.add_argument('--json', action='store_true', help='输出 JSON 格式')
    args = parser.parse_args()

    try:
        profile = load_profile(args.file)
    except SleepyError as e:
        print(f"错误: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(asdict(compute_statistics(profile)), indent=2))
    else:
        print_report(profile)
    return 0


if __name__ == '__main__':
    sys.exit(main())
