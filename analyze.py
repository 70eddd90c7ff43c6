import argparse
import logging
import os
import sys

from sleepy_analyzer import report_formatter
from sleepy_analyzer.errors import SleepyError
from sleepy_analyzer.hotspot_analyzer import (
    DEFAULT_PATTERN_DEPTH,
    DEFAULT_TOP_N,
    build_call_tree,
    find_callstack_patterns,
    flatten_call_tree,
    function_frequencies,
    rank_hotspots,
    rank_leaf_functions,
    rank_modules,
)
from sleepy_analyzer.issue_detector import add_threshold_arguments, detect_issues, thresholds_from_args
from sleepy_analyzer.log_utils import new_logger
from sleepy_analyzer.profile_model import resolve_sample
from sleepy_analyzer.profile_statistics import compute_statistics
from sleepy_analyzer.profile_store import ProfileStore
from sleepy_analyzer.sleepy_parser import format_summary, profile_summary

logger = logging.getLogger('sleepy_analyzer.cli')


def run_load(profile, args):
    if args.json:
        return report_formatter.to_json(profile_summary(profile))
    return format_summary(profile, args.file)


def run_hotspots(profile, args):
    hotspots = rank_hotspots(profile, args.top)
    return report_formatter.to_json(hotspots) if args.json else report_formatter.format_hotspots(hotspots)


def run_leaf(profile, args):
    leaves = rank_leaf_functions(profile, args.top)
    return report_formatter.to_json(leaves) if args.json else report_formatter.format_leaf_functions(leaves)


def run_modules(profile, args):
    modules = rank_modules(profile, args.top)
    return report_formatter.to_json(modules) if args.json else report_formatter.format_modules(modules)


def run_issues(profile, args):
    issues = detect_issues(profile, thresholds_from_args(args))
    return report_formatter.to_json(issues) if args.json else report_formatter.format_issues(issues)


def run_stats(profile, args):
    stats = compute_statistics(profile)
    return report_formatter.to_json(stats) if args.json else report_formatter.format_statistics(stats)


def run_callstack(profile, args):
    sample = profile.get_sample(args.index)
    frames = resolve_sample(profile, sample)
    if args.json:
        return report_formatter.to_json({'index': args.index, 'duration': sample.duration, 'frames': frames})
    return report_formatter.format_callstack(args.index, sample, frames)


def run_patterns(profile, args):
    patterns = find_callstack_patterns(profile, args.depth, args.top)
    return report_formatter.to_json(patterns) if args.json else report_formatter.format_patterns(patterns)


def run_calltree(profile, args):
    roots = build_call_tree(profile, args.depth)
    if args.json:
        return report_formatter.to_json(flatten_call_tree(roots.values()))
    return report_formatter.format_call_tree(roots, args.top)


def run_frequencies(profile, args):
    frequencies = function_frequencies(profile)
    if args.json:
        return report_formatter.to_json(frequencies[:args.top] if args.top > 0 else frequencies)
    return report_formatter.format_frequencies(frequencies, args.top)


COMMANDS = {
    'load': run_load,
    'hotspots': run_hotspots,
    'leaf': run_leaf,
    'modules': run_modules,
    'issues': run_issues,
    'stats': run_stats,
    'callstack': run_callstack,
    'patterns': run_patterns,
    'calltree': run_calltree,
    'frequencies': run_frequencies,
}


def build_parser():
    parser = argparse.ArgumentParser(
        description="Very Sleepy CPU profile 分析工具",
        epilog="Examples:\n"
               "  python3 analyze.py hotspots capture.sleepy --top 20\n"
               "  python3 analyze.py issues capture.sleepy --hot-loop 70\n"
               "  python3 analyze.py callstack capture.sleepy 3",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='输出调试日志')

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('file', type=str, help='.sleepy 文件路径')
    common.add_argument('--json', action='store_true', help='输出 JSON 格式')
    common.add_argument('-o', '--output', help='输出文件路径（默认输出到 stdout）')

    top = argparse.ArgumentParser(add_help=False)
    top.add_argument('-n', '--top', type=int, default=DEFAULT_TOP_N, help='显示前 N 项 (<=0 显示全部)')

    subparsers = parser.add_subparsers(dest='command', required=True, help='Available commands')

    subparsers.add_parser('load', parents=[common], help='加载 profile 并显示摘要')
    subparsers.add_parser('hotspots', parents=[common, top], help='CPU 热点函数')
    subparsers.add_parser('leaf', parents=[common, top], help='叶子函数（实际执行的代码）')
    modules = subparsers.add_parser('modules', parents=[common], help='按模块汇总时间')
    modules.add_argument('-n', '--top', type=int, default=0, help='显示前 N 个模块 (默认全部)')

    issues = subparsers.add_parser('issues', parents=[common], help='自动检测性能问题')
    add_threshold_arguments(issues)

    subparsers.add_parser('stats', parents=[common], help='profile 统计')

    callstack = subparsers.add_parser('callstack', parents=[common], help='查看单个调用栈')
    callstack.add_argument('index', type=int, help='调用栈序号 (从 1 开始)')

    patterns = subparsers.add_parser('patterns', parents=[common, top], help='常见调用栈模式')
    patterns.add_argument('-d', '--depth', type=int, default=DEFAULT_PATTERN_DEPTH, help='模式匹配的帧数')

    calltree = subparsers.add_parser('calltree', parents=[common, top], help='调用树（叶子 -> 调用者）')
    calltree.add_argument('-d', '--depth', type=int, default=0, help='展开深度 (0 不限)')

    subparsers.add_parser('frequencies', parents=[common, top], help='函数在调用栈中的出现频率')
    return parser


def main(argv=None, store=None):
    """Main function to parse arguments and dispatch commands."""
    parser = build_parser()
    args = parser.parse_args(argv)

    new_logger(level=logging.DEBUG if args.verbose else logging.INFO, stderr=True)

    if not os.path.exists(args.file):
        print(f"错误: 文件不存在: {args.file}", file=sys.stderr)
        return 1

    store = store if store is not None else ProfileStore()
    try:
        profile = store.get_or_load(args.file)
        output = COMMANDS[args.command](profile, args)
    except SleepyError as e:
        print(f"错误: {e}", file=sys.stderr)
        return 1

    if args.output:
        try:
            with open(args.output, 'w', encoding='utf-8') as f:
                f.write(output)
        except OSError as e:
            print(f"错误: 无法写入输出文件 {args.output}: {e}", file=sys.stderr)
            return 1
        logger.info("report written to %s", args.output)
    else:
        print(output)
    return 0


if __name__ == '__main__':
    sys.exit(main())
