#!/usr/bin/env python3
# -*- coding:utf-8 -*-
"""
Very Sleepy (.sleepy) profile 解析器

解析 zip 归档中的四个文本段，构建只读 Profile：
- Stats.txt:      "Key: Value" 形式的元信息
- Symbols.txt:    地址 模块 函数 源文件 行号（带空格的字段用双引号包围）
- Callstacks.txt: 耗时 地址1 地址2 ...（地址从叶子到根）
- Threads.txt:    线程 ID / 线程名 交替出现

任一段解析失败都会中止加载，不会返回半成品。
"""

import argparse
import json
import logging
import os
import re
import sys
from dataclasses import asdict
from typing import Iterable, List

from sleepy_analyzer.archive_reader import (
    CALLSTACKS_MEMBER,
    STATS_MEMBER,
    SYMBOLS_MEMBER,
    THREADS_MEMBER,
    open_archive,
)
from sleepy_analyzer.errors import (
    InvalidMetadataValue,
    MalformedSampleLine,
    MalformedSymbolLine,
    MalformedThreadLine,
    SectionParseError,
    SleepyError,
)
from sleepy_analyzer.profile_model import (
    Profile,
    ProfileMetadata,
    Sample,
    Symbol,
    Thread,
    parse_hex_address,
)

logger = logging.getLogger(__name__)

SYMBOL_FIELD_COUNT = 5

_INT_RE = re.compile(r'[+-]?[0-9]+')


def _parse_int(text: str) -> int:
    """十进制整数；不接受 int() 额外允许的空白和下划线"""
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"invalid integer: {text!r}")
    return int(text)


def parse_metadata(lines: Iterable[str]) -> ProfileMetadata:
    """解析 Stats.txt，未知 key 忽略"""
    values = {}
    num_samples = 0

    for line in lines:
        if ': ' not in line:
            continue
        key, value = line.split(': ', 1)

        if key in ('Filename', 'Duration', 'Date'):
            values[key.lower()] = value
        elif key == 'Samples':
            try:
                num_samples = _parse_int(value)
            except ValueError:
                raise InvalidMetadataValue(f"invalid Samples value: {value!r}", line=line)

    return ProfileMetadata(
        filename=values.get('filename', ''),
        duration=values.get('duration', ''),
        date=values.get('date', ''),
        num_samples=num_samples,
    )


def split_symbol_fields(line: str) -> List[str]:
    """
    切分符号行

    双引号切换"引号内"状态且本身不输出；只有引号外的空格才作为分隔符。
    例如: 0x1000 "My Module" "My Func" src/x.c 42
    """
    fields = []
    current = []
    in_quote = False

    for ch in line:
        if ch == '"':
            in_quote = not in_quote
        elif ch == ' ' and not in_quote:
            fields.append(''.join(current))
            current = []
        else:
            current.append(ch)
    fields.append(''.join(current))
    return fields


def parse_symbols(lines: Iterable[str]) -> List[Symbol]:
    """解析 Symbols.txt"""
    symbols = []
    for line in lines:
        if not line.strip():
            continue

        fields = split_symbol_fields(line)
        if len(fields) < SYMBOL_FIELD_COUNT:
            raise MalformedSymbolLine(f"malformed symbol line: {line}", line=line)

        try:
            line_number = _parse_int(fields[4])
        except ValueError:
            raise MalformedSymbolLine(f"invalid line number {fields[4]!r} (line: {line})", line=line)

        symbols.append(Symbol(
            address=fields[0],
            module=fields[1],
            procedure=fields[2],
            source_file=fields[3],
            line_number=line_number,
        ))
    return symbols


def parse_samples(lines: Iterable[str]) -> List[Sample]:
    """
    解析 Callstacks.txt

    格式: "耗时 地址1 地址2 ..."
    例如: "0.001584 0x7ff7ee6f157c 0x7ff7ee6fa3e4 0x7ffffce97374"
    """
    samples = []
    sample_id = 1

    for raw in lines:
        line = raw.strip()
        if not line:
            continue

        parts = line.split()
        try:
            duration = float(parts[0])
        except ValueError:
            raise MalformedSampleLine(f"invalid duration {parts[0]!r} (line: {line})", line=raw)

        addresses = []
        for text in parts[1:]:
            if not text.startswith('0x'):
                raise MalformedSampleLine(
                    f"invalid address format {text!r} (expected 0x prefix)", line=raw)
            addr = parse_hex_address(text)
            if addr is None:
                raise MalformedSampleLine(f"invalid address {text!r}", line=raw)
            addresses.append(addr)

        samples.append(Sample(sample_id=sample_id, duration=duration, addresses=tuple(addresses)))
        sample_id += 1

    return samples


def parse_threads(lines: Iterable[str]) -> List[Thread]:
    """解析 Threads.txt，ID 行与名称行交替出现"""
    threads = []
    pending_id = None

    for line in lines:
        if not line.strip():
            continue

        if pending_id is None:
            try:
                pending_id = _parse_int(line)
            except ValueError:
                raise MalformedThreadLine(f"invalid thread ID {line!r}", line=line)
        else:
            threads.append(Thread(thread_id=pending_id, name=line))
            pending_id = None

    if pending_id is not None:
        raise MalformedThreadLine(f"thread ID {pending_id} has no name line")

    return threads


def load_profile(path: str) -> Profile:
    """
    加载 .sleepy 文件

    按归档中的成员顺序分派到各段解析器，遇到第一个错误即中止。

    Raises:
        ArchiveOpenError, MemberReadError, SectionParseError 子类
    """
    metadata = ProfileMetadata()
    symbols: List[Symbol] = []
    samples: List[Sample] = []
    threads: List[Thread] = []

    parsers = {
        STATS_MEMBER: parse_metadata,
        SYMBOLS_MEMBER: parse_symbols,
        CALLSTACKS_MEMBER: parse_samples,
        THREADS_MEMBER: parse_threads,
    }

    with open_archive(path) as archive:
        for name in archive.member_names():
            parse = parsers.get(name)
            if parse is None:
                logger.debug("skipping unknown member %s", name)
                continue

            logger.debug("parsing %s", name)
            with archive.open_text(name) as lines:
                try:
                    result = parse(lines)
                except SectionParseError as e:
                    e.section = name
                    raise

            if name == STATS_MEMBER:
                metadata = result
            elif name == SYMBOLS_MEMBER:
                symbols = result
            elif name == CALLSTACKS_MEMBER:
                samples = result
            else:
                threads = result

    profile = Profile(metadata=metadata, symbols=symbols, samples=samples, threads=threads)
    logger.info("loaded %s: %d samples, %d symbols (%d indexed), %d threads",
                path, len(profile.samples), len(profile.symbols),
                len(profile.symbol_index), len(profile.threads))
    return profile


def profile_summary(profile: Profile) -> dict:
    return {
        'metadata': asdict(profile.metadata),
        'samples': len(profile.samples),
        'symbols': len(profile.symbols),
        'indexed_symbols': len(profile.symbol_index),
        'threads': [asdict(t) for t in profile.threads],
        'total_time': profile.total_time,
    }


def format_summary(profile: Profile, file_path: str = "") -> str:
    """加载摘要文本"""
    meta = profile.metadata
    lines = [
        "=" * 60,
        "=== Very Sleepy Profile 加载摘要 ===",
        "=" * 60,
        "",
        f"文件: {file_path or meta.filename}",
        f"Duration: {meta.duration}",
        f"Date: {meta.date}",
        f"Samples: {meta.num_samples}",
        f"Callstacks: {len(profile.samples)}",
        f"Symbols: {len(profile.symbols)}",
        f"Threads: {len(profile.threads)}",
    ]

    if profile.threads:
        lines.append("\n--- 线程 ---")
        lines.append(f"{'ID':>10}  {'名称':<40}")
        lines.append("-" * 52)
        for t in profile.threads:
            lines.append(f"{t.thread_id:>10}  {t.name:<40}")

    lines.append("\n" + "=" * 60)
    return "\n".join(lines)


def print_report(profile: Profile, file_path: str = ""):
    """打印加载摘要"""
    print("\n" + format_summary(profile, file_path))


def main():
    parser = argparse.ArgumentParser(
        description="Very Sleepy profile 解析器",
        epilog="""
示例:
  python3 -m sleepy_analyzer.sleepy_parser capture.sleepy
  python3 -m sleepy_analyzer.sleepy_parser -f capture.sleepy --json
        """,
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('file', nargs='?', help='.sleepy 文件路径')
    parser.add_argument('-f', '--file', dest='file_alt', help='.sleepy 文件路径 (备选)')
    parser.add_argument('--json', action='store_true', help='输出 JSON 格式')

    args = parser.parse_args()

    file_path = args.file or args.file_alt
    if not file_path:
        print("请指定 .sleepy 文件路径")
        parser.print_help()
        return 1

    if not os.path.exists(file_path):
        print(f"错误: 文件不存在: {file_path}", file=sys.stderr)
        return 1

    try:
        profile = load_profile(file_path)
    except SleepyError as e:
        print(f"错误: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(profile_summary(profile), indent=2, ensure_ascii=False))
    else:
        print_report(profile, file_path)
    return 0


if __name__ == '__main__':
    sys.exit(main())
