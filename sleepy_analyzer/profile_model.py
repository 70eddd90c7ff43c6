#!/usr/bin/env python3
# -*- coding:utf-8 -*-
"""
Very Sleepy profile 数据模型

一个 .sleepy 文件加载后得到一个 Profile：
- metadata: Stats.txt 中的文件名/时长/日期/采样数
- symbols: Symbols.txt 中的符号表（原始顺序）
- samples: Callstacks.txt 中的调用栈采样（地址从叶子到根）
- threads: Threads.txt 中的线程表
- symbol_index: 地址 -> Symbol 索引，构造时一次性建立

Profile 构造后只读，所有分析都只读取它。
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from sleepy_analyzer.errors import IndexOutOfRange

UNRESOLVED_MODULE = '?'
UNKNOWN_MODULE = '[unknown]'

_HEX_RE = re.compile(r'^[0-9a-fA-F]+$')
_MAX_ADDRESS = (1 << 64) - 1


def parse_hex_address(text: str) -> Optional[int]:
    """解析 0x 前缀的 64 位十六进制地址，非法时返回 None"""
    if not text.startswith('0x'):
        return None
    digits = text[2:]
    if not _HEX_RE.match(digits):
        return None
    value = int(digits, 16)
    if value > _MAX_ADDRESS:
        return None
    return value


def format_address(address: int) -> str:
    return f"0x{address:X}"


def function_signature(module: str, function: str) -> str:
    """函数唯一标识，形如 module!function"""
    return f"{module}!{function}"


@dataclass(frozen=True)
class ProfileMetadata:
    """Stats.txt 头部信息"""
    filename: str = ""
    duration: str = ""
    date: str = ""
    num_samples: int = 0


@dataclass(frozen=True)
class Symbol:
    """符号表中的一条记录"""
    address: str               # 原始文本，如 0x7ff7ee6f157c
    module: str
    procedure: str
    source_file: str
    line_number: int

    @property
    def parsed_address(self) -> Optional[int]:
        return parse_hex_address(self.address)


@dataclass(frozen=True)
class Sample:
    """一次调用栈采样，addresses[0] 为叶子帧"""
    sample_id: int             # 解析时从 1 开始自增
    duration: float            # 秒
    addresses: Tuple[int, ...] = ()

    @property
    def depth(self) -> int:
        return len(self.addresses)


@dataclass(frozen=True)
class Thread:
    thread_id: int
    name: str


@dataclass(frozen=True)
class ResolvedFrame:
    """解析后的栈帧（按需计算，不缓存）"""
    address: int
    module: str
    function: str
    source_file: str = ""
    line_number: int = 0

    @property
    def key(self) -> Tuple[str, str]:
        """聚合用的 (module, function)，signature 只用于显示"""
        return (self.module, self.function)

    @property
    def signature(self) -> str:
        return function_signature(self.module, self.function)

    @property
    def is_resolved(self) -> bool:
        return self.module != UNRESOLVED_MODULE


def build_symbol_index(symbols: Iterable[Symbol]) -> Dict[int, Symbol]:
    """
    建立地址 -> 符号索引

    地址无法解析的符号直接跳过；同一地址出现多次时后解析的覆盖先解析的。
    """
    index: Dict[int, Symbol] = {}
    for sym in symbols:
        addr = sym.parsed_address
        if addr is None:
            continue
        index[addr] = sym
    return index


@dataclass(frozen=True)
class Profile:
    """完整的 profile 数据"""
    metadata: ProfileMetadata = field(default_factory=ProfileMetadata)
    symbols: Tuple[Symbol, ...] = ()
    samples: Tuple[Sample, ...] = ()
    threads: Tuple[Thread, ...] = ()
    symbol_index: Mapping[int, Symbol] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        # 统一转为 tuple，保证构造后不可变
        object.__setattr__(self, 'symbols', tuple(self.symbols))
        object.__setattr__(self, 'samples', tuple(self.samples))
        object.__setattr__(self, 'threads', tuple(self.threads))
        object.__setattr__(self, 'symbol_index', MappingProxyType(build_symbol_index(self.symbols)))

    @property
    def total_time(self) -> float:
        return sum(s.duration for s in self.samples)

    def get_sample(self, index: int) -> Sample:
        """按 1 开始的序号获取样本"""
        if index < 1 or index > len(self.samples):
            raise IndexOutOfRange(index, len(self.samples))
        return self.samples[index - 1]


def resolve_address(profile: Profile, address: int) -> ResolvedFrame:
    sym = profile.symbol_index.get(address)
    if sym is None:
        return ResolvedFrame(
            address=address,
            module=UNRESOLVED_MODULE,
            function=f"[{format_address(address)}]",
        )
    return ResolvedFrame(
        address=address,
        module=sym.module,
        function=sym.procedure,
        source_file=sym.source_file,
        line_number=sym.line_number,
    )


def resolve_sample(profile: Profile, sample: Sample) -> List[ResolvedFrame]:
    """将样本的地址序列解析为栈帧，保持叶子到根的顺序，长度与地址数一致"""
    return [resolve_address(profile, addr) for addr in sample.addresses]
