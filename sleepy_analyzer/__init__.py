# -*- coding:utf-8 -*-
"""Very Sleepy (.sleepy) CPU profile 解析与分析工具"""

from sleepy_analyzer.errors import (
    ArchiveOpenError,
    IndexOutOfRange,
    InvalidMetadataValue,
    MalformedSampleLine,
    MalformedSymbolLine,
    MalformedThreadLine,
    MemberReadError,
    ProfileNotLoaded,
    SectionParseError,
    SleepyError,
)
from sleepy_analyzer.hotspot_analyzer import (
    build_call_tree,
    find_callstack_patterns,
    function_frequencies,
    rank_hotspots,
    rank_leaf_functions,
    rank_modules,
    rollup_modules,
)
from sleepy_analyzer.issue_detector import IssueThresholds, detect_issues
from sleepy_analyzer.profile_model import Profile, ResolvedFrame, Sample, Symbol, Thread, resolve_sample
from sleepy_analyzer.profile_statistics import compute_statistics
from sleepy_analyzer.profile_store import ProfileStore
from sleepy_analyzer.sleepy_parser import load_profile

__version__ = '1.0.0'
