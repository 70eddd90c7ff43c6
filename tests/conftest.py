import zipfile

import pytest

from sleepy_analyzer.profile_model import Profile, ProfileMetadata
from sleepy_analyzer.sleepy_parser import parse_samples, parse_symbols, parse_threads

STATS_TEXT = (
    "Filename: C:\\work\\game.exe\n"
    "Duration: 12.5s\n"
    "Date: 2025-03-01 10:00:00\n"
    "Samples: 4\n"
)

SYMBOLS_TEXT = (
    '0x1000 "My Module" "My Func" src/x.c 42\n'
    '0x2000 game.exe main src/main.c 10\n'
    '0x3000 game.exe update src/update.c 77\n'
    '0x4000 kernel32.dll Sleep "[unknown]" 0\n'
)

CALLSTACKS_TEXT = (
    "0.5 0x1000 0x3000 0x2000\n"
    "0.25 0x3000 0x2000\n"
    "0.25 0x4000 0x2000\n"
    "0.0 0x9999\n"
)

THREADS_TEXT = "1204\nMain Thread\n5560\nWorker\n"


def write_archive(path, members):
    with zipfile.ZipFile(path, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
        for name, text in members.items():
            zf.writestr(name, text)
    return str(path)


@pytest.fixture
def make_archive(tmp_path):
    """写一个 .sleepy 归档并返回路径"""
    def _make(members, name='capture.sleepy'):
        return write_archive(tmp_path / name, members)
    return _make


@pytest.fixture
def sample_archive(make_archive):
    return make_archive({
        'Stats.txt': STATS_TEXT,
        'Symbols.txt': SYMBOLS_TEXT,
        'Callstacks.txt': CALLSTACKS_TEXT,
        'Threads.txt': THREADS_TEXT,
    })


def build_profile(symbols_text='', callstacks_text='', threads_text=''):
    """不经过 zip，直接由文本构建 Profile"""
    return Profile(
        metadata=ProfileMetadata(),
        symbols=parse_symbols(symbols_text.splitlines()),
        samples=parse_samples(callstacks_text.splitlines()),
        threads=parse_threads(threads_text.splitlines()),
    )


@pytest.fixture
def profile():
    return build_profile(SYMBOLS_TEXT, CALLSTACKS_TEXT, THREADS_TEXT)
