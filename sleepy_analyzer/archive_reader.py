# -*- coding:utf-8 -*-
"""
.sleepy 归档读取

.sleepy 文件本质是 zip，包含若干文本成员：
- Stats.txt       元信息
- Symbols.txt     符号表
- Callstacks.txt  调用栈采样
- Threads.txt     线程表

任何成员都可能缺失。归档和成员流都在 with 作用域内打开和释放。
"""

import io
import logging
import zipfile
import zlib
from contextlib import contextmanager
from typing import Iterator, List, TextIO

from sleepy_analyzer.errors import ArchiveOpenError, MemberReadError

logger = logging.getLogger(__name__)

STATS_MEMBER = 'Stats.txt'
SYMBOLS_MEMBER = 'Symbols.txt'
CALLSTACKS_MEMBER = 'Callstacks.txt'
THREADS_MEMBER = 'Threads.txt'

KNOWN_MEMBERS = (STATS_MEMBER, SYMBOLS_MEMBER, CALLSTACKS_MEMBER, THREADS_MEMBER)


class _CheckedLines:
    """逐行读取成员文本，把解压/解码错误转换为 MemberReadError"""

    def __init__(self, name: str, text: TextIO):
        self.name = name
        self.text = text

    def __iter__(self):
        return self

    def __next__(self) -> str:
        try:
            line = next(self.text)
        except (zipfile.BadZipFile, zlib.error, EOFError, OSError, UnicodeDecodeError) as e:
            raise MemberReadError(self.name, str(e)) from e
        return line.rstrip('\n')


class SleepyArchive:
    """已打开的 .sleepy 归档"""

    def __init__(self, path: str, zf: zipfile.ZipFile):
        self.path = path
        self._zf = zf

    def member_names(self) -> List[str]:
        """按归档中的顺序返回成员名"""
        return [info.filename for info in self._zf.infolist() if not info.is_dir()]

    def has_member(self, name: str) -> bool:
        return name in self.member_names()

    @contextmanager
    def open_text(self, name: str) -> Iterator[_CheckedLines]:
        """以 UTF-8 文本方式打开成员，逐行迭代（行尾换行已去掉）"""
        try:
            raw = self._zf.open(name)
        except KeyError as e:
            raise MemberReadError(name, "no such member") from e
        except (zipfile.BadZipFile, zlib.error, OSError, NotImplementedError, RuntimeError) as e:
            raise MemberReadError(name, str(e)) from e

        # newline=None: 兼容 Windows 下生成的 CRLF 文本
        text = io.TextIOWrapper(raw, encoding='utf-8', newline=None)
        try:
            yield _CheckedLines(name, text)
        finally:
            text.close()


@contextmanager
def open_archive(path: str) -> Iterator[SleepyArchive]:
    """
    打开 .sleepy 归档

    Raises:
        ArchiveOpenError: 路径不可读或不是合法 zip
    """
    try:
        zf = zipfile.ZipFile(path, 'r')
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveOpenError(path, str(e)) from e

    logger.debug("opened archive %s (%d members)", path, len(zf.infolist()))
    try:
        yield SleepyArchive(path, zf)
    finally:
        zf.close()
