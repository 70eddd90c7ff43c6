# -*- coding:utf-8 -*-
"""
异常定义

加载阶段的错误（打开归档、读取成员、解析各段）都会中止本次加载，
不会返回半成品 Profile；分析阶段只有越界访问会抛错。
"""

from typing import Optional


class SleepyError(Exception):
    """所有 sleepy 分析错误的基类"""


class ArchiveOpenError(SleepyError):
    """归档无法打开或不是合法的 zip 文件"""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        message = f"failed to open profile archive '{path}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class MemberReadError(SleepyError):
    """归档中某个成员解压或解码失败"""

    def __init__(self, member: str, reason: str = ""):
        self.member = member
        self.reason = reason
        message = f"failed to read '{member}' from archive"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class SectionParseError(SleepyError):
    """段解析错误；section 由加载器在抛出前补上"""

    def __init__(self, message: str, line: Optional[str] = None, section: Optional[str] = None):
        self.message = message
        self.line = line
        self.section = section
        super().__init__(message)

    def __str__(self):
        if self.section:
            return f"failed to parse {self.section}: {self.message}"
        return self.message


class InvalidMetadataValue(SectionParseError):
    pass


class MalformedSymbolLine(SectionParseError):
    pass


class MalformedSampleLine(SectionParseError):
    pass


class MalformedThreadLine(SectionParseError):
    pass


class IndexOutOfRange(SleepyError):
    """按序号访问样本时越界"""

    def __init__(self, index: int, count: int):
        self.index = index
        self.count = count
        if count > 0:
            valid = f"1-{count}"
        else:
            valid = "none (profile has no samples)"
        super().__init__(f"invalid callstack index {index}. Valid range: {valid}")


class ProfileNotLoaded(SleepyError):
    """ProfileStore 中没有该路径"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"profile '{path}' not loaded. Use the load command first")
