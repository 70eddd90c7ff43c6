# -*- coding:utf-8 -*-
"""日志配置"""

import logging
import sys
from typing import Optional

# logging 没有单独的级别类型
LogLevel = int

PACKAGE_LOGGER = 'sleepy_analyzer'


def new_logger(
    name: Optional[str] = None,
    level: LogLevel = logging.INFO,
    outfile: Optional[str] = None,
    stderr: Optional[bool] = None,
) -> logging.Logger:
    """
    创建并配置 logger

    :param name: logger 名称，默认为包 logger
    :param level: 日志级别
    :param outfile: 设置后写入文件
    :param stderr: 未设置 outfile 时，True 输出到 stderr，否则 stdout
    :return: 配置好的 logger
    """
    log = logging.getLogger(name or PACKAGE_LOGGER)
    log.setLevel(level)
    fmt = logging.Formatter('[%(asctime)s] %(levelname)s: %(message)s',
                            '%Y-%m-%d %H:%M:%S')

    if outfile is not None:
        handler = logging.FileHandler(outfile)
    elif stderr:
        handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.StreamHandler(sys.stdout)

    handler.setFormatter(fmt)
    # 重复配置时替换旧 handler，避免日志重复输出
    for old in list(log.handlers):
        log.removeHandler(old)
        old.close()
    log.addHandler(handler)
    log.propagate = False
    return log
