# -*- coding:utf-8 -*-
"""
已加载 Profile 的路径缓存

由调用方创建并显式传递，不是全局状态。同一路径的写入由调用方保证
单写者；不做失效或淘汰。
"""

import logging
from typing import Dict, List

from sleepy_analyzer.errors import ProfileNotLoaded
from sleepy_analyzer.profile_model import Profile
from sleepy_analyzer.sleepy_parser import load_profile

logger = logging.getLogger(__name__)


class ProfileStore:

    def __init__(self):
        self._profiles: Dict[str, Profile] = {}

    def load(self, path: str) -> Profile:
        """加载并替换该路径下的 Profile；加载失败时保留旧值"""
        profile = load_profile(path)
        if path in self._profiles:
            logger.debug("replacing cached profile for %s", path)
        self._profiles[path] = profile
        return profile

    def put(self, path: str, profile: Profile):
        self._profiles[path] = profile

    def get(self, path: str) -> Profile:
        try:
            return self._profiles[path]
        except KeyError:
            raise ProfileNotLoaded(path) from None

    def get_or_load(self, path: str) -> Profile:
        if path in self._profiles:
            return self._profiles[path]
        return self.load(path)

    def discard(self, path: str):
        self._profiles.pop(path, None)

    def paths(self) -> List[str]:
        return list(self._profiles)

    def __contains__(self, path: str) -> bool:
        return path in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)
