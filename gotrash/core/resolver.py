"""版本解析引擎

把清单中的版本检出为缓存工作树上的 detached HEAD:

- 分支（或 master 哨兵）: 先 fetch 所属 remote，再检出 <remote>/<version>
- tag / commit: 直接检出；失败后 fetch 一次再重试一次
- master 检出失败: 退回到所有引用中最新的提交，再试一次

重试耗尽即抛 ResolutionError，整个运行中止，不会用错误的版本替代。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from gotrash.core.exceptions import ResolutionError
from gotrash.core.git import GitClient
from gotrash.core.models import TIP_VERSION, CacheEntry

logger = logging.getLogger(__name__)


class ResolutionState(str, Enum):
    UNRESOLVED = "unresolved"
    BRANCH_TIP = "branch_tip"
    FETCHED = "fetched"
    CHECKED_OUT = "checked_out"
    FAILED = "failed"


@dataclass
class Resolution:
    """单个包的解析过程与结果"""

    import_path: str
    version: str
    ref: str = ""
    commit: str = ""
    state: ResolutionState = ResolutionState.UNRESOLVED
    history: list[ResolutionState] = field(default_factory=list)

    def advance(self, state: ResolutionState) -> None:
        self.history.append(self.state)
        self.state = state


class VersionResolver:
    """按版本类型选择 fetch / checkout 策略"""

    def __init__(self, git: GitClient) -> None:
        self.git = git

    def _fetch(self, entry: CacheEntry, res: Resolution) -> None:
        remote = entry.remote.name
        logger.info("从 '%s' 拉取 '%s' 的最新提交", remote, entry.import_path)
        r = self.git.fetch(entry.path, remote)
        if not r.success:
            res.advance(ResolutionState.FAILED)
            raise ResolutionError(
                f"`git fetch -f -t {remote}` 失败 ({entry.import_path}):\n{r.output}",
                package=entry.import_path, version=res.version,
            )
        res.advance(ResolutionState.FETCHED)

    def resolve(self, entry: CacheEntry, version: str) -> Resolution:
        """检出 entry 到 version，返回解析记录"""
        res = Resolution(import_path=entry.import_path, version=version)
        remote = entry.remote.name
        target = version

        if version == TIP_VERSION or self.git.is_branch(entry.path, remote, version):
            res.advance(ResolutionState.BRANCH_TIP)
            target = f"{remote}/{version}"
            self._fetch(entry, res)

        logger.info("检出 '%s'，版本: '%s'", entry.import_path, version)
        r = self.git.checkout_detached(entry.path, target)
        if not r.success:
            res.advance(ResolutionState.FAILED)
            if version == TIP_VERSION:
                logger.warning("无法检出 'master' 分支：改为检出 git 能找到的最新提交")
                target = self.git.latest_commit(entry.path)
                if not target:
                    raise ResolutionError(
                        f"找不到 '{entry.import_path}' 的任何提交",
                        package=entry.import_path, version=version,
                    )
            else:
                self._fetch(entry, res)
            logger.debug("重试: `git checkout -f --detach %s`", target)
            r = self.git.checkout_detached(entry.path, target)
            if not r.success:
                res.advance(ResolutionState.FAILED)
                raise ResolutionError(
                    f"`git checkout -f --detach {target}` 失败 ({entry.import_path}):\n{r.output}",
                    package=entry.import_path, version=version,
                )

        res.ref = target
        res.commit = self.git.head(entry.path)
        res.advance(ResolutionState.CHECKED_OUT)
        return res
