"""依赖仓库拉取与检出

职责:
- 在仓库缓存目录锁内准备工作副本（首次 clone，已存在则复用）
- 切换到目标修订版本，本地缺失时先拉取上游再重试一次
- 将工作副本过滤复制到 vendor 目标目录

目标目录不做失败回滚，调用方应为每次尝试准备全新目录。
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from vendorkit.core.dep.cache import RepoCache, cache_key
from vendorkit.core.dep.copier import copy_filtered
from vendorkit.core.dep.models import PackageMeta, PinnedPackage
from vendorkit.core.dep.vcs import VCSRepo, new_repo
from vendorkit.core.exceptions import (
    CacheError,
    CopyError,
    ValidationError,
    VCSError,
    VCSRemoteError,
)
from vendorkit.utils.cancel import CancelToken
from vendorkit.utils.shell import CommandExecutor, LocalExecutor

logger = logging.getLogger(__name__)


class PackageFetcher:
    """依赖仓库拉取器 - 缓存目录锁 + 检出 + 过滤复制"""

    def __init__(self, cache: RepoCache, executor: CommandExecutor | None = None) -> None:
        self.cache = cache
        self.executor = executor or LocalExecutor()

    def fetch(
        self,
        meta: PackageMeta,
        destination: str | Path,
        version: str,
        token: CancelToken | None = None,
    ) -> None:
        """拉取 meta 对应仓库的 version 版本，过滤复制到 destination

        token 在每个步骤之间检查；正在执行的 VCS 命令不会被打断。

        Raises:
            ValidationError: 未指定版本
            VCSRemoteError: 克隆失败（附带远端输出）
            VCSError: 更新或切换修订版本失败
            CacheError: 缓存目录或锁操作失败
            CopyError: 复制失败
            CancelledError: token 被取消
        """
        if not version:
            raise ValidationError(f"未指定要检出的版本: {meta.root}")

        dest = Path(destination)
        token = token or CancelToken()
        token.raise_if_cancelled(f"拉取 {meta.root}")
        with self.cache.directory(cache_key(meta.remote)) as path:
            token.raise_if_cancelled(f"拉取 {meta.root}")
            try:
                repo = new_repo(meta, path, self.executor)
            except VCSError as e:
                raise VCSError(f"创建仓库 {meta.remote}: {e}") from e

            self._ensure_clone(repo)
            token.raise_if_cancelled(f"检出 {meta.root}@{version}")
            self._checkout(repo, version, token)
            try:
                actual = repo.current_version()
            except VCSError as e:
                raise VCSError(f"读取仓库 {meta.remote} 的当前修订版本: {e}") from e

            token.raise_if_cancelled(f"复制 {meta.root}")
            try:
                copy_filtered(dest, path)
            except CopyError as e:
                raise CopyError(f"复制仓库 {meta.root}: {e}") from e

        logger.info("已就绪: %s@%s (当前 %s) -> %s", meta.root, version, actual, dest)

    def fetch_pinned(
        self, pin: PinnedPackage, destination: str | Path, token: CancelToken | None = None,
    ) -> None:
        self.fetch(pin.meta, destination, pin.version, token)

    @staticmethod
    def _ensure_clone(repo: VCSRepo) -> None:
        if repo.check_local():
            return
        # 上次 clone 中断留下的残余文件会让新的 clone 失败
        leftovers = list(repo.local.iterdir())
        if leftovers:
            logger.warning("清理不完整的工作副本: %s (%d 项)", repo.local, len(leftovers))
            try:
                for entry in leftovers:
                    if entry.is_dir() and not entry.is_symlink():
                        shutil.rmtree(entry)
                    else:
                        entry.unlink()
            except OSError as e:
                raise CacheError(f"清理工作副本 {repo.local}: {e}") from e
        try:
            repo.get()
        except VCSRemoteError:
            raise
        except VCSError as e:
            raise VCSError(f"克隆仓库 {repo.remote}: {e}") from e

    @staticmethod
    def _checkout(repo: VCSRepo, version: str, token: CancelToken) -> None:
        try:
            repo.update_version(version)
            return
        except VCSError as first:
            # 修订版本可能只是本地还没有
            logger.info("本地缺少修订版本 %s，拉取上游后重试: %s (%s)", version, repo.remote, first)

        token.raise_if_cancelled(f"更新仓库 {repo.remote}")
        try:
            repo.update()
        except VCSError as e:
            raise VCSError(f"更新仓库 {repo.remote}: {e}") from e
        try:
            repo.update_version(version)
        except VCSError as e:
            raise VCSError(f"更新仓库 {repo.remote} 到修订版本 {version}: {e}") from e
