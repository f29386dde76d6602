"""版本控制驱动 - 支持 git / svn / bzr / hg

每种类型一个实现，统一暴露:
- check_local():        本地是否已有工作副本
- get():                首次克隆
- update():             拉取上游最新变更
- update_version(rev):  切换到指定修订版本
- current_version():    当前修订版本

所有命令经 CommandExecutor 执行，测试时可注入假执行器。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from vendorkit.core.dep.models import PackageMeta, VCSKind
from vendorkit.core.exceptions import VCSError, VCSRemoteError
from vendorkit.utils.shell import CommandExecutor, CommandResult, LocalExecutor

logger = logging.getLogger(__name__)

# 远程交互命令的超时（秒）
REMOTE_TIMEOUT = 600


class VCSRepo(Protocol):
    """版本控制工作副本协议"""

    kind: VCSKind
    remote: str
    local: Path

    def check_local(self) -> bool: ...

    def get(self) -> None: ...

    def update(self) -> None: ...

    def update_version(self, version: str) -> None: ...

    def current_version(self) -> str: ...


class _CommandRepo:
    """基于命令行工具的工作副本基类"""

    kind = VCSKind.UNKNOWN
    tool = ""
    marker = ""

    def __init__(self, remote: str, local: Path, executor: CommandExecutor | None = None) -> None:
        self.remote = remote
        self.local = Path(local)
        self.executor = executor or LocalExecutor()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(remote={self.remote!r}, local={str(self.local)!r})"

    def _exec(self, *args: str, cwd: Path | None = None, timeout: int | None = None) -> CommandResult:
        return self.executor.execute(
            [self.tool, *args], cwd=str(cwd or self.local), timeout=timeout,
        )

    def _run(self, *args: str, cwd: Path | None = None, timeout: int | None = None) -> str:
        r = self._exec(*args, cwd=cwd, timeout=timeout)
        if not r.success:
            raise VCSError(
                f"{self.tool} {' '.join(args)} 失败 (rc={r.returncode}): {r.output[:500]}"
            )
        return r.stdout

    def _run_remote(self, *args: str, cwd: Path | None = None) -> str:
        r = self._exec(*args, cwd=cwd, timeout=REMOTE_TIMEOUT)
        if not r.success:
            raise VCSRemoteError(
                f"无法从远程仓库 {self.remote} 获取代码 ({self.tool} rc={r.returncode})",
                r.output[:2000],
            )
        return r.stdout

    def check_local(self) -> bool:
        return (self.local / self.marker).is_dir()


class GitRepo(_CommandRepo):
    kind = VCSKind.GIT
    tool = "git"
    marker = ".git"

    def get(self) -> None:
        logger.info("克隆仓库: %s -> %s", self.remote, self.local)
        self._run_remote("clone", "--quiet", self.remote, str(self.local), cwd=self.local.parent)

    def update(self) -> None:
        logger.info("更新仓库: %s", self.remote)
        self._run("fetch", "--tags", "origin", timeout=REMOTE_TIMEOUT)
        # 分离 HEAD 状态下没有可合并的分支
        if self._exec("symbolic-ref", "-q", "HEAD").success:
            self._run("pull", "--ff-only", timeout=REMOTE_TIMEOUT)

    def update_version(self, version: str) -> None:
        self._run("checkout", "--quiet", version)

    def current_version(self) -> str:
        return self._run("rev-parse", "HEAD").strip()


class HgRepo(_CommandRepo):
    kind = VCSKind.HG
    tool = "hg"
    marker = ".hg"

    def get(self) -> None:
        logger.info("克隆仓库: %s -> %s", self.remote, self.local)
        self._run_remote("clone", "-U", self.remote, str(self.local), cwd=self.local.parent)

    def update(self) -> None:
        logger.info("更新仓库: %s", self.remote)
        self._run("pull", timeout=REMOTE_TIMEOUT)

    def update_version(self, version: str) -> None:
        self._run("update", "-r", version)

    def current_version(self) -> str:
        return self._run("identify", "-i").strip()


class BzrRepo(_CommandRepo):
    kind = VCSKind.BZR
    tool = "bzr"
    marker = ".bzr"

    def get(self) -> None:
        logger.info("克隆仓库: %s -> %s", self.remote, self.local)
        self._run_remote(
            "branch", "--use-existing-dir", self.remote, str(self.local),
            cwd=self.local.parent,
        )

    def update(self) -> None:
        logger.info("更新仓库: %s", self.remote)
        self._run("pull", timeout=REMOTE_TIMEOUT)

    def update_version(self, version: str) -> None:
        self._run("update", "-r", version)

    def current_version(self) -> str:
        return self._run("revno", "--tree").strip()


class SvnRepo(_CommandRepo):
    kind = VCSKind.SVN
    tool = "svn"
    marker = ".svn"

    def get(self) -> None:
        logger.info("检出仓库: %s -> %s", self.remote, self.local)
        self._run_remote("checkout", "--quiet", self.remote, str(self.local), cwd=self.local.parent)

    def update(self) -> None:
        logger.info("更新仓库: %s", self.remote)
        self._run("update", "--quiet", timeout=REMOTE_TIMEOUT)

    def update_version(self, version: str) -> None:
        self._run("update", "--quiet", "-r", version, timeout=REMOTE_TIMEOUT)

    def current_version(self) -> str:
        return self._run("info", "--show-item", "revision").strip()


_DRIVERS: dict[VCSKind, type[_CommandRepo]] = {
    VCSKind.GIT: GitRepo,
    VCSKind.SVN: SvnRepo,
    VCSKind.BZR: BzrRepo,
    VCSKind.HG: HgRepo,
}

# 远程探测命令，按顺序尝试
_PROBES: tuple[tuple[VCSKind, tuple[str, ...]], ...] = (
    (VCSKind.GIT, ("git", "ls-remote", "--exit-code", "--heads")),
    (VCSKind.HG, ("hg", "identify")),
    (VCSKind.BZR, ("bzr", "info")),
    (VCSKind.SVN, ("svn", "info")),
)


def detect_kind(remote: str, local: Path, executor: CommandExecutor) -> VCSKind:
    """识别未知类型的仓库: 本地元数据目录 → 地址后缀 → 远程探测"""
    for kind, driver in _DRIVERS.items():
        if (local / driver.marker).is_dir():
            return kind

    stripped = remote.rstrip("/")
    for kind in _DRIVERS:
        if stripped.endswith("." + kind.value):
            return kind

    for kind, probe in _PROBES:
        r = executor.execute([*probe, remote], cwd=str(local), timeout=REMOTE_TIMEOUT)
        if r.success:
            logger.info("远程探测识别类型: %s -> %s", remote, kind.value)
            return kind

    raise VCSError(f"无法识别远程仓库 {remote} 的版本控制类型")


def new_repo(
    meta: PackageMeta,
    local: Path,
    executor: CommandExecutor | None = None,
) -> VCSRepo:
    """按元信息中的类型直接选择驱动，类型未知时才做探测"""
    executor = executor or LocalExecutor()
    kind = meta.vcs
    if kind == VCSKind.UNKNOWN:
        kind = detect_kind(meta.remote, Path(local), executor)
    return _DRIVERS[kind](meta.remote, Path(local), executor)
