"""版本控制驱动测试（假执行器记录命令）"""

from __future__ import annotations

from pathlib import Path

import pytest

from vendorkit.core.dep.cache import RepoCache, cache_key
from vendorkit.core.dep.fetcher import PackageFetcher
from vendorkit.core.dep.models import PackageMeta, VCSKind
from vendorkit.core.dep.vcs import (
    BzrRepo,
    GitRepo,
    HgRepo,
    SvnRepo,
    detect_kind,
    new_repo,
)
from vendorkit.core.exceptions import VCSError, VCSRemoteError
from vendorkit.utils.shell import TIMEOUT_RETURNCODE, CommandResult


class FakeExecutor:
    """按命令前缀返回预设结果，默认成功"""

    def __init__(self, results: dict[tuple[str, ...], CommandResult] | None = None) -> None:
        self.results = results or {}
        self.calls: list[tuple[list[str], str]] = []

    def execute(self, cmd, *, cwd=".", env=None, timeout=None) -> CommandResult:
        self.calls.append((list(cmd), cwd))
        for prefix, result in self.results.items():
            if tuple(cmd[:len(prefix)]) == prefix:
                return result
        return CommandResult(returncode=0, stdout="", stderr="")

    @property
    def commands(self) -> list[list[str]]:
        return [c for c, _ in self.calls]


_FAIL = CommandResult(returncode=1, stdout="", stderr="fatal: nope")


class TestNewRepo:
    @pytest.mark.parametrize("kind, cls", [
        (VCSKind.GIT, GitRepo),
        (VCSKind.HG, HgRepo),
        (VCSKind.BZR, BzrRepo),
        (VCSKind.SVN, SvnRepo),
    ])
    def test_known_kind(self, tmp_path: Path, kind: VCSKind, cls: type) -> None:
        ex = FakeExecutor()
        repo = new_repo(PackageMeta("h.io/r", "https://h.io/r", kind), tmp_path, ex)
        assert isinstance(repo, cls)
        assert repo.remote == "https://h.io/r"
        assert ex.calls == []

    def test_unknown_kind_uses_detection(self, tmp_path: Path) -> None:
        repo = new_repo(PackageMeta("h.io/r", "https://h.io/r.hg"), tmp_path, FakeExecutor())
        assert isinstance(repo, HgRepo)


class TestDetectKind:
    def test_local_marker(self, tmp_path: Path) -> None:
        (tmp_path / ".bzr").mkdir()
        ex = FakeExecutor()
        assert detect_kind("https://h.io/r", tmp_path, ex) == VCSKind.BZR
        assert ex.calls == []

    @pytest.mark.parametrize("remote, kind", [
        ("https://h.io/r.git", VCSKind.GIT),
        ("https://h.io/r.svn/", VCSKind.SVN),
        ("https://h.io/r.bzr", VCSKind.BZR),
    ])
    def test_remote_suffix(self, tmp_path: Path, remote: str, kind: VCSKind) -> None:
        assert detect_kind(remote, tmp_path, FakeExecutor()) == kind

    def test_probe_order(self, tmp_path: Path) -> None:
        ex = FakeExecutor({("git",): _FAIL, ("hg",): _FAIL})
        assert detect_kind("https://h.io/r", tmp_path, ex) == VCSKind.BZR
        assert [c[0] for c in ex.commands] == ["git", "hg", "bzr"]
        assert ex.commands[0][-1] == "https://h.io/r"

    def test_nothing_matches(self, tmp_path: Path) -> None:
        ex = FakeExecutor({(t,): _FAIL for t in ("git", "hg", "bzr", "svn")})
        with pytest.raises(VCSError, match="无法识别"):
            detect_kind("https://h.io/r", tmp_path, ex)


class TestGitRepo:
    def test_get_clones_into_local(self, tmp_path: Path) -> None:
        local = tmp_path / "key"
        ex = FakeExecutor()
        GitRepo("https://h.io/r", local, ex).get()
        cmd, cwd = ex.calls[0]
        assert cmd == ["git", "clone", "--quiet", "https://h.io/r", str(local)]
        assert cwd == str(tmp_path)

    def test_get_failure_keeps_output(self, tmp_path: Path) -> None:
        ex = FakeExecutor({("git", "clone"): _FAIL})
        with pytest.raises(VCSRemoteError) as info:
            GitRepo("https://h.io/r", tmp_path / "k", ex).get()
        assert info.value.output == "fatal: nope"
        assert "https://h.io/r" in str(info.value)

    def test_update_pulls_on_branch(self, tmp_path: Path) -> None:
        ex = FakeExecutor()
        GitRepo("https://h.io/r", tmp_path, ex).update()
        assert ex.commands == [
            ["git", "fetch", "--tags", "origin"],
            ["git", "symbolic-ref", "-q", "HEAD"],
            ["git", "pull", "--ff-only"],
        ]

    def test_update_detached_head_skips_pull(self, tmp_path: Path) -> None:
        ex = FakeExecutor({("git", "symbolic-ref"): _FAIL})
        GitRepo("https://h.io/r", tmp_path, ex).update()
        assert ["git", "pull", "--ff-only"] not in ex.commands

    def test_update_version_failure(self, tmp_path: Path) -> None:
        ex = FakeExecutor({("git", "checkout"): _FAIL})
        with pytest.raises(VCSError, match="git checkout --quiet abc"):
            GitRepo("https://h.io/r", tmp_path, ex).update_version("abc")

    def test_current_version(self, tmp_path: Path) -> None:
        ex = FakeExecutor({("git", "rev-parse"): CommandResult(0, "deadbeef\n", "")})
        assert GitRepo("https://h.io/r", tmp_path, ex).current_version() == "deadbeef"

    def test_check_local(self, tmp_path: Path) -> None:
        repo = GitRepo("https://h.io/r", tmp_path, FakeExecutor())
        assert not repo.check_local()
        (tmp_path / ".git").mkdir()
        assert repo.check_local()


class TestOtherDrivers:
    @pytest.mark.parametrize("cls, version_cmd", [
        (HgRepo, ["hg", "update", "-r", "42"]),
        (BzrRepo, ["bzr", "update", "-r", "42"]),
        (SvnRepo, ["svn", "update", "--quiet", "-r", "42"]),
    ])
    def test_update_version(self, tmp_path: Path, cls: type, version_cmd: list[str]) -> None:
        ex = FakeExecutor()
        cls("https://h.io/r", tmp_path, ex).update_version("42")
        assert ex.commands == [version_cmd]

    def test_bzr_branch_into_existing_dir(self, tmp_path: Path) -> None:
        ex = FakeExecutor()
        BzrRepo("lp:foo", tmp_path / "k", ex).get()
        assert ex.commands[0][:3] == ["bzr", "branch", "--use-existing-dir"]


class TestCommandTimeout:
    """超时的命令以失败结果返回，由驱动包装为 VCS 错误"""

    _TIMEOUT = CommandResult(
        returncode=TIMEOUT_RETURNCODE, stdout="", stderr="命令超时 (600s): git clone",
    )

    def test_clone_timeout(self, tmp_path: Path) -> None:
        ex = FakeExecutor({("git", "clone"): self._TIMEOUT})
        with pytest.raises(VCSRemoteError, match="命令超时") as info:
            GitRepo("https://h.io/r", tmp_path / "k", ex).get()
        assert "https://h.io/r" in str(info.value)

    def test_update_timeout(self, tmp_path: Path) -> None:
        ex = FakeExecutor({("hg", "pull"): self._TIMEOUT})
        with pytest.raises(VCSError, match="hg pull 失败 \\(rc=124\\)"):
            HgRepo("https://h.io/r", tmp_path, ex).update()

    def test_fetch_wraps_timeout(self, tmp_path: Path) -> None:
        ex = FakeExecutor({("git", "checkout"): _FAIL, ("git", "fetch"): self._TIMEOUT})
        meta = PackageMeta("h.io/r", "https://h.io/r", VCSKind.GIT)
        fetcher = PackageFetcher(RepoCache(tmp_path / "cache"), ex)
        with RepoCache(tmp_path / "cache").directory(cache_key(meta.remote)) as local:
            (local / ".git").mkdir()
        with pytest.raises(VCSError, match="更新仓库 https://h.io/r: .*命令超时"):
            fetcher.fetch(meta, tmp_path / "dst", "abc")
