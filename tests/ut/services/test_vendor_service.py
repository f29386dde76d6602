"""VendorService 单元测试"""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from vendorkit.core.config import Config
from vendorkit.core.dep.models import PackageMeta, PinnedPackage, VCSKind
from vendorkit.core.exceptions import (
    CancelledError,
    CopyError,
    ManifestError,
    ResolutionError,
    VCSRemoteError,
)
from vendorkit.services.vendor_service import VendorService
from vendorkit.utils.cancel import CancelToken

ROOTS = ("example.com/a", "example.com/b", "other.org/c")


class FakeResolver:
    """按前缀匹配已知仓库"""

    def __init__(self, roots=ROOTS) -> None:
        self.metas = [PackageMeta(r, f"https://{r}.git", VCSKind.GIT) for r in roots]
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def resolve(self, token, path: str) -> PackageMeta:
        with self._lock:
            self.calls.append(path)
        for meta in self.metas:
            if meta.covers(path):
                return meta
        raise ResolutionError(f"未知模块路径 {path}")


class FakeFetcher:
    """把版本号写入目标目录，fail 中的仓库抛远程错误"""

    def __init__(self, fail: frozenset[str] = frozenset()) -> None:
        self.fail = fail
        self.fetched: list[tuple[str, str]] = []
        self.tokens: list = []
        self._lock = threading.Lock()

    def fetch_pinned(self, pin: PinnedPackage, destination: Path, token=None) -> None:
        self.tokens.append(token)
        if pin.meta.root in self.fail:
            raise VCSRemoteError(f"无法从远程仓库 {pin.meta.remote} 获取代码", "fatal")
        destination.mkdir(parents=True)
        (destination / "VERSION").write_text(pin.version)
        with self._lock:
            self.fetched.append((pin.meta.root, pin.version))


def _pin(root: str, version: str) -> PinnedPackage:
    return PinnedPackage(PackageMeta(root, f"https://{root}.git", VCSKind.GIT), version)


@pytest.fixture()
def make_svc(tmp_path):
    def _make(fetcher: FakeFetcher | None = None) -> VendorService:
        cfg = Config(cache_dir=str(tmp_path / "cache"), vendor_dir=str(tmp_path / "vendor"), max_workers=4)
        return VendorService(cfg, resolver=FakeResolver(), fetcher=fetcher or FakeFetcher())
    return _make


class TestResolvePaths:
    def test_dedup_first_seen_order(self, make_svc) -> None:
        svc = make_svc()
        metas = svc.resolve_paths([
            "other.org/c/x", "example.com/a/sub", "other.org/c", "example.com/a",
        ])
        assert [m.root for m in metas] == ["other.org/c", "example.com/a"]

    def test_empty(self, make_svc) -> None:
        assert make_svc().resolve_paths([]) == []

    def test_error_propagates(self, make_svc) -> None:
        with pytest.raises(ResolutionError, match="unknown.io"):
            make_svc().resolve_paths(["example.com/a", "unknown.io/x"])


class TestLoadPins:
    def test_reads_manifest(self, make_svc, tmp_path) -> None:
        manifest = tmp_path / "Godeps.json"
        manifest.write_text(json.dumps({"Deps": [
            {"ImportPath": "example.com/a/x", "Rev": "r1"},
            {"ImportPath": "example.com/b", "Rev": "r2"},
        ]}))
        pins = make_svc().load_pins(manifest)
        assert [(p.meta.root, p.version) for p in pins] == [
            ("example.com/a", "r1"), ("example.com/b", "r2"),
        ]

    def test_missing_manifest(self, make_svc, tmp_path) -> None:
        with pytest.raises(ManifestError, match="读取版本清单"):
            make_svc().load_pins(tmp_path / "nope.json")


class TestVendor:
    def test_vendor_from_manifest(self, make_svc, tmp_path) -> None:
        manifest = tmp_path / "Godeps.json"
        manifest.write_text(json.dumps({"Deps": [
            {"ImportPath": "example.com/a", "Rev": "r1"},
            {"ImportPath": "other.org/c/pkg", "Rev": "r3"},
        ]}))
        fetcher = FakeFetcher()
        svc = make_svc(fetcher)

        results = svc.vendor(manifest)

        vendor = tmp_path / "vendor"
        assert [r.path for r in results] == [vendor / "example.com/a", vendor / "other.org/c"]
        assert (vendor / "other.org/c/VERSION").read_text() == "r3"
        assert sorted(fetcher.fetched) == [("example.com/a", "r1"), ("other.org/c", "r3")]

    def test_empty_pins(self, make_svc) -> None:
        assert make_svc().vendor_pins([]) == []

    def test_duplicate_root_rejected(self, make_svc) -> None:
        fetcher = FakeFetcher()
        with pytest.raises(ManifestError, match="example.com/a: r1, r2"):
            make_svc(fetcher).vendor_pins([_pin("example.com/a", "r1"), _pin("example.com/a", "r2")])
        assert fetcher.fetched == []

    def test_existing_destination_rejected(self, make_svc, tmp_path) -> None:
        (tmp_path / "vendor" / "example.com" / "b").mkdir(parents=True)
        fetcher = FakeFetcher()
        with pytest.raises(CopyError, match="目标目录已存在"):
            make_svc(fetcher).vendor_pins([_pin("example.com/a", "r1"), _pin("example.com/b", "r2")])
        assert fetcher.fetched == []

    def test_failure_propagates(self, make_svc) -> None:
        fetcher = FakeFetcher(fail=frozenset({"example.com/b"}))
        with pytest.raises(VCSRemoteError) as info:
            make_svc(fetcher).vendor_pins([
                _pin("example.com/a", "r1"), _pin("example.com/b", "r2"),
            ])
        assert info.value.output == "fatal"

    def test_explicit_vendor_dir(self, make_svc, tmp_path) -> None:
        results = make_svc().vendor_pins([_pin("example.com/a", "r1")], tmp_path / "third_party")
        assert results[0].path == tmp_path / "third_party" / "example.com" / "a"
        assert results[0].path.is_dir()

    def test_token_passed_to_fetcher(self, make_svc) -> None:
        fetcher = FakeFetcher()
        token = CancelToken()
        make_svc(fetcher).vendor_pins([_pin("example.com/a", "r1")], token=token)
        (child,) = fetcher.tokens
        assert not child.cancelled
        token.cancel()
        assert child.cancelled

    def test_cancelled_before_fetch(self, make_svc) -> None:
        fetcher = FakeFetcher()
        token = CancelToken()
        token.cancel()
        with pytest.raises(CancelledError):
            make_svc(fetcher).vendor_pins([_pin("example.com/a", "r1")], token=token)
        assert fetcher.fetched == []
