"""vendor 服务 — 清单 → 固定版本 → 拉取 → 过滤复制

串起完整的数据流:
  模块路径列表 / 版本清单
    → MetadataResolver 解析所属仓库
    → PackageFetcher 在仓库缓存中检出
    → 过滤复制到 <vendor_dir>/<root>

组件可注入；不注入时按 Config 构造，同一服务实例共享一个解析器缓存。
失败不回滚已写入的 vendor 目录。
"""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from vendorkit.core.dep.cache import RepoCache
from vendorkit.core.dep.fetcher import PackageFetcher
from vendorkit.core.dep.manifest import parse_manifest
from vendorkit.core.dep.models import PackageMeta, PinnedPackage
from vendorkit.core.dep.resolver import MetadataResolver
from vendorkit.core.exceptions import CopyError, ManifestError
from vendorkit.utils.cancel import CancelToken

if TYPE_CHECKING:
    from vendorkit.core.config import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VendoredPackage:
    """已写入 vendor 目录的依赖"""

    pin: PinnedPackage
    path: Path


class VendorService:
    """vendor 目录生成服务"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        resolver: MetadataResolver | None = None,
        fetcher: PackageFetcher | None = None,
    ) -> None:
        if config is None:
            from vendorkit.core.config import get_config
            config = get_config()
        self.config = config
        self.resolver = resolver or MetadataResolver(
            timeout=config.http_timeout,
            param=config.discovery_param,
            marker=config.discovery_marker,
        )
        self._fetcher = fetcher

    @property
    def fetcher(self) -> PackageFetcher:
        # 延迟创建，仅解析时不触碰缓存目录
        if self._fetcher is None:
            self._fetcher = PackageFetcher(RepoCache(self.config.cache_dir))
        return self._fetcher

    # ---- 解析 ----

    def resolve_paths(
        self, paths: Iterable[str], token: CancelToken | None = None,
    ) -> list[PackageMeta]:
        """并发解析模块路径列表，按首次出现顺序返回去重后的仓库"""
        paths = list(paths)
        if not paths:
            return []
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            metas = list(pool.map(lambda p: self.resolver.resolve(token, p), paths))

        seen: dict[str, PackageMeta] = {}
        for meta in metas:
            seen.setdefault(meta.root, meta)
        return list(seen.values())

    def load_pins(
        self, manifest_path: str | Path | None = None, token: CancelToken | None = None,
    ) -> list[PinnedPackage]:
        """读取版本清单并解析为固定版本列表"""
        path = Path(manifest_path or self.config.manifest)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ManifestError(f"读取版本清单 {path}: {e}") from e
        pins = parse_manifest(self.resolver.resolve, data, token)
        logger.info("版本清单 %s: %d 个固定版本的仓库", path, len(pins))
        return pins

    # ---- 拉取 ----

    def vendor(
        self,
        manifest_path: str | Path | None = None,
        vendor_dir: str | Path | None = None,
        token: CancelToken | None = None,
    ) -> list[VendoredPackage]:
        """按版本清单生成 vendor 目录"""
        pins = self.load_pins(manifest_path, token)
        return self.vendor_pins(pins, vendor_dir, token)

    def vendor_pins(
        self,
        pins: list[PinnedPackage],
        vendor_dir: str | Path | None = None,
        token: CancelToken | None = None,
    ) -> list[VendoredPackage]:
        """将固定版本列表逐个拉取到 vendor_dir/<root>"""
        root_dir = Path(vendor_dir or self.config.vendor_dir)
        _check_distinct_roots(pins)

        targets: list[VendoredPackage] = []
        for pin in pins:
            dest = root_dir / pin.meta.root
            if dest.exists():
                raise CopyError(f"目标目录已存在: {dest}")
            targets.append(VendoredPackage(pin=pin, path=dest))
        if not targets:
            return []

        group_token = token.child() if token is not None else CancelToken()
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            futures = {pool.submit(self._fetch_one, t, group_token): t for t in targets}
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            failed = next((f for f in futures if f in done and f.exception() is not None), None)
            if failed is not None:
                group_token.cancel()
                for f in not_done:
                    f.cancel()
                target = futures[failed]
                logger.error("拉取失败: %s@%s", target.pin.meta.root, target.pin.version)
                failed.result()

        logger.info("vendor 完成: %d 个仓库 -> %s", len(targets), root_dir)
        return targets

    def _fetch_one(self, target: VendoredPackage, token: CancelToken) -> None:
        token.raise_if_cancelled(f"拉取 {target.pin.meta.root}")
        self.fetcher.fetch_pinned(target.pin, target.path, token)


def _check_distinct_roots(pins: list[PinnedPackage]) -> None:
    """同一仓库被固定到多个修订版本时无法共存于 vendor 目录"""
    versions: dict[str, list[str]] = {}
    for pin in pins:
        versions.setdefault(pin.meta.root, []).append(pin.version)
    conflicts = {root: revs for root, revs in versions.items() if len(revs) > 1}
    if conflicts:
        detail = "; ".join(f"{root}: {', '.join(revs)}" for root, revs in sorted(conflicts.items()))
        raise ManifestError(f"同一仓库被固定到多个修订版本: {detail}")
