"""旧版版本清单 (Godeps.json) 解析

职责:
- 解码 {"Deps": [{"ImportPath", "Rev", "Comment"}]} 格式的清单
- 按修订版本分组，每个修订版本只查询一个代表路径
- 并发查询各代表路径所属仓库，生成 PinnedPackage 列表

分组策略:
  相同 Rev 视为来自同一仓库，后出现的路径覆盖先出现的路径。
  若两个无关仓库恰好使用相同修订号，其中一个会被丢弃。
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, NoReturn

from vendorkit.core.dep.models import PackageMeta, PinnedPackage
from vendorkit.core.exceptions import (
    CancelledError,
    ManifestError,
    ResolutionError,
    VendorError,
)
from vendorkit.utils.cancel import CancelToken

logger = logging.getLogger(__name__)

ResolveFunc = Callable[["CancelToken | None", str], PackageMeta]


def _decode(data: bytes | str) -> list[dict[str, Any]]:
    """解码清单 JSON，返回 Deps 记录列表"""
    try:
        doc = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestError(f"解析 godep 文件: {e}") from e
    if not isinstance(doc, dict):
        raise ManifestError(f"解析 godep 文件: 顶层应为对象，实际为 {type(doc).__name__}")

    deps = doc.get("Deps")
    if deps is None:
        deps = []
    if not isinstance(deps, list):
        raise ManifestError("解析 godep 文件: Deps 应为数组")

    records: list[dict[str, Any]] = []
    for i, dep in enumerate(deps):
        if not isinstance(dep, dict):
            raise ManifestError(f"解析 godep 文件: Deps[{i}] 应为对象")
        for key in ("ImportPath", "Rev", "Comment"):
            value = dep.get(key, "")
            if value is not None and not isinstance(value, str):
                raise ManifestError(f"解析 godep 文件: Deps[{i}].{key} 应为字符串")
        records.append(dep)
    return records


def group_by_revision(records: list[dict[str, Any]]) -> dict[str, str]:
    """按修订版本分组，返回 {rev: 代表 import 路径}

    ImportPath 为空的记录跳过；有路径但无 Rev 的记录视为致命错误。
    """
    to_lookup: dict[str, str] = {}
    for dep in records:
        import_path = dep.get("ImportPath") or ""
        if not import_path:
            continue
        rev = dep.get("Rev") or ""
        if not rev:
            raise ManifestError(f"依赖 {import_path} 没有指定修订版本")
        to_lookup[rev] = import_path
    return to_lookup


def parse_manifest(
    resolve: ResolveFunc,
    data: bytes | str,
    token: CancelToken | None = None,
) -> list[PinnedPackage]:
    """解析清单并并发查询各修订版本所属仓库

    每个不同的修订版本一个查询任务，并发度不做额外限制（由解析器去重）。
    任一查询失败即取消其余查询并抛出该错误。

    Raises:
        ManifestError: 清单格式错误或依赖未固定版本
        ResolutionError: 某个依赖的仓库查询失败
        CancelledError: 外部 token 被取消
    """
    to_lookup = group_by_revision(_decode(data))
    if not to_lookup:
        return []

    group_token = token.child() if token is not None else CancelToken()
    logger.info("查询 %d 个修订版本所属仓库", len(to_lookup))

    pool = ThreadPoolExecutor(max_workers=len(to_lookup), thread_name_prefix="manifest")
    futures: dict[Future[PackageMeta], tuple[str, str]] = {
        pool.submit(resolve, group_token, import_path): (rev, import_path)
        for rev, import_path in to_lookup.items()
    }
    done, _ = wait(futures, return_when=FIRST_EXCEPTION)

    failed = next((f for f in futures if f in done and f.exception() is not None), None)
    if failed is not None:
        # 不等待仍在执行的查询，它们在下一次检查 token 时退出
        group_token.cancel()
        pool.shutdown(wait=False, cancel_futures=True)
        _, import_path = futures[failed]
        _raise_lookup_error(import_path, failed.exception())  # type: ignore[arg-type]

    pool.shutdown()
    metas = {futures[f][0]: f.result() for f in futures}

    return [PinnedPackage(meta=metas[rev], version=rev) for rev in to_lookup]


def _raise_lookup_error(import_path: str, exc: BaseException) -> NoReturn:
    message = f"查询包 {import_path} 的元信息: {exc}"
    if isinstance(exc, CancelledError):
        raise CancelledError(message) from exc
    if isinstance(exc, VendorError):
        raise ResolutionError(message) from exc
    raise exc
