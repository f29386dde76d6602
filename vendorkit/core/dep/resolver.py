"""模块路径元信息解析器

职责:
- 模块路径 → PackageMeta（静态模板优先，发现页兜底）
- 合并并发的重叠查询：同一仓库最多只发起一次网络请求
- 缓存成功结果，失败结果不缓存

并发模型:
  一把互斥锁保护"已完成结果"和"进行中请求"两个列表，锁只在扫描和
  增删列表时持有，绝不跨越网络 IO。

  1. 已完成结果中存在 root 为请求路径前缀者 → 直接返回
  2. 进行中请求的 key 与请求路径互为前缀 → 释放锁，等待其完成信号
  3. 否则登记新的进行中请求，释放锁后执行实际查询
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from vendorkit.core.dep.discovery import (
    DEFAULT_MARKER,
    DEFAULT_PARAM,
    fetch_discovery,
    match_static,
)
from vendorkit.core.dep.models import PackageMeta
from vendorkit.core.exceptions import CancelledError
from vendorkit.utils.cancel import CancelToken, wait_for

logger = logging.getLogger(__name__)

# 查询函数类型：接受取消令牌与模块路径，返回仓库元信息
LookupFunc = Callable[["CancelToken | None", str], PackageMeta]


@dataclass
class _InFlight:
    """进行中的查询，done 置位后 meta / error 才可读"""

    key: str
    done: threading.Event = field(default_factory=threading.Event)
    meta: PackageMeta | None = None
    error: BaseException | None = None

    def overlaps(self, module_path: str) -> bool:
        return module_path.startswith(self.key) or self.key.startswith(module_path)


class MetadataResolver:
    """带去重与缓存的元信息解析器

    由调用方显式构造并持有，不使用进程级单例。
    lookup 可注入，默认先做静态模板匹配再请求发现页。
    """

    def __init__(
        self,
        lookup: LookupFunc | None = None,
        *,
        timeout: float = 30.0,
        param: str = DEFAULT_PARAM,
        marker: str = DEFAULT_MARKER,
    ) -> None:
        self._lookup = lookup or self._default_lookup
        self._timeout = timeout
        self._param = param
        self._marker = marker

        self._lock = threading.Lock()
        self._results: list[PackageMeta] = []
        self._inflight: list[_InFlight] = []

    def _default_lookup(self, token: CancelToken | None, module_path: str) -> PackageMeta:
        meta = match_static(module_path)
        if meta is not None:
            logger.debug("静态匹配命中: %s -> %s", module_path, meta.root)
            return meta
        return fetch_discovery(
            token, module_path,
            param=self._param, marker=self._marker, timeout=self._timeout,
        )

    def resolve(self, token: CancelToken | None, module_path: str) -> PackageMeta:
        """解析模块路径所属仓库

        Raises:
            ResolutionError: 查询失败（同一批重叠调用观察到同一个错误）
            CancelledError: 等待进行中请求时 token 被取消
        """
        with self._lock:
            hit = next((m for m in self._results if m.covers(module_path)), None)
            if hit is not None:
                return hit
            joined = next((i for i in self._inflight if i.overlaps(module_path)), None)
            if joined is None:
                inflight = _InFlight(key=module_path)
                self._inflight.append(inflight)

        if joined is not None:
            return self._join(token, module_path, joined)

        try:
            inflight.meta = self._lookup(token, module_path)
            logger.info("解析完成: %s -> %s (%s)", module_path, inflight.meta.root, inflight.meta.vcs.value)
        except Exception as e:
            inflight.error = e
            raise
        finally:
            inflight.done.set()
            with self._lock:
                if inflight.error is None and inflight.meta is not None:
                    self._results.append(inflight.meta)
                self._inflight = [i for i in self._inflight if i is not inflight]

        return inflight.meta

    __call__ = resolve

    @staticmethod
    def _join(token: CancelToken | None, module_path: str, inflight: _InFlight) -> PackageMeta:
        """等待已有的重叠查询完成并共享其结果"""
        logger.debug("等待进行中的查询: %s (key=%s)", module_path, inflight.key)
        try:
            wait_for(token, inflight.done, f"等待进行中的查询 {inflight.key}")
        except CancelledError as e:
            raise CancelledError(f"停止等待进行中的查询 {inflight.key}: {e}") from e
        if inflight.error is not None:
            raise inflight.error
        return inflight.meta  # type: ignore[return-value]

    def cached(self) -> list[PackageMeta]:
        """已缓存的解析结果快照"""
        with self._lock:
            return list(self._results)

    def pending(self) -> list[str]:
        """进行中查询的 key 快照"""
        with self._lock:
            return [i.key for i in self._inflight]
