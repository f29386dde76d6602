"""取消令牌 — 在线程间传递"停止等待"信号

每个解析/拉取调用都接受一个 CancelToken；等待中的调用方在令牌被取消时
立即返回 CancelledError，而正在执行的网络请求本身不会被打断。
"""

from __future__ import annotations

import threading

from vendorkit.core.exceptions import CancelledError

# 等待完成信号时检查取消状态的间隔（秒）
_POLL_INTERVAL = 0.05


class CancelToken:
    """可取消令牌，支持父子级联"""

    def __init__(self, parent: CancelToken | None = None) -> None:
        self._event = threading.Event()
        self._parent = parent

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def child(self) -> CancelToken:
        """派生子令牌：父令牌取消时子令牌一并视为取消"""
        return CancelToken(parent=self)

    def raise_if_cancelled(self, what: str = "") -> None:
        if self.cancelled:
            raise CancelledError(f"已取消{': ' + what if what else ''}")

    def wait(self, event: threading.Event, what: str = "") -> None:
        """阻塞直到 event 被置位，期间令牌取消则抛 CancelledError"""
        while not event.wait(_POLL_INTERVAL):
            self.raise_if_cancelled(what)
        # event 已置位时以结果为准，不再检查取消


def wait_for(token: CancelToken | None, event: threading.Event, what: str = "") -> None:
    """token 为 None 时退化为无限等待"""
    if token is None:
        event.wait()
        return
    token.raise_if_cancelled(what)
    token.wait(event, what)
