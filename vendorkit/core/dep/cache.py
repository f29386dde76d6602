"""仓库本地缓存

目录布局:
  <cache_dir>/<key>/       仓库工作副本
  <cache_dir>/<key>.lock   同名咨询锁文件

key 由远程地址清洗得到（非字母数字一律替换为 '-'），不同地址可能映射到
同一 key，实际中可以忽略。缓存目录只增不删。

跨进程互斥依赖 fcntl.flock 咨询锁，这是防止并发 clone/update
损坏工作副本的唯一保证。
"""

from __future__ import annotations

import fcntl
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, TypeVar

from vendorkit.core.exceptions import CacheError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def cache_key(remote: str) -> str:
    """将远程地址清洗为可用作目录名的 key"""
    return "".join(
        c if ("a" <= c <= "z" or "A" <= c <= "Z" or "0" <= c <= "9") else "-"
        for c in remote
    )


@contextmanager
def _flock(lock_path: Path, what: str) -> Iterator[None]:
    """获取排他咨询锁，退出时无论成功与否都释放"""
    try:
        fd = os.open(str(lock_path), os.O_RDWR | os.O_CREAT, 0o644)
    except OSError as e:
        raise CacheError(f"获取缓存{what}锁 {lock_path}: {e}") from e
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
        except OSError as e:
            raise CacheError(f"获取缓存{what}锁 {lock_path}: {e}") from e
        logger.debug("已加锁: %s", lock_path)
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("已解锁: %s", lock_path)
    finally:
        os.close(fd)


class RepoCache:
    """仓库缓存，按 key 提供加锁的目录/文件访问"""

    def __init__(self, cache_dir: str | Path) -> None:
        self.cache_dir = Path(cache_dir)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"创建缓存目录 {self.cache_dir}: {e}") from e

    @contextmanager
    def directory(self, key: str) -> Iterator[Path]:
        """加锁访问缓存目录，目录不存在时先创建"""
        target = self.cache_dir / key
        if not target.exists():
            try:
                target.mkdir(mode=0o755)
            except FileExistsError:
                pass
            except OSError as e:
                raise CacheError(f"创建缓存目录 {target}: {e}") from e
        with _flock(target.with_name(key + ".lock"), "目录"):
            yield target

    @contextmanager
    def file(self, key: str) -> Iterator[Path]:
        """加锁访问缓存文件（不创建文件本身）"""
        target = self.cache_dir / key
        with _flock(target.with_name(key + ".lock"), "文件"):
            yield target

    def with_directory(self, key: str, fn: Callable[[Path], T]) -> T:
        with self.directory(key) as path:
            return fn(path)

    def with_file(self, key: str, fn: Callable[[Path], T]) -> T:
        with self.file(key) as path:
            return fn(path)
