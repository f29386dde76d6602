"""过滤复制 - 工作副本 → vendor 目标目录

目录规则:
  testdata、vendor 以及以 '.' 或 '_' 开头的目录整棵跳过

文件规则（按顺序判断）:
  1. 版本清单文件（不区分大小写）一律保留
  2. .s / .c 汇编与 C 源码一律保留
  3. .go 源码保留，但 *_test.go 一律排除
  4. 其余文件仅保留许可证/法律声明类文件

目标文件以排他方式创建，已存在即报错，绝不静默覆盖。
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from pathlib import Path

from vendorkit.core.exceptions import CopyError

logger = logging.getLogger(__name__)

IGNORED_DIRS = frozenset(("testdata", "vendor"))

VERSION_FILES = (
    "godeps.json",
    "glide.yaml",
)

NATIVE_EXTENSIONS = frozenset((".s", ".c"))
SOURCE_EXTENSION = ".go"
TEST_SUFFIX = "_test.go"

# 可能包含许可证的文件名前缀
LICENSE_PREFIXES = (
    "licence",  # 英式拼写
    "license",
    "copying",
    "unlicense",
    "copyright",
    "copyleft",
)

# 可能包含法律声明的文件名子串
LEGAL_SUBSTRINGS = (
    "legal",
    "notice",
    "disclaimer",
    "patent",
    "third-party",
    "thirdparty",
)


def ignore_dir(name: str) -> bool:
    """目录是否整棵跳过"""
    if name in IGNORED_DIRS:
        return True
    return name.startswith((".", "_"))


def is_legal_file(name: str) -> bool:
    """文件名看起来是否为许可证或法律声明"""
    lower = os.path.basename(name).lower()
    if lower.startswith(LICENSE_PREFIXES):
        return True
    return any(s in lower for s in LEGAL_SUBSTRINGS)


def ignore_file(name: str) -> bool:
    """文件是否跳过"""
    lower = name.lower()
    if lower in VERSION_FILES:
        return False

    ext = os.path.splitext(name)[1]
    if ext in NATIVE_EXTENSIONS:
        return False
    if ext == SOURCE_EXTENSION:
        return name.endswith(TEST_SUFFIX)

    return not is_legal_file(name)


def _copy_file(src: Path, dst: Path) -> None:
    mode = stat.S_IMODE(src.stat().st_mode)
    with open(src, "rb") as fin:
        try:
            fd = os.open(str(dst), os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
        except OSError as e:
            raise CopyError(f"创建文件副本 {src}: {e}") from e
        with os.fdopen(fd, "wb") as fout:
            os.fchmod(fout.fileno(), mode)
            shutil.copyfileobj(fin, fout)


def copy_filtered(destination: str | Path, source: str | Path) -> int:
    """递归复制 source 中需要保留的文件到 destination，返回复制的文件数

    目录按遍历顺序逐级创建（非递归创建），父目录必然已存在。

    Raises:
        CopyError: 源目录不存在，或目标目录/文件已存在或无法创建
    """
    src_root = Path(source)
    dst_root = Path(destination)
    if not src_root.is_dir():
        raise CopyError(f"源目录不存在: {src_root}")
    try:
        dst_root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CopyError(f"创建目标目录 {dst_root}: {e}") from e

    def _onerror(err: OSError) -> None:
        raise CopyError(f"遍历目录 {err.filename}: {err}") from err

    copied = 0
    for dirpath, dirnames, filenames in os.walk(src_root, onerror=_onerror):
        here = Path(dirpath)
        target_dir = dst_root / here.relative_to(src_root)

        kept: list[str] = []
        for name in sorted(dirnames):
            src_dir = here / name
            if ignore_dir(name) or src_dir.is_symlink():
                continue
            try:
                os.mkdir(target_dir / name, stat.S_IMODE(src_dir.stat().st_mode))
            except OSError as e:
                raise CopyError(f"复制目录 {src_dir}: {e}") from e
            kept.append(name)
        dirnames[:] = kept

        for name in sorted(filenames):
            if ignore_file(name):
                continue
            src_file = here / name
            try:
                _copy_file(src_file, target_dir / name)
            except CopyError:
                raise
            except OSError as e:
                raise CopyError(f"复制文件内容 {src_file}: {e}") from e
            copied += 1

    logger.debug("已复制 %d 个文件: %s -> %s", copied, src_root, dst_root)
    return copied
