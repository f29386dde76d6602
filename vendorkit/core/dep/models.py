"""依赖包数据模型

数据类:
- VCSKind: 版本控制类型
- PackageMeta: 模块所属远程仓库的元信息
- PinnedPackage: 固定到某个修订版本的仓库
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class VCSKind(str, Enum):
    """版本控制类型"""

    GIT = "git"
    SVN = "svn"
    BZR = "bzr"
    HG = "hg"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> VCSKind:
        """宽松解析，空值或无法识别的名称视为 UNKNOWN"""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class PackageMeta:
    """模块所属远程仓库的元信息

    root:   仓库根对应的模块路径，如 golang.org/x/net
    remote: 远程仓库地址，如 https://go.googlesource.com/net
    vcs:    版本控制类型
    """

    root: str
    remote: str
    vcs: VCSKind = VCSKind.UNKNOWN

    def covers(self, module_path: str) -> bool:
        """root 是否为 module_path 的前缀"""
        return module_path.startswith(self.root)


@dataclass(frozen=True)
class PinnedPackage:
    """固定版本的依赖仓库"""

    meta: PackageMeta
    version: str
