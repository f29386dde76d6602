"""依赖解析与拉取模块

拆分说明:
- models.py: 数据模型
- discovery.py: 静态模板匹配 + 发现页解析
- resolver.py: 去重缓存的元信息解析器
- manifest.py: 版本清单解析
- cache.py: 仓库缓存与咨询锁
- vcs.py: 版本控制驱动
- fetcher.py: 拉取与检出
- copier.py: 过滤复制
"""

from vendorkit.core.dep.cache import RepoCache, cache_key
from vendorkit.core.dep.copier import copy_filtered
from vendorkit.core.dep.fetcher import PackageFetcher
from vendorkit.core.dep.manifest import parse_manifest
from vendorkit.core.dep.models import PackageMeta, PinnedPackage, VCSKind
from vendorkit.core.dep.resolver import MetadataResolver

__all__ = [
    "PackageMeta",
    "PinnedPackage",
    "VCSKind",
    "MetadataResolver",
    "parse_manifest",
    "RepoCache",
    "cache_key",
    "PackageFetcher",
    "copy_filtered",
]
