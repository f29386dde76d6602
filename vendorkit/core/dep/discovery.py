"""模块路径 → 仓库元信息的两种发现方式

1. 静态匹配: 按顺序匹配已知托管平台的路径模板，首个命中者生效
2. 发现页: 请求 https://<path>?go-get=1，解析 <meta name="go-import">

发现页解析容忍不规范的 HTML，读到目标标签即停止；遇到 <body>、
</head> 或文档结束仍未找到则报 MetadataNotFoundError。
"""

from __future__ import annotations

import codecs
import logging
import re
import urllib.error
import urllib.request
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import BinaryIO

from vendorkit.core.dep.models import PackageMeta, VCSKind
from vendorkit.core.exceptions import (
    MetadataNotFoundError,
    ResolutionError,
    UnsupportedCharsetError,
)
from vendorkit.utils.cancel import CancelToken
from vendorkit.utils.net import discovery_url, validate_url_scheme

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "go-import"
DEFAULT_PARAM = "go-get"

_READ_CHUNK = 4096

# 原生支持的声明字符集，其余一律报错
_SUPPORTED_CHARSETS = frozenset(("ascii", "utf-8"))

_ENCODING_RE = re.compile(r"""encoding\s*=\s*["']([^"']*)["']""", re.IGNORECASE)


# =========================================================================
# 静态匹配
# =========================================================================

@dataclass(frozen=True)
class HostPattern:
    """托管平台路径模板，第 1 个捕获组为仓库根"""

    host: str
    regex: re.Pattern[str]
    vcs: VCSKind = VCSKind.UNKNOWN


_SEG = r"[A-Za-z0-9_.\-]+"

# 顺序即优先级，不可调整
HOST_PATTERNS: tuple[HostPattern, ...] = (
    HostPattern(
        "github.com",
        re.compile(rf"^(?P<rootpkg>github\.com/{_SEG}/{_SEG})(/{_SEG})*$"),
        VCSKind.GIT,
    ),
    # Bitbucket 同时托管 git 与 hg 仓库
    HostPattern(
        "bitbucket.org",
        re.compile(rf"^(?P<rootpkg>bitbucket\.org/({_SEG}/{_SEG}))(/{_SEG})*$"),
    ),
    HostPattern(
        "launchpad.net",
        re.compile(
            rf"^(?P<rootpkg>launchpad\.net/(({_SEG})(/{_SEG})?"
            rf"|~{_SEG}/(\+junk|{_SEG})/{_SEG}))(/{_SEG})*$"
        ),
        VCSKind.BZR,
    ),
    HostPattern(
        "git.launchpad.net",
        re.compile(
            rf"^(?P<rootpkg>git\.launchpad\.net/(({_SEG})"
            rf"|~{_SEG}/(\+git|{_SEG})/{_SEG}))$"
        ),
        VCSKind.GIT,
    ),
    HostPattern(
        "hub.jazz.net",
        re.compile(rf"^(?P<rootpkg>hub\.jazz\.net/git/[a-z0-9]+/{_SEG})(/{_SEG})*$"),
        VCSKind.GIT,
    ),
    HostPattern(
        "go.googlesource.com",
        re.compile(rf"^(?P<rootpkg>go\.googlesource\.com/{_SEG}/?)$"),
    ),
    HostPattern(
        "code.google.com",
        re.compile(
            rf"^(?P<rootpkg>code\.google\.com/[pr]/([a-z0-9\-]+)(\.([a-z0-9\-]+))?)(/{_SEG})*$"
        ),
        VCSKind.GIT,
    ),
    HostPattern(
        "googlecode.com",
        re.compile(r"^(?P<rootpkg>[a-z0-9_\-.]+\.googlecode\.com/svn(/.*)?)$"),
        VCSKind.SVN,
    ),
    HostPattern(
        "googlecode.com",
        re.compile(r"^(?P<rootpkg>[a-z0-9_\-.]+\.googlecode\.com/(git|hg))(/.*)?$"),
    ),
    # 兜底: 按路径中的 .git/.hg/.bzr/.svn 后缀识别
    HostPattern(
        "",
        re.compile(
            r"^(?P<rootpkg>(?P<repo>([a-z0-9.\-]+\.)+[a-z0-9.\-]+(:[0-9]+)?"
            rf"/[A-Za-z0-9_.\-/]*?)\.(bzr|git|hg|svn))(/{_SEG})*$"
        ),
    ),
)


def match_static(module_path: str) -> PackageMeta | None:
    """按模板顺序静态匹配，未命中返回 None"""
    for pattern in HOST_PATTERNS:
        m = pattern.regex.match(module_path)
        if m is None or not m.group("rootpkg"):
            continue
        root = m.group("rootpkg")
        return PackageMeta(root=root, remote="https://" + root, vcs=pattern.vcs)
    return None


# =========================================================================
# 发现页解析
# =========================================================================

class _StopParsing(Exception):
    """解析已得出结论，终止 feed"""


class _DiscoveryParser(HTMLParser):
    def __init__(self, marker: str) -> None:
        super().__init__(convert_charrefs=True)
        self.marker = marker
        self.meta: PackageMeta | None = None
        self.error: Exception | None = None

    def _finish(self, meta: PackageMeta | None = None, error: Exception | None = None) -> None:
        self.meta = meta
        self.error = error
        raise _StopParsing

    def handle_pi(self, data: str) -> None:
        if not data.lower().startswith("xml"):
            return
        m = _ENCODING_RE.search(data)
        if m and m.group(1).lower() not in _SUPPORTED_CHARSETS:
            self._finish(error=UnsupportedCharsetError(m.group(1)))

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "body":
            self._finish(error=self.not_found())
        if tag != "meta":
            return
        values = {k.lower(): v or "" for k, v in attrs}
        if values.get("name") != self.marker:
            return
        fields = values.get("content", "").split()
        if len(fields) == 3:
            root, vcs, remote = fields
            self._finish(meta=PackageMeta(root=root, remote=remote, vcs=VCSKind.parse(vcs)))

    def handle_endtag(self, tag: str) -> None:
        if tag == "head":
            self._finish(error=self.not_found())

    def not_found(self) -> MetadataNotFoundError:
        return MetadataNotFoundError(f"未找到 '{self.marker}' meta 标签")


def parse_discovery(
    stream: BinaryIO | bytes,
    marker: str = DEFAULT_MARKER,
    token: CancelToken | None = None,
) -> PackageMeta:
    """从发现页内容中解析仓库元信息

    逐块读取并交给 HTMLParser，一旦得出结论立即停止读取。
    每读一块前检查 token，取消后不再继续读取。

    Raises:
        MetadataNotFoundError: 遇到 <body>、</head> 或文档结束仍未找到标签
        UnsupportedCharsetError: XML 声明中的字符集不受支持
        CancelledError: 读取过程中 token 被取消
    """
    if isinstance(stream, (bytes, bytearray)):
        chunks = [bytes(stream)]
    else:
        chunks = iter(lambda: stream.read(_READ_CHUNK), b"")

    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    parser = _DiscoveryParser(marker)
    try:
        for chunk in chunks:
            if token is not None:
                token.raise_if_cancelled("读取发现页")
            parser.feed(decoder.decode(chunk))
        parser.feed(decoder.decode(b"", final=True))
        parser.close()
    except _StopParsing:
        pass

    if parser.error is not None:
        raise parser.error
    if parser.meta is not None:
        return parser.meta
    raise parser.not_found()


def fetch_discovery(
    token: CancelToken | None,
    module_path: str,
    *,
    param: str = DEFAULT_PARAM,
    marker: str = DEFAULT_MARKER,
    timeout: float = 30.0,
) -> PackageMeta:
    """请求模块路径的发现页并解析元信息

    Raises:
        ResolutionError: 请求失败、非 2xx 状态或解析失败
        CancelledError: 请求前或读取过程中 token 被取消
    """
    url = discovery_url(module_path, param)
    validate_url_scheme(url, context=f"discovery {module_path}")
    if token is not None:
        token.raise_if_cancelled(f"获取发现页 {url}")

    logger.debug("请求发现页: %s", url)
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp:  # nosec B310
            if token is not None:
                token.raise_if_cancelled(f"获取发现页 {url}")
            if resp.status // 100 != 2:
                raise ResolutionError(f"获取发现页 {url}: {resp.status} {resp.reason}")
            try:
                return parse_discovery(resp, marker, token)
            except MetadataNotFoundError as e:
                raise MetadataNotFoundError(f"解析 {url} 的响应: {e}") from e
    except urllib.error.HTTPError as e:
        raise ResolutionError(f"获取发现页 {url}: {e.code} {e.reason}") from e
    except (urllib.error.URLError, OSError) as e:
        raise ResolutionError(f"获取发现页 {url}: {e}") from e
