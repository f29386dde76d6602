"""统一异常体系

所有业务异常继承 VendorError，按失败阶段细分。
CLI 层据此输出 error[<code>] 形式的友好提示。
"""

from __future__ import annotations


class VendorError(Exception):
    """vendorkit 基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(VendorError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(VendorError):
    """输入参数校验失败"""

    code = "VALIDATION_ERROR"


class ManifestError(VendorError):
    """版本清单格式错误或依赖未固定版本"""

    code = "MANIFEST_ERROR"


class ResolutionError(VendorError):
    """模块路径无法解析为仓库元信息"""

    code = "RESOLUTION_ERROR"


class MetadataNotFoundError(ResolutionError):
    """发现页中没有找到元数据标签"""

    code = "METADATA_NOT_FOUND"


class UnsupportedCharsetError(ResolutionError):
    """发现页声明了不支持的字符集"""

    code = "UNSUPPORTED_CHARSET"

    def __init__(self, charset: str) -> None:
        super().__init__(f"无法按字符集 {charset!r} 解码文档")
        self.charset = charset


class CancelledError(VendorError):
    """调用方已取消，停止等待"""

    code = "CANCELLED"


class CacheError(VendorError):
    """仓库缓存目录或锁文件操作失败"""

    code = "CACHE_ERROR"


class VCSError(VendorError):
    """版本控制命令执行失败"""

    code = "VCS_ERROR"


class VCSRemoteError(VCSError):
    """与远程仓库交互失败，保留远端输出"""

    code = "VCS_REMOTE_ERROR"

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(f"{message}: {output.strip()}" if output.strip() else message)
        self.output = output


class CopyError(VendorError):
    """复制到 vendor 目录失败"""

    code = "COPY_ERROR"
