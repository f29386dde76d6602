"""集中配置管理

提供统一的配置入口，支持从 YAML 文件加载 + 编程式覆盖。
解析器、拉取器等组件由调用方显式构造并传入配置，
全局配置仅作为 CLI 入口的默认来源。
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field

import yaml

from vendorkit.core.exceptions import ConfigError
from vendorkit.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


def _default_cache_dir() -> str:
    base = os.environ.get("XDG_CACHE_HOME") or os.path.join(
        os.path.expanduser("~"), ".cache",
    )
    return os.path.join(base, "vendorkit")


@dataclass
class Config:
    """vendorkit 全局配置"""

    # 目录
    cache_dir: str = field(default_factory=_default_cache_dir)
    vendor_dir: str = "vendor"
    manifest: str = "Godeps/Godeps.json"

    # 执行
    max_workers: int = 8
    http_timeout: float = 30.0

    # 发现页协议
    discovery_param: str = "go-get"
    discovery_marker: str = "go-import"

    # 日志
    log_level: str = "INFO"

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "vendorkit.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"配置文件无效: {path}: {e}") from e
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()} - {"extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """校验数值型配置项"""
        if not isinstance(self.max_workers, int) or self.max_workers < 1:
            raise ConfigError(f"max_workers 必须为正整数: {self.max_workers!r}")
        if not isinstance(self.http_timeout, (int, float)) or self.http_timeout <= 0:
            raise ConfigError(f"http_timeout 必须为正数: {self.http_timeout!r}")
        if not self.discovery_marker or not self.discovery_param:
            raise ConfigError("discovery_marker / discovery_param 不能为空")

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "vendorkit.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current


def reset_config() -> None:
    """重置全局配置（仅用于测试）"""
    global _current  # noqa: PLW0603
    _current = None
