"""vendorkit - 第三方依赖固定版本拉取与 vendor 目录管理"""

__version__ = "0.1.0"
