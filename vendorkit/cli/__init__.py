"""vendorkit 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
业务异常统一转换为 click 错误输出: Error: [<code>] <message>
"""

from __future__ import annotations

import os
from typing import Any

import click

from vendorkit import __version__
from vendorkit.core.exceptions import VendorError
from vendorkit.utils.logger import setup_logging


class _VendorGroup(click.Group):
    """将 VendorError 转换为 ClickException，退出码 1"""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except VendorError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e


def _service(ctx: click.Context) -> Any:
    """获取当前命令上下文中的 VendorService（懒加载）"""
    obj = ctx.ensure_object(dict)
    if "service" not in obj:
        from vendorkit.services.vendor_service import VendorService
        obj["service"] = VendorService(obj["config"])
    return obj["service"]


@click.group(cls=_VendorGroup)
@click.version_option(version=__version__)
@click.option("--config", "config_path", default="vendorkit.yml", help="配置文件路径")
@click.option("--log-level", default=None, help="日志级别 (SILENT/ERROR/WARNING/INFO/DEBUG)")
@click.option("--json-log", is_flag=True, help="输出 JSON 格式日志")
@click.pass_context
def main(ctx: click.Context, config_path: str, log_level: str | None, json_log: bool) -> None:
    """vendorkit - 第三方依赖固定版本拉取与 vendor 目录管理"""
    from vendorkit.core.config import init_config

    cfg = init_config(config_path)
    setup_logging(
        level=log_level or os.getenv("VENDORKIT_LOG_LEVEL", cfg.log_level),
        json_output=json_log or os.getenv("VENDORKIT_LOG_JSON", "") == "1",
    )
    ctx.ensure_object(dict)["config"] = cfg


# 注册各领域子命令
from vendorkit.cli.cmd_resolve import register as _reg_resolve  # noqa: E402
from vendorkit.cli.cmd_fetch import register as _reg_fetch  # noqa: E402

_reg_resolve(main)
_reg_fetch(main)
