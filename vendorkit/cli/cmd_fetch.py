"""CLI — 版本清单与 vendor 拉取命令"""

from __future__ import annotations

import click

from vendorkit.cli import _service


def register(group: click.Group) -> None:
    group.add_command(pins)
    group.add_command(fetch)


@click.command()
@click.option("--manifest", default=None, help="版本清单路径（默认取配置）")
@click.pass_context
def pins(ctx: click.Context, manifest: str | None) -> None:
    """列出版本清单中固定版本的仓库"""
    for pin in _service(ctx).load_pins(manifest):
        click.echo(f"{pin.meta.root} {pin.version}")


@click.command()
@click.option("--manifest", default=None, help="版本清单路径（默认取配置）")
@click.option("--vendor", "vendor_dir", default=None, help="vendor 目录（默认取配置）")
@click.option("--cache-dir", default=None, help="仓库缓存目录（覆盖配置）")
@click.pass_context
def fetch(
    ctx: click.Context, manifest: str | None,
    vendor_dir: str | None, cache_dir: str | None,
) -> None:
    """按版本清单拉取依赖并生成 vendor 目录"""
    if cache_dir:
        ctx.obj["config"].cache_dir = cache_dir
    results = _service(ctx).vendor(manifest, vendor_dir)
    for item in results:
        click.echo(f"就绪: {item.pin.meta.root}@{item.pin.version} -> {item.path}")
    if not results:
        click.echo("版本清单中没有需要拉取的依赖。")
