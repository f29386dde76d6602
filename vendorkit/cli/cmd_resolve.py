"""CLI — 模块路径解析命令"""

from __future__ import annotations

import click

from vendorkit.cli import _service
from vendorkit.core.dep.cache import cache_key


def register(group: click.Group) -> None:
    group.add_command(resolve)
    group.add_command(show_cache_key)


@click.command()
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def resolve(ctx: click.Context, paths: tuple[str, ...]) -> None:
    """解析模块路径所属仓库，输出 root vcs remote"""
    for meta in _service(ctx).resolve_paths(paths):
        click.echo(f"{meta.root} {meta.vcs.value} {meta.remote}")


@click.command(name="cache-key")
@click.argument("remote")
def show_cache_key(remote: str) -> None:
    """输出远程地址对应的缓存目录名"""
    click.echo(cache_key(remote))
