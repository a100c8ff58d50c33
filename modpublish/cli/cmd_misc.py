"""CLI - 模块路径转义工具命令"""

from __future__ import annotations

import click

from modpublish.core.dep.modpath import escape_path, unescape_path
from modpublish.core.exceptions import ValidationError


def register(group: click.Group) -> None:
    group.add_command(escape)
    group.add_command(unescape)


@click.command()
@click.argument("path")
def escape(path: str) -> None:
    """模块路径 → 缓存/代理使用的转义形式"""
    try:
        click.echo(escape_path(path))
    except ValidationError as e:
        raise click.ClickException(str(e)) from e


@click.command()
@click.argument("path")
def unescape(path: str) -> None:
    """转义形式 → 原始模块路径"""
    try:
        click.echo(unescape_path(path))
    except ValidationError as e:
        raise click.ClickException(str(e)) from e
