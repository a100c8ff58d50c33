"""CLI - 发布台账查看与清理"""

from __future__ import annotations

from pathlib import Path

import click

from modpublish.core.config import DEFAULT_CONFIG_FILE, init_config
from modpublish.core.dep.cache import DependencyCache


def register(group: click.Group) -> None:
    group.add_command(ledger)


@click.command()
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
@click.option("--ledger", "ledger_file", default=None, help="台账文件（覆盖配置）")
@click.option("--clear", is_flag=True, help="清空台账，下次运行重新探测所有模块")
def ledger(config_path: str, ledger_file: str | None, clear: bool) -> None:
    """列出台账中已发布的模块"""
    path = Path(ledger_file or init_config(config_path).ledger_file)
    if clear:
        if path.exists():
            path.unlink()
            click.echo(f"已清空台账: {path}")
        else:
            click.echo(f"台账不存在: {path}")
        return

    keys = DependencyCache.load(path).published_keys()
    if not keys:
        click.echo("台账中没有已发布的模块。")
        return
    for key in keys:
        click.echo(f"  {key.edge}")
    click.echo(f"共 {len(keys)} 个")
