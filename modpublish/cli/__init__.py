"""modpublish 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os
from typing import Any

import click

from modpublish import __version__
from modpublish.services.container import get_container
from modpublish.utils.logger import setup_logging


def _svc() -> Any:
    """获取全局服务容器的快捷方式"""
    return get_container()


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """modpublish - Go 模块依赖递归发布工具"""
    setup_logging(
        level=os.getenv("MODPUBLISH_LOG_LEVEL", "INFO"),
        json_output=os.getenv("MODPUBLISH_LOG_JSON", "") == "1",
    )


# 注册各领域子命令
from modpublish.cli.cmd_publish import register as _reg_publish  # noqa: E402
from modpublish.cli.cmd_ledger import register as _reg_ledger  # noqa: E402
from modpublish.cli.cmd_misc import register as _reg_misc  # noqa: E402

_reg_publish(main)
_reg_ledger(main)
_reg_misc(main)
