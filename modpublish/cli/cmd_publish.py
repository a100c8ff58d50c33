"""CLI - 依赖发布命令"""

from __future__ import annotations

import json

import click

from modpublish.core.config import DEFAULT_CONFIG_FILE, init_config
from modpublish.core.exceptions import ConfigError, ExecutionError, ValidationError


def register(group: click.Group) -> None:
    group.add_command(publish)


def _tidy_mode(tidy: bool | None) -> str | None:
    if tidy is None:
        return None
    return "tidy" if tidy else "none"


@click.command()
@click.argument("modules", nargs=-1)
@click.option("--project", default=None, help="Go 项目目录，发布其 go mod graph 中的全部依赖")
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
@click.option("--url", default=None, help="制品库地址")
@click.option("--repo", default=None, help="目标 Go 仓库名")
@click.option("--token", default=None, envvar="MODPUBLISH_TOKEN", help="制品库访问令牌")
@click.option("--cache-dir", default=None, help="本地模块缓存目录（默认 $GOMODCACHE/cache/download）")
@click.option("--work-dir", default=None, help="临时工作目录")
@click.option("--ledger", default=None, help="发布台账文件")
@click.option("--edit-message", default=None, help="写入生成 go.mod 顶部的注释")
@click.option("--tidy/--no-tidy", default=None, help="是否补全 go.mod 并递归发布传递依赖")
@click.option("--workers", "-j", type=int, default=None, help="并行处理的根模块数")
@click.option("--json", "as_json", is_flag=True, help="以 JSON 输出汇总")
@click.pass_context
def publish(
    ctx: click.Context,
    modules: tuple[str, ...], project: str | None, config_path: str,
    url: str | None, repo: str | None, token: str | None,
    cache_dir: str | None, work_dir: str | None, ledger: str | None,
    edit_message: str | None, tidy: bool | None, workers: int | None,
    as_json: bool,
) -> None:
    """发布模块（path@version）及其全部传递依赖到制品库"""
    from modpublish.services.container import reset_container

    cfg = init_config(config_path).override(
        repo_url=url, target_repo=repo, api_token=token,
        module_cache_dir=cache_dir, work_dir=work_dir, ledger_file=ledger,
        edit_message=edit_message, tidy_mode=_tidy_mode(tidy), max_workers=workers,
    )
    try:
        cfg.validate()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    reset_container()
    from modpublish.cli import _svc
    try:
        service = _svc().vendor
    except ValidationError as e:
        raise click.ClickException(str(e)) from e

    targets = list(modules)
    if project:
        try:
            targets.extend(sorted(service.project_modules(project)))
        except ExecutionError as e:
            raise click.ClickException(f"无法获取项目依赖: {e}") from e
    if not targets:
        raise click.UsageError("请指定要发布的模块（path@version）或 --project")

    summary = service.run(targets)

    if as_json:
        click.echo(json.dumps(summary.to_dict(), ensure_ascii=False, indent=2))
    else:
        click.echo(
            f"共 {summary.total} 个, 发布 {summary.published}, "
            f"跳过 {summary.skipped}, 失败 {summary.failures}"
        )
        for key in summary.failed:
            click.echo(f"  [FAILED] {key}")
    if not summary.success:
        ctx.exit(1)
