import asyncio
import sys
from typing import Any, Awaitable, Callable, Optional

import click

from . import operations
from .aws_lambda import LambdaFunction
from .config import (
    LambdokuConfig,
    read_env_files,
    resolve_function_name,
    write_function_name,
)
from .logging_utils import setup_logging, get_logger


logger = get_logger(__name__)


@click.group()
@click.option(
    "-a",
    "--lambda",
    "lambda_name",
    type=str,
    default=None,
    help="작업 대상 Lambda 이름 (기본: .lambdoku 파일에 기록된 이름)",
)
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (기본: 현재 디렉토리)",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="진행 로그를 출력합니다. (-v: 단계별 로그, -vv: aws CLI 원본 출력까지)",
)
@click.version_option(package_name="lambdoku")
@click.pass_context
def main(ctx: click.Context, lambda_name: Optional[str], chdir: str, verbose: int) -> None:
    """AWS Lambda 환경변수 / 버전 / downstream 관리용 CLI"""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["lambda_name"] = lambda_name
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose


def _fail(message: str) -> None:
    click.echo(f"[ERROR] {message}", err=True)
    sys.exit(1)


def _load_config_from_ctx(ctx: click.Context) -> LambdokuConfig:
    file_values = read_env_files(ctx.obj["chdir"])
    cfg = LambdokuConfig.from_env(file_values)
    logger.debug("Config loaded: %s", cfg)
    return cfg


def _function_from_ctx(ctx: click.Context) -> LambdaFunction:
    try:
        cfg = _load_config_from_ctx(ctx)
        name = resolve_function_name(ctx.obj["lambda_name"], ctx.obj["chdir"])
    except Exception as e:  # noqa: BLE001
        _fail(str(e))
    return LambdaFunction(name, cfg)


def _run(ctx: click.Context, flow: Callable[[LambdaFunction], Awaitable[Any]]) -> Any:
    """
    대상 Lambda 를 결정하고 flow 코루틴을 실행한다. 실패하면 메시지 출력 후 exit 1.
    """
    fn = _function_from_ctx(ctx)
    try:
        return asyncio.run(flow(fn))
    except Exception as e:  # noqa: BLE001
        logger.debug("명령 실패", exc_info=True)
        _fail(str(e))


def _echo_assignments(values: dict) -> None:
    for key, value in values.items():
        click.echo(f"{key}='{value}'")


@main.command(name="help")
@click.pass_context
def help_(ctx: click.Context) -> None:
    """도움말 출력"""
    click.echo(ctx.parent.get_help() if ctx.parent else ctx.get_help())


@main.command()
@click.argument("lambda_name")
@click.pass_context
def init(ctx: click.Context, lambda_name: str) -> None:
    """현재 디렉토리의 기본 Lambda 를 .lambdoku 파일에 기록"""
    try:
        name = write_function_name(lambda_name, ctx.obj["chdir"])
    except (ValueError, OSError) as e:
        _fail(str(e))
    click.echo(f"기본 Lambda 를 {name} 로 설정했습니다.")


@main.command(name="config")
@click.pass_context
def config_(ctx: click.Context) -> None:
    """Lambda 환경변수 전체 출력"""
    values = _run(ctx, operations.show_config)
    _echo_assignments(dict(sorted(values.items())))


@main.command(name="config:set")
@click.argument("assignments", nargs=-1, required=True)
@click.pass_context
def config_set(ctx: click.Context, assignments: tuple) -> None:
    """환경변수 설정 (KEY=VALUE ...), 기존 값과 병합 후 새 버전 발행"""
    try:
        operations.parse_assignments(assignments)
    except ValueError as e:
        _fail(str(e))
    _run(ctx, lambda fn: operations.set_config(fn, assignments))


@main.command(name="config:unset")
@click.argument("names", nargs=-1, required=True)
@click.pass_context
def config_unset(ctx: click.Context, names: tuple) -> None:
    """환경변수 제거 후 새 버전 발행"""
    _run(ctx, lambda fn: operations.unset_config(fn, names))


@main.command(name="config:get")
@click.argument("names", nargs=-1, required=True)
@click.pass_context
def config_get(ctx: click.Context, names: tuple) -> None:
    """지정한 환경변수 값 출력"""
    values = _run(ctx, lambda fn: operations.get_config_values(fn, names))
    _echo_assignments(values)


@main.command(name="downstream")
@click.pass_context
def downstream_(ctx: click.Context) -> None:
    """downstream Lambda 목록 출력"""
    for name in _run(ctx, operations.list_downstream):
        click.echo(name)


@main.command(name="downstream:add")
@click.argument("downstream_name")
@click.pass_context
def downstream_add(ctx: click.Context, downstream_name: str) -> None:
    """downstream Lambda 추가"""
    _run(ctx, lambda fn: operations.add_downstream(fn, downstream_name))


@main.command(name="downstream:remove")
@click.argument("downstream_name")
@click.pass_context
def downstream_remove(ctx: click.Context, downstream_name: str) -> None:
    """downstream Lambda 제거"""
    _run(ctx, lambda fn: operations.remove_downstream(fn, downstream_name))


@main.command(name="downstream:promote")
@click.pass_context
def downstream_promote(ctx: click.Context) -> None:
    """
    최근 발행된 버전의 코드를 모든 downstream Lambda 에 배포하고 각각 새 버전을 발행한다.
    """
    result = _run(
        ctx,
        lambda fn: operations.promote(fn, download_timeout=fn.cfg.download_timeout),
    )
    click.echo(result.summary())

    # 일부 downstream 실패도 전체 명령 실패(exit 1)로 간주
    if result.has_failures:
        sys.exit(1)


@main.command(name="releases")
@click.pass_context
def releases(ctx: click.Context) -> None:
    """발행된 버전 목록 (최신순)"""
    for version in _run(ctx, operations.list_releases):
        click.echo(f"{version.version} | {version.description} | {version.last_modified}")


@main.command(name="releases:rollback")
@click.argument("version")
@click.pass_context
def releases_rollback(ctx: click.Context, version: str) -> None:
    """지정한 버전의 코드/환경변수로 되돌린 뒤 새 버전 발행"""
    _run(
        ctx,
        lambda fn: operations.rollback(fn, version, download_timeout=fn.cfg.download_timeout),
    )
    click.echo(f"{version} 버전으로 롤백했습니다.")
