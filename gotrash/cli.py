"""gotrash 命令行接口

单一命令，sync / update 两种模式由参数切换。
"""

from __future__ import annotations

import logging

import click

from gotrash import __version__
from gotrash.core.config import IGNORE_TAG, init_config
from gotrash.core.exceptions import TrashError
from gotrash.services.trash_service import TrashService
from gotrash.utils.logger import setup_logging

logger = logging.getLogger(__name__)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="trash")
@click.option("-f", "--file", "manifest", default="vendor.conf", show_default=True,
              help="vendor 清单文件")
@click.option("-C", "--directory", default=".", show_default=True, help="项目目录")
@click.option("-T", "--target", default="vendor", show_default=True, help="vendor 目录名")
@click.option("-k", "--keep", is_flag=True, help="保留版本控制元数据并跳过裁剪")
@click.option("-u", "--update", is_flag=True, help="根据源码导入重新生成清单")
@click.option("--insecure", is_flag=True, help="允许通过不安全的协议拉取")
@click.option("-d", "--debug", is_flag=True, help="输出调试日志")
@click.option("--cache", "cache_dir", envvar="TRASH_CACHE", default=None,
              help="缓存目录（默认 ~/.trash-cache）")
@click.option("--gopath", envvar="GOPATH", default=None, hidden=True)
@click.option("--skip-tag", "skip_tags", multiple=True, default=(IGNORE_TAG,),
              show_default=True, help="跳过带有该构建 tag 的文件（可重复）")
@click.option("--native-only", is_flag=True, help="只保留与当前 GOOS/GOARCH 匹配的文件")
@click.option("-j", "--jobs", "max_workers", type=click.IntRange(min=1), default=8,
              show_default=True, help="导入扫描并发数")
def main(
    manifest: str,
    directory: str,
    target: str,
    keep: bool,
    update: bool,
    insecure: bool,
    debug: bool,
    cache_dir: str | None,
    gopath: str | None,
    skip_tags: tuple[str, ...],
    native_only: bool,
    max_workers: int,
) -> None:
    """把导入的 Go 包 vendor 进项目，并扔掉用不到的垃圾"""
    setup_logging(level="DEBUG" if debug else None)
    cfg = init_config(
        manifest=manifest,
        directory=directory,
        target=target,
        cache_dir=cache_dir,
        gopath=gopath,
        keep=keep,
        update=update,
        insecure=insecure,
        skip_tags=list(skip_tags),
        native_only=native_only,
        max_workers=max_workers,
    )
    try:
        TrashService(cfg).run()
    except TrashError as e:
        logger.debug("运行中止", exc_info=True)
        raise click.ClickException(f"[{e.code}] {e}") from e
