"""Command-line entry points for cgtop."""

import json
import logging
from dataclasses import replace

import click

from cgtop.cgroup import stats_from_inspect
from cgtop.config import LOG_LEVELS, ConfigurationError, Settings
from cgtop.cri import Crictl, container_stats, read_container_config
from cgtop.errors import CgroupError
from cgtop.logging_config import setup_logging

log = logging.getLogger(__name__)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Override CGTOP_LOG_LEVEL.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """Inspect cgroup v2 CPU and memory usage of CRI containers."""
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc

    ctx.obj = settings
    ctx.meta["log_level"] = (log_level or settings.log_level).upper()


@cli.command()
@click.argument("container_id", required=False)
@click.option(
    "--inspect-file",
    type=click.File("r"),
    default=None,
    help="Read the inspect document from a file ('-' for stdin) instead of running crictl.",
)
@click.pass_context
def stats(ctx: click.Context, container_id: str | None, inspect_file) -> None:
    """Print the CPU and memory usage of one container as JSON."""
    settings: Settings = ctx.obj
    setup_logging(ctx.meta["log_level"], settings.log_file)

    if (container_id is None) == (inspect_file is None):
        raise click.UsageError("Give exactly one of CONTAINER_ID or --inspect-file.")

    try:
        if inspect_file is not None:
            result = stats_from_inspect(
                inspect_file.read(),
                mountinfo_path=settings.mountinfo_path,
                proc_root=settings.proc_root,
            )
        else:
            result = container_stats(
                container_id,
                Crictl(settings.crictl_path),
                mountinfo_path=settings.mountinfo_path,
                proc_root=settings.proc_root,
            )
    except (CgroupError, OSError) as exc:
        log.debug("stats failed", exc_info=True)
        raise click.ClickException(f"stats error: {exc}") from exc

    click.echo(
        json.dumps(
            {
                "cpu_usage_usec": result.cpu_usage_usec,
                "memory_usage_bytes": result.memory_usage_bytes,
            }
        )
    )


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Print the runtime status reported by `crictl info`."""
    _echo_crictl(ctx, lambda crictl: crictl.runtime_status())


@cli.command()
@click.pass_context
def ps(ctx: click.Context) -> None:
    """Print the container list reported by `crictl ps -o json`."""
    _echo_crictl(ctx, lambda crictl: crictl.list_containers())


@cli.command()
@click.argument("container_id")
@click.pass_context
def inspect(ctx: click.Context, container_id: str) -> None:
    """Print the `crictl inspect -o json` document of one container."""
    _echo_crictl(ctx, lambda crictl: crictl.inspect_container(container_id))


@cli.command()
@click.argument("container_id")
@click.pass_context
def config(ctx: click.Context, container_id: str) -> None:
    """Print a CRI-O container's config.json from overlay storage."""
    setup_logging(ctx.meta["log_level"], ctx.obj.log_file)
    try:
        output = read_container_config(container_id)
    except (CgroupError, OSError, ValueError) as exc:
        raise click.ClickException(f"config error: {exc}") from exc
    click.echo(output, nl=False)


@cli.command()
@click.argument("container_ids", nargs=-1)
@click.option("--poll-rate", type=float, default=None, help="Seconds between polls (minimum 0.1).")
@click.pass_context
def top(ctx: click.Context, container_ids: tuple[str, ...], poll_rate: float | None) -> None:
    """Show a live table of container stats. Watches all containers by default."""
    from cgtop.app import CgtopApp

    settings: Settings = ctx.obj
    if poll_rate is not None:
        settings = replace(settings, poll_rate=poll_rate)
    # Log lines on stderr would draw over the screen
    if settings.log_file:
        setup_logging(ctx.meta["log_level"], settings.log_file)
    else:
        logging.getLogger("cgtop").addHandler(logging.NullHandler())

    app = CgtopApp(list(container_ids) or None, settings=settings)
    app.run()


def _echo_crictl(ctx: click.Context, call) -> None:
    """Run one crictl call and print its raw output."""
    settings: Settings = ctx.obj
    setup_logging(ctx.meta["log_level"], settings.log_file)
    try:
        output = call(Crictl(settings.crictl_path))
    except CgroupError as exc:
        raise click.ClickException(f"crictl error: {exc}") from exc
    click.echo(output, nl=False)


def main() -> None:
    """Entry point for the cgtop console script."""
    cli(prog_name="cgtop")


if __name__ == "__main__":
    main()
