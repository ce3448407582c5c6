"""
CLI interface for ciorchestra.

Provides commands to inspect and run the step graph described by a job
configuration file. Cluster resources are read from and written to the
state directory (a FileClusterClient).
"""

import signal
import threading
from pathlib import Path

import click
import yaml
from dotenv import load_dotenv

from ciorchestra import __version__


def _load_job(config_path: str, state_dir: str | None = None):
    """Load config and assemble steps; exits 1 on configuration errors."""
    from ciorchestra.cluster import DEFAULT_REGISTRY, FileClusterClient
    from ciorchestra.config import load_config
    from ciorchestra.defaults import steps_from_config
    from ciorchestra.errors import ConfigError
    from ciorchestra.parameters import DeferredParameters

    try:
        config = load_config(Path(config_path))
    except ConfigError as e:
        click.echo(f"✗ Invalid configuration: {e}", err=True)
        raise SystemExit(1)

    client = FileClusterClient(
        Path(state_dir) if state_dir else config.state_dir,
        registry=config.registry or DEFAULT_REGISTRY,
    )
    params = DeferredParameters()
    steps = steps_from_config(config, client, params)
    return config, steps, params


@click.group()
@click.version_option(version=__version__, prog_name="ciorchestra")
def main():
    """
    ciorchestra - CI build graph orchestrator.

    Plans and runs build steps in producer/consumer order, skipping work
    that is already done.
    """
    from ciorchestra.config import get_ciorchestra_home

    env_path = get_ciorchestra_home() / ".env"
    if env_path.exists():
        load_dotenv(env_path)


@main.command("run")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@click.option("-t", "--target", "targets", multiple=True, help="Run only this named step and its prerequisites (repeatable)")
@click.option("--dry-run", is_flag=True, help="Print resources instead of creating them")
@click.option("--parallelism", type=int, default=None, help="Maximum steps running at once (overrides config)")
@click.option("--fail-fast", is_flag=True, help="Start no new steps after the first failure (also behavior.fail_fast)")
@click.option("--state-dir", type=click.Path(file_okay=False), default=None, help="Cluster state directory (overrides config)")
@click.option("--print-params", is_flag=True, help="Print parameters whose producers completed")
def run(config_path: str, targets: tuple[str, ...], dry_run: bool, parallelism: int | None,
        fail_fast: bool, state_dir: str | None, print_params: bool):
    """
    Run the steps in CONFIG_PATH.

    Examples:

        ciorchestra run job.yaml

        ciorchestra run job.yaml --target '[images]'

        ciorchestra run job.yaml --dry-run
    """
    from ciorchestra.errors import TargetError, GraphCycleError
    from ciorchestra.executor import run_steps
    from ciorchestra.utils import setup_logging

    config, steps, params = _load_job(config_path, state_dir)
    setup_logging(
        config.get_log_file_path(),
        log_level=config.get_log_level(),
        log_format=config.get_log_format(),
        console_output=config.should_log_to_console(),
    )

    if dry_run:
        click.echo("=" * 50, err=True)
        click.echo("=== DRY RUN MODE === (no cluster writes)", err=True)
        click.echo("=" * 50, err=True)

    cancel = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    try:
        result = run_steps(
            steps,
            targets=list(targets),
            dry_run=dry_run,
            parallelism=parallelism or config.get_parallelism(),
            fail_fast=fail_fast or config.should_fail_fast(),
            cancel=cancel,
        )
    except (TargetError, GraphCycleError) as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    for outcome in result.outcomes:
        click.echo(f"  {outcome.status.value:<12} {outcome.step}", err=True)

    if print_params:
        _print_params(steps, params, result)

    if not result.success:
        click.echo(f"✗ {result.error}", err=True)
        raise SystemExit(1)
    click.echo("✓ all steps completed" + (" (dry run)" if dry_run else ""), err=True)


def _print_params(steps, params, result) -> None:
    """Print NAME=value for parameters whose gating link was produced."""
    from ciorchestra.links import has_any_links

    produced = []
    for step in steps:
        outcome = result.outcome_for(step)
        if outcome is not None and outcome.status.satisfies_children:
            produced.extend(step.creates())

    for name in params.names():
        gates = params.links(name)
        if gates and not has_any_links(gates, produced):
            continue
        try:
            click.echo(f"{name}={params.get(name)}")
        except Exception as e:
            click.echo(f"✗ could not resolve {name}: {e}", err=True)


@main.command("graph")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@click.option("-t", "--target", "targets", multiple=True, help="Show only this named step and its prerequisites (repeatable)")
def graph(config_path: str, targets: tuple[str, ...]):
    """Show the step graph for CONFIG_PATH."""
    from ciorchestra.errors import TargetError, GraphCycleError
    from ciorchestra.graph import build_partial_graph
    from ciorchestra.utils import console, render_graph

    _, steps, _ = _load_job(config_path)
    try:
        roots = build_partial_graph(steps, list(targets))
    except (TargetError, GraphCycleError) as e:
        click.echo(f"✗ {e}", err=True)
        raise SystemExit(1)
    console.print(render_graph(roots, title=Path(config_path).name))


@main.command("targets")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
def list_targets(config_path: str):
    """List the step names that can be passed to --target."""
    _, steps, _ = _load_job(config_path)
    names = sorted(step.name for step in steps if step.name)
    if not names:
        click.echo("No targetable steps.")
        return
    for name in names:
        click.echo(name)


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Write a starter configuration to the ciorchestra home directory."""
    from ciorchestra.config import DEFAULT_CONFIG, get_ciorchestra_home

    home = get_ciorchestra_home()
    home.mkdir(parents=True, exist_ok=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(1)

    default_cfg = dict(DEFAULT_CONFIG, state_dir=str(home / "state"))
    cfg_path.write_text(yaml.safe_dump(default_cfg, sort_keys=False))

    env_path = home / ".env"
    if not env_path.exists():
        env_path.write_text("# CIORCHESTRA_NAMESPACE=...\n")

    click.echo(f"Initialized ciorchestra config at {cfg_path}")


if __name__ == "__main__":
    main()
