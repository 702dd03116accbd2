"""CLI entrypoint for helmplan."""

import logging
from pathlib import Path

import typer

from . import __version__
from .config import Config
from .errors import HelmPlanError, ProcessExecutionError
from .loader import load_declaration
from .models import Operation
from .operations import HelmOperations
from .resolver import releases_for_target

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = typer.Typer(
    name="helmplan",
    help="Declarative Helm lint, install, upgrade and uninstall",
)

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to the Helm declaration file (default: $HELMPLAN_CONFIG or helm.yaml)",
)
TARGET_OPTION = typer.Option(
    None,
    "--target",
    "-t",
    help="Release target to use (default: $HELMPLAN_TARGET or the file's activeTarget)",
)
PRINT_ONLY_OPTION = typer.Option(
    False,
    "--print-only",
    "-n",
    help="Print the helm commands without running them",
)


def _load_operations(config_path: str | None) -> HelmOperations:
    """Load the declaration file and apply environment overrides."""
    try:
        config = Config.from_env()
        path = Path(config_path) if config_path else config.declaration_path
        helm = load_declaration(path)
    except HelmPlanError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1)

    logging.getLogger().setLevel(config.log_level)
    if config.helm_executable:
        helm.executable = config.helm_executable
    if config.release_target:
        helm.active_target = config.release_target
    return HelmOperations(helm)


def _execute(
    operations: HelmOperations,
    operation: Operation,
    names: list[str] | None,
    target: str | None,
    print_only: bool,
) -> None:
    try:
        invocations = operations.plan(operation, names or None, target)
    except HelmPlanError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1)

    if not invocations:
        typer.echo("Nothing to do")
        return

    if print_only:
        for invocation in invocations:
            typer.echo(invocation.display())
        return

    for invocation in invocations:
        typer.echo(f"🚀 {invocation.display()}")
        try:
            result = operations.executor.execute(invocation)
        except ProcessExecutionError as e:
            typer.echo(f"❌ Helm error: {e}", err=True)
            raise typer.Exit(1)
        if result.stdout:
            typer.echo(result.stdout.rstrip())

    typer.echo(f"✅ {operation.value}: {len(invocations)} command(s) succeeded")


@app.command()
def lint(
    charts: list[str] = typer.Argument(None, help="Charts to lint (default: all)"),
    config_path: str = CONFIG_OPTION,
    print_only: bool = PRINT_ONLY_OPTION,
) -> None:
    """Lint declared charts."""
    operations = _load_operations(config_path)
    _execute(operations, Operation.LINT, charts, None, print_only)


@app.command()
def install(
    releases: list[str] = typer.Argument(None, help="Releases to install (default: all selected)"),
    target: str = TARGET_OPTION,
    config_path: str = CONFIG_OPTION,
    print_only: bool = PRINT_ONLY_OPTION,
) -> None:
    """Install releases selected by the release target."""
    operations = _load_operations(config_path)
    _execute(operations, Operation.INSTALL, releases, target, print_only)


@app.command()
def upgrade(
    releases: list[str] = typer.Argument(None, help="Releases to upgrade (default: all selected)"),
    target: str = TARGET_OPTION,
    config_path: str = CONFIG_OPTION,
    print_only: bool = PRINT_ONLY_OPTION,
) -> None:
    """Upgrade (or install) releases selected by the release target."""
    operations = _load_operations(config_path)
    _execute(operations, Operation.UPGRADE, releases, target, print_only)


@app.command("install-or-upgrade")
def install_or_upgrade(
    releases: list[str] = typer.Argument(None, help="Releases to deploy (default: all selected)"),
    target: str = TARGET_OPTION,
    config_path: str = CONFIG_OPTION,
    print_only: bool = PRINT_ONLY_OPTION,
) -> None:
    """Install with --replace or upgrade with --install, depending on 'replace'."""
    operations = _load_operations(config_path)
    _execute(operations, Operation.INSTALL_OR_UPGRADE, releases, target, print_only)


@app.command()
def uninstall(
    releases: list[str] = typer.Argument(None, help="Releases to uninstall (default: all selected)"),
    target: str = TARGET_OPTION,
    config_path: str = CONFIG_OPTION,
    print_only: bool = PRINT_ONLY_OPTION,
) -> None:
    """Uninstall releases selected by the release target."""
    operations = _load_operations(config_path)
    _execute(operations, Operation.UNINSTALL, releases, target, print_only)


@app.command()
def plan(
    operation: Operation = typer.Argument(..., help="Operation to plan"),
    names: list[str] = typer.Argument(None, help="Charts or releases (default: all)"),
    target: str = TARGET_OPTION,
    config_path: str = CONFIG_OPTION,
) -> None:
    """Show the helm commands an operation would run."""
    operations = _load_operations(config_path)
    _execute(operations, operation, names, target, print_only=True)


@app.command()
def targets(config_path: str = CONFIG_OPTION) -> None:
    """List release targets and the releases each one selects."""
    operations = _load_operations(config_path)
    helm = operations.helm

    names = list(helm.targets) or [helm.DEFAULT_TARGET]
    for name in names:
        target = helm.get_target(name)
        marker = "*" if name == helm.active_target else " "
        selected = [release.name for release in releases_for_target(helm, target)]
        typer.echo(f"{marker} {name:<20} select: {target.select_tags_expression}")
        typer.echo(f"  {'':<20} releases: {', '.join(selected) or '-'}")


@app.command()
def version() -> None:
    """Show helmplan version."""
    typer.echo(f"helmplan v{__version__}")


def main() -> None:
    """Main entrypoint."""
    app()


if __name__ == "__main__":
    main()
