"""Assembly of helm command lines from resolved configuration."""

import logging
from pathlib import Path
from typing import Any

from .errors import ConfigurationError
from .models import (
    ResolvedChart,
    ResolvedGlobals,
    ResolvedInstallationOptions,
    ResolvedInvocation,
    ResolvedRelease,
    ResolvedServerOptions,
)
from .options import FileOption, Flag, ValueOption, resolve_path, unwrap
from .values import render_value_options

logger = logging.getLogger(__name__)

# (attribute, CLI option, option type)
INSTALLATION_OPTIONS = (
    ("atomic", "--atomic", Flag),
    ("ca_file", "--ca-file", FileOption),
    ("cert_file", "--cert-file", FileOption),
    ("devel", "--devel", Flag),
    ("dry_run", "--dry-run", Flag),
    ("key_file", "--key-file", FileOption),
    ("no_hooks", "--no-hooks", Flag),
    ("password", "--password", ValueOption),
    ("repository", "--repo", ValueOption),
    ("username", "--username", ValueOption),
    ("verify", "--verify", Flag),
    ("version", "--version", ValueOption),
    ("wait", "--wait", Flag),
)


def format_timeout(value: Any) -> Any:
    """Render integer timeouts as seconds, e.g. 300 -> "300s"."""
    value = unwrap(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return f"{value}s"
    return value


class _Arguments:
    """Accumulates arguments for a single invocation."""

    def __init__(self, base_dir: Path | None):
        self.base_dir = base_dir
        self.items: list[str] = []

    def add(self, *args: str) -> None:
        self.items.extend(args)

    def flag(self, name: str, value: Any = True) -> None:
        self.items.extend(Flag(name, value).render())

    def option(self, name: str, value: Any) -> None:
        self.items.extend(ValueOption(name, value).render())

    def file_option(self, name: str, path: Any) -> None:
        self.items.extend(FileOption(name, path, self.base_dir).render())


class CommandBuilder:
    """Builds :class:`ResolvedInvocation` objects without running anything."""

    def __init__(self, globals_: ResolvedGlobals):
        self.globals = globals_

    def _invocation(self, subcommand: str, args: _Arguments) -> ResolvedInvocation:
        logger.debug(f"Built helm {subcommand} with {len(args.items)} arguments")
        return ResolvedInvocation(
            executable=self.globals.executable,
            subcommand=subcommand,
            args=tuple(args.items),
            working_dir=self.globals.base_dir,
            env=self.globals.env,
        )

    def _global_options(self, args: _Arguments) -> None:
        args.flag("--debug", self.globals.debug)

    def _server_options(self, args: _Arguments, server: ResolvedServerOptions) -> None:
        args.option("--kube-context", server.kube_context)
        args.file_option("--kubeconfig", server.kube_config)
        args.option("--namespace", server.namespace)
        args.option("--timeout", format_timeout(server.remote_timeout))

    def _installation_options(
        self, args: _Arguments, installation: ResolvedInstallationOptions
    ) -> None:
        version_set = unwrap(installation.version) is not None
        for attr, name, option_type in INSTALLATION_OPTIONS:
            value = getattr(installation, attr)
            if attr == "devel" and version_set:
                # helm ignores --devel once an explicit version is given
                continue
            if option_type is FileOption:
                args.file_option(name, value)
            elif option_type is Flag:
                args.flag(name, value)
            else:
                args.option(name, value)

    def _chart_reference(self, release: ResolvedRelease) -> str:
        chart = unwrap(release.chart)
        if chart is None or chart == "":
            raise ConfigurationError(f"Release {release.name} has no chart")
        if isinstance(chart, Path):
            return resolve_path(chart, self.globals.base_dir)
        return str(chart)

    def _release_name(self, release: ResolvedRelease) -> str:
        if not release.release_name:
            raise ConfigurationError(f"Release {release.name} has no release name")
        return release.release_name

    def _installation(self, release: ResolvedRelease) -> _Arguments:
        args = _Arguments(self.globals.base_dir)
        args.add(self._release_name(release), self._chart_reference(release))
        self._global_options(args)
        self._server_options(args, release.server)
        self._installation_options(args, release.installation)
        args.add(*render_value_options(release.values, self.globals.base_dir))
        return args

    def lint(self, chart: ResolvedChart) -> ResolvedInvocation | None:
        """Build ``helm lint``; returns None when linting is disabled."""
        if not chart.lint.enabled:
            return None
        if unwrap(chart.chart_dir) is None:
            raise ConfigurationError(f"Chart {chart.name} has no chart directory")

        args = _Arguments(self.globals.base_dir)
        args.add(resolve_path(chart.chart_dir, self.globals.base_dir))
        self._global_options(args)
        args.add(*render_value_options(chart.lint.values, self.globals.base_dir))
        args.flag("--strict", chart.lint.strict)
        return self._invocation("lint", args)

    def install(self, release: ResolvedRelease) -> ResolvedInvocation:
        """Build ``helm install``, adding --replace when requested."""
        args = self._installation(release)
        args.flag("--replace", release.upgrade.replace)
        return self._invocation("install", args)

    def upgrade(self, release: ResolvedRelease) -> ResolvedInvocation:
        """Build ``helm upgrade --install``.

        --reset-values and --reuse-values pass through as declared; if both
        are set, helm decides which one applies.
        """
        args = self._installation(release)
        args.flag("--install")
        args.flag("--reset-values", release.upgrade.reset_values)
        args.flag("--reuse-values", release.upgrade.reuse_values)
        return self._invocation("upgrade", args)

    def uninstall(self, release: ResolvedRelease) -> ResolvedInvocation:
        """Build ``helm uninstall``; value options do not apply."""
        args = _Arguments(self.globals.base_dir)
        args.add(self._release_name(release))
        self._global_options(args)
        self._server_options(args, release.server)
        args.flag("--dry-run", release.installation.dry_run)
        args.flag("--no-hooks", release.installation.no_hooks)
        args.flag("--keep-history", release.uninstall.keep_history)
        return self._invocation("uninstall", args)
