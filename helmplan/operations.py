"""High-level Helm operations and execution of the helm executable."""

import logging
import os
import subprocess
from typing import Iterable

from .command import CommandBuilder
from .errors import ConfigurationError, ProcessExecutionError
from .models import HelmDeclaration, Operation, ResolvedInvocation, ResolvedRelease
from .resolver import releases_for_target, resolve_chart, resolve_globals, resolve_release

logger = logging.getLogger(__name__)


class HelmExecutor:
    """Runs built invocations of the helm executable."""

    def execute(self, invocation: ResolvedInvocation) -> subprocess.CompletedProcess:
        """Run the invocation and raise ProcessExecutionError on a nonzero exit code."""
        logger.info(f"Running: {invocation.display()}")

        env = None
        if invocation.env:
            env = os.environ.copy()
            env.update(invocation.env)

        try:
            result = subprocess.run(
                invocation.command_line,
                cwd=invocation.working_dir,
                env=env,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise ProcessExecutionError(invocation, 127, str(e)) from e

        if result.returncode != 0:
            logger.error(f"helm {invocation.subcommand} failed: {result.stderr}")
            raise ProcessExecutionError(
                invocation, result.returncode, result.stderr, result.stdout
            )
        if result.stdout:
            logger.debug(f"helm output: {result.stdout}")
        return result


class HelmOperations:
    """Drives lint, install, upgrade and uninstall for a Helm declaration.

    Every operation builds all of its invocations before running the first
    one, so a configuration error never leaves a batch half executed.
    """

    def __init__(self, helm: HelmDeclaration, executor: HelmExecutor | None = None):
        self.helm = helm
        self.executor = executor or HelmExecutor()

    @property
    def builder(self) -> CommandBuilder:
        return CommandBuilder(resolve_globals(self.helm))

    def _select_releases(
        self, release_names: Iterable[str] | None, target: str | None
    ) -> list[ResolvedRelease]:
        target_decl = self.helm.get_target(target)
        selected = releases_for_target(self.helm, target_decl)

        if release_names is not None:
            wanted = list(release_names)
            unknown = [name for name in wanted if name not in self.helm.releases]
            if unknown:
                raise ConfigurationError(f"Unknown release(s): {', '.join(unknown)}")
            skipped = [
                name for name in wanted if self.helm.releases[name] not in selected
            ]
            for name in skipped:
                logger.info(f"Release {name} is not selected by target {target_decl.name}")
            selected = [release for release in selected if release.name in wanted]

        return [resolve_release(self.helm, release, target_decl) for release in selected]

    def plan_lint(self, chart_names: Iterable[str] | None = None) -> list[ResolvedInvocation]:
        """Build lint invocations for the given charts (default: all charts)."""
        builder = self.builder
        names = list(self.helm.charts) if chart_names is None else list(chart_names)
        invocations = []
        for name in names:
            invocation = builder.lint(resolve_chart(self.helm, name))
            if invocation is None:
                logger.info(f"Linting disabled for chart {name}, skipping")
                continue
            invocations.append(invocation)
        return invocations

    def plan(
        self,
        operation: Operation | str,
        names: Iterable[str] | None = None,
        target: str | None = None,
    ) -> list[ResolvedInvocation]:
        """Build the invocations for an operation without running them."""
        operation = Operation(operation)
        if operation is Operation.LINT:
            return self.plan_lint(names)

        builder = self.builder
        releases = self._select_releases(names, target)
        if operation is Operation.INSTALL:
            return [builder.install(release) for release in releases]
        if operation is Operation.UPGRADE:
            return [builder.upgrade(release) for release in releases]
        if operation is Operation.INSTALL_OR_UPGRADE:
            return [self._install_or_upgrade(builder, release) for release in releases]
        return [builder.uninstall(release) for release in releases]

    @staticmethod
    def _install_or_upgrade(builder: CommandBuilder, release: ResolvedRelease) -> ResolvedInvocation:
        if release.upgrade.replace:
            return builder.install(release)
        return builder.upgrade(release)

    def run(self, invocations: list[ResolvedInvocation]) -> list[subprocess.CompletedProcess]:
        """Execute invocations in order, stopping at the first failure."""
        return [self.executor.execute(invocation) for invocation in invocations]

    def lint(self, chart_names: Iterable[str] | None = None) -> list[subprocess.CompletedProcess]:
        return self.run(self.plan(Operation.LINT, chart_names))

    def install(
        self, release_names: Iterable[str] | None = None, target: str | None = None
    ) -> list[subprocess.CompletedProcess]:
        return self.run(self.plan(Operation.INSTALL, release_names, target))

    def upgrade(
        self, release_names: Iterable[str] | None = None, target: str | None = None
    ) -> list[subprocess.CompletedProcess]:
        return self.run(self.plan(Operation.UPGRADE, release_names, target))

    def install_or_upgrade(
        self, release_names: Iterable[str] | None = None, target: str | None = None
    ) -> list[subprocess.CompletedProcess]:
        """Run ``helm install --replace`` or ``helm upgrade --install`` per release."""
        return self.run(self.plan(Operation.INSTALL_OR_UPGRADE, release_names, target))

    def uninstall(
        self, release_names: Iterable[str] | None = None, target: str | None = None
    ) -> list[subprocess.CompletedProcess]:
        return self.run(self.plan(Operation.UNINSTALL, release_names, target))
