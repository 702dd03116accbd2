"""Data models for Helm declarations, resolved snapshots and invocations.

Declarations are mutable and only filled in while the configuration is being
declared. The resolver turns them into frozen ``Resolved*`` snapshots which
the command builder reads.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from .errors import ConfigurationError
from .tags import MATCH_ALL, TagExpression

# Merge policies, stored in dataclass field metadata.
OVERRIDE = "override"
MERGE_MAP = "merge_map"
APPEND_LIST = "append_list"
NESTED = "nested"


def _map() -> Any:
    return field(default_factory=dict, metadata={"merge": MERGE_MAP})


def _list() -> Any:
    return field(default_factory=list, metadata={"merge": APPEND_LIST})


def _nested(cls: type) -> Any:
    return field(default_factory=cls, metadata={"merge": NESTED})


class Operation(str, Enum):
    """Helm operations that helmplan can drive."""

    LINT = "lint"
    INSTALL = "install"
    UPGRADE = "upgrade"
    INSTALL_OR_UPGRADE = "install-or-upgrade"
    UNINSTALL = "uninstall"


# Declaration phase


@dataclass
class ValueOptions:
    """Values passed to a chart via --values, --set-file and --set."""

    values: dict[str, Any] = _map()
    file_values: dict[str, Any] = _map()
    value_files: list[Any] = _list()


@dataclass
class LintOptions:
    enabled: bool | None = None
    strict: bool | None = None
    values: ValueOptions = _nested(ValueOptions)


@dataclass
class InstallationOptions:
    """Options shared by helm install and helm upgrade."""

    atomic: bool | None = None
    ca_file: Any = None
    cert_file: Any = None
    devel: bool | None = None
    dry_run: bool | None = None
    key_file: Any = None
    no_hooks: bool | None = None
    password: str | None = None
    repository: str | None = None
    username: str | None = None
    verify: bool | None = None
    version: str | None = None
    wait: bool | None = None


@dataclass
class ServerOptions:
    """Options selecting the cluster a release is sent to."""

    kube_context: str | None = None
    kube_config: Any = None
    namespace: str | None = None
    remote_timeout: str | int | None = None


@dataclass
class UpgradeOptions:
    replace: bool | None = None
    reset_values: bool | None = None
    reuse_values: bool | None = None


@dataclass
class UninstallOptions:
    keep_history: bool | None = None


class _NamedScope:
    """A declaration scope whose name is fixed at creation."""

    def __init__(self, name: str):
        if not name:
            raise ConfigurationError(f"{type(self).__name__} requires a name")
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r})"


class ChartDeclaration(_NamedScope):
    """A chart source directory and its lint settings."""

    def __init__(self, name: str, chart_dir: Any = None):
        super().__init__(name)
        self.chart_dir = chart_dir
        self.lint = LintOptions()


class _DeploymentScope(_NamedScope):
    """Holds the option groups shared by release targets and releases."""

    def __init__(self, name: str):
        super().__init__(name)
        self.installation = InstallationOptions()
        self.server = ServerOptions()
        self.values = ValueOptions()
        self.upgrade = UpgradeOptions()
        self.uninstall = UninstallOptions()


class ReleaseTargetDeclaration(_DeploymentScope):
    """A deployment environment with its own option overrides.

    ``select_tags`` is parsed as soon as it is assigned, so a malformed
    expression fails while the configuration is being declared.
    """

    def __init__(self, name: str, global_select_tags: TagExpression = MATCH_ALL):
        super().__init__(name)
        self._global_select_tags = global_select_tags
        self._select_tags = "*"
        self._local_select_tags: TagExpression = MATCH_ALL

    @property
    def select_tags(self) -> str:
        return self._select_tags

    @select_tags.setter
    def select_tags(self, text: str) -> None:
        self._local_select_tags = TagExpression.parse(text)
        self._select_tags = text

    @property
    def select_tags_expression(self) -> TagExpression:
        return self._local_select_tags.and_(self._global_select_tags)

    def should_include(self, release: "ReleaseDeclaration") -> bool:
        """Check whether the release applies to this target."""
        return self.select_tags_expression.matches(release.tags)


class ReleaseDeclaration(_DeploymentScope):
    """A named release of a chart."""

    def __init__(self, name: str):
        super().__init__(name)
        self.release_name: str | None = None
        self.chart: Any = None
        self.tags: set[str] = set()

    def from_chart(self, chart: Any) -> None:
        """Set the chart from a reference, path, URL or deferred value."""
        self.chart = chart

    @property
    def effective_release_name(self) -> str:
        return self.release_name or self.name


class HelmDeclaration:
    """Global scope: defaults for every chart, target and release."""

    DEFAULT_TARGET = "default"

    def __init__(self, base_dir: Path | None = None):
        self.executable = "helm"
        self.base_dir = base_dir
        self.debug: bool | None = None
        self.cache_home: Any = None
        self.config_home: Any = None
        self.data_home: Any = None
        self.extra_env: dict[str, str] = {}
        self.active_target: str = self.DEFAULT_TARGET

        self.lint = LintOptions()
        self.installation = InstallationOptions()
        self.server = ServerOptions()
        self.values = ValueOptions()
        self.upgrade = UpgradeOptions()
        self.uninstall = UninstallOptions()

        self.charts: dict[str, ChartDeclaration] = {}
        self.targets: dict[str, ReleaseTargetDeclaration] = {}
        self.releases: dict[str, ReleaseDeclaration] = {}

        self._select_tags = "*"
        self._select_tags_expression: TagExpression = MATCH_ALL

    @property
    def select_tags(self) -> str:
        return self._select_tags

    @select_tags.setter
    def select_tags(self, text: str) -> None:
        expression = TagExpression.parse(text)
        self._select_tags = text
        self._select_tags_expression = expression
        for target in self.targets.values():
            target._global_select_tags = expression

    @property
    def select_tags_expression(self) -> TagExpression:
        return self._select_tags_expression

    def chart(self, name: str) -> ChartDeclaration:
        """Get or create the chart with the given name."""
        if name not in self.charts:
            self.charts[name] = ChartDeclaration(name)
        return self.charts[name]

    def target(self, name: str) -> ReleaseTargetDeclaration:
        """Get or create the release target with the given name."""
        if name not in self.targets:
            self.targets[name] = ReleaseTargetDeclaration(name, self._select_tags_expression)
        return self.targets[name]

    def release(self, name: str) -> ReleaseDeclaration:
        """Get or create the release with the given name."""
        if name not in self.releases:
            self.releases[name] = ReleaseDeclaration(name)
        return self.releases[name]

    def get_target(self, name: str | None = None) -> ReleaseTargetDeclaration:
        """Look up a declared target, falling back to an implicit default target."""
        name = name or self.active_target
        if name in self.targets:
            return self.targets[name]
        if name == self.DEFAULT_TARGET and not self.targets:
            return ReleaseTargetDeclaration(name, self._select_tags_expression)
        raise ConfigurationError(f"Unknown release target: {name}")


# Resolved snapshots


def freeze_map(values: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(values))


@dataclass(frozen=True)
class ResolvedValueOptions:
    values: Mapping[str, Any] = field(default_factory=lambda: freeze_map({}))
    file_values: Mapping[str, Any] = field(default_factory=lambda: freeze_map({}))
    value_files: tuple[Any, ...] = ()


@dataclass(frozen=True)
class ResolvedLintOptions:
    enabled: bool = True
    strict: bool = False
    values: ResolvedValueOptions = field(default_factory=ResolvedValueOptions)


@dataclass(frozen=True)
class ResolvedInstallationOptions:
    atomic: bool = False
    ca_file: Any = None
    cert_file: Any = None
    devel: bool = False
    dry_run: bool = False
    key_file: Any = None
    no_hooks: bool = False
    password: str | None = None
    repository: str | None = None
    username: str | None = None
    verify: bool = False
    version: str | None = None
    wait: bool = False


@dataclass(frozen=True)
class ResolvedServerOptions:
    kube_context: str | None = None
    kube_config: Any = None
    namespace: str | None = None
    remote_timeout: str | int | None = None


@dataclass(frozen=True)
class ResolvedUpgradeOptions:
    replace: bool = False
    reset_values: bool = False
    reuse_values: bool = False


@dataclass(frozen=True)
class ResolvedUninstallOptions:
    keep_history: bool = False


@dataclass(frozen=True)
class ResolvedGlobals:
    """Settings applied to every invocation."""

    executable: str = "helm"
    base_dir: Path | None = None
    debug: bool = False
    env: Mapping[str, str] = field(default_factory=lambda: freeze_map({}))


@dataclass(frozen=True)
class ResolvedChart:
    name: str
    chart_dir: Any
    lint: ResolvedLintOptions


@dataclass(frozen=True)
class ResolvedRelease:
    """A release fully resolved for one release target."""

    name: str
    release_name: str
    chart: Any
    target: str
    tags: frozenset[str]
    installation: ResolvedInstallationOptions
    server: ResolvedServerOptions
    values: ResolvedValueOptions
    upgrade: ResolvedUpgradeOptions
    uninstall: ResolvedUninstallOptions


@dataclass(frozen=True)
class ResolvedInvocation:
    """A fully built helm command, ready to be executed."""

    executable: str
    subcommand: str
    args: tuple[str, ...]
    working_dir: Path | None = None
    env: Mapping[str, str] = field(default_factory=lambda: freeze_map({}))

    @property
    def command_line(self) -> list[str]:
        return [self.executable, self.subcommand, *self.args]

    def display(self) -> str:
        """Render the command line for logs, masking the repository password."""
        parts = self.command_line
        masked = list(parts)
        for i, part in enumerate(parts[:-1]):
            if part == "--password":
                masked[i + 1] = "****"
        return " ".join(masked)
