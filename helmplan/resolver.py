"""Resolution of global, chart, target and release declarations.

Each declaration field carries a merge policy in its dataclass metadata:

- override (default): the most specific layer that sets the field wins
- merge_map: maps merge outermost first, more specific keys win
- append_list: lists concatenate outermost first
- nested: the field is itself a declaration and is merged recursively

Resolution always starts from the declarations, never from an earlier
result, and never modifies its inputs.
"""

import logging
from dataclasses import fields, is_dataclass
from typing import Any, TypeVar

from .errors import ConfigurationError
from .models import (
    APPEND_LIST,
    MERGE_MAP,
    NESTED,
    ChartDeclaration,
    HelmDeclaration,
    InstallationOptions,
    LintOptions,
    ReleaseDeclaration,
    ReleaseTargetDeclaration,
    ResolvedChart,
    ResolvedGlobals,
    ResolvedInstallationOptions,
    ResolvedLintOptions,
    ResolvedRelease,
    ResolvedServerOptions,
    ResolvedUninstallOptions,
    ResolvedUpgradeOptions,
    ResolvedValueOptions,
    ServerOptions,
    UninstallOptions,
    UpgradeOptions,
    ValueOptions,
    freeze_map,
)
from .options import resolve_path

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SNAPSHOT_TYPES: dict[type, type] = {
    ValueOptions: ResolvedValueOptions,
    LintOptions: ResolvedLintOptions,
    InstallationOptions: ResolvedInstallationOptions,
    ServerOptions: ResolvedServerOptions,
    UpgradeOptions: ResolvedUpgradeOptions,
    UninstallOptions: ResolvedUninstallOptions,
}

_HOME_VARIABLES = {
    "cache_home": "HELM_CACHE_HOME",
    "config_home": "HELM_CONFIG_HOME",
    "data_home": "HELM_DATA_HOME",
}


def merge_layers(cls: type[T], *layers: T | None) -> T:
    """Merge declaration layers, outermost first, into a new instance of cls."""
    present = [layer for layer in layers if layer is not None]
    merged: dict[str, Any] = {}

    for f in fields(cls):
        policy = f.metadata.get("merge")
        values = [getattr(layer, f.name) for layer in present]

        if policy == MERGE_MAP:
            result: Any = {}
            for value in values:
                result.update(value)
        elif policy == APPEND_LIST:
            result = [item for value in values for item in value]
        elif policy == NESTED:
            result = merge_layers(f.default_factory, *values)
        else:
            result = None
            for value in reversed(values):
                if value is not None:
                    result = value
                    break

        merged[f.name] = result

    return cls(**merged)


def snapshot(declared: Any) -> Any:
    """Convert a merged declaration into its frozen resolved counterpart.

    Unset fields take the resolved type's default.
    """
    resolved_cls = _SNAPSHOT_TYPES[type(declared)]
    kwargs: dict[str, Any] = {}
    for f in fields(resolved_cls):
        value = getattr(declared, f.name)
        if is_dataclass(value):
            value = snapshot(value)
        elif isinstance(value, dict):
            value = freeze_map(value)
        elif isinstance(value, list):
            value = tuple(value)
        if value is not None:
            kwargs[f.name] = value
    return resolved_cls(**kwargs)


def resolve_globals(helm: HelmDeclaration) -> ResolvedGlobals:
    """Resolve settings that apply to every invocation."""
    env: dict[str, str] = {}
    for attr, variable in _HOME_VARIABLES.items():
        value = getattr(helm, attr)
        if value is not None:
            env[variable] = resolve_path(value, helm.base_dir)
    env.update({key: str(value) for key, value in helm.extra_env.items()})

    return ResolvedGlobals(
        executable=helm.executable or "helm",
        base_dir=helm.base_dir,
        debug=bool(helm.debug),
        env=freeze_map(env),
    )


def resolve_chart(helm: HelmDeclaration, chart: ChartDeclaration | str) -> ResolvedChart:
    """Resolve a chart's lint options against the global lint options."""
    if isinstance(chart, str):
        if chart not in helm.charts:
            raise ConfigurationError(f"Unknown chart: {chart}")
        chart = helm.charts[chart]

    lint = merge_layers(LintOptions, helm.lint, chart.lint)
    return ResolvedChart(
        name=chart.name,
        chart_dir=chart.chart_dir,
        lint=snapshot(lint),
    )


def resolve_release(
    helm: HelmDeclaration,
    release: ReleaseDeclaration | str,
    target: ReleaseTargetDeclaration | str | None = None,
) -> ResolvedRelease:
    """Resolve a release for a target: global, then target, then release."""
    if isinstance(release, str):
        if release not in helm.releases:
            raise ConfigurationError(f"Unknown release: {release}")
        release = helm.releases[release]
    if not isinstance(target, ReleaseTargetDeclaration):
        target = helm.get_target(target)

    def layered(attr: str, cls: type) -> Any:
        return snapshot(
            merge_layers(cls, getattr(helm, attr), getattr(target, attr), getattr(release, attr))
        )

    logger.debug(f"Resolving release {release.name} for target {target.name}")
    return ResolvedRelease(
        name=release.name,
        release_name=release.effective_release_name,
        chart=release.chart,
        target=target.name,
        tags=frozenset(release.tags),
        installation=layered("installation", InstallationOptions),
        server=layered("server", ServerOptions),
        values=layered("values", ValueOptions),
        upgrade=layered("upgrade", UpgradeOptions),
        uninstall=layered("uninstall", UninstallOptions),
    )


def releases_for_target(
    helm: HelmDeclaration,
    target: ReleaseTargetDeclaration | str | None = None,
) -> list[ReleaseDeclaration]:
    """Return the declared releases selected by the target's tag expression."""
    if not isinstance(target, ReleaseTargetDeclaration):
        target = helm.get_target(target)
    return [release for release in helm.releases.values() if target.should_include(release)]
