"""Loading of Helm declarations from a YAML file.

Example ``helm.yaml``::

    helm:
      namespace: apps
      lint:
        strict: true
    charts:
      main:
        chartDir: charts/main
    targets:
      prod:
        selectTags: prod
        kubeContext: prod-cluster
    releases:
      db:
        chart: bitnami/postgresql
        tags: [prod, db]
        version: "12.1.0"
"""

import logging
import re
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError
from .models import HelmDeclaration, LintOptions, ValueOptions
from .options import flatten_values

logger = logging.getLogger(__name__)

OPTION_GROUPS = ("installation", "server", "upgrade", "uninstall")
VALUE_KEYS = ("values", "file_values", "value_files")
TOP_LEVEL_KEYS = {"helm", "charts", "targets", "releases"}


def camel_to_snake(key: str) -> str:
    """Convert ``caFile`` style keys to ``ca_file``; snake_case passes through."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", str(key)).lower()


def _expect_mapping(value: Any, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{where} must be a mapping")
    return value


def _check_type(options: Any, key: str, value: Any, where: str) -> Any:
    """Validate a scalar option value against the declared field type."""
    if value is None:
        return value
    field_type = {f.name: f.type for f in fields(options)}[key]
    if field_type == (bool | None) and not isinstance(value, bool):
        raise ConfigurationError(f"{where}: '{key}' must be true or false")
    if field_type == (str | None) and not isinstance(value, str):
        raise ConfigurationError(f"{where}: '{key}' must be a string (quote it in YAML)")
    return value


def _set_value_option(target: ValueOptions, key: str, value: Any, where: str) -> None:
    if key == "value_files":
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            raise ConfigurationError(f"{where}: 'valueFiles' must be a list of paths")
        target.value_files.extend(value)
        return

    mapping = flatten_values(_expect_mapping(value, f"{where}: '{key}'"))
    if key == "file_values":
        target.file_values.update(mapping)
    else:
        target.values.update(mapping)


def _apply_lint(lint: LintOptions, block: Any, where: str) -> None:
    where = f"{where}.lint"
    for raw_key, value in _expect_mapping(block, where).items():
        key = camel_to_snake(raw_key)
        if key in VALUE_KEYS:
            _set_value_option(lint.values, key, value, where)
        elif key in ("enabled", "strict"):
            setattr(lint, key, _check_type(lint, key, value, where))
        else:
            raise ConfigurationError(f"Unknown option '{raw_key}' in {where}")


def _apply_options(scope: Any, block: dict, where: str) -> None:
    """Assign installation, server, upgrade, uninstall and value options."""
    for raw_key, value in block.items():
        key = camel_to_snake(raw_key)
        if key in VALUE_KEYS:
            _set_value_option(scope.values, key, value, where)
            continue
        for group in OPTION_GROUPS:
            options = getattr(scope, group)
            if key in {f.name for f in fields(options)}:
                setattr(options, key, _check_type(options, key, value, where))
                break
        else:
            raise ConfigurationError(f"Unknown option '{raw_key}' in {where}")


def _split(block: dict, *keys: str) -> tuple[dict, dict]:
    """Separate scope-specific keys from option keys."""
    own, rest = {}, {}
    for raw_key, value in block.items():
        key = camel_to_snake(raw_key)
        if key in keys:
            own[key] = value
        else:
            rest[raw_key] = value
    return own, rest


def _parse_tags(value: Any, where: str) -> set[str]:
    if value is None:
        return set()
    if isinstance(value, str):
        return {tag for tag in re.split(r"[\s,]+", value) if tag}
    if isinstance(value, list) and all(isinstance(tag, str) for tag in value):
        return set(value)
    raise ConfigurationError(f"{where}: 'tags' must be a list of strings")


def _select_text(value: Any, where: str) -> str:
    if isinstance(value, list) and all(isinstance(tag, str) for tag in value):
        return ",".join(value)
    if not isinstance(value, str):
        raise ConfigurationError(f"{where}: 'selectTags' must be a string or a list of tags")
    return value


def declaration_from_dict(data: Any, base_dir: Path | None = None) -> HelmDeclaration:
    """Build a HelmDeclaration from parsed YAML data."""
    data = _expect_mapping(data, "Helm declaration")
    unknown = set(data) - TOP_LEVEL_KEYS
    if unknown:
        raise ConfigurationError(f"Unknown top-level section(s): {', '.join(sorted(unknown))}")

    own, options = _split(
        _expect_mapping(data.get("helm"), "helm"),
        "executable", "base_dir", "debug", "cache_home", "config_home",
        "data_home", "env", "select_tags", "active_target", "lint",
    )

    if own.get("base_dir") is not None:
        configured = Path(own["base_dir"])
        if base_dir is not None and not configured.is_absolute():
            configured = base_dir / configured
        base_dir = configured

    helm = HelmDeclaration(base_dir)
    if own.get("executable"):
        helm.executable = str(own["executable"])
    if "debug" in own:
        if not isinstance(own["debug"], bool):
            raise ConfigurationError("helm: 'debug' must be true or false")
        helm.debug = own["debug"]
    for home in ("cache_home", "config_home", "data_home"):
        if own.get(home) is not None:
            setattr(helm, home, own[home])
    helm.extra_env.update(
        {str(k): str(v) for k, v in _expect_mapping(own.get("env"), "helm.env").items()}
    )
    if "select_tags" in own:
        helm.select_tags = _select_text(own["select_tags"], "helm")
    if own.get("active_target"):
        helm.active_target = str(own["active_target"])
    _apply_lint(helm.lint, own.get("lint"), "helm")
    _apply_options(helm, options, "helm")

    for name, block in _expect_mapping(data.get("charts"), "charts").items():
        where = f"charts.{name}"
        chart_own, rest = _split(_expect_mapping(block, where), "chart_dir", "lint")
        if rest:
            raise ConfigurationError(f"Unknown option(s) in {where}: {', '.join(rest)}")
        chart = helm.chart(str(name))
        chart.chart_dir = chart_own.get("chart_dir")
        _apply_lint(chart.lint, chart_own.get("lint"), where)

    for name, block in _expect_mapping(data.get("targets"), "targets").items():
        where = f"targets.{name}"
        target_own, rest = _split(_expect_mapping(block, where), "select_tags")
        target = helm.target(str(name))
        if "select_tags" in target_own:
            target.select_tags = _select_text(target_own["select_tags"], where)
        _apply_options(target, rest, where)

    for name, block in _expect_mapping(data.get("releases"), "releases").items():
        where = f"releases.{name}"
        release_own, rest = _split(_expect_mapping(block, where), "chart", "release_name", "tags")
        release = helm.release(str(name))
        release.from_chart(release_own.get("chart"))
        release.release_name = release_own.get("release_name")
        release.tags = _parse_tags(release_own.get("tags"), where)
        _apply_options(release, rest, where)

    logger.info(
        f"Loaded {len(helm.charts)} chart(s), {len(helm.targets)} target(s), "
        f"{len(helm.releases)} release(s)"
    )
    return helm


def load_declaration(path: str | Path) -> HelmDeclaration:
    """Load a Helm declaration file; relative paths resolve against its directory."""
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text())
    except FileNotFoundError as e:
        raise ConfigurationError(f"Declaration file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    return declaration_from_dict(data, base_dir=path.parent.resolve())
