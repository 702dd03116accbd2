"""Typed representations of individual Helm CLI parameters.

Every option knows whether it is present and how to render itself into a
list of argument tokens. An absent option renders to an empty list.
"""

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from .errors import ConfigurationError

_UNSET = object()


class Deferred:
    """A value that is computed on first use and then remembered.

    Useful for values that are only known late, e.g. the output file of a
    packaging step that has not run yet when the configuration is declared.
    """

    def __init__(self, factory: Callable[[], Any]):
        self._factory = factory
        self._value = _UNSET
        self._lock = threading.Lock()

    def get(self) -> Any:
        """Evaluate the factory once and return the memoized value."""
        if self._value is _UNSET:
            with self._lock:
                if self._value is _UNSET:
                    self._value = self._factory()
        return self._value

    def __repr__(self) -> str:
        if self._value is _UNSET:
            return "Deferred(<pending>)"
        return f"Deferred({self._value!r})"


def unwrap(value: Any) -> Any:
    """Return the concrete value behind a possibly deferred value."""
    if isinstance(value, Deferred):
        return value.get()
    return value


def resolve_path(value: Any, base_dir: Path | None = None) -> str:
    """Resolve a path-like value against base_dir if it is relative."""
    path = Path(unwrap(value))
    if base_dir is not None and not path.is_absolute():
        path = Path(base_dir) / path
    return str(path)


def escape_set_value(text: str) -> str:
    """Escape characters Helm treats as separators in --set arguments."""
    return text.replace("\\", "\\\\").replace(",", "\\,")


def flatten_values(values: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys, e.g. {"image": {"tag": 1}} -> {"image.tag": 1}."""
    flat: dict[str, Any] = {}
    for key, value in values.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            if not value:
                raise ConfigurationError(f"Value '{name}' is an empty mapping")
            flat.update(flatten_values(value, f"{name}."))
        else:
            flat[name] = value
    return flat


def format_set_value(value: Any) -> str:
    """Format a scalar or list value using Helm's --set syntax."""
    value = unwrap(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (list, tuple)):
        return "{" + ",".join(format_set_value(item) for item in value) + "}"
    if isinstance(value, Mapping):
        raise ConfigurationError(
            "Mappings inside lists cannot be passed with --set; use valueFiles instead"
        )
    return escape_set_value(str(value))


@dataclass(frozen=True)
class Flag:
    """A boolean switch, rendered bare when true."""

    name: str
    value: Any = None

    def is_present(self) -> bool:
        return bool(unwrap(self.value))

    def render(self) -> list[str]:
        return [self.name] if self.is_present() else []


@dataclass(frozen=True)
class ValueOption:
    """A scalar option rendered as ``--name value``."""

    name: str
    value: Any = None

    def is_present(self) -> bool:
        return unwrap(self.value) is not None

    def render(self) -> list[str]:
        value = unwrap(self.value)
        if value is None:
            return []
        return [self.name, str(value)]


@dataclass(frozen=True)
class FileOption:
    """A path-valued option; relative paths resolve against base_dir when rendered."""

    name: str
    path: Any = None
    base_dir: Path | None = None

    def is_present(self) -> bool:
        return unwrap(self.path) is not None

    def render(self) -> list[str]:
        if not self.is_present():
            return []
        return [self.name, resolve_path(self.path, self.base_dir)]


@dataclass(frozen=True)
class SetOption:
    """Direct values, one ``--set`` or ``--set-string`` token per entry.

    String values use ``--set-string`` so that text such as ``"1.0"`` or
    ``"true"`` reaches the chart as a string and is not coerced by Helm.
    """

    values: Mapping[str, Any] = field(default_factory=dict)

    def is_present(self) -> bool:
        return bool(self.values)

    def render(self) -> list[str]:
        args: list[str] = []
        for key, raw in flatten_values(self.values).items():
            value = unwrap(raw)
            if isinstance(value, str):
                args.extend(["--set-string", f"{key}={escape_set_value(value)}"])
            else:
                args.extend(["--set", f"{key}={format_set_value(value)}"])
        return args


@dataclass(frozen=True)
class FileValueOption:
    """Values read from file contents, rendered as ``--set-file key=path``."""

    values: Mapping[str, Any] = field(default_factory=dict)
    base_dir: Path | None = None

    def is_present(self) -> bool:
        return bool(self.values)

    def render(self) -> list[str]:
        args: list[str] = []
        for key, path in flatten_values(self.values).items():
            path = escape_set_value(resolve_path(path, self.base_dir))
            args.extend(["--set-file", f"{key}={path}"])
        return args


@dataclass(frozen=True)
class ValueFilesOption:
    """YAML value files, rendered as repeated ``--values path`` in order."""

    paths: tuple[Any, ...] = ()
    base_dir: Path | None = None

    def is_present(self) -> bool:
        return bool(self.paths)

    def render(self) -> list[str]:
        args: list[str] = []
        for path in self.paths:
            args.extend(["--values", resolve_path(path, self.base_dir)])
        return args
