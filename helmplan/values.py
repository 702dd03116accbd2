"""Rendering of value options into helm arguments."""

from pathlib import Path

from .models import ResolvedValueOptions
from .options import FileValueOption, SetOption, ValueFilesOption


def value_options(values: ResolvedValueOptions, base_dir: Path | None = None) -> list:
    """Return the value options in the order helm should receive them.

    Helm gives later sources precedence, so value files come first, then
    file values, then direct values.
    """
    return [
        ValueFilesOption(tuple(values.value_files), base_dir),
        FileValueOption(values.file_values, base_dir),
        SetOption(values.values),
    ]


def render_value_options(values: ResolvedValueOptions, base_dir: Path | None = None) -> list[str]:
    """Render value files, file values and direct values as CLI arguments."""
    args: list[str] = []
    for option in value_options(values, base_dir):
        args.extend(option.render())
    return args
