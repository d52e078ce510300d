"""
YAML persistence for recursive maps.

A layer file holds one YAML mapping document. Empty files load as {}.
"""

from __future__ import annotations

import pathlib as _pathlib
import typing as _typing

import yaml as _yaml

import stratum.errors as errors


def load_yaml(path: _pathlib.Path | str) -> dict[str, _typing.Any]:
    """
    Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed contents, or {} if the file is empty.

    Raises:
        ConfigFileError: If the file cannot be read, is malformed YAML,
            or holds non-dict content at the top level.
    """
    path = _pathlib.Path(path).expanduser()
    try:
        content = path.read_text(encoding="utf-8")
    except PermissionError as e:
        raise errors.ConfigFileError(path, f"permission denied: {e}") from e
    except OSError as e:
        raise errors.ConfigFileError(path, f"cannot read file: {e}") from e

    try:
        parsed = _yaml.safe_load(content)
    except _yaml.YAMLError as e:
        raise errors.ConfigFileError(path, f"invalid YAML: {e}") from e

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        type_name = type(parsed).__name__
        raise errors.ConfigFileError(path, f"config must be a YAML mapping (dict), got {type_name}")
    return parsed


def dump_yaml(path: _pathlib.Path | str, data: _typing.Mapping[str, _typing.Any]) -> None:
    """
    Write data to a YAML file, creating parent directories as needed.

    Raises:
        ConfigFileError: If the file cannot be written or data is not serializable.
    """
    path = _pathlib.Path(path).expanduser()
    try:
        text = _yaml.safe_dump(dict(data), default_flow_style=False, sort_keys=False)
    except _yaml.YAMLError as e:
        raise errors.ConfigFileError(path, f"cannot serialize data: {e}") from e
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise errors.ConfigFileError(path, f"cannot write file: {e}") from e
