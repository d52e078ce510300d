"""
Application defaults file.

An application ships one defaults.yaml holding both default values and the
metadata schema:

    default:            # section -> key -> default value
      course: Unset
    sections:           # metadata, moved to the metadata model
      student:
        course: {desc: "Course followed"}
    setup:              # setup hints, moved to the metadata model
      ...

load_app_defaults() splits it into the data for the read-only "default"
config layer and the data for the metadata "app" layer.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import pathlib as _pathlib
import typing as _typing

import stratum.constants as _constants
import stratum.utils.recursive_map as rmap

_META_KEYS = (_constants.META_SECTIONS, _constants.META_SETUP)


@_dataclasses.dataclass
class AppDefaults:
    """Defaults split into config values and metadata."""

    values: dict[str, _typing.Any] = _dataclasses.field(default_factory=dict)
    """Sectioned default values for the "default" layer."""

    metadata: dict[str, _typing.Any] = _dataclasses.field(default_factory=dict)
    """"sections" and "setup" trees for the metadata "app" layer."""

    filename: _pathlib.Path | None = None

    @classmethod
    def from_dict(
        cls,
        data: _typing.Mapping[str, _typing.Any],
        filename: _pathlib.Path | None = None,
    ) -> AppDefaults:
        values = dict(data)
        metadata = {key: values.pop(key) for key in _META_KEYS if key in values}
        return cls(values=values, metadata=metadata, filename=filename)


def load_app_defaults(path: _pathlib.Path | str) -> AppDefaults:
    """
    Load and split an application defaults file.

    Raises:
        ConfigFileError: If the file cannot be read or parsed.
    """
    path = _pathlib.Path(path).expanduser()
    return AppDefaults.from_dict(rmap.load_yaml(path), filename=path)
