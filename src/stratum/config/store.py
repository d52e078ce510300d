"""
Data stores: the hierarchical key/value containers behind config layers.

A DataStore holds one nested dict. A SectionStore partitions it into named
first-level sections. Behavioral options (forced section, readonly flags) are
passed per call as DataOptions and never kept on the store, so a store can be
shared by stacks that read it with different options.
"""

from __future__ import annotations

import copy as _copy
import dataclasses as _dataclasses
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import stratum.constants as _constants
import stratum.errors as errors
import stratum.utils.recursive_map as rmap

_logger = _logging.getLogger(__name__)


@_dataclasses.dataclass(frozen=True)
class DataOptions:
    """Per-call options applied to a data store operation."""

    section: str | None = None
    """Section forced for the call (sectioned stores only)."""

    data_readonly: bool = False
    """Reject set/delete for the call."""

    file_readonly: bool = False
    """Reject save for the call."""

    def merged(self, other: DataOptions | None) -> DataOptions:
        """
        Overlay other on top of these options.

        A section set in other replaces ours. Readonly flags accumulate:
        an overlay can add a restriction but never lift one.
        """
        if other is None:
            return self
        return DataOptions(
            section=other.section if other.section is not None else self.section,
            data_readonly=self.data_readonly or other.data_readonly,
            file_readonly=self.file_readonly or other.file_readonly,
        )


NO_OPTIONS = DataOptions()


class DataStore:
    """
    A flat hierarchical key/value store, optionally backed by a YAML file.

    Args:
        data: Initial contents. Copied.
        filename: File used by load/save when none is given.
        latest_version: Format version this code writes. A loaded file's
            "file_version" is compared against it by is_latest_version().
    """

    sectioned = False

    def __init__(
        self,
        data: _typing.Mapping[str, _typing.Any] | None = None,
        filename: _pathlib.Path | str | None = None,
        *,
        latest_version: str | None = None,
    ) -> None:
        self._data: dict[str, _typing.Any] = _copy.deepcopy(dict(data)) if data else {}
        self._filename: _pathlib.Path | None = None
        self.filename = filename
        self.latest_version = latest_version
        self.version = latest_version

    # =========================================================================
    # Key access
    # =========================================================================

    def _path(self, keys: rmap.KeysLike, options: DataOptions | None) -> tuple[str, ...]:
        return rmap.normalize(keys)

    def get(
        self,
        keys: rmap.KeysLike,
        default: _typing.Any = None,
        options: DataOptions | None = None,
    ) -> _typing.Any:
        return rmap.get_path(self._data, self._path(keys, options), default)

    def exists(self, keys: rmap.KeysLike, options: DataOptions | None = None) -> bool:
        return rmap.has_path(self._data, self._path(keys, options))

    def set(
        self,
        keys: rmap.KeysLike,
        value: _typing.Any,
        options: DataOptions | None = None,
    ) -> _typing.Any:
        """
        Set a value.

        Returns:
            The value set. With data_readonly in force, the store is left
            unchanged and the currently stored value is returned.
        """
        path = self._path(keys, options)
        if options is not None and options.data_readonly:
            return rmap.get_path(self._data, path)
        return rmap.set_path(self._data, path, value)

    def delete(self, keys: rmap.KeysLike, options: DataOptions | None = None) -> _typing.Any:
        """Remove a value. Returns the removed value, or None."""
        path = self._path(keys, options)
        if options is not None and options.data_readonly:
            return None
        return rmap.delete_path(self._data, path)

    def erase(self) -> None:
        """Drop all data and reset the loaded version."""
        self._data = {}
        self.version = self.latest_version

    @property
    def data(self) -> dict[str, _typing.Any]:
        """The live underlying dict."""
        return self._data

    def to_dict(self) -> dict[str, _typing.Any]:
        return _copy.deepcopy(self._data)

    def __len__(self) -> int:
        return rmap.count_leaves(self._data)

    # =========================================================================
    # File persistence
    # =========================================================================

    @property
    def filename(self) -> _pathlib.Path | None:
        return self._filename

    @filename.setter
    def filename(self, value: _pathlib.Path | str | None) -> None:
        self._filename = _pathlib.Path(value).expanduser() if value is not None else None

    def _resolve_file(self, filename: _pathlib.Path | str | None) -> _pathlib.Path:
        if filename is not None:
            self.filename = filename
        if self._filename is None:
            raise errors.ConfigError("Config filename not set")
        return self._filename

    def load(
        self,
        filename: _pathlib.Path | str | None = None,
        options: DataOptions | None = None,  # noqa: ARG002 - part of the store interface
    ) -> bool:
        """
        Replace the store contents with a YAML file.

        Raises:
            ConfigError: If no filename is known.
            ConfigFileError: If the file cannot be read or parsed.
        """
        path = self._resolve_file(filename)
        data = rmap.load_yaml(path)
        if _constants.FILE_VERSION_KEY in data:
            self.version = str(data.pop(_constants.FILE_VERSION_KEY))
        self._data = data
        _logger.debug("Loaded %s (version %s)", path, self.version)
        return True

    def save(
        self,
        filename: _pathlib.Path | str | None = None,
        options: DataOptions | None = None,
    ) -> bool:
        """
        Write the store contents to a YAML file.

        Returns:
            False if file_readonly is in force, True once written.

        Raises:
            ConfigError: If no filename is known.
            ConfigFileError: If the file cannot be written.
        """
        if options is not None and options.file_readonly:
            return False
        path = self._resolve_file(filename)
        data = dict(self._data)
        if self.version is not None:
            data[_constants.FILE_VERSION_KEY] = self.version
        rmap.dump_yaml(path, data)
        _logger.debug("Saved %s", path)
        return True

    def is_latest_version(self) -> bool:
        """True when the loaded file version matches the version this code writes."""
        return self.version == self.latest_version

    def __repr__(self) -> str:
        return f"{type(self).__name__}(filename={self._filename!s}, keys={len(self)})"


class SectionStore(DataStore):
    """
    A data store whose keys always live under a section.

    The section comes from the call options; keys without one go to the
    "default" section.
    """

    sectioned = True

    def _path(self, keys: rmap.KeysLike, options: DataOptions | None) -> tuple[str, ...]:
        section = options.section if options is not None and options.section else None
        return (section or _constants.DEFAULT_SECTION, *rmap.normalize(keys))

    def sections(self) -> list[str]:
        return list(self._data)
