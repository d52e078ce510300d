"""
Layer stack: ordered config layers queried with deterministic precedence.

Layers are given highest priority first (index 0). Reads scan from index 0
and stop at the first layer holding the key, except where(), which collects
every matching layer for diagnostics. Writes target exactly one layer.

Subclasses customize behavior through hooks rather than by overriding the
public operations:

- resolve_keys(): turn a caller key into (path, section hint)
- layer_options(): per-layer DataOptions for a key (e.g. forced section)
- readable_layers() / writable_layers(): restrict layers per key
- on_layers_changed(): react to add_layer/remove_layer

Thread safety: all operations on one stack are serialized with a
re-entrant lock, since the underlying dicts are not safe for concurrent
mutation.
"""

from __future__ import annotations

import contextlib as _contextlib
import dataclasses as _dataclasses
import itertools as _itertools
import logging as _logging
import pathlib as _pathlib
import threading as _threading
import typing as _typing

import stratum.config.store as store
import stratum.constants as _constants
import stratum.errors as errors
import stratum.utils.recursive_map as rmap

_logger = _logging.getLogger(__name__)

_overlay_ids = _itertools.count(1)

LayerNames = _typing.Union[str, _typing.Iterable[str], None]
LayerIndexes = _typing.Union[int, _typing.Iterable[int], None]

_NO_OPTIONS = store.NO_OPTIONS


@_dataclasses.dataclass
class ConfigLayer:
    """A data store plus its layer capabilities."""

    name: str
    store: store.DataStore = _dataclasses.field(default_factory=store.DataStore)
    can_write: bool = True
    can_load: bool = False
    can_save: bool = False
    filename_mutable: bool = False
    options: store.DataOptions = _NO_OPTIONS
    """Standing options applied to every call on this layer."""

    predefined: bool = False
    """Set for layers given to the stack constructor; those cannot be removed."""


def define_layer(
    name: str = _constants.LAYER_RUNTIME,
    data_store: store.DataStore | None = None,
    *,
    can_write: bool = True,
    can_load: bool = False,
    can_save: bool = False,
    filename_mutable: bool = False,
    options: store.DataOptions | None = None,
) -> ConfigLayer:
    """
    Build a ConfigLayer with the usual defaults.

    Without arguments this returns a writable, memory-only "runtime" layer.
    """
    return ConfigLayer(
        name=name,
        store=data_store if data_store is not None else store.DataStore(),
        can_write=can_write,
        can_load=can_load,
        can_save=can_save,
        filename_mutable=filename_mutable,
        options=options or store.NO_OPTIONS,
    )


class LayerStack:
    """
    An ordered list of config layers with unified get/set/exists/where/delete.

    Args:
        layers: Layers in priority order, highest first. Defaults to a single
            runtime layer. Names must be unique.
    """

    def __init__(self, layers: _typing.Iterable[ConfigLayer] | None = None) -> None:
        self._lock = _threading.RLock()
        self._layers: list[ConfigLayer] = []
        for layer in layers if layers is not None else [define_layer()]:
            if self.layer_index(layer.name) is not None:
                raise errors.LayerError(f"Duplicate layer name: {layer.name!r}")
            layer.predefined = True
            self._layers.append(layer)

    # =========================================================================
    # Hooks
    # =========================================================================

    def resolve_keys(self, keys: rmap.KeysLike) -> tuple[tuple[str, ...], str | None]:
        """Return the normalized key path and the section it belongs to, if known."""
        return rmap.normalize(keys), None

    def layer_options(
        self,
        layer: ConfigLayer,  # noqa: ARG002 - used by subclasses
        path: tuple[str, ...],  # noqa: ARG002 - used by subclasses
        section: str | None,
    ) -> store.DataOptions | None:
        """Options applied to one layer for one key, on top of the layer's own."""
        if section is None:
            return None
        return store.DataOptions(section=section)

    def readable_layers(
        self,
        path: tuple[str, ...],  # noqa: ARG002 - used by subclasses
        section: str | None,  # noqa: ARG002 - used by subclasses
    ) -> _typing.Container[str] | None:
        """Names of layers a key may be read from. None means all layers."""
        return None

    def writable_layers(
        self,
        path: tuple[str, ...],  # noqa: ARG002 - used by subclasses
        section: str | None,  # noqa: ARG002 - used by subclasses
    ) -> _typing.Container[str] | None:
        """Names of layers a key may be written to. None means all writable layers."""
        return None

    def on_layers_changed(self) -> None:
        """Called after a layer is added or removed."""

    # =========================================================================
    # Layer selection
    # =========================================================================

    @property
    def layers(self) -> list[ConfigLayer]:
        """Snapshot of the layers in priority order."""
        with self._lock:
            return list(self._layers)

    def layer_names(self) -> list[str]:
        with self._lock:
            return [layer.name for layer in self._layers]

    def layer_index(self, name: str) -> int | None:
        for index, layer in enumerate(self._layers):
            if layer.name == name:
                return index
        return None

    def layer(self, name: str) -> ConfigLayer:
        """Return a layer by name or raise LayerError."""
        index = self.layer_index(name)
        if index is None:
            available = ", ".join(self.layer_names()) or "(none)"
            raise errors.LayerError(f"Unknown layer: {name!r}. Available: {available}")
        return self._layers[index]

    def _select(self, names: LayerNames, indexes: LayerIndexes) -> list[ConfigLayer]:
        if names is None and indexes is None:
            return list(self._layers)
        wanted: set[int] = set()
        if names is not None:
            for name in [names] if isinstance(names, str) else names:
                index = self.layer_index(name)
                if index is not None:
                    wanted.add(index)
        if indexes is not None:
            for index in [indexes] if isinstance(indexes, int) else indexes:
                if 0 <= index < len(self._layers):
                    wanted.add(index)
        return [self._layers[index] for index in sorted(wanted)]

    def _target(self, name: str | None, index: int | None) -> ConfigLayer:
        if name is not None:
            return self.layer(name)
        if index is None:
            index = 0
        if not 0 <= index < len(self._layers):
            raise errors.LayerError(f"Layer index out of range: {index}")
        return self._layers[index]

    def _options_for(
        self,
        layer: ConfigLayer,
        path: tuple[str, ...],
        section: str | None,
        options: store.DataOptions | None,
    ) -> store.DataOptions:
        return layer.options.merged(self.layer_options(layer, path, section)).merged(options)

    def _candidates(
        self,
        path: tuple[str, ...],
        section: str | None,
        names: LayerNames,
        indexes: LayerIndexes,
    ) -> list[ConfigLayer]:
        selected = self._select(names, indexes)
        readable = self.readable_layers(path, section)
        if readable is None:
            return selected
        return [layer for layer in selected if layer.name in readable]

    # =========================================================================
    # Key operations
    # =========================================================================

    def get(
        self,
        keys: rmap.KeysLike,
        default: _typing.Any = None,
        *,
        names: LayerNames = None,
        indexes: LayerIndexes = None,
        options: store.DataOptions | None = None,
    ) -> _typing.Any:
        """
        Get a value from the highest-priority layer holding it.

        Args:
            keys: Key path.
            default: Returned when no selected layer holds the key.
            names: Restrict the scan to these layer names.
            indexes: Restrict the scan to these layer indexes.
            options: Extra options applied to every scanned layer.

        Returns:
            The first value found, or default.
        """
        with self._lock:
            path, section = self.resolve_keys(keys)
            for layer in self._candidates(path, section, names, indexes):
                layer_opts = self._options_for(layer, path, section, options)
                if layer.store.exists(path, layer_opts):
                    return layer.store.get(path, None, layer_opts)
            return default

    def exists(
        self,
        keys: rmap.KeysLike,
        *,
        names: LayerNames = None,
        indexes: LayerIndexes = None,
        options: store.DataOptions | None = None,
    ) -> bool:
        """True if any selected layer holds the key."""
        with self._lock:
            path, section = self.resolve_keys(keys)
            return any(
                layer.store.exists(path, self._options_for(layer, path, section, options))
                for layer in self._candidates(path, section, names, indexes)
            )

    def where(
        self,
        keys: rmap.KeysLike,
        *,
        names: LayerNames = None,
        indexes: LayerIndexes = None,
        options: store.DataOptions | None = None,
    ) -> list[str]:
        """
        List every layer holding the key, highest priority first.

        Unlike get() and exists(), the scan does not stop at the first match.
        """
        with self._lock:
            path, section = self.resolve_keys(keys)
            return [
                layer.name
                for layer in self._candidates(path, section, names, indexes)
                if layer.store.exists(path, self._options_for(layer, path, section, options))
            ]

    def merge(
        self,
        keys: rmap.KeysLike,
        *,
        names: LayerNames = None,
        indexes: LayerIndexes = None,
        options: store.DataOptions | None = None,
    ) -> _typing.Any:
        """
        Deep merge the key's value across every layer holding it.

        Lower layers are merged first so higher layers win. If the highest
        value is not a dict, it is returned as is.
        """
        with self._lock:
            path, section = self.resolve_keys(keys)
            found = []
            for layer in self._candidates(path, section, names, indexes):
                layer_opts = self._options_for(layer, path, section, options)
                if layer.store.exists(path, layer_opts):
                    found.append(layer.store.get(path, None, layer_opts))
            if not found:
                return None
            if not isinstance(found[0], dict):
                return found[0]
            result: dict[str, _typing.Any] = {}
            for value in reversed(found):
                if isinstance(value, dict):
                    result = rmap.deep_merge(result, value)
            return result

    def _can_write(self, layer: ConfigLayer, path: tuple[str, ...], section: str | None) -> bool:
        if not layer.can_write:
            _logger.warning("Layer %r is read-only; rejecting write to %s", layer.name, path)
            return False
        allowed = self.writable_layers(path, section)
        if allowed is not None and layer.name not in allowed:
            _logger.warning("Key %s cannot be written to layer %r", path, layer.name)
            return False
        return True

    def set(
        self,
        keys: rmap.KeysLike,
        value: _typing.Any,
        *,
        name: str | None = None,
        index: int | None = None,
        options: store.DataOptions | None = None,
    ) -> _typing.Any:
        """
        Set a value in one layer (layer 0 unless name or index is given).

        Returns:
            The value set, or None if the layer rejected the write.
        """
        with self._lock:
            path, section = self.resolve_keys(keys)
            layer = self._target(name, index)
            if not self._can_write(layer, path, section):
                return None
            return layer.store.set(path, value, self._options_for(layer, path, section, options))

    def delete(
        self,
        keys: rmap.KeysLike,
        *,
        name: str | None = None,
        index: int | None = None,
        options: store.DataOptions | None = None,
    ) -> _typing.Any:
        """
        Remove a key from one layer only. Lower layers are left untouched.

        Returns:
            The removed value, or None if absent or rejected.
        """
        with self._lock:
            path, section = self.resolve_keys(keys)
            layer = self._target(name, index)
            if not self._can_write(layer, path, section):
                return None
            return layer.store.delete(path, self._options_for(layer, path, section, options))

    def __getitem__(self, keys: rmap.KeysLike) -> _typing.Any:
        return self.get(keys)

    def __setitem__(self, keys: rmap.KeysLike, value: _typing.Any) -> None:
        self.set(keys, value)

    def __contains__(self, keys: object) -> bool:
        return self.exists(keys)  # type: ignore[arg-type]

    # =========================================================================
    # File operations
    # =========================================================================

    def load(
        self,
        *,
        name: str | None = None,
        index: int | None = None,
        filename: _pathlib.Path | str | None = None,
    ) -> bool:
        """
        Load one layer from its file.

        Returns:
            False if the layer cannot be loaded, True once loaded.

        Raises:
            ConfigFileError: If the file cannot be read or parsed.
        """
        with self._lock:
            layer = self._target(name, index)
            if not layer.can_load:
                return False
            if filename is not None and not self._filename_settable(layer):
                return False
            return layer.store.load(filename, layer.options)

    def save(
        self,
        *,
        name: str | None = None,
        index: int | None = None,
        filename: _pathlib.Path | str | None = None,
    ) -> bool:
        """
        Save one layer to its file.

        Returns:
            False if the layer cannot be saved or is file-readonly, True once written.

        Raises:
            ConfigFileError: If the file cannot be written.
        """
        with self._lock:
            layer = self._target(name, index)
            if not layer.can_save or layer.options.file_readonly:
                return False
            if filename is not None and not self._filename_settable(layer):
                return False
            return layer.store.save(filename, layer.options)

    def _filename_settable(self, layer: ConfigLayer) -> bool:
        return layer.filename_mutable or layer.store.filename is None

    def filename(
        self,
        *,
        name: str | None = None,
        index: int | None = None,
        value: _pathlib.Path | str | None = None,
    ) -> _pathlib.Path | None:
        """
        Get or set a layer's filename.

        Only layers that can be loaded or saved have a filename. Setting one
        is refused (returns None) once a filename exists, unless the layer's
        filename is mutable.
        """
        with self._lock:
            layer = self._target(name, index)
            if not (layer.can_load or layer.can_save):
                return None
            if value is None:
                return layer.store.filename
            if not self._filename_settable(layer):
                return None
            layer.store.filename = value
            return layer.store.filename

    # =========================================================================
    # Layer management
    # =========================================================================

    def add_layer(self, layer: ConfigLayer, index: int = 0) -> ConfigLayer:
        """
        Insert a layer (at the top by default).

        Raises:
            LayerError: If a layer with the same name exists.
        """
        with self._lock:
            if self.layer_index(layer.name) is not None:
                raise errors.LayerError(f"Duplicate layer name: {layer.name!r}")
            layer.predefined = False
            self._layers.insert(index, layer)
            _logger.debug("Added layer %r at index %d", layer.name, index)
            self.on_layers_changed()
            return layer

    def remove_layer(self, name: str) -> ConfigLayer:
        """
        Remove a layer added with add_layer().

        Raises:
            LayerError: If the layer does not exist or was given to the constructor.
        """
        with self._lock:
            layer = self.layer(name)
            if layer.predefined:
                raise errors.LayerError(f"Layer {name!r} is predefined and cannot be removed")
            self._layers.remove(layer)
            _logger.debug("Removed layer %r", name)
            self.on_layers_changed()
            return layer

    @_contextlib.contextmanager
    def overlay(
        self,
        values: _typing.Mapping[str, _typing.Any] | None,
        name: str | None = None,
    ) -> _typing.Iterator[ConfigLayer | None]:
        """
        Push a temporary read-only layer on top of the stack.

        The layer is removed on exit even if the body raises. With no values,
        nothing is pushed and None is yielded.
        """
        if not values:
            yield None
            return
        layer = define_layer(
            name or f"{_constants.OVERLAY_PREFIX}{next(_overlay_ids)}",
            can_write=False,
        )
        # Shallow: call values may hold live objects that must not be copied
        layer.store.data.update(values)
        self.add_layer(layer)
        try:
            yield layer
        finally:
            self.remove_layer(layer.name)

    def describe(self) -> list[dict[str, _typing.Any]]:
        """One row per layer, for diagnostics and the CLI."""
        with self._lock:
            return [
                {
                    "name": layer.name,
                    "writable": layer.can_write,
                    "load": layer.can_load,
                    "save": layer.can_save,
                    "filename": str(layer.store.filename) if layer.store.filename else None,
                    "keys": len(layer.store),
                }
                for layer in self._layers
            ]

    def __len__(self) -> int:
        return len(self._layers)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.layer_names()!r})"
