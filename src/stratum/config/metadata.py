"""
Metadata model: the schema of every configuration key.

A three-layer stack, highest priority first:

- controller: overrides declared by the backend controller (writable, loadable)
- map: derived key -> sections relation, rebuilt by build_section_mapping()
- app: the application schema, loaded once and never written

Application data has the shape:

    sections:
      <section>:
        <key>: {readonly: ..., account_exclusive: ..., default_value: ..., ...}
    setup:
      ...

A key may be declared in several sections. "section#key" picks one
explicitly; otherwise the first section found (app before controller, in
declaration order) wins.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import stratum.config.layers as layers
import stratum.config.store as store
import stratum.config.types as types
import stratum.constants as _constants
import stratum.utils.recursive_map as rmap

_logger = _logging.getLogger(__name__)

_REDIRECTED = (_constants.META_LAYER_APP, _constants.META_LAYER_MAP)


def split_section(key: str) -> tuple[str | None, str]:
    """Split "section#key" into (section, key). Plain keys give (None, key)."""
    if _constants.SECTION_SEPARATOR in key:
        section, _, name = key.partition(_constants.SECTION_SEPARATOR)
        return section or None, name
    return None, key


class MetadataModel(layers.LayerStack):
    """
    Layered attribute metadata with section auto-assignment.

    Args:
        app_data: Application schema (see module docstring). Copied.
        controller_data: Initial controller overrides, same shape.
    """

    def __init__(
        self,
        app_data: _typing.Mapping[str, _typing.Any] | None = None,
        controller_data: _typing.Mapping[str, _typing.Any] | None = None,
    ) -> None:
        super().__init__(
            [
                layers.define_layer(
                    _constants.META_LAYER_CONTROLLER,
                    store.DataStore(controller_data),
                    can_load=True,
                ),
                layers.define_layer(_constants.META_LAYER_MAP),
                layers.define_layer(
                    _constants.META_LAYER_APP,
                    store.DataStore(self._strip_keys(app_data)),
                    can_write=False,
                ),
            ]
        )
        self.build_section_mapping()

    @staticmethod
    def _strip_keys(data: _typing.Mapping[str, _typing.Any] | None) -> dict[str, _typing.Any]:
        result = dict(data or {})
        result.pop(_constants.META_KEYS, None)
        return result

    def load_app(self, app_data: _typing.Mapping[str, _typing.Any]) -> None:
        """Replace the application schema and rebuild the section mapping."""
        with self._lock:
            app = self.layer(_constants.META_LAYER_APP)
            app.store = store.DataStore(self._strip_keys(app_data))
            self.build_section_mapping()

    # =========================================================================
    # Section mapping
    # =========================================================================

    def build_section_mapping(self) -> dict[str, list[str]]:
        """
        Rebuild the key -> sections relation in the map layer.

        Walks every schema-contributing layer, lowest priority first, and
        appends each section to its keys' lists when not already present.

        Returns:
            The new mapping.
        """
        with self._lock:
            mapping: dict[str, list[str]] = {}
            for layer in reversed(self._layers):
                if layer.name == _constants.META_LAYER_MAP:
                    continue
                sections = layer.store.get(_constants.META_SECTIONS)
                if not isinstance(sections, dict):
                    continue
                for section, keys in sections.items():
                    if not isinstance(keys, dict):
                        continue
                    for key in keys:
                        found = mapping.setdefault(str(key), [])
                        if section not in found:
                            found.append(str(section))
            map_layer = self.layer(_constants.META_LAYER_MAP)
            map_layer.store.set(_constants.META_KEYS, mapping)
            _logger.debug("Section mapping rebuilt: %d keys", len(mapping))
            return mapping

    def on_layers_changed(self) -> None:
        self.build_section_mapping()

    def first_section(self, key: str) -> tuple[str | None, str]:
        """
        Find the section of a key.

        Returns:
            (section, key). The section is None when the key is undeclared.
            "section#key" input returns the explicit section.
        """
        section, name = split_section(key)
        if section is not None:
            return section, name
        sections = self.sections(name)
        return (sections[0] if sections else None), name

    def sections(self, key: str | None = None) -> list[str]:
        """Sections declaring key, or every declared section when key is None."""
        with self._lock:
            if key is not None:
                mapped = self.get((_constants.META_KEYS, key), names=_constants.META_LAYER_MAP)
                return list(mapped or [])
            result: list[str] = []
            for section_list in (
                self.get(_constants.META_KEYS, names=_constants.META_LAYER_MAP) or {}
            ).values():
                for section in section_list:
                    if section not in result:
                        result.append(section)
            return result

    def datas(self) -> list[str]:
        """Every declared key."""
        return list(self.get(_constants.META_KEYS, names=_constants.META_LAYER_MAP) or {})

    # =========================================================================
    # Metadata queries
    # =========================================================================

    def section_data(self, section: str, key: str, *path: str) -> _typing.Any:
        """Metadata of key in section (optionally drilled into), merged across layers."""
        return self.merge((_constants.META_SECTIONS, section, key, *path))

    def auto_section_data(self, key: str, *path: str) -> _typing.Any:
        """As section_data(), with the section found by first_section()."""
        section, name = self.first_section(key)
        if section is None:
            return None
        return self.section_data(section, name, *path)

    def setup_data(self, *path: str) -> _typing.Any:
        return self.merge((_constants.META_SETUP, *path))

    def meta_each(self) -> _typing.Iterator[tuple[str, str, dict[str, _typing.Any]]]:
        """Yield (section, key, metadata) for every declared key."""
        sections = self.merge(_constants.META_SECTIONS) or {}
        for section, keys in sections.items():
            if not isinstance(keys, dict):
                continue
            for key, meta in keys.items():
                yield section, key, meta if isinstance(meta, dict) else {}

    def meta_exists(self, section: str, key: str, *path: str) -> bool:
        return self.exists((_constants.META_SECTIONS, section, key, *path))

    def auto_meta_exists(self, key: str, *path: str) -> bool:
        section, name = self.first_section(key)
        if section is None:
            return False
        return self.meta_exists(section, name, *path)

    def attribute_meta(self, key: str) -> types.AttributeMeta | None:
        """Typed metadata for key, or None when the key is undeclared."""
        section, name = self.first_section(key)
        if section is None or not self.meta_exists(section, name):
            return None
        meta = self.section_data(section, name)
        if not isinstance(meta, dict):
            meta = None
        return types.AttributeMeta.from_meta(section, name, meta)

    def is_readonly(self, key: str) -> bool:
        return self.auto_section_data(key, "readonly") is True

    def is_exclusive(self, key: str) -> bool:
        return self.auto_section_data(key, "account_exclusive") is True

    # =========================================================================
    # Writes (redirected to the controller layer)
    # =========================================================================

    def _write_target(self, name: str | None, index: int | None) -> str:
        if name is None and index is not None:
            name = self._target(None, index).name
        if name is None or name in _REDIRECTED:
            return _constants.META_LAYER_CONTROLLER
        return name

    def set(
        self,
        keys: rmap.KeysLike,
        value: _typing.Any,
        *,
        name: str | None = None,
        index: int | None = None,
        options: store.DataOptions | None = None,
    ) -> _typing.Any:
        """Set metadata. Writes aimed at "app" or "map" land in "controller"."""
        with self._lock:
            result = super().set(keys, value, name=self._write_target(name, index), options=options)
            self.build_section_mapping()
            return result

    def delete(
        self,
        keys: rmap.KeysLike,
        *,
        name: str | None = None,
        index: int | None = None,
        options: store.DataOptions | None = None,
    ) -> _typing.Any:
        with self._lock:
            result = super().delete(keys, name=self._write_target(name, index), options=options)
            self.build_section_mapping()
            return result

    def define_controller_data(
        self,
        section: str,
        key: str,
        meta: _typing.Mapping[str, _typing.Any],
    ) -> dict[str, _typing.Any]:
        """Replace the controller's metadata for section/key."""
        return self.set((_constants.META_SECTIONS, section, key), dict(meta))

    def update_controller_data(
        self,
        section: str,
        key: str,
        meta: _typing.Mapping[str, _typing.Any],
    ) -> dict[str, _typing.Any]:
        """Merge meta into the controller's metadata for section/key."""
        with self._lock:
            path = (_constants.META_SECTIONS, section, key)
            current = self.get(path, names=_constants.META_LAYER_CONTROLLER)
            base = current if isinstance(current, dict) else {}
            return self.set(path, rmap.deep_merge(base, meta, structure_change=True))
