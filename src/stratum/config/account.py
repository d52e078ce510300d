"""
Application configuration stacks.

Config layers, highest priority first:

    runtime     writable, memory only
    local       sectioned, <data_path>/config.yaml, load/save
    controller  values set by the backend controller
    default     sectioned, read-only, application defaults.yaml

Account inserts one more layer after runtime:

    account     sectioned, <data_path>/accounts/<name>, load/save

Keys are addressed by name. The section a key lives in comes from the
metadata model ("section#key" forces one); local and default always use
the "default" section. Keys whose metadata marks them account_exclusive
are only read from and written to runtime, account and per-call overlays.
Keys marked readonly cannot be set or deleted at all.
"""

from __future__ import annotations

import logging as _logging
import pathlib as _pathlib
import typing as _typing

import stratum.config.defaults as defaults_mod
import stratum.config.layers as layers
import stratum.config.metadata as metadata_mod
import stratum.config.settings as settings_mod
import stratum.config.store as store
import stratum.config.template as template_mod
import stratum.constants as _constants
import stratum.utils.recursive_map as rmap

_logger = _logging.getLogger(__name__)

_EXCLUSIVE_LAYERS = frozenset({_constants.LAYER_RUNTIME, _constants.LAYER_ACCOUNT})
_DEFAULT_SECTION_OPTIONS = store.DataOptions(section=_constants.DEFAULT_SECTION)
_ACCOUNT_OPTIONS = store.DataOptions(section=_constants.ACCOUNT_SECTION)


class Config(layers.LayerStack):
    """
    Layered application configuration driven by a metadata model.

    Args:
        settings: Library settings (file locations). Defaults to environment.
        defaults: Application defaults. Loaded from settings.app_defaults when
            omitted and that path is set.
        metadata: Metadata model. Built from the defaults' metadata when omitted.
        template: Expander applied to values returned by get(). By default a
            TemplateExpander over get_raw(); pass expand_templates=False to
            disable expansion.
        load_local: Load the local config file if it exists.
    """

    def __init__(
        self,
        settings: settings_mod.Settings | None = None,
        *,
        defaults: defaults_mod.AppDefaults | None = None,
        metadata: metadata_mod.MetadataModel | None = None,
        template: _typing.Callable[[_typing.Any], _typing.Any] | None = None,
        expand_templates: bool = True,
        load_local: bool = True,
    ) -> None:
        self.settings = settings or settings_mod.Settings.construct_without_dotenv()
        if defaults is None and self.settings.app_defaults is not None:
            defaults = defaults_mod.load_app_defaults(self.settings.app_defaults)
        self.defaults = defaults or defaults_mod.AppDefaults()
        self.metadata = metadata or metadata_mod.MetadataModel(self.defaults.metadata)

        super().__init__(self._define_layers())

        if template is None and expand_templates:
            template = template_mod.TemplateExpander(self.get_raw)
        self.template = template

        local_file = self.settings.local_config_path
        if load_local and local_file.exists():
            self.load(name=_constants.LAYER_LOCAL)

    def _define_layers(self) -> list[layers.ConfigLayer]:
        return [
            layers.define_layer(_constants.LAYER_RUNTIME),
            layers.define_layer(
                _constants.LAYER_LOCAL,
                store.SectionStore(filename=self.settings.local_config_path),
                can_load=True,
                can_save=True,
                options=_DEFAULT_SECTION_OPTIONS,
            ),
            layers.define_layer(_constants.LAYER_CONTROLLER),
            layers.define_layer(
                _constants.LAYER_DEFAULT,
                store.SectionStore(self.defaults.values, filename=self.defaults.filename),
                can_write=False,
                can_load=True,
                options=store.DataOptions(
                    section=_constants.DEFAULT_SECTION,
                    data_readonly=True,
                    file_readonly=True,
                ),
            ),
        ]

    # =========================================================================
    # Key resolution hooks
    # =========================================================================

    def resolve_keys(self, keys: rmap.KeysLike) -> tuple[tuple[str, ...], str | None]:
        path = rmap.normalize(keys)
        section, name = self.metadata.first_section(path[0])
        return (name, *path[1:]), section

    def layer_options(
        self,
        layer: layers.ConfigLayer,
        path: tuple[str, ...],
        section: str | None,
    ) -> store.DataOptions | None:
        if not layer.store.sectioned or layer.options.section is not None:
            return None
        return store.DataOptions(section=section or _constants.DEFAULT_SECTION)

    def _is_exclusive(self, path: tuple[str, ...], section: str | None) -> bool:
        if section is None:
            return False
        return self.metadata.section_data(section, path[0], "account_exclusive") is True

    def _is_readonly(self, path: tuple[str, ...], section: str | None) -> bool:
        if section is None:
            return False
        return self.metadata.section_data(section, path[0], "readonly") is True

    def _exclusive_layers(self) -> set[str]:
        names = set(_EXCLUSIVE_LAYERS)
        names.update(
            layer.name for layer in self._layers if layer.name.startswith(_constants.OVERLAY_PREFIX)
        )
        return names

    def readable_layers(
        self,
        path: tuple[str, ...],
        section: str | None,
    ) -> _typing.Container[str] | None:
        if self._is_exclusive(path, section):
            return self._exclusive_layers()
        return None

    def writable_layers(
        self,
        path: tuple[str, ...],
        section: str | None,
    ) -> _typing.Container[str] | None:
        if self._is_readonly(path, section):
            return frozenset()
        return self.readable_layers(path, section)

    # =========================================================================
    # Key operations
    # =========================================================================

    def get(
        self,
        keys: rmap.KeysLike,
        default: _typing.Any = None,
        **kwargs: _typing.Any,
    ) -> _typing.Any:
        """Get a value; string values are expanded as templates."""
        value = super().get(keys, default, **kwargs)
        if self.template is None:
            return value
        return self.template(value)

    def get_raw(
        self,
        keys: rmap.KeysLike,
        default: _typing.Any = None,
        **kwargs: _typing.Any,
    ) -> _typing.Any:
        """Get a value without template expansion."""
        return super().get(keys, default, **kwargs)

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
        Set a value, in the runtime layer unless a layer is named.

        Returns:
            The value set, or None if the key is readonly, exclusive to other
            layers, fails its validation rule, or the layer is read-only.
        """
        with self._lock:
            path, section = self.resolve_keys(keys)
            meta = self.metadata.attribute_meta(f"{section}#{path[0]}") if section else None
            if meta is not None and len(path) == 1 and not meta.accepts(value):
                _logger.warning(
                    "Value %r rejected for '%s': must match %s", value, path[0], meta.validate_
                )
                return None
            if name is None and index is None:
                name = _constants.LAYER_RUNTIME
            return super().set(keys, value, name=name, index=index, options=options)

    def delete(
        self,
        keys: rmap.KeysLike,
        *,
        name: str | None = None,
        index: int | None = None,
        options: store.DataOptions | None = None,
    ) -> _typing.Any:
        """Delete a value from one layer, the runtime layer unless a layer is named."""
        if name is None and index is None:
            name = _constants.LAYER_RUNTIME
        return super().delete(keys, name=name, index=index, options=options)


class Account(Config):
    """
    Config plus a named account layer persisted under <data_path>/accounts.

    The account identity lives in the "account" section:
    account#name and account#provider.
    """

    def __init__(self, *args: _typing.Any, **kwargs: _typing.Any) -> None:
        self.account_name: str | None = None
        super().__init__(*args, **kwargs)

    def _define_layers(self) -> list[layers.ConfigLayer]:
        config_layers = super()._define_layers()
        config_layers.insert(
            1,
            layers.define_layer(
                _constants.LAYER_ACCOUNT,
                store.SectionStore(),
                can_load=True,
                can_save=True,
                filename_mutable=True,
            ),
        )
        return config_layers

    @property
    def _account_store(self) -> store.DataStore:
        return self.layer(_constants.LAYER_ACCOUNT).store

    def _account_file(self, name: str) -> _pathlib.Path:
        return self.settings.account_path(name)

    def ac_new(self, name: str, provider: str) -> bool:
        """Start a new, empty account."""
        with self._lock:
            self.account_name = name
            account = self._account_store
            account.erase()
            account.set("name", name, _ACCOUNT_OPTIONS)
            account.set("provider", provider, _ACCOUNT_OPTIONS)
            return True

    def ac_load(self, name: str | None = None) -> bool:
        """
        Load an account file into the account layer.

        Returns:
            False if no account name is known or the file does not exist.

        Raises:
            ConfigFileError: If the file cannot be read or parsed.
        """
        with self._lock:
            if name is not None:
                self.account_name = name
            if self.account_name is None:
                return False
            account_file = self._account_file(self.account_name)
            if not account_file.exists():
                return False

            self.load(name=_constants.LAYER_ACCOUNT, filename=account_file)
            account = self._account_store
            if not account.get("name", None, _ACCOUNT_OPTIONS):
                account.set("name", self.account_name, _ACCOUNT_OPTIONS)
            if not account.exists("provider", _ACCOUNT_OPTIONS):
                account.set("provider", None, _ACCOUNT_OPTIONS)
                _logger.warning("'%s' defines an empty provider name.", account_file)
            _logger.info("Account '%s' loaded from %s", self.account_name, account_file)
            return True

    def ac_save(self, name: str | None = None) -> bool:
        """
        Save the local layer, then the account layer.

        Returns:
            False if no account name is known, the provider is not set, or
            the local layer could not be saved.
        """
        with self._lock:
            if name is not None:
                self.account_name = name
            if self.account_name is None:
                return False
            account_file = self._account_file(self.account_name)
            account = self._account_store
            if account.get("provider", None, _ACCOUNT_OPTIONS) is None:
                _logger.error(
                    "'provider' is not set. Unable to save the account '%s' to '%s'",
                    self.account_name,
                    account_file,
                )
                return False

            if not self.save(name=_constants.LAYER_LOCAL):
                return False
            account.set("name", self.account_name, _ACCOUNT_OPTIONS)
            saved = self.save(name=_constants.LAYER_ACCOUNT, filename=account_file)
            if saved:
                _logger.info("Account '%s' saved to %s", self.account_name, account_file)
            return saved

    def ac_erase(self) -> None:
        """Drop the account layer contents."""
        with self._lock:
            self._account_store.erase()
            self.account_name = None

    def list_accounts(self) -> list[str]:
        """Names of the account files under the accounts directory."""
        accounts_dir = self.settings.accounts_dir
        if not accounts_dir.is_dir():
            return []
        return sorted(
            p.name for p in accounts_dir.iterdir() if p.is_file() and not p.name.startswith(".")
        )
