"""
Layered configuration engine.

Stores, layers and stacks, the metadata model, and the application
Config/Account stacks built on them. Library settings use pydantic-settings.
"""

from stratum.config.account import Account, Config
from stratum.config.defaults import AppDefaults, load_app_defaults
from stratum.config.layers import ConfigLayer, LayerStack, define_layer
from stratum.config.metadata import MetadataModel, split_section
from stratum.config.settings import Settings
from stratum.config.store import DataOptions, DataStore, SectionStore
from stratum.config.template import TemplateExpander
from stratum.config.types import AttributeMeta

__all__ = [
    "Account",
    "AppDefaults",
    "AttributeMeta",
    "Config",
    "ConfigLayer",
    "DataOptions",
    "DataStore",
    "LayerStack",
    "MetadataModel",
    "SectionStore",
    "Settings",
    "TemplateExpander",
    "define_layer",
    "load_app_defaults",
    "split_section",
]
