"""
Shared constants for Stratum.

This module provides a single source of truth for layer names, section
names and file locations used across the configuration and dispatch code.
"""

# Sections
DEFAULT_SECTION = "default"
"""Section used when neither the caller nor the metadata names one."""

ACCOUNT_SECTION = "account"
"""Section holding the account identity keys (name, provider)."""

SECTION_SEPARATOR = "#"
"""Separator in "section#key" disambiguation syntax."""

# Config layer names, highest priority first
LAYER_RUNTIME = "runtime"
LAYER_ACCOUNT = "account"
LAYER_LOCAL = "local"
LAYER_CONTROLLER = "controller"
LAYER_DEFAULT = "default"

# Metadata layer names, highest priority first
META_LAYER_CONTROLLER = "controller"
META_LAYER_MAP = "map"
META_LAYER_APP = "app"

META_KEYS = "keys"
"""Key in the metadata map layer holding the key -> sections relation."""

META_SECTIONS = "sections"
META_SETUP = "setup"

# Files
DEFAULT_DATA_DIR = "~/.stratum"
"""Default directory for local config and account files."""

LOCAL_CONFIG_FILE = "config.yaml"
ACCOUNTS_DIR = "accounts"

FILE_VERSION_KEY = "file_version"
"""Top-level key recording the format version of a saved layer file."""

OVERLAY_PREFIX = "overlay:"
"""Name prefix for temporary per-call read-only layers."""
