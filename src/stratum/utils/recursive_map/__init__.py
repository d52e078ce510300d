"""
Recursive map: key-path operations over plain nested dicts.

Example:
    >>> from stratum.utils.recursive_map import get_path, set_path
    >>> data = {}
    >>> set_path(data, ("server", "image"), "ubuntu")
    'ubuntu'
    >>> get_path(data, ("server", "image"))
    'ubuntu'
"""

from stratum.utils.recursive_map._core import (
    PROTECTED_KEY,
    UNSET,
    count_leaves,
    deep_merge,
    delete_path,
    get_path,
    has_path,
    path_depth,
    set_path,
)
from stratum.utils.recursive_map._keypath import KeyPath, KeysLike, normalize
from stratum.utils.recursive_map._yaml import dump_yaml, load_yaml

__all__ = [
    "PROTECTED_KEY",
    "UNSET",
    "KeyPath",
    "KeysLike",
    "count_leaves",
    "deep_merge",
    "delete_path",
    "dump_yaml",
    "get_path",
    "has_path",
    "load_yaml",
    "normalize",
    "path_depth",
    "set_path",
]
