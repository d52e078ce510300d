"""
Path operations over nested dicts.

All functions take a plain dict and a key path (see _keypath.normalize) and
never extend the built-in container types. Intermediate levels are always
dicts; a non-dict value met along a path ends the walk.

Merge semantics (deep_merge):
- Dicts: merged recursively
- Lists: overlay items appended when not already present
- UNSET: removes the key from the result
- Container vs scalar conflicts: base kept unless structure_change=True
- Keys named in the base's "__protected__" list: base kept
"""

from __future__ import annotations

import collections.abc as _collections_abc
import copy as _copy
import typing as _typing

import stratum.utils.recursive_map._keypath as _keypath

PROTECTED_KEY = "__protected__"


class _UnsetType:
    """Sentinel marking a key for removal during deep_merge."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _UnsetType()


def get_path(
    data: _typing.Mapping[str, _typing.Any],
    keys: _keypath.KeysLike,
    default: _typing.Any = None,
) -> _typing.Any:
    """
    Get the value at a key path.

    Args:
        data: Nested dict to read.
        keys: Key path.
        default: Returned when the path does not exist.

    Returns:
        The stored value, or default.
    """
    current: _typing.Any = data
    for key in _keypath.normalize(keys):
        if not isinstance(current, _collections_abc.Mapping) or key not in current:
            return default
        current = current[key]
    return current


def has_path(data: _typing.Mapping[str, _typing.Any], keys: _keypath.KeysLike) -> bool:
    """Return True if every atom of the key path exists."""
    path = _keypath.normalize(keys)
    return path_depth(data, path) == len(path)


def path_depth(data: _typing.Mapping[str, _typing.Any], keys: _keypath.KeysLike) -> int:
    """Return how many leading atoms of the key path exist in data."""
    depth = 0
    current: _typing.Any = data
    for key in _keypath.normalize(keys):
        if not isinstance(current, _collections_abc.Mapping) or key not in current:
            break
        current = current[key]
        depth += 1
    return depth


def set_path(
    data: dict[str, _typing.Any],
    keys: _keypath.KeysLike,
    value: _typing.Any,
) -> _typing.Any:
    """
    Set the value at a key path, creating intermediate dicts as needed.

    A non-dict value found where an intermediate level is needed is replaced
    by a new dict.

    Returns:
        The value set.
    """
    path = _keypath.normalize(keys)
    current = data
    for key in path[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[path[-1]] = value
    return value


def delete_path(data: dict[str, _typing.Any], keys: _keypath.KeysLike) -> _typing.Any:
    """
    Remove the value at a key path.

    Empty parent dicts are left in place.

    Returns:
        The removed value, or None if the path did not exist.
    """
    path = _keypath.normalize(keys)
    parent = get_path(data, path[:-1], None) if len(path) > 1 else data
    if not isinstance(parent, dict) or path[-1] not in parent:
        return None
    return parent.pop(path[-1])


def _is_container(value: _typing.Any) -> bool:
    return isinstance(value, (dict, list))


def deep_merge(
    base: _typing.Mapping[str, _typing.Any],
    overlay: _typing.Mapping[str, _typing.Any],
    *,
    structure_change: bool = False,
) -> dict[str, _typing.Any]:
    """
    Deep merge two dicts, with overlay taking priority.

    Args:
        base: The base dict. Not modified.
        overlay: The dict to merge in. Not modified.
        structure_change: Allow a scalar to replace a container and vice versa.

    Returns:
        New merged dict.
    """
    result = _copy.deepcopy(dict(base))
    protected = set(base.get(PROTECTED_KEY) or ())

    for key, value in overlay.items():
        if key == PROTECTED_KEY:
            continue
        if key in protected and key in result:
            continue
        if value is UNSET:
            result.pop(key, None)
            continue
        if key not in result:
            result[key] = _copy.deepcopy(value)
            continue

        current = result[key]
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value, structure_change=structure_change)
        elif isinstance(current, list) and isinstance(value, list):
            merged = list(current)
            for item in value:
                if item not in merged:
                    merged.append(_copy.deepcopy(item))
            result[key] = merged
        elif _is_container(current) != _is_container(value) and not structure_change:
            continue
        else:
            result[key] = _copy.deepcopy(value)
    return result


def count_leaves(data: _typing.Any) -> int:
    """Count the non-dict values reachable from data."""
    if not isinstance(data, dict):
        return 1
    return sum(count_leaves(value) for value in data.values())
