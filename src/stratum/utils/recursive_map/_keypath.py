"""
Key path normalization.

A key path is a non-empty tuple of string atoms. Callers may pass a single
atom, a tuple or list of atoms, or a KeyPath. The string form "a/b/c" is only
split when parsed explicitly, since "/" is a legal character in plain keys.
"""

from __future__ import annotations

import re as _re
import typing as _typing

import stratum.errors as errors

KeysLike = _typing.Union[str, "KeyPath", _typing.Sequence[_typing.Any]]

_SPLIT_RE = _re.compile(r"(?<!\\)/")


def _atom(value: _typing.Any) -> str:
    if isinstance(value, str):
        # ":name" is the string form of a symbol atom
        return value[1:] if value.startswith(":") and len(value) > 1 else value
    if isinstance(value, (int, float, bool)) or value is None:
        return str(value)
    if hasattr(value, "value") and isinstance(value.value, str):
        # str-valued enums
        return value.value
    raise errors.KeyPathError(f"Invalid key path atom: {value!r}")


def normalize(keys: KeysLike) -> tuple[str, ...]:
    """
    Normalize a key path to a tuple of string atoms.

    Args:
        keys: A single key, a sequence of keys, or a KeyPath.

    Returns:
        Tuple of atoms.

    Raises:
        KeyPathError: If the path is empty or holds an invalid atom.
    """
    if isinstance(keys, KeyPath):
        return keys.tree
    if isinstance(keys, str):
        path: tuple[str, ...] = (_atom(keys),)
    elif isinstance(keys, (tuple, list)):
        path = tuple(_atom(k) for k in keys)
    else:
        path = (_atom(keys),)

    if not path:
        raise errors.KeyPathError("Key path must hold at least one key")
    return path


class KeyPath:
    """
    Parsed key path with string round-tripping.

    Example:
        >>> KeyPath.parse("server/image").tree
        ('server', 'image')
        >>> str(KeyPath(("a/b", "c")))
        'a\\\\/b/c'
    """

    __slots__ = ("_tree",)

    def __init__(self, keys: KeysLike) -> None:
        self._tree = normalize(keys)

    @classmethod
    def parse(cls, text: str) -> KeyPath:
        """Parse "a/b/c" into a key path. "\\/" escapes a literal slash."""
        if not text:
            raise errors.KeyPathError("Key path must hold at least one key")
        parts = [part.replace("\\/", "/") for part in _SPLIT_RE.split(text)]
        return cls(parts)

    @property
    def tree(self) -> tuple[str, ...]:
        return self._tree

    @property
    def key(self) -> str:
        """Last atom of the path."""
        return self._tree[-1]

    def __len__(self) -> int:
        return len(self._tree)

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self._tree)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, KeyPath):
            return self._tree == other._tree
        if isinstance(other, tuple):
            return self._tree == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._tree)

    def __str__(self) -> str:
        return "/".join(atom.replace("/", "\\/") for atom in self._tree)

    def __repr__(self) -> str:
        return f"KeyPath({self._tree!r})"
