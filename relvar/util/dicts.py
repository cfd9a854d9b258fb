"""Contains utilities to access and modify dictionaries more conveniently."""

from __future__ import annotations

import collections
import typing
import warnings
from collections.abc import Iterable, Mapping

K = typing.TypeVar("K")
V = typing.TypeVar("V")


def project(dictionary: Mapping[K, V], keys: Iterable[K]) -> dict[K, V]:
    """Restricts a dictionary to the given keys. Keys that are not contained in the dictionary are ignored.

    The order of the resulting dictionary follows the order of `keys`.
    """
    return {k: dictionary[k] for k in keys if k in dictionary}


def value(dictionary: Mapping[K, V]) -> V:
    """Provides the value of a dictionary with just 1 item.

    `value({'a': 1}) = 1`

    Raises
    ------
    ValueError
        If the dictionary does not contain exactly one entry
    """
    if not len(dictionary) == 1:
        raise ValueError(f"Dictionary must contain exactly 1 entry, not {len(dictionary)}")
    return next(iter(dictionary.values()))


def hash_dict(dictionary: Mapping[K, V]) -> int:
    """Calculates a hash value based on the current dict contents (keys and values)."""
    keys = list(dictionary.keys())
    values = []
    for val in dictionary.values():
        if isinstance(val, collections.abc.Hashable):
            values.append(hash(val))
        elif isinstance(val, list) or isinstance(val, set):
            values.append(hash(tuple(val)))
        elif isinstance(val, dict):
            values.append(hash_dict(val))
        else:
            warnings.warn(f"Unhashable type, skipping: {type(val)}")
    keys_hash = hash(tuple(keys))
    values_hash = hash(tuple(values))
    return hash((keys_hash, values_hash))


class frozendict(collections.UserDict[K, V]):
    """Read-only variant of a normal Python dictionary.

    Once the dictionary has been created, its key/value pairs can no longer be modified. At the same time, this allows the
    dictionary to be hashable by default.

    Parameters
    ----------
    items : any, optional
        Supports the same argument types as the normal dictionary. If no items are supplied, an empty frozen dictionary is
        returned.
    """

    def __init__(self, items=None) -> None:
        self._frozen = False
        super().__init__(items)
        self._frozen = True

    def __setitem__(self, key: K, item: V) -> None:
        if self._frozen:
            raise TypeError("Cannot set frozendict entries after creation")
        return super().__setitem__(key, item)

    def __delitem__(self, key: K) -> None:
        if self._frozen:
            raise TypeError("Cannot remove frozendict entries after creation")
        return super().__delitem__(key)

    def __hash__(self) -> int:
        return hash_dict(self)
