"""Helpers for YAML parsing quirks."""

from typing import Any, Dict, TypeVar

V = TypeVar("V")


def normalize_yaml_keys(data: Dict[Any, V]) -> Dict[str, V]:
    """Return ``data`` with every key converted to ``str``.

    YAML turns bare numeric keys such as ``3:`` into integers, while JSON
    Schema only matches string property names. Id-keyed sections (layers,
    filaments, groups) are therefore stringified before validation and parsed
    back into integers afterwards.

    Raises:
        ValueError: For boolean keys. YAML 1.1 reads ``yes``/``on``/``true``
            as booleans, which are never valid ids.

    Examples:
        >>> normalize_yaml_keys({0: [1, 2], "3": [2]})
        {'0': [1, 2], '3': [2]}
    """
    normalized: Dict[str, V] = {}
    for key, value in data.items():
        if isinstance(key, bool):
            raise ValueError(f"Key {key!r} is a YAML boolean, expected an integer id")
        normalized[str(key)] = value
    return normalized
