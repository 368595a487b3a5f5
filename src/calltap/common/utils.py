"""
calltap Common Utilities

Serialization and value-shape helpers shared by the matcher and the scope.
"""

import json
from collections.abc import Mapping
from typing import Any, Iterable, List, Tuple
from urllib.parse import parse_qsl


def serialize_json(
    data: Any,
    separators: Tuple[str, str] = (',', ':'),
    ensure_ascii: bool = False
) -> str:
    """
    Serialize a value to the JSON text a client would send on the wire.

    The defaults produce the compact form httpx emits for ``json=`` bodies.

    Args:
        data: JSON-serializable value
        separators: Item and key separators passed to json.dumps
        ensure_ascii: Escape non-ASCII characters

    Returns:
        JSON string
    """
    return json.dumps(data, separators=separators, ensure_ascii=ensure_ascii)


def safe_json_parse(json_string: str, default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def is_multi_value(value: Any) -> bool:
    """True for iterables that should expand into one value per element."""
    if isinstance(value, (str, bytes, bytearray, Mapping)):
        return False
    return isinstance(value, Iterable)


def to_key_value_pairs(values: Any) -> List[Tuple[str, Any]]:
    """
    Normalize a name/value collection into a list of pairs.

    Accepts a mapping, an iterable of (name, value) pairs, or a query
    string such as ``"a=1&b=2"``.

    Raises:
        TypeError: If values has none of the supported shapes
    """
    if values is None:
        return []
    if isinstance(values, Mapping):
        return list(values.items())
    if isinstance(values, str):
        return parse_qsl(values.lstrip('?'), keep_blank_values=True)
    if isinstance(values, Iterable):
        pairs = []
        for item in values:
            if not isinstance(item, (tuple, list)) or len(item) != 2:
                raise TypeError(f"Expected (name, value) pairs, got {item!r}")
            pairs.append((item[0], item[1]))
        return pairs
    raise TypeError(f"Cannot read name/value pairs from {type(values).__name__}")
