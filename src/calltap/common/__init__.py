"""
calltap Common Utilities

Shared utilities and helpers used across calltap modules.
"""

from .utils import serialize_json, safe_json_parse, is_multi_value, to_key_value_pairs
from .url_utils import URLMatcher, QueryParam, format_query_value

__all__ = [
    'serialize_json',
    'safe_json_parse',
    'is_multi_value',
    'to_key_value_pairs',
    'URLMatcher',
    'QueryParam',
    'format_query_value'
]
