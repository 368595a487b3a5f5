"""
calltap URL Utilities

Shared query-string parsing and wildcard pattern matching used by setups.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, List, Optional
from urllib.parse import unquote_plus, urlsplit


@dataclass(frozen=True)
class QueryParam:
    """A single query parameter. Names may repeat within one URL."""

    name: str
    value: Optional[str] = None


@lru_cache(maxsize=256)
def _compile_pattern(pattern: str) -> "re.Pattern[str]":
    # Everything but '*' is literal; '*' spans any substring, '/' included
    regex = '.*'.join(re.escape(part) for part in pattern.split('*'))
    return re.compile(f'^{regex}$', re.DOTALL)


def format_query_value(value: Any) -> str:
    """Render a non-string query value the way it appears on the wire."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


class URLMatcher:
    """Handles URL and query parameter matching."""

    @staticmethod
    def matches_pattern(text: Optional[str], pattern: str) -> bool:
        """
        Check whether text matches a wildcard pattern.

        Args:
            text: Text to check (None is treated as an empty string)
            pattern: Pattern where '*' matches any substring

        Returns:
            True if the whole text matches the pattern
        """
        return _compile_pattern(pattern).match(text or '') is not None

    @staticmethod
    def parse_query_params(url: str) -> List[QueryParam]:
        """
        Parse the query string of a URL, keeping order and repeated names.

        A bare name without '=' (e.g. ``?flag``) yields a param with value None.

        Args:
            url: URL to parse

        Returns:
            List of QueryParam in the order they appear
        """
        query = urlsplit(url).query
        params = []
        for part in query.split('&'):
            if not part:
                continue
            if '=' in part:
                name, value = part.split('=', 1)
                params.append(QueryParam(unquote_plus(name), unquote_plus(value)))
            else:
                params.append(QueryParam(unquote_plus(part), None))
        return params

    @staticmethod
    def query_param_matches(param: QueryParam, name: str, value: Any) -> bool:
        """
        Check a query parameter against a name and expected value.

        Args:
            param: Parameter taken from a call
            name: Expected name (exact)
            value: None to accept any value, a str pattern, or a scalar
                compared by its rendered form

        Returns:
            True if the parameter satisfies both name and value
        """
        if param.name != name:
            return False
        if value is None:
            return True
        if isinstance(value, str):
            return URLMatcher.matches_pattern(param.value, value)
        return param.value == format_query_value(value)
