"""
calltap Captured Calls

Immutable snapshot of an outgoing HTTP request, used as the target of setup
matching and as the entry type of the call log.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Tuple

import httpx
import requests

from ..common import URLMatcher, QueryParam


def _decode_body(body: Any) -> str:
    if body is None:
        return ''
    if isinstance(body, (bytes, bytearray)):
        return bytes(body).decode('utf-8', errors='replace')
    if isinstance(body, str):
        return body
    # Streaming bodies (generators, file objects) are not captured
    return ''


def _parse_authorization(value: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    if not value:
        return None, None
    parts = value.strip().split(None, 1)
    if len(parts) == 1:
        return parts[0], None
    return parts[0], parts[1].strip()


def _parse_media_type(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value.split(';', 1)[0].strip() or None


def _find_header(headers: Tuple[Tuple[str, str], ...], name: str) -> Optional[str]:
    wanted = name.lower()
    values = [value for key, value in headers if key.lower() == wanted]
    if not values:
        return None
    return ', '.join(values)


@dataclass(frozen=True)
class Call:
    """A captured outgoing request."""

    method: str
    url: str
    query_params: Tuple[QueryParam, ...] = ()
    headers: Tuple[Tuple[str, str], ...] = ()
    body: str = ''
    auth_scheme: Optional[str] = None
    auth_parameter: Optional[str] = None
    content_type: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat(), compare=False)

    def get_header(self, name: str) -> Optional[str]:
        """
        Get a header value by case-insensitive name.

        Repeated headers are joined with ", ". Returns None if absent.
        """
        return _find_header(self.headers, name)

    @classmethod
    def capture(
        cls,
        method: str,
        url: str,
        headers: Optional[List[Tuple[str, str]]] = None,
        body: Any = None
    ) -> 'Call':
        """
        Build a Call from raw request parts.

        Args:
            method: HTTP method
            url: Absolute request URL
            headers: Header (name, value) pairs in request order
            body: Request body as bytes or str

        Returns:
            Captured Call
        """
        header_pairs = tuple((str(k), str(v)) for k, v in (headers or []))
        scheme, parameter = _parse_authorization(_find_header(header_pairs, 'Authorization'))

        return cls(
            method=method.upper(),
            url=url,
            query_params=tuple(URLMatcher.parse_query_params(url)),
            headers=header_pairs,
            body=_decode_body(body),
            auth_scheme=scheme,
            auth_parameter=parameter,
            content_type=_parse_media_type(_find_header(header_pairs, 'Content-Type'))
        )

    @classmethod
    def from_httpx(cls, request: httpx.Request) -> 'Call':
        """Capture an httpx request. The body must already be read."""
        return cls.capture(
            method=request.method,
            url=str(request.url),
            headers=request.headers.multi_items(),
            body=request.content
        )

    @classmethod
    def from_prepared(cls, request: requests.PreparedRequest) -> 'Call':
        """Capture a prepared requests request."""
        return cls.capture(
            method=request.method or 'GET',
            url=request.url or '',
            headers=list(request.headers.items()),
            body=request.body
        )
