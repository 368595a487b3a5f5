"""
calltap Planned Responses

Canned response values returned by setups, plus the simulated timeout sentinel.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from ..common import serialize_json


@dataclass
class MockResponse:
    """A canned HTTP response."""

    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b''

    @classmethod
    def text(
        cls,
        body: Union[str, bytes] = '',
        status: int = 200,
        headers: Optional[Dict[str, str]] = None
    ) -> 'MockResponse':
        """Create a response from a text or bytes body."""
        if isinstance(body, str):
            body = body.encode('utf-8')
        return cls(status=status, headers=dict(headers or {}), body=body)

    @classmethod
    def json(
        cls,
        data: Any,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
        **dumps_kwargs
    ) -> 'MockResponse':
        """Create a JSON response with a matching Content-Type."""
        response_headers = {'Content-Type': 'application/json'}
        response_headers.update(headers or {})
        return cls.text(serialize_json(data, **dumps_kwargs), status=status, headers=response_headers)


class _SimulatedTimeout:
    """Marker type for the timeout sentinel. Has no fields to mutate."""

    __slots__ = ()

    def __repr__(self) -> str:
        return 'SIMULATED_TIMEOUT'


# Recognized by identity only, never by its fields
SIMULATED_TIMEOUT = _SimulatedTimeout()


def is_simulated_timeout(response: Any) -> bool:
    return response is SIMULATED_TIMEOUT


ResponsePlan = Union[MockResponse, _SimulatedTimeout]
