"""
calltap Fake Transports

Drop-in replacements for the network layer of httpx and requests. No real I/O
happens: every outgoing call is captured, written to the active test's call
log, and answered by the first setup that matches it.

Example:
    with HttpTest() as test:
        test.respond_with_json({'id': 1}).when_url_is('*/users/*')

        client = httpx.Client(transport=FakeTransport(test))
        client.get('https://api.example.com/users/1').json()  # {'id': 1}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import httpx
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers

from .call import Call
from .config import FakeConfig
from .responses import ResponsePlan, is_simulated_timeout

if TYPE_CHECKING:
    from .scope import HttpTest

logger = logging.getLogger("calltap.mock")


def dispatch(scope: Optional[HttpTest], call: Call, config: FakeConfig) -> ResponsePlan:
    """
    Resolve a captured call to its planned response.

    The call is logged before matching so unmatched calls stay observable.
    Setups are scanned in declaration order and the first match wins. When
    nothing matches, or no test is active, the configured default response is
    returned instead of an error.

    Args:
        scope: Test scope owning setups and the call log, or None
        call: Captured call
        config: Supplies the default response

    Returns:
        Planned response, possibly the SIMULATED_TIMEOUT sentinel
    """
    if scope is None or not scope.active:
        logger.debug(f"No active test, serving default response for {call.method} {call.url}")
        return config.default_response()

    scope.record_call(call)
    logger.debug(f"Intercepted: {call.method} {call.url}")

    setup = scope.find_setup(call)
    if setup is None:
        logger.debug(f"No setup matched {call.method} {call.url}, serving default response")
        return config.default_response()

    return setup.response


class FakeTransport(httpx.BaseTransport, httpx.AsyncBaseTransport):
    """
    httpx transport serving responses from an HttpTest.

    Usable with both httpx.Client and httpx.AsyncClient.
    """

    def __init__(self, scope: Optional[HttpTest] = None, config: Optional[FakeConfig] = None):
        self.scope = scope
        self.config = config or (scope.config if scope is not None else FakeConfig())

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        request.read()
        return self._respond(request)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        return self._respond(request)

    def _respond(self, request: httpx.Request) -> httpx.Response:
        planned = dispatch(self.scope, Call.from_httpx(request), self.config)

        if is_simulated_timeout(planned):
            logger.info(f"Simulating timeout for {request.method} {request.url}")
            raise httpx.ReadTimeout("Simulated timeout", request=request)

        return httpx.Response(
            status_code=planned.status,
            headers=planned.headers,
            content=planned.body,
            request=request
        )


class FakeAdapter(BaseAdapter):
    """
    requests adapter serving responses from an HttpTest.

    Example:
        session = requests.Session()
        session.mount('https://', FakeAdapter(test))
    """

    def __init__(self, scope: Optional[HttpTest] = None, config: Optional[FakeConfig] = None):
        super().__init__()
        self.scope = scope
        self.config = config or (scope.config if scope is not None else FakeConfig())

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        planned = dispatch(self.scope, Call.from_prepared(request), self.config)

        if is_simulated_timeout(planned):
            logger.info(f"Simulating timeout for {request.method} {request.url}")
            raise requests.exceptions.ReadTimeout("Simulated timeout", request=request)

        response = requests.Response()
        response.status_code = planned.status
        response.headers = CaseInsensitiveDict(planned.headers)
        response.encoding = get_encoding_from_headers(response.headers)
        response._content = planned.body
        response.url = request.url
        response.request = request
        response.connection = self
        return response

    def close(self):
        pass
