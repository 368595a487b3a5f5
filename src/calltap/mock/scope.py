"""
calltap Test Scope

HttpTest is the explicit context object behind a fake transport: it owns the
ordered list of setups and the call log for one test, with a begin/end
lifecycle.

Example:
    with HttpTest() as test:
        test.respond_with_json([]).when_url_is('*/orders/*').and_.when_request_method_is('GET')
        test.respond_with(status=404).when_url_is('*/orders/42')

        with test.client() as client:
            client.get('https://shop.example.com/orders/42')  # 200, body []

        test.should_have_called('*/orders/42', times=1)
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx
import requests

from ..common import URLMatcher
from .call import Call
from .config import FakeConfig
from .matcher import CallSetup
from .responses import MockResponse, ResponsePlan, SIMULATED_TIMEOUT
from .transport import FakeAdapter, FakeTransport

logger = logging.getLogger("calltap.mock")


class CallAssertionError(AssertionError):
    """The call log does not contain the expected calls."""


class HttpTest:
    """
    Arrange canned responses and inspect the calls a test made.

    Setups are matched in the order they were declared. The first match
    answers the call; unmatched calls get the configured default response and
    are still recorded.
    """

    def __init__(self, config: Optional[FakeConfig] = None):
        """
        Initialize test scope.

        Args:
            config: Optional FakeConfig for default responses and logging
        """
        self.config = config or FakeConfig()
        self._setups: List[CallSetup] = []
        self._call_log: List[Call] = []
        self._lock = threading.Lock()
        self._active = False

        logger.setLevel(getattr(logging, self.config.log_level.upper()))

    @property
    def active(self) -> bool:
        return self._active

    @property
    def setups(self) -> Tuple[CallSetup, ...]:
        """Snapshot of declared setups, in declaration order."""
        with self._lock:
            return tuple(self._setups)

    @property
    def call_log(self) -> Tuple[Call, ...]:
        """Snapshot of intercepted calls, oldest first."""
        with self._lock:
            return tuple(self._call_log)

    def begin(self) -> 'HttpTest':
        """Start the test. Clears setups and calls from any previous run."""
        with self._lock:
            self._setups.clear()
            self._call_log.clear()
            self._active = True
        logger.debug("HttpTest started")
        return self

    def end(self):
        """Stop intercepting. The call log stays available for inspection."""
        self._active = False
        logger.debug(f"HttpTest ended after {len(self.call_log)} calls")

    def __enter__(self) -> 'HttpTest':
        return self.begin()

    def __exit__(self, exc_type, exc, tb):
        self.end()

    # Arrange

    def respond(self, response: ResponsePlan) -> CallSetup:
        """Declare a setup answering with the given response."""
        setup = CallSetup(response, serializer=self.config.serializer())
        with self._lock:
            self._setups.append(setup)
        return setup

    def respond_with(
        self,
        body: Union[str, bytes] = '',
        status: int = 200,
        headers: Optional[Dict[str, str]] = None
    ) -> CallSetup:
        """Declare a setup answering with a text body."""
        return self.respond(MockResponse.text(body, status=status, headers=headers))

    def respond_with_json(
        self,
        data: Any,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None
    ) -> CallSetup:
        """Declare a setup answering with a JSON body."""
        return self.respond(MockResponse.json(
            data,
            status=status,
            headers=headers,
            separators=tuple(self.config.json_separators),
            ensure_ascii=self.config.json_ensure_ascii
        ))

    def simulate_timeout(self) -> CallSetup:
        """Declare a setup whose matching calls time out instead of returning."""
        return self.respond(SIMULATED_TIMEOUT)

    # Dispatch

    def record_call(self, call: Call):
        with self._lock:
            self._call_log.append(call)

    def find_setup(self, call: Call) -> Optional[CallSetup]:
        """Return the first declared setup matching the call, or None."""
        for setup in self.setups:
            if setup.matches(call):
                return setup
        return None

    def transport(self) -> FakeTransport:
        return FakeTransport(self)

    def adapter(self) -> FakeAdapter:
        return FakeAdapter(self)

    def client(self, **kwargs) -> httpx.Client:
        """httpx.Client wired to this test."""
        return httpx.Client(transport=self.transport(), **kwargs)

    def async_client(self, **kwargs) -> httpx.AsyncClient:
        """httpx.AsyncClient wired to this test."""
        return httpx.AsyncClient(transport=self.transport(), **kwargs)

    def session(self) -> requests.Session:
        """requests.Session with the fake adapter mounted for http and https."""
        session = requests.Session()
        adapter = self.adapter()
        session.mount('http://', adapter)
        session.mount('https://', adapter)
        return session

    # Assert

    def calls(self, url_pattern: str = '*', method: Optional[str] = None) -> List[Call]:
        """Logged calls whose URL matches the pattern (and method, if given)."""
        return [
            call for call in self.call_log
            if URLMatcher.matches_pattern(call.url, url_pattern)
            and (method is None or call.method == method.upper())
        ]

    def should_have_called(
        self,
        url_pattern: str = '*',
        times: Optional[int] = None,
        method: Optional[str] = None
    ) -> List[Call]:
        """
        Assert that matching calls were made.

        Args:
            url_pattern: Wildcard pattern for the call URL
            times: Exact number of expected calls, or None for at least one
            method: Optional HTTP method filter

        Returns:
            The matching calls

        Raises:
            CallAssertionError: If the count doesn't match
        """
        matching = self.calls(url_pattern, method)
        if times is None and not matching:
            raise CallAssertionError(
                f"Expected a call to {url_pattern}, but no matching call was made. "
                f"Calls made: {self._describe_calls()}"
            )
        if times is not None and len(matching) != times:
            raise CallAssertionError(
                f"Expected {times} call(s) to {url_pattern}, but {len(matching)} were made. "
                f"Calls made: {self._describe_calls()}"
            )
        return matching

    def should_not_have_called(self, url_pattern: str = '*', method: Optional[str] = None):
        """Assert that no call matching the pattern was made."""
        matching = self.calls(url_pattern, method)
        if matching:
            raise CallAssertionError(
                f"Expected no calls to {url_pattern}, but {len(matching)} were made: "
                f"{self._describe_calls(matching)}"
            )

    def should_not_have_made_any_calls(self):
        """Assert that the call log is empty."""
        if self.call_log:
            raise CallAssertionError(f"Expected no calls, but got: {self._describe_calls()}")

    def _describe_calls(self, calls: Optional[List[Call]] = None) -> str:
        calls = self.call_log if calls is None else calls
        if not calls:
            return "none"
        return ', '.join(f"{c.method} {c.url}" for c in calls)
