"""
calltap Mock Module

HTTP test double for code that talks to the network through httpx or requests.

This module provides:
- Fluent call setups with declaration-time contradiction checks
- Ordered, first-match dispatch of canned responses
- Fake httpx transport and requests adapter
- Call log with assertion helpers
"""

from .call import Call
from .config import FakeConfig
from .matcher import CallSetup, CallSetupAnd, MatchType, MatchMetadata, SetupConfigurationError
from .responses import MockResponse, SIMULATED_TIMEOUT, is_simulated_timeout
from .scope import HttpTest, CallAssertionError
from .transport import FakeTransport, FakeAdapter, dispatch

__all__ = [
    # Scope
    'HttpTest',
    'CallAssertionError',

    # Setups
    'CallSetup',
    'CallSetupAnd',
    'MatchType',
    'MatchMetadata',
    'SetupConfigurationError',

    # Calls and responses
    'Call',
    'MockResponse',
    'SIMULATED_TIMEOUT',
    'is_simulated_timeout',

    # Transports
    'FakeTransport',
    'FakeAdapter',
    'dispatch',

    # Config
    'FakeConfig',
]
