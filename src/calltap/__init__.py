"""
calltap - HTTP test double with fluent call setups.
"""

from .mock import (
    HttpTest,
    CallAssertionError,
    CallSetup,
    SetupConfigurationError,
    Call,
    MockResponse,
    SIMULATED_TIMEOUT,
    FakeTransport,
    FakeAdapter,
    FakeConfig,
)

__all__ = [
    'HttpTest',
    'CallAssertionError',
    'CallSetup',
    'SetupConfigurationError',
    'Call',
    'MockResponse',
    'SIMULATED_TIMEOUT',
    'FakeTransport',
    'FakeAdapter',
    'FakeConfig',
]

__version__ = '1.0.0'
