"""
Tests for calltap Call Setups

Tests the fluent setup builder including:
- AND semantics of registered predicates
- Declaration-time contradiction and duplicate detection
- URL, body, method, content type and header matchers
- Query parameter presence and value matchers
- Basic and bearer authorization matchers
- Custom and negated predicates
"""

import base64

import pytest

from calltap.mock.call import Call
from calltap.mock.matcher import (
    CallSetup,
    CallSetupAnd,
    MatchType,
    SetupConfigurationError
)
from calltap.mock.responses import MockResponse


def make_call(url='https://api.example.com/', method='GET', headers=None, body=None):
    return Call.capture(method=method, url=url, headers=headers, body=body)


@pytest.fixture
def setup():
    """Empty setup with a plain 200 response."""
    return CallSetup(MockResponse())


class TestPredicateSet:
    """Test AND-combination of predicates."""

    def test_empty_setup_matches_everything(self, setup):
        """Test a setup with no predicates always matches."""
        assert setup.matches(make_call())
        assert setup.matches(make_call('https://other.io/x', method='DELETE'))

    def test_all_predicates_must_hold(self, setup):
        """Test matches() is the AND of every predicate."""
        setup.when_url_is('*/users/*').and_.when_request_method_is('POST')

        assert setup.matches(make_call('https://api.example.com/users/1', method='POST'))
        assert not setup.matches(make_call('https://api.example.com/users/1', method='GET'))
        assert not setup.matches(make_call('https://api.example.com/orders/1', method='POST'))

    def test_continuation_shares_identity(self, setup):
        """Test builder methods return a handle to the same setup."""
        handle = setup.when_url_is('*')

        assert isinstance(handle, CallSetupAnd)
        assert handle.and_ is setup

    def test_descriptions(self, setup):
        setup.when_url_is('*/a').and_.when_header_is_present('X-Key')

        assert setup.descriptions == ['URL */a', 'header X-Key: *']


class TestContradictionValidator:
    """Test declaration-time validation."""

    def test_two_url_matchers_fail(self, setup):
        """Test a singleton category cannot be registered twice."""
        setup.when_url_is('*/a')

        with pytest.raises(SetupConfigurationError) as exc_info:
            setup.when_url_is('*/a')

        assert exc_info.value.match_type == MatchType.URL
        assert exc_info.value.previous == 'URL */a'
        assert 'Previous setup: URL */a' in str(exc_info.value)

    @pytest.mark.parametrize('first,second', [
        (lambda s: s.when_request_method_is('GET'), lambda s: s.when_request_method_is('POST')),
        (lambda s: s.when_content_type_is('a/b'), lambda s: s.when_content_type_is('c/d')),
        (lambda s: s.when_request_body_is('x'), lambda s: s.when_json_request_body_is({'a': 1})),
        (lambda s: s.when_basic_auth_is_used('u', 'p'), lambda s: s.when_oauth_bearer_token('t')),
    ])
    def test_singleton_categories(self, setup, first, second):
        """Test every singleton category rejects a second entry."""
        first(setup)

        with pytest.raises(SetupConfigurationError):
            second(setup)

    def test_header_present_then_absent_fails(self, setup):
        """Test opposite keyed categories conflict on the same key."""
        setup.when_header_is_present('X-Api-Key')

        with pytest.raises(SetupConfigurationError) as exc_info:
            setup.when_header_is_not_present('X-Api-Key')

        assert exc_info.value.key == 'X-Api-Key'
        assert 'HeaderExclusive' in str(exc_info.value)
        assert 'header X-Api-Key: *' in str(exc_info.value)

    def test_same_header_twice_fails(self, setup):
        setup.when_header_is_present('A', 'x')

        with pytest.raises(SetupConfigurationError, match='for the same A'):
            setup.when_header_is_present('A', 'y')

    def test_header_contradiction_ignores_case(self, setup):
        """Test header names differing only in case still conflict."""
        setup.when_header_is_present('X-Api-Key')

        with pytest.raises(SetupConfigurationError) as exc_info:
            setup.when_header_is_not_present('x-api-key')

        assert exc_info.value.previous == 'header X-Api-Key: *'
        assert setup.descriptions == ['header X-Api-Key: *']

    def test_same_header_twice_ignores_case(self, setup):
        setup.when_header_is_present('Accept')

        with pytest.raises(SetupConfigurationError):
            setup.when_header_is_present('ACCEPT')

    def test_different_headers_succeed(self, setup):
        """Test keyed categories allow distinct keys."""
        setup.when_header_is_present('A').and_.when_header_is_present('B')

        call = make_call(headers=[('A', '1'), ('B', '2')])
        assert setup.matches(call)

    def test_query_param_absent_then_present_fails(self, setup):
        setup.when_query_params_are_not_present('id')

        with pytest.raises(SetupConfigurationError):
            setup.when_query_params_are_present('id')

    def test_query_param_presence_and_value_coexist(self, setup):
        """Test presence and value categories have no defined conflict."""
        setup.when_query_params_are_present('id').and_.when_query_param_value_is_present('id', '5')

        assert setup.matches(make_call('https://x.io/?id=5'))
        assert not setup.matches(make_call('https://x.io/?id=6'))

    def test_value_categories_unconstrained(self, setup):
        setup.when_query_param_value_is_present('a', '1')
        setup.when_query_param_value_is_present('a', '1')
        setup.when_query_param_value_is_not_present('a', '1')

        assert not setup.matches(make_call('https://x.io/?a=1'))

    def test_failed_registration_adds_nothing(self, setup):
        """Test a rejected matcher leaves the setup unchanged."""
        setup.when_url_is('*/a')

        with pytest.raises(SetupConfigurationError):
            setup.when_url_is('*/b')

        assert setup.descriptions == ['URL */a']
        assert setup.matches(make_call('https://x.io/a'))

    def test_custom_matchers_unconstrained(self, setup):
        setup.when(lambda c: True).and_.when(lambda c: True).and_.when_not(lambda c: False)

        assert setup.matches(make_call())


class TestUrlAndBodyMatchers:
    """Test URL, body, method and content type matchers."""

    def test_url_pattern(self, setup):
        setup.when_url_is('https://api.example.com/orders/*')

        assert setup.matches(make_call('https://api.example.com/orders/42'))
        assert setup.matches(make_call('https://api.example.com/orders/42?x=1'))
        assert not setup.matches(make_call('https://api.example.com/users/42'))

    def test_json_body(self, setup):
        setup.when_json_request_body_is({'name': 'John', 'age': 30})

        assert setup.matches(make_call(method='POST', body=b'{"name":"John","age":30}'))
        assert not setup.matches(make_call(method='POST', body=b'{"name":"Jane","age":30}'))

    def test_json_body_formatting_ignored(self, setup):
        """Test spaced and escaped JSON bodies compare in the serializer's form."""
        setup.when_json_request_body_is({'name': 'Zoë', 'age': 30})

        assert setup.matches(make_call(method='POST', body='{"name": "Zo\\u00eb", "age": 30}'))
        assert setup.matches(make_call(method='POST', body='{\n  "name": "Zoë",\n  "age": 30\n}'))
        assert not setup.matches(make_call(method='POST', body='{"age": 30, "name": "Zoë"}'))

    def test_json_body_wildcard(self, setup):
        """Test '*' inside a serialized value acts as a wildcard."""
        setup.when_json_request_body_is({'name': '*'})

        assert setup.matches(make_call(method='POST', body='{"name":"anyone"}'))

    def test_json_body_uses_setup_serializer(self):
        setup = CallSetup(MockResponse(), serializer=lambda data: 'custom')
        setup.when_json_request_body_is({'ignored': True})

        assert setup.matches(make_call(body='custom'))

    def test_raw_body_pattern(self, setup):
        setup.when_request_body_is('a=1&*')

        assert setup.matches(make_call(body='a=1&b=2'))
        assert not setup.matches(make_call(body='b=2'))

    def test_method(self, setup):
        setup.when_request_method_is('post')

        assert setup.matches(make_call(method='POST'))
        assert not setup.matches(make_call(method='PUT'))

    def test_content_type_ignores_parameters(self, setup):
        setup.when_content_type_is('application/json')

        assert setup.matches(make_call(headers=[('Content-Type', 'application/json; charset=utf-8')]))
        assert not setup.matches(make_call(headers=[('Content-Type', 'text/plain')]))
        assert not setup.matches(make_call())


class TestHeaderMatchers:
    """Test header presence and absence."""

    def test_present_any_value(self, setup):
        setup.when_header_is_present('X-Api-Key')

        assert setup.matches(make_call(headers=[('x-api-key', 'secret')]))
        assert not setup.matches(make_call())

    def test_present_value_pattern(self, setup):
        setup.when_header_is_present('Accept', 'application/*')

        assert setup.matches(make_call(headers=[('Accept', 'application/json')]))
        assert not setup.matches(make_call(headers=[('Accept', 'text/html')]))

    def test_not_present(self, setup):
        setup.when_header_is_not_present('X-Debug')

        assert setup.matches(make_call())
        assert not setup.matches(make_call(headers=[('X-Debug', '1')]))

    def test_not_present_with_value(self, setup):
        """Test absence with a value pattern allows other values."""
        setup.when_header_is_not_present('X-Mode', 'test')

        assert setup.matches(make_call(headers=[('X-Mode', 'live')]))
        assert not setup.matches(make_call(headers=[('X-Mode', 'test')]))


class TestQueryParamMatchers:
    """Test query parameter matchers."""

    def test_params_present(self, setup):
        setup.when_query_params_are_present('a', 'b')

        assert setup.matches(make_call('https://x.io/?a=1&b'))
        assert not setup.matches(make_call('https://x.io/?a=1'))

    def test_params_not_present(self, setup):
        setup.when_query_params_are_not_present('debug')

        assert setup.matches(make_call('https://x.io/?a=1'))
        assert not setup.matches(make_call('https://x.io/?debug=0'))

    def test_value_present_scalar(self, setup):
        setup.when_query_param_value_is_present('id', 5)

        assert setup.matches(make_call('https://x.io/?id=5'))
        assert not setup.matches(make_call('https://x.io/?id=7'))

    def test_value_collection_equals_sequential_calls(self):
        """Test a collection value expands into one matcher per element."""
        expanded = CallSetup(MockResponse())
        expanded.when_query_param_value_is_present('color', ['red', 'blue'])

        sequential = CallSetup(MockResponse())
        sequential.when_query_param_value_is_present('color', 'red')
        sequential.when_query_param_value_is_present('color', 'blue')

        assert expanded.descriptions == sequential.descriptions
        for url in ('https://x.io/?color=red&color=blue', 'https://x.io/?color=red', 'https://x.io/'):
            call = make_call(url)
            assert expanded.matches(call) == sequential.matches(call)

        assert expanded.matches(make_call('https://x.io/?color=blue&color=red'))
        assert not expanded.matches(make_call('https://x.io/?color=red'))

    def test_value_not_present_collection(self, setup):
        handle = setup.when_query_param_value_is_not_present('tag', ('a', 'b'))

        assert handle.and_ is setup
        assert setup.matches(make_call('https://x.io/?tag=c'))
        assert not setup.matches(make_call('https://x.io/?tag=b'))

    def test_values_match_mapping(self, setup):
        setup.when_query_param_values_match({'page': 2, 'sort': 'name*'})

        assert setup.matches(make_call('https://x.io/?page=2&sort=name_desc'))
        assert not setup.matches(make_call('https://x.io/?page=3&sort=name'))

    def test_values_match_query_string(self, setup):
        setup.when_query_param_values_match('a=1&b=2')

        assert setup.matches(make_call('https://x.io/?b=2&a=1'))

    def test_values_do_not_match(self, setup):
        setup.when_query_param_values_do_not_match({'env': ['prod', 'staging']})

        assert setup.matches(make_call('https://x.io/?env=dev'))
        assert not setup.matches(make_call('https://x.io/?env=staging'))

    def test_empty_values_returns_handle(self, setup):
        handle = setup.when_query_param_values_match({})

        assert handle.and_ is setup
        assert setup.descriptions == []


class TestAuthMatchers:
    """Test authorization matchers."""

    def test_basic_auth(self, setup):
        setup.when_basic_auth_is_used('user', 'pass')
        token = base64.b64encode(b'user:pass').decode()

        assert setup.matches(make_call(headers=[('Authorization', f'Basic {token}')]))

    @pytest.mark.parametrize('header', [
        'basic dXNlcjpwYXNz',
        'Basic dXNlcjpvdGhlcg==',
        'Bearer dXNlcjpwYXNz',
        'Basic',
    ])
    def test_basic_auth_mismatch(self, setup, header):
        """Test scheme and parameter must both match exactly."""
        setup.when_basic_auth_is_used('user', 'pass')

        assert not setup.matches(make_call(headers=[('Authorization', header)]))

    def test_bearer_token(self, setup):
        setup.when_oauth_bearer_token('abc123')

        assert setup.matches(make_call(headers=[('Authorization', 'Bearer abc123')]))
        assert not setup.matches(make_call(headers=[('Authorization', 'Bearer abc1234')]))
        assert not setup.matches(make_call())


class TestCustomMatchers:
    """Test arbitrary predicates."""

    def test_when(self, setup):
        setup.when(lambda c: c.url.endswith('/ping'))

        assert setup.matches(make_call('https://x.io/ping'))
        assert not setup.matches(make_call('https://x.io/pong'))

    def test_when_not(self, setup):
        setup.when_not(lambda c: c.method == 'DELETE')

        assert setup.matches(make_call(method='GET'))
        assert not setup.matches(make_call(method='DELETE'))

    def test_when_not_bypasses_category_rules(self, setup):
        """Test negated predicates are never checked against other categories."""
        setup.when_url_is('*/a').and_.when_not(lambda c: 'a' in c.url)

        assert not setup.matches(make_call('https://x.io/a'))
