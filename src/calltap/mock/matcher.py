"""
calltap Call Setups

Fluent declaration of which outgoing calls a canned response answers.

A CallSetup is an AND-group of predicates over a captured Call plus one planned
response. Every builder method validates the new matcher against the ones
already registered on the same setup before adding it, so contradictory or
duplicated conditions fail at declaration time instead of producing a setup
that silently never matches.

Example:
    test.respond_with_json([]) \\
        .when_url_is('*/orders/*').and_ \\
        .when_request_method_is('GET').and_ \\
        .when_header_is_present('X-Api-Key')
"""

import base64
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..common import URLMatcher, is_multi_value, safe_json_parse, serialize_json, to_key_value_pairs
from .call import Call
from .responses import ResponsePlan

logger = logging.getLogger("calltap.mock.matcher")

CallPredicate = Callable[[Call], bool]

_NOT_JSON = object()


class MatchType(Enum):
    """Kind of condition registered on a setup."""

    AUTH = 'Auth'
    BODY = 'Body'
    CONTENT_TYPE = 'ContentType'
    METHOD = 'Method'
    HEADER_INCLUSIVE = 'HeaderInclusive'
    HEADER_EXCLUSIVE = 'HeaderExclusive'
    URL = 'Url'
    QUERY_PARAM_INCLUSIVE = 'QueryParamInclusive'
    QUERY_PARAMS_EXCLUSIVE = 'QueryParamsExclusive'
    QUERY_PARAM_VALUE_INCLUSIVE = 'QueryParamValueInclusive'
    QUERY_PARAM_VALUE_EXCLUSIVE = 'QueryParamValueExclusive'
    CUSTOM = 'Custom'

    def __str__(self) -> str:
        return self.value


SINGLETON_TYPES = frozenset({
    MatchType.URL,
    MatchType.BODY,
    MatchType.CONTENT_TYPE,
    MatchType.METHOD,
    MatchType.AUTH,
})

CONTRADICTORY_TYPES = {
    MatchType.HEADER_INCLUSIVE: MatchType.HEADER_EXCLUSIVE,
    MatchType.HEADER_EXCLUSIVE: MatchType.HEADER_INCLUSIVE,
    MatchType.QUERY_PARAM_INCLUSIVE: MatchType.QUERY_PARAMS_EXCLUSIVE,
    MatchType.QUERY_PARAMS_EXCLUSIVE: MatchType.QUERY_PARAM_INCLUSIVE,
}


class SetupConfigurationError(ValueError):
    """A matcher duplicates or contradicts one already on the setup."""

    def __init__(self, message: str, match_type: MatchType, key: Optional[str], previous: str):
        super().__init__(message)
        self.match_type = match_type
        self.key = key
        self.previous = previous


@dataclass(frozen=True)
class MatchMetadata:
    """Record of one registered matcher, used for contradiction checks."""

    match_type: MatchType
    message: str
    key: Optional[str] = None


class CallSetupAnd:
    """Continuation returned by every builder method."""

    def __init__(self, setup: 'CallSetup'):
        self._setup = setup

    @property
    def and_(self) -> 'CallSetup':
        """The setup to keep chaining conditions onto."""
        return self._setup


class CallSetup:
    """
    An ordered AND-group of call predicates with one planned response.

    Instances are created by HttpTest.respond_with() and friends; conditions
    are added with the when_* methods.
    """

    def __init__(self, response: ResponsePlan, serializer: Optional[Callable[[Any], str]] = None):
        self.response = response
        self._serializer = serializer or serialize_json
        self._and = CallSetupAnd(self)
        self._matchers: List[CallPredicate] = []
        self._metadata: Dict[MatchType, List[MatchMetadata]] = {}

    @property
    def descriptions(self) -> List[str]:
        """Messages of every registered matcher, in registration order."""
        return [m.message for entries in self._metadata.values() for m in entries]

    def matches(self, call: Call) -> bool:
        """Return True if every registered predicate accepts the call."""
        return all(matcher(call) for matcher in self._matchers)

    def when_url_is(self, url_pattern: str) -> CallSetupAnd:
        """Match the full request URL against a '*' wildcard pattern."""
        self._add_metadata(MatchType.URL, f"URL {url_pattern}")
        return self._add_matcher(lambda c: URLMatcher.matches_pattern(c.url, url_pattern))

    def when_json_request_body_is(self, body: Any) -> CallSetupAnd:
        """
        Match the request body against a value serialized as JSON.

        The serialized text is used as a pattern, so '*' inside string values
        acts as a wildcard. A JSON request body is re-serialized with the same
        serializer first, so client formatting (separators, escaping) does
        not affect the match.
        """
        body_json = self._serializer(body)
        self._add_metadata(MatchType.BODY, body_json)
        return self._add_matcher(lambda c: URLMatcher.matches_pattern(self._normalize_json(c.body), body_json))

    def when_request_body_is(self, body_pattern: str) -> CallSetupAnd:
        """Match the raw request body text against a wildcard pattern."""
        self._add_metadata(MatchType.BODY, body_pattern)
        return self._add_matcher(lambda c: URLMatcher.matches_pattern(c.body, body_pattern))

    def when_request_method_is(self, method: str) -> CallSetupAnd:
        """Match the HTTP method. Can only be matched on once."""
        method = method.upper()
        self._add_metadata(MatchType.METHOD, f"Method: {method}")
        return self._add_matcher(lambda c: c.method == method)

    def when_query_params_are_present(self, *names: str) -> CallSetupAnd:
        """Match when each named query param is present, whatever its value."""
        for name in names:
            self._add_metadata(MatchType.QUERY_PARAM_INCLUSIVE, f"query parameter {name}", name)
            self._add_matcher(lambda c, name=name: any(q.name == name for q in c.query_params))
        return self._and

    def when_query_params_are_not_present(self, *names: str) -> CallSetupAnd:
        """Match when none of the named query params are present."""
        for name in names:
            self._add_metadata(MatchType.QUERY_PARAMS_EXCLUSIVE, f"no query parameter {name}", name)
            self._add_matcher(lambda c, name=name: not any(q.name == name for q in c.query_params))
        return self._and

    def when_query_param_value_is_present(self, name: str, value: Any = None) -> CallSetupAnd:
        """
        Match a query param name and value.

        Args:
            name: Query parameter name
            value: None for any value, a str wildcard pattern, a scalar, or a
                collection of those (each element must be present)
        """
        if is_multi_value(value):
            result = self._and
            for item in value:
                result = self.when_query_param_value_is_present(name, item)
            return result

        self._add_metadata(MatchType.QUERY_PARAM_VALUE_INCLUSIVE, f"query parameter {name}={value}", name)
        return self._add_matcher(
            lambda c: any(URLMatcher.query_param_matches(q, name, value) for q in c.query_params)
        )

    def when_query_param_value_is_not_present(self, name: str, value: Any = None) -> CallSetupAnd:
        """
        Match when a query param name and value are not present.

        A collection value expands into one condition per element.
        """
        if is_multi_value(value):
            result = self._and
            for item in value:
                result = self.when_query_param_value_is_not_present(name, item)
            return result

        self._add_metadata(MatchType.QUERY_PARAM_VALUE_EXCLUSIVE, f"no query parameter {name}={value}", name)
        return self._add_matcher(
            lambda c: not any(URLMatcher.query_param_matches(q, name, value) for q in c.query_params)
        )

    def when_query_param_values_match(self, values: Any) -> CallSetupAnd:
        """Match every name/value pair of a mapping, pair list or query string."""
        result = self._and
        for name, value in to_key_value_pairs(values):
            result = self.when_query_param_value_is_present(name, value)
        return result

    def when_query_param_values_do_not_match(self, values: Any) -> CallSetupAnd:
        """Match when no name/value pair of the given collection is present."""
        result = self._and
        for name, value in to_key_value_pairs(values):
            result = self.when_query_param_value_is_not_present(name, value)
        return result

    def when_content_type_is(self, content_type: str) -> CallSetupAnd:
        """Match the request media type exactly (parameters such as charset are ignored)."""
        self._add_metadata(MatchType.CONTENT_TYPE, f"content type {content_type}", content_type)
        return self._add_matcher(lambda c: c.content_type == content_type)

    # Header names are case-insensitive, so they are keyed in lower case

    def when_header_is_present(self, name: str, value_pattern: str = '*') -> CallSetupAnd:
        self._add_metadata(MatchType.HEADER_INCLUSIVE, f"header {name}: {value_pattern}", name.lower())
        return self._add_matcher(lambda c: _header_matches(c, name, value_pattern))

    def when_header_is_not_present(self, name: str, value_pattern: str = '*') -> CallSetupAnd:
        self._add_metadata(MatchType.HEADER_EXCLUSIVE, f"no header {name}: {value_pattern}", name.lower())
        return self._add_matcher(lambda c: not _header_matches(c, name, value_pattern))

    def when_basic_auth_is_used(self, username: str, password: str) -> CallSetupAnd:
        self._add_metadata(MatchType.AUTH, f"basic auth credentials {username}/{password}")

        value = base64.b64encode(f"{username}:{password}".encode('utf-8')).decode('ascii')
        return self._add_matcher(lambda c: c.auth_scheme == 'Basic' and c.auth_parameter == value)

    def when_oauth_bearer_token(self, token: str) -> CallSetupAnd:
        self._add_metadata(MatchType.AUTH, f"OAuth bearer token {token}")
        return self._add_matcher(lambda c: c.auth_scheme == 'Bearer' and c.auth_parameter == token)

    def when_not(self, match: CallPredicate) -> CallSetupAnd:
        """Match when an arbitrary predicate returns False."""
        self._add_metadata(MatchType.CUSTOM, "when_not")
        return self._add_matcher(lambda c: not match(c))

    def when(self, match: CallPredicate) -> CallSetupAnd:
        """Match with an arbitrary predicate over the captured call."""
        self._add_metadata(MatchType.CUSTOM, "when")
        return self._add_matcher(match)

    def _normalize_json(self, body: str) -> str:
        """Re-serialize a JSON body with this setup's serializer; other text is returned as is."""
        parsed = safe_json_parse(body, default=_NOT_JSON)
        if parsed is _NOT_JSON:
            return body
        return self._serializer(parsed)

    def _add_matcher(self, match: CallPredicate) -> CallSetupAnd:
        self._matchers.append(match)
        return self._and

    def _add_metadata(self, match_type: MatchType, message: str, key: Optional[str] = None):
        """
        Record a matcher after checking it against existing ones.

        Raises:
            SetupConfigurationError: If the matcher duplicates a singleton
                condition, repeats a keyed condition, or contradicts its
                opposite for the same key
        """
        existing = self._metadata.get(match_type, [])

        if match_type in SINGLETON_TYPES:
            if existing:
                self._fail(
                    f"Cannot setup multiple {match_type}. Previous setup: {existing[0].message}",
                    match_type, key, existing[0]
                )
        elif match_type in CONTRADICTORY_TYPES:
            duplicate = next((m for m in existing if m.key == key), None)
            if duplicate is not None:
                self._fail(
                    f"Cannot setup multiple {match_type} for the same {key}. Previous setup: {duplicate.message}",
                    match_type, key, duplicate
                )

            contradictory_type = CONTRADICTORY_TYPES[match_type]
            contradiction = next(
                (m for m in self._metadata.get(contradictory_type, []) if m.key == key), None
            )
            if contradiction is not None:
                self._fail(
                    f"Cannot setup both {match_type} and {contradictory_type} for {key}. "
                    f"Previous setup: {contradiction.message}",
                    match_type, key, contradiction
                )

        self._metadata.setdefault(match_type, []).append(MatchMetadata(match_type, message, key))
        logger.debug(f"Registered {match_type} matcher: {message}")

    @staticmethod
    def _fail(message: str, match_type: MatchType, key: Optional[str], previous: MatchMetadata):
        logger.debug(f"Rejected {match_type} matcher: {message}")
        raise SetupConfigurationError(message, match_type, key, previous.message)

    def __repr__(self) -> str:
        return f"CallSetup(response={self.response!r}, matchers={self.descriptions!r})"


def _header_matches(call: Call, name: str, value_pattern: str) -> bool:
    value = call.get_header(name)
    return value is not None and URLMatcher.matches_pattern(value, value_pattern)
