"""
calltap Configuration

Settings for the fake transports: the default response served when no setup
matches, JSON serialization options and log level.
"""

from dataclasses import dataclass, field, fields
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

import yaml

from ..common import serialize_json
from .responses import MockResponse


@dataclass
class FakeConfig:
    """Configuration for fake transport behavior."""

    # Served when no setup matches, or no test is active
    default_status: int = 200
    default_body: str = ""
    default_headers: Dict[str, str] = field(default_factory=dict)

    # JSON serialization for request body matching and JSON responses
    json_separators: Tuple[str, str] = (",", ":")
    json_ensure_ascii: bool = False

    log_level: str = "warning"

    def default_response(self) -> MockResponse:
        """Build a fresh default response."""
        return MockResponse.text(self.default_body, status=self.default_status, headers=self.default_headers)

    def serializer(self) -> Callable[[Any], str]:
        """JSON serializer bound to this configuration."""
        return partial(
            serialize_json,
            separators=tuple(self.json_separators),
            ensure_ascii=self.json_ensure_ascii
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FakeConfig':
        """Create config from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in (data or {}).items() if k in known}
        if 'json_separators' in values:
            values['json_separators'] = tuple(values['json_separators'])
        return cls(**values)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'FakeConfig':
        """
        Load config from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file does not contain a mapping
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {path}, got {type(data).__name__}")

        return cls.from_dict(data)
