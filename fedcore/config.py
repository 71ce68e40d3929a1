# fedcore/config.py
"""
Instance configuration.

One FederationConfig is built at startup and passed to every component
that needs the instance base URL. It is never mutated afterwards.

Example YAML:

    base_url: https://forum.example
    cache_ttl: 300
    request_timeout: 10
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict

import yaml

from .constants import CACHE_TTL_SECONDS


def load_yaml_mapping(yaml_content: str) -> Dict[str, Any]:
    """Parse YAML that must be a mapping (an empty document is {})."""
    try:
        data = yaml.safe_load(yaml_content) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid config YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Config must be a YAML mapping")
    return data


@dataclass(frozen=True)
class FederationConfig:
    """
    Process-wide federation settings.

    Attributes:
        base_url: Instance base URL, used for keyId and actor URIs
        cache_ttl: Seconds a fetched resource stays cached
        key_size: RSA modulus size for generated keypairs
        request_timeout: Seconds before an outbound request is abandoned
        cache_public_keys: Route key document fetches through the cache
        user_agent: User-Agent header on outbound requests
    """
    base_url: str
    cache_ttl: float = CACHE_TTL_SECONDS
    key_size: int = 2048
    request_timeout: float = 30.0
    cache_public_keys: bool = False
    user_agent: str = "fedcore"

    def __post_init__(self):
        if not self.base_url:
            raise ValueError("base_url is required")
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL: {self.base_url}")
        if self.cache_ttl <= 0:
            raise ValueError("cache_ttl must be positive")
        # frozen, so bypass __setattr__
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FederationConfig":
        """Build from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "FederationConfig":
        """Parse config from YAML content."""
        return cls.from_dict(load_yaml_mapping(yaml_content))

    @classmethod
    def from_file(cls, path: Path | str) -> "FederationConfig":
        """Load config from a YAML file."""
        with open(path) as f:
            return cls.from_yaml(f.read())

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
