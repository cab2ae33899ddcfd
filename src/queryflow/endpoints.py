"""
Endpoint configuration - maps endpoint keys to URL/credential pairs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class EndpointConfig:
    """A GraphQL endpoint and the credential to send with it."""
    url: Optional[str] = None
    token: Optional[str] = None
    token_env: Optional[str] = None  # read the token from this environment variable

    @property
    def credential(self) -> Optional[str]:
        if self.token_env:
            value = os.getenv(self.token_env)
            if value:
                return value
        return self.token or None


@dataclass
class EndpointRegistry:
    """
    Known endpoints by key.

    Usage:
        registry = EndpointRegistry(
            endpoints={"erp": EndpointConfig(url="https://erp.example.com/graphql", token_env="ERP_TOKEN")},
            default_key="erp",
        )
        registry.resolve("erp").url
    """
    endpoints: dict[str, EndpointConfig] = field(default_factory=dict)
    default_key: Optional[str] = None

    def resolve(self, key: Optional[str]) -> EndpointConfig:
        """Endpoint for ``key``; an unknown key yields a config with ``url=None``."""
        if not key:
            return EndpointConfig()
        config = self.endpoints.get(key)
        if config is None:
            # Keys are matched case-insensitively as a fallback
            config = next(
                (cfg for name, cfg in self.endpoints.items() if name.lower() == key.lower()),
                None,
            )
        return config or EndpointConfig()

    def default(self) -> EndpointConfig:
        """Configured default endpoint, or the first one when no default is set."""
        if self.default_key:
            return self.resolve(self.default_key)
        if self.endpoints:
            return next(iter(self.endpoints.values()))
        return EndpointConfig()
