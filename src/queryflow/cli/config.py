"""
Configuration loading and validation for queryflow projects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from ..endpoints import EndpointConfig, EndpointRegistry
from ..runtime.client import GraphQLClient
from ..runtime.context import DEFAULT_MAX_DEPTH
from ..runtime.resolver import PipelineResolver
from ..runtime.sandbox import TransformerSandbox
from ..stores.yaml_store import YamlQueryStore

CONFIG_FILE = "queryflow.yaml"


@dataclass
class PipelineConfig:
    """Limits applied to every resolution."""
    max_depth: int = DEFAULT_MAX_DEPTH
    request_timeout: Optional[float] = 30.0
    transformer_timeout: Optional[float] = None


@dataclass
class StoreConfig:
    """Where query definitions live."""
    path: str = "queries"


@dataclass
class QueryflowConfig:
    """Main queryflow configuration."""
    version: int
    endpoints: dict[str, EndpointConfig] = field(default_factory=dict)
    default_endpoint: Optional[str] = None
    store: StoreConfig = field(default_factory=StoreConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueryflowConfig":
        """Create config from dictionary."""
        endpoints = {}
        for key, endpoint_data in (data.get("endpoints") or {}).items():
            if isinstance(endpoint_data, str):
                endpoint_data = {"url": endpoint_data}
            endpoints[key] = EndpointConfig(
                url=endpoint_data.get("url"),
                token=endpoint_data.get("token"),
                token_env=endpoint_data.get("token_env"),
            )

        store_data = data.get("store") or {}
        pipeline_data = data.get("pipeline") or {}

        return cls(
            version=data.get("version", 1),
            endpoints=endpoints,
            default_endpoint=data.get("default_endpoint"),
            store=StoreConfig(path=store_data.get("path", "queries")),
            pipeline=PipelineConfig(
                max_depth=pipeline_data.get("max_depth", DEFAULT_MAX_DEPTH),
                request_timeout=pipeline_data.get("request_timeout", 30.0),
                transformer_timeout=pipeline_data.get("transformer_timeout"),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for YAML serialization."""
        endpoints = {}
        for key, endpoint in self.endpoints.items():
            entry: dict[str, Any] = {"url": endpoint.url}
            if endpoint.token:
                entry["token"] = endpoint.token
            if endpoint.token_env:
                entry["token_env"] = endpoint.token_env
            endpoints[key] = entry

        return {
            "version": self.version,
            "default_endpoint": self.default_endpoint,
            "endpoints": endpoints,
            "store": {
                "path": self.store.path,
            },
            "pipeline": {
                "max_depth": self.pipeline.max_depth,
                "request_timeout": self.pipeline.request_timeout,
                "transformer_timeout": self.pipeline.transformer_timeout,
            },
        }

    def save(self, path: Path | str = CONFIG_FILE) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        content = yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False, allow_unicode=True)
        path.write_text(content)

    def endpoint_registry(self) -> EndpointRegistry:
        return EndpointRegistry(endpoints=dict(self.endpoints), default_key=self.default_endpoint)

    def store_path(self, base: Path | str = ".") -> Path:
        """Store path, relative paths resolved against ``base``."""
        path = Path(self.store.path)
        return path if path.is_absolute() else Path(base) / path

    def build_resolver(self, base: Path | str = ".", client: Optional[GraphQLClient] = None) -> PipelineResolver:
        """Wire store, client, endpoints and sandbox from this configuration."""
        store = YamlQueryStore(self.store_path(base))
        return PipelineResolver(
            store,
            client or GraphQLClient(timeout=self.pipeline.request_timeout),
            self.endpoint_registry(),
            sandbox=TransformerSandbox(helper_loader=store, timeout=self.pipeline.transformer_timeout),
        )


def load_config(path: Path | str = CONFIG_FILE) -> QueryflowConfig | None:
    """Load configuration from YAML file."""
    path = Path(path)
    if not path.exists():
        return None

    data = yaml.safe_load(path.read_text()) or {}
    return QueryflowConfig.from_dict(data)
