"""
Custom exceptions for the queryflow pipeline.

Every error carries a ``kind`` and can be rendered with ``to_dict()`` so the
caller can show a diagnostic without digging through a traceback.
"""

from __future__ import annotations

from typing import Any, Optional


CHAIN_SEPARATOR = " → "


def format_chain(chain: list[str]) -> str:
    """Join a dependency chain for display."""
    return CHAIN_SEPARATOR.join(chain)


class QueryflowError(Exception):
    """Base exception for all queryflow errors."""

    kind = "error"

    def __init__(self, message: str):
        self.message = message
        # Dependency chain at the point of failure, filled in by the resolver
        self.chain: Optional[list[str]] = None
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Structured detail for API/CLI output."""
        detail: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.chain:
            detail["chain"] = list(self.chain)
        return detail


# --- Guard errors (raised before any I/O) ---

class GuardError(QueryflowError):
    """Raised by the execution context when a query may not be entered."""


class CycleError(GuardError):
    """Raised when a query is already part of the dependency chain."""

    kind = "cycle"

    def __init__(self, chain: list[str]):
        super().__init__(
            f"Circular dependency detected: {format_chain(chain)}\n"
            f"Query \"{chain[-1]}\" is already in the dependency chain."
        )
        self.chain = list(chain)


class DepthExceededError(GuardError):
    """Raised when entering a query would exceed the maximum depth."""

    kind = "depth_exceeded"

    def __init__(self, chain: list[str], max_depth: int):
        self.max_depth = max_depth
        super().__init__(
            f"Maximum dependency depth ({max_depth}) exceeded.\n"
            f"Dependency chain: {format_chain(chain)}"
        )
        self.chain = list(chain)


class AlreadyInFlightError(GuardError):
    """Raised when the same query is started twice within one context."""

    kind = "already_in_flight"

    def __init__(self, name: str, endpoint: Optional[str] = None, chain: Optional[list[str]] = None):
        self.name = name
        self.endpoint = endpoint
        super().__init__(
            f"Query \"{name}\" is already being executed"
            f"{f' against {endpoint}' if endpoint else ''}. "
            f"This may indicate a concurrent execution issue or circular dependency."
        )
        self.chain = chain


# --- Definition errors ---

class DefinitionError(QueryflowError):
    """Raised when a query definition cannot be turned into a request."""


class QueryNotFoundError(DefinitionError):
    """Raised when the store has no definition for a name."""

    kind = "not_found"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Query \"{name}\" not found")


class EmptyBodyError(DefinitionError):
    """Raised when a definition has no query text."""

    kind = "empty_body"

    def __init__(self, name: Optional[str] = None):
        self.name = name
        super().__init__(f"Query body is empty{f' for {name!r}' if name else ''}")


class NoEndpointError(DefinitionError):
    """Raised when no endpoint URL can be resolved."""

    kind = "no_endpoint"

    def __init__(self, name: Optional[str] = None):
        self.name = name
        super().__init__(f"GraphQL endpoint URL is not set{f' for {name!r}' if name else ''}")


# --- Transport errors ---

class TransportError(QueryflowError):
    """Raised when the request/response exchange fails."""


class NetworkError(TransportError):
    """Raised when the endpoint cannot be reached."""

    kind = "network"

    def __init__(self, endpoint: str, message: str):
        self.endpoint = endpoint
        super().__init__(
            f"Network error: {message or 'Failed to connect to GraphQL endpoint'}. "
            f"Please check your connection and endpoint URL ({endpoint})."
        )


class HttpError(TransportError):
    """Raised when the endpoint answers with a non-success status."""

    kind = "http"

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.detail = message
        super().__init__(f"HTTP {status_code}: {message}")

    def to_dict(self) -> dict[str, Any]:
        detail = super().to_dict()
        detail["status_code"] = self.status_code
        return detail


class DecodeError(TransportError):
    """Raised when a successful response is not valid JSON."""

    kind = "decode"

    def __init__(self, preview: str):
        self.preview = preview
        super().__init__(f"Invalid JSON response from GraphQL endpoint: {preview}")


# --- Response and transformer errors ---

class InBandError(QueryflowError):
    """Raised when a decoded response reports errors in its body."""

    kind = "in_band"

    def __init__(self, messages: list[str]):
        self.messages = messages
        super().__init__(f"GraphQL errors: {'; '.join(messages)}")


class SandboxError(QueryflowError):
    """Raised when transformer code is rejected or fails at runtime."""

    kind = "sandbox"

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        error_type: Optional[str] = None,
        query_name: Optional[str] = None,
    ):
        self.line = line
        self.error_type = error_type
        self.query_name = query_name
        where = f" (line {line})" if line is not None else ""
        prefix = f"{error_type}: " if error_type else ""
        target = f" in transformer of {query_name!r}" if query_name else ""
        super().__init__(f"Transformer failed{target}{where}: {prefix}{message}")

    def to_dict(self) -> dict[str, Any]:
        detail = super().to_dict()
        if self.line is not None:
            detail["line"] = self.line
        if self.error_type:
            detail["error_type"] = self.error_type
        return detail
