"""
Execution context for one top-level query resolution.

Shared by reference through every nested resolution triggered by
transformers. Not safe to share between two top-level invocations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Optional

from ..core.errors import AlreadyInFlightError, CycleError, DepthExceededError

DEFAULT_MAX_DEPTH = 10


@dataclass
class InFlightEntry:
    """Metadata about a query that is currently executing."""
    endpoint: Optional[str] = None


@dataclass
class ExecutionContext:
    """
    Guards for recursive query resolution.

    Contains:
    - in_flight: query name -> entry, for every query currently executing
    - dependency_stack: names from the top-level query down to the current one
    - max_depth: ceiling on dependency_stack length
    - warnings: non-fatal diagnostics collected during the run
    """
    max_depth: int = DEFAULT_MAX_DEPTH
    in_flight: dict[str, InFlightEntry] = field(default_factory=dict)
    dependency_stack: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    # User helper library, loaded at most once per context
    user_library: Optional[SimpleNamespace] = None

    @property
    def depth(self) -> int:
        return len(self.dependency_stack)

    def chain_to(self, name: str) -> list[str]:
        """Current dependency chain extended with ``name``."""
        return [*self.dependency_stack, name]

    def enter(self, name: str, endpoint: Optional[str] = None) -> None:
        """
        Register ``name`` as executing.

        Raises:
            CycleError: name is already on the dependency stack
            DepthExceededError: the stack is already max_depth deep
            AlreadyInFlightError: name is executing in another branch
        """
        if name in self.dependency_stack:
            raise CycleError(self.chain_to(name))

        if len(self.dependency_stack) >= self.max_depth:
            raise DepthExceededError(self.chain_to(name), self.max_depth)

        if name in self.in_flight:
            raise AlreadyInFlightError(name, self.in_flight[name].endpoint, self.chain_to(name))

        self.in_flight[name] = InFlightEntry(endpoint=endpoint)
        self.dependency_stack.append(name)

    def set_endpoint(self, name: str, endpoint: str) -> None:
        """Record the endpoint an executing query resolved to."""
        entry = self.in_flight.get(name)
        if entry is not None:
            entry.endpoint = endpoint

    def leave(self, name: str) -> None:
        """Unregister ``name``. Must run once for every successful enter()."""
        self.in_flight.pop(name, None)
        if self.dependency_stack and self.dependency_stack[-1] == name:
            self.dependency_stack.pop()
        elif name in self.dependency_stack:
            # Sibling branches awaited concurrently can finish out of order
            idx = len(self.dependency_stack) - 1 - self.dependency_stack[::-1].index(name)
            del self.dependency_stack[idx]

    def warn(self, message: str) -> None:
        self.warnings.append(message)


def create_execution_context(max_depth: int = DEFAULT_MAX_DEPTH) -> ExecutionContext:
    """Create a fresh context for one top-level invocation."""
    if max_depth < 1:
        raise ValueError(f"max_depth must be at least 1, got {max_depth}")
    return ExecutionContext(max_depth=max_depth)
