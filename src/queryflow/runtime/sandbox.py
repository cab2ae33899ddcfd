"""
Transformer sandbox.

Runs user supplied Python as the body of an ``async def`` so transformer code
can ``await query("Other")``. Code is validated via AST analysis to block
dangerous constructs (imports, dunder access, exec/eval/open, writes to the
exposed modules) and executed with a restricted set of builtins.

Names available to transformer code:
    data          deep copy of the extracted result sets
    query         async callback resolving another named query
    helpers       user helper library (empty namespace if unavailable)
    gather        awaits several queries at once; on the first failure the
                  remaining ones are cancelled before the error propagates
    OrderedDict   to return an order-preserving result
    jmespath, json, math, statistics, itertools, functools, operator, datetime
"""

from __future__ import annotations

import ast
import asyncio
import builtins
import copy
import datetime
import functools
import itertools
import json
import logging
import math
import operator
import statistics
import traceback
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Mapping
from types import ModuleType, SimpleNamespace
from typing import Any, Optional, Protocol

import jmespath

from ..core.errors import QueryflowError, SandboxError
from .context import ExecutionContext

logger = logging.getLogger(__name__)

TRANSFORMER_FILENAME = "<transformer>"
HELPERS_FILENAME = "<helpers>"

QueryCallback = Callable[[str], Awaitable[Any]]

# Builtins that are safe to use in transformer and helper code
_SAFE_BUILTINS = frozenset({
    "abs", "all", "any", "bool", "dict", "divmod", "enumerate", "filter",
    "float", "frozenset", "int", "isinstance", "iter", "len", "list", "map",
    "max", "min", "next", "pow", "print", "range", "repr", "reversed",
    "round", "set", "slice", "sorted", "str", "sum", "tuple", "zip",
    "Exception", "ValueError", "TypeError", "KeyError", "IndexError",
    "LookupError", "ZeroDivisionError", "StopIteration",
    # needed for class statements; not reachable by name (dunder names are rejected)
    "__build_class__",
})

# Builtins that are explicitly dangerous
_DANGEROUS_BUILTINS = frozenset({
    "exec", "eval", "compile", "open", "__import__", "getattr", "setattr",
    "delattr", "globals", "locals", "vars", "dir", "breakpoint", "exit",
    "quit", "input", "memoryview", "classmethod", "staticmethod", "super",
    "property", "type",
})

# Frame, code and traceback introspection reaches the host's globals
_BLOCKED_ATTR_PREFIXES = ("gi_", "cr_", "ag_", "f_", "tb_", "co_")

# Attributes that look up other attributes from a string
_BLOCKED_ATTRS = frozenset({"format", "format_map", "attrgetter", "methodcaller"})

# Read-only capabilities: attributes of these may not be assigned or deleted
_MODULE_NAMES = frozenset({
    "jmespath", "json", "math", "statistics", "itertools", "functools",
    "operator", "datetime", "helpers", "OrderedDict", "gather",
})


class HelperLibraryLoader(Protocol):
    """Source of the user helper library (Python source text)."""

    async def load_user_library(self) -> str:
        ...


def validate_code(tree: ast.AST) -> list[str]:
    """Validate parsed transformer/helper code.

    Returns:
        List of violation descriptions. Empty list means code is safe.
    """
    violations = []

    for node in ast.walk(tree):
        if isinstance(node, (ast.Import, ast.ImportFrom)):
            violations.append(f"line {node.lineno}: imports are not allowed")

        if isinstance(node, (ast.Global, ast.Nonlocal)):
            violations.append(f"line {node.lineno}: global/nonlocal statements are not allowed")

        if isinstance(node, ast.Name):
            if node.id in _DANGEROUS_BUILTINS:
                violations.append(f"line {node.lineno}: builtin '{node.id}' is not allowed")
            elif node.id.startswith("__"):
                violations.append(f"line {node.lineno}: name '{node.id}' is not allowed")

        if isinstance(node, ast.Attribute):
            if node.attr.startswith("__"):
                violations.append(f"line {node.lineno}: dunder attribute access '{node.attr}' is not allowed")
            elif node.attr.startswith(_BLOCKED_ATTR_PREFIXES) or node.attr in _BLOCKED_ATTRS:
                violations.append(f"line {node.lineno}: attribute '{node.attr}' is not allowed")
            elif (
                isinstance(node.ctx, (ast.Store, ast.Del))
                and isinstance(node.value, ast.Name)
                and node.value.id in _MODULE_NAMES
            ):
                violations.append(f"line {node.lineno}: '{node.value.id}' is read-only")

    return violations


def _safe_builtins() -> dict[str, Any]:
    return {name: getattr(builtins, name) for name in _SAFE_BUILTINS if hasattr(builtins, name)}


def _public_namespace(module: ModuleType) -> SimpleNamespace:
    """Public members of ``module`` without the modules it imports."""
    return SimpleNamespace(**{
        name: value
        for name, value in vars(module).items()
        if not name.startswith("_") and not isinstance(value, ModuleType) and name not in _BLOCKED_ATTRS
    })


async def gather(*aws: Awaitable[Any]) -> list[Any]:
    """
    Like asyncio.gather, but when one awaitable fails the others are
    cancelled and awaited before the error propagates.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _capabilities() -> dict[str, Any]:
    capabilities: dict[str, Any] = {
        name: _public_namespace(module)
        for name, module in (
            ("jmespath", jmespath),
            ("json", json),
            ("math", math),
            ("statistics", statistics),
            ("itertools", itertools),
            ("functools", functools),
            ("operator", operator),
            ("datetime", datetime),
        )
    }
    capabilities["OrderedDict"] = OrderedDict
    capabilities["gather"] = gather
    return capabilities


def _error_line(exc: BaseException, filename: str) -> Optional[int]:
    """Innermost line of ``filename`` in the traceback of ``exc``."""
    if isinstance(exc, SyntaxError) and exc.filename == filename:
        return exc.lineno
    line = None
    for frame in traceback.extract_tb(exc.__traceback__):
        if frame.filename == filename:
            line = frame.lineno
    return line


def compile_transformer(code: str, query_name: Optional[str] = None) -> Any:
    """
    Parse and validate transformer code, wrapped as ``async def transformer()``.

    Line numbers in the compiled code match the transformer source.

    Raises:
        SandboxError: syntax error or disallowed construct
    """
    try:
        body = ast.parse(code, filename=TRANSFORMER_FILENAME, mode="exec")
    except SyntaxError as e:
        raise SandboxError(e.msg, line=e.lineno, error_type="SyntaxError", query_name=query_name) from e

    violations = validate_code(body)
    if violations:
        raise SandboxError("; ".join(violations), error_type="ValidationError", query_name=query_name)

    wrapper = ast.parse("async def transformer():\n    pass\n", filename=TRANSFORMER_FILENAME)
    if body.body:
        wrapper.body[0].body = body.body

    try:
        return compile(wrapper, TRANSFORMER_FILENAME, "exec")
    except SyntaxError as e:
        raise SandboxError(e.msg, line=e.lineno, error_type="SyntaxError", query_name=query_name) from e


class TransformerSandbox:
    """
    Executes transformer code against extracted result sets.

    Usage:
        sandbox = TransformerSandbox(helper_loader=store, timeout=60)
        result = await sandbox.run(code, raw_data, query, context=context)
    """

    def __init__(
        self,
        helper_loader: Optional[HelperLibraryLoader] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize sandbox.

        Args:
            helper_loader: Provides the user helper library source (optional)
            timeout: Maximum seconds a transformer may run (None = unbounded)
        """
        self.helper_loader = helper_loader
        self.timeout = timeout

    async def load_helpers(self, context: Optional[ExecutionContext] = None) -> SimpleNamespace:
        """
        Load the user helper library, once per execution context.

        Failures never abort the transformer: they are logged and produce an
        empty namespace.
        """
        if context is not None and context.user_library is not None:
            return context.user_library

        library = SimpleNamespace()
        if self.helper_loader is not None:
            try:
                source = await self.helper_loader.load_user_library()
                if source and source.strip():
                    library = self._build_library(source)
            except Exception as e:
                message = f"Failed to load helper library, continuing without helpers: {e}"
                logger.warning(message)
                if context is not None:
                    context.warn(message)
                library = SimpleNamespace()

        if context is not None:
            context.user_library = library
        return library

    def _build_library(self, source: str) -> SimpleNamespace:
        tree = ast.parse(source, filename=HELPERS_FILENAME, mode="exec")
        violations = validate_code(tree)
        if violations:
            raise SandboxError("; ".join(violations), error_type="ValidationError")

        namespace: dict[str, Any] = {"__builtins__": _safe_builtins(), "__name__": "helpers"}
        namespace.update(_capabilities())
        exec(compile(tree, HELPERS_FILENAME, "exec"), namespace)

        capabilities = _capabilities()
        exported = {
            name: value
            for name, value in namespace.items()
            if not name.startswith("_") and name not in capabilities
        }
        return SimpleNamespace(**exported)

    async def run(
        self,
        code: str,
        raw_data: Any,
        query: QueryCallback,
        *,
        context: Optional[ExecutionContext] = None,
        query_name: Optional[str] = None,
    ) -> Any:
        """
        Execute transformer code and return its result set.

        Args:
            code: Transformer source (body of an async function)
            raw_data: Extracted result sets; the code sees a deep copy
            query: Callback resolving another named query
            context: Execution context (helper library cache, warnings)
            query_name: Name of the query being transformed, for diagnostics

        Returns:
            The mapping returned by the code (dict or OrderedDict kept as is),
            or ``raw_data`` when the code returned nothing usable.

        Raises:
            SandboxError: the code is invalid, raised, or timed out
            QueryflowError: a nested query failed (propagated unchanged)
        """
        if not code or not code.strip():
            return raw_data

        compiled = compile_transformer(code, query_name)
        helpers = await self.load_helpers(context)

        namespace: dict[str, Any] = {
            "__builtins__": _safe_builtins(),
            "__name__": "transformer",
            "data": copy.deepcopy(raw_data) if raw_data is not None else {},
            "query": query,
            "helpers": helpers,
        }
        namespace.update(_capabilities())

        try:
            exec(compiled, namespace)
            transformer = namespace["transformer"]
            if self.timeout is not None:
                result = await asyncio.wait_for(transformer(), timeout=self.timeout)
            else:
                result = await transformer()
        except QueryflowError:
            raise
        except asyncio.TimeoutError as e:
            logger.error(f"Transformer timed out after {self.timeout}s: {query_name}")
            raise SandboxError(
                f"timed out after {self.timeout}s",
                error_type="TimeoutError",
                query_name=query_name,
            ) from e
        except Exception as e:
            line = _error_line(e, TRANSFORMER_FILENAME)
            logger.error(f"Transformer execution failed: {query_name}: {type(e).__name__}: {e}")
            raise SandboxError(
                str(e),
                line=line,
                error_type=type(e).__name__,
                query_name=query_name,
            ) from e

        return self._validate_result(result, raw_data, context, query_name)

    def _validate_result(
        self,
        result: Any,
        raw_data: Any,
        context: Optional[ExecutionContext],
        query_name: Optional[str],
    ) -> Any:
        """Accept a mapping result; otherwise fall back to the raw data with a warning."""
        if result is None:
            message = f"Transformer did not return a value, using original data ({query_name})"
        elif isinstance(result, Mapping):
            return result
        else:
            message = (
                f"Transformer result is not a dict or OrderedDict "
                f"(got {type(result).__name__}), using original data ({query_name})"
            )

        logger.warning(message)
        if context is not None:
            context.warn(message)
        return raw_data
