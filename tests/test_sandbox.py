"""Tests for the transformer sandbox."""

import asyncio
import logging
import math
from collections import OrderedDict

import pytest

from queryflow.core.errors import CycleError, SandboxError
from queryflow.runtime.context import create_execution_context
from queryflow.runtime.sandbox import TransformerSandbox, compile_transformer

RAW = {"orders": [{"id": 1, "total": 9.5}, {"id": 2, "total": 3.0}]}


async def _no_query(name):
    raise AssertionError(f"unexpected query({name!r})")


def _run(code, raw=RAW, query=_no_query, sandbox=None, context=None):
    sandbox = sandbox or TransformerSandbox()
    return asyncio.run(sandbox.run(code, raw, query, context=context, query_name="Test"))


class StaticHelpers:
    def __init__(self, source="", error=None):
        self.source = source
        self.error = error
        self.calls = 0

    async def load_user_library(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.source


class TestResults:
    def test_returns_mapping(self):
        code = 'return {"big": [o for o in data["orders"] if o["total"] > 5]}'
        assert _run(code) == {"big": [{"id": 1, "total": 9.5}]}

    def test_ordered_dict_preserved(self):
        result = _run('return OrderedDict([("z", data["orders"]), ("a", [])])')
        assert isinstance(result, OrderedDict)
        assert list(result) == ["z", "a"]

    def test_no_return_falls_back(self, caplog):
        ctx = create_execution_context()
        with caplog.at_level(logging.WARNING):
            result = _run("total = sum(o['total'] for o in data['orders'])", context=ctx)
        assert result == RAW
        assert "did not return a value" in caplog.text
        assert ctx.warnings

    def test_non_mapping_falls_back(self, caplog):
        with caplog.at_level(logging.WARNING):
            result = _run("return data['orders']")
        assert result is RAW
        assert "not a dict or OrderedDict" in caplog.text

    def test_mutation_does_not_touch_raw(self):
        raw = {"orders": [{"id": 1}]}
        result = _run('data["orders"].clear()\ndata["extra"] = []', raw=raw)
        assert result == {"orders": [{"id": 1}]}
        assert raw == {"orders": [{"id": 1}]}

    def test_blank_code_returns_raw(self):
        assert _run("   ") is RAW

    def test_comment_only_code_falls_back(self):
        assert _run("# nothing to do") == RAW

    def test_capabilities(self):
        code = (
            'ids = jmespath.search("orders[].id", data)\n'
            'return {"ids": [{"id": i, "sqrt": math.sqrt(i)} for i in ids]}'
        )
        assert _run(code) == {"ids": [{"id": 1, "sqrt": 1.0}, {"id": 2, "sqrt": math.sqrt(2)}]}

    def test_nested_functions_see_names(self):
        code = (
            "def big(rows):\n"
            "    return [r for r in rows if r['total'] > limit]\n"
            "limit = 5\n"
            "return {'big': big(data['orders'])}"
        )
        assert _run(code) == {"big": [{"id": 1, "total": 9.5}]}


class TestQueryCallback:
    def test_await_query(self):
        async def query(name):
            return {"rows": [{"name": name}]}

        result = _run('other = await query("Other")\nreturn {"combined": other["rows"]}', query=query)
        assert result == {"combined": [{"name": "Other"}]}

    def test_gather_queries(self):
        async def query(name):
            await asyncio.sleep(0)
            return {name: [{"n": name}]}

        code = 'a, b = await gather(query("A"), query("B"))\nreturn {**a, **b}'
        assert _run(code, query=query) == {"A": [{"n": "A"}], "B": [{"n": "B"}]}

    def test_gather_cancels_remaining_on_failure(self):
        finished = []
        cancelled = []

        async def query(name):
            if name == "Bad":
                raise CycleError(["A", "Bad", "A"])
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(name)
                raise
            finished.append(name)

        with pytest.raises(CycleError):
            _run('return await gather(query("Slow"), query("Bad"))', query=query)
        assert cancelled == ["Slow"]
        assert finished == []

    def test_pipeline_errors_propagate_unchanged(self):
        async def query(name):
            raise CycleError(["A", "B", "A"])

        with pytest.raises(CycleError):
            _run('return await query("A")', query=query)


class TestErrors:
    def test_runtime_error_has_line(self):
        with pytest.raises(SandboxError) as exc_info:
            _run('x = 1\nraise ValueError("bad data")\nreturn data')
        error = exc_info.value
        assert error.line == 2
        assert error.error_type == "ValueError"
        assert "bad data" in str(error)
        assert error.to_dict()["line"] == 2
        assert isinstance(error.__cause__, ValueError)

    def test_error_inside_nested_function_line(self):
        code = "def f(rows):\n    return rows[10]\nreturn {'x': f(data['orders'])}"
        with pytest.raises(SandboxError) as exc_info:
            _run(code)
        assert exc_info.value.line == 2
        assert exc_info.value.error_type == "IndexError"

    def test_syntax_error(self):
        with pytest.raises(SandboxError) as exc_info:
            _run("return {")
        assert exc_info.value.error_type == "SyntaxError"
        assert exc_info.value.line == 1

    @pytest.mark.parametrize("code", [
        "import os",
        "from os import path",
        "open('/etc/passwd')",
        "return ().__class__",
        "eval('1')",
        "getattr(data, 'x')",
        "math.pi = 3",
        "del json.loads",
        "global data",
        "return __builtins__",
        "def gen():\n    yield 1\ng = gen()\nreturn {'f': [g.gi_frame.f_back.f_globals]}",
        "return {'f': [query('A').cr_frame]}",
        "try:\n    1 / 0\nexcept ZeroDivisionError as e:\n    tb = e.with_traceback(None)\n    return {'f': [tb.tb_frame]}",
        "return {'x': ['{0.gi_frame}'.format(data)]}",
        "return {'x': ['{orders}'.format_map(data)]}",
        "pick = operator.attrgetter('orders')",
    ])
    def test_rejected_constructs(self, code):
        with pytest.raises(SandboxError) as exc_info:
            compile_transformer(code)
        assert exc_info.value.error_type == "ValidationError"

    @pytest.mark.parametrize("code", [
        "return {'x': [statistics.random]}",
        "return {'x': [json.decoder]}",
        "return {'x': [jmespath.parser]}",
    ])
    def test_capability_modules_hide_imports(self, code):
        with pytest.raises(SandboxError) as exc_info:
            _run(code)
        assert exc_info.value.error_type == "AttributeError"

    def test_unavailable_builtin(self):
        with pytest.raises(SandboxError) as exc_info:
            _run("return {'x': [hex(1)]}")
        assert exc_info.value.error_type == "NameError"

    def test_timeout(self):
        async def slow_query(name):
            await asyncio.sleep(5)

        sandbox = TransformerSandbox(timeout=0.05)
        with pytest.raises(SandboxError) as exc_info:
            _run('return await query("Slow")', query=slow_query, sandbox=sandbox)
        assert exc_info.value.error_type == "TimeoutError"


class TestHelpers:
    def test_helpers_available(self):
        loader = StaticHelpers("def double(x):\n    return x * 2\n")
        sandbox = TransformerSandbox(helper_loader=loader)
        result = _run('return {"v": [{"x": helpers.double(21)}]}', sandbox=sandbox)
        assert result == {"v": [{"x": 42}]}

    def test_helpers_loaded_once_per_context(self):
        loader = StaticHelpers("def one():\n    return 1\n")
        sandbox = TransformerSandbox(helper_loader=loader)
        ctx = create_execution_context()
        _run('return {"a": [helpers.one()]}', sandbox=sandbox, context=ctx)
        _run('return {"b": [helpers.one()]}', sandbox=sandbox, context=ctx)
        assert loader.calls == 1

    def test_helper_load_failure_is_not_fatal(self, caplog):
        loader = StaticHelpers(error=RuntimeError("store offline"))
        sandbox = TransformerSandbox(helper_loader=loader)
        with caplog.at_level(logging.WARNING):
            result = _run('return {"n": [len(data["orders"])]}', sandbox=sandbox)
        assert result == {"n": [2]}
        assert "store offline" in caplog.text

    def test_invalid_helpers_degrade_to_empty(self, caplog):
        loader = StaticHelpers("import os\n")
        sandbox = TransformerSandbox(helper_loader=loader)
        with caplog.at_level(logging.WARNING):
            result = _run('return {"ok": []}', sandbox=sandbox)
        assert result == {"ok": []}
        assert "Failed to load helper library" in caplog.text

    def test_missing_helper_raises_sandbox_error(self):
        with pytest.raises(SandboxError) as exc_info:
            _run('return {"x": [helpers.nothing()]}')
        assert exc_info.value.error_type == "AttributeError"

