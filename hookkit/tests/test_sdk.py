"""Tests for hookkit/sdk.py."""
import asyncio
import json
import threading

import pytest

from hookkit.sdk import (
    HandlerContext,
    HandlerResult,
    Response,
    block,
    error,
    invoke,
    is_mcp_tool,
    matches_tool,
    parse_mcp_tool,
    resolve,
    success,
)


class TestMerge:
    """The fold rule applied across a handler chain."""

    def test_documented_example(self):
        merged = HandlerResult().merge(HandlerResult(stdout="a")).merge(HandlerResult(exit_code=1, stderr="boom"))
        assert merged == HandlerResult(exit_code=1, stdout="a", stderr="boom")

    def test_zero_never_erases_nonzero(self):
        merged = HandlerResult(exit_code=1).merge(HandlerResult(exit_code=0))
        assert merged.exit_code == 1

    def test_last_nonzero_wins(self):
        merged = HandlerResult(exit_code=1).merge(HandlerResult(exit_code=3))
        assert merged.exit_code == 3

    def test_empty_fields_keep_previous(self):
        first = HandlerResult(stdout="a", stderr="b", output={"x": 1})
        merged = first.merge(HandlerResult(stdout="", stderr=None, output={}))
        assert merged.stdout == "a"
        assert merged.stderr == "b"
        assert merged.output == {"x": 1}

    def test_non_empty_fields_replace(self):
        merged = HandlerResult(stdout="a", output={"x": 1}).merge(HandlerResult(stdout="b", output={"y": 2}))
        assert merged.stdout == "b"
        assert merged.output == {"y": 2}


class TestStopsChain:

    def test_blocking_code_stops(self):
        assert HandlerResult(exit_code=2).stops_chain

    def test_continue_false_stops(self):
        assert HandlerResult(output=Response.stop("done")).stops_chain

    def test_error_does_not_stop(self):
        assert not HandlerResult(exit_code=1).stops_chain

    def test_continue_true_does_not_stop(self):
        assert not HandlerResult(output={"continue": True}).stops_chain


class TestCoerce:

    def test_none_is_neutral(self):
        assert HandlerResult.coerce(None) == HandlerResult()

    def test_dict_is_output(self):
        assert HandlerResult.coerce({"a": 1}).output == {"a": 1}

    def test_str_is_stdout(self):
        assert HandlerResult.coerce("hello").stdout == "hello"

    def test_result_passes_through(self):
        result = block("no")
        assert HandlerResult.coerce(result) is result

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            HandlerResult.coerce(42)


class TestBuilders:

    def test_success(self):
        assert success("ok") == HandlerResult(exit_code=0, stdout="ok")

    def test_block(self):
        result = block("blocked")
        assert result.exit_code == 2
        assert result.stderr == "blocked"
        assert result.is_blocking

    def test_error(self):
        assert error("bad").exit_code == 1

    @pytest.mark.parametrize("builder", [block, error])
    @pytest.mark.parametrize("message", ["", "   "])
    def test_empty_message_rejected(self, builder, message):
        with pytest.raises(ValueError):
            builder(message)

    def test_render_prefers_output(self):
        result = HandlerResult(stdout="text", output={"systemMessage": "hi"})
        assert json.loads(result.render_stdout()) == {"systemMessage": "hi"}

    def test_render_plain_text(self):
        assert HandlerResult(stdout="text").render_stdout() == "text"
        assert HandlerResult().render_stdout() is None

    def test_failure_reason_fallbacks(self):
        assert HandlerResult(exit_code=1, stderr="e", stdout="o").failure_reason() == "e"
        assert HandlerResult(exit_code=1, stdout="o").failure_reason() == "o"
        assert HandlerResult(exit_code=1).failure_reason() == "Handler returned non-zero exit code"


class TestResponse:

    def test_deny_structure(self):
        assert Response.deny("nope") == {
            "hookSpecificOutput": {
                "hookEventName": "PreToolUse",
                "permissionDecision": "deny",
                "permissionDecisionReason": "nope"
            }
        }

    def test_allow_default_reason(self):
        assert Response.allow()["hookSpecificOutput"]["permissionDecisionReason"] == "Allowed by hook"

    def test_ask(self):
        assert Response.ask("sure?")["hookSpecificOutput"]["permissionDecision"] == "ask"

    def test_add_context(self):
        out = Response.add_context("note", event="UserPromptSubmit")
        assert out["hookSpecificOutput"] == {"hookEventName": "UserPromptSubmit", "additionalContext": "note"}

    def test_message_and_stop(self):
        assert Response.message("hi") == {"systemMessage": "hi"}
        assert Response.stop("why") == {"continue": False, "stopReason": "why"}


class TestToolMatching:

    @pytest.mark.parametrize("name,pattern,expected", [
        ("Bash", "Bash", True),
        ("Bash", "*", True),
        ("Bash", "", True),
        ("Write", "Edit|Write", True),
        ("WriteX", "Edit|Write", False),
        ("mcp__github__create_issue", "mcp__*", True),
        ("Read", "mcp__*", False),
        ("Edit", "Edit | MultiEdit", True),
    ])
    def test_matches_tool(self, name, pattern, expected):
        assert matches_tool(name, pattern) is expected

    def test_matches_tool_type_checks(self):
        with pytest.raises(TypeError):
            matches_tool(None, "*")
        with pytest.raises(TypeError):
            matches_tool("Bash", None)

    def test_mcp_helpers(self):
        assert is_mcp_tool("mcp__fs__read_file")
        assert not is_mcp_tool("Read")
        assert parse_mcp_tool("mcp__fs__read_file") == {"server": "fs", "tool": "read_file"}
        assert parse_mcp_tool("mcp__fs__a__b") == {"server": "fs", "tool": "a__b"}
        assert parse_mcp_tool("mcp__fs") is None
        assert parse_mcp_tool("Read") is None


class TestHandlerContext:

    def test_transcript_access(self, transcript):
        path = transcript(
            json.dumps({"type": "user", "message": {"content": "hi"}}),
            "not json",
            json.dumps({"type": "assistant", "message": {"model": "m1"}}),
        )
        ctx = HandlerContext(path)
        assert ctx.get_transcript_line(1).content["type"] == "user"
        assert ctx.get_transcript_line(2).content is None
        assert len(ctx.get_full_transcript()) == 3
        assert ctx.last_transcript_line().line_number == 3
        assert ctx.conversation == {"type": "assistant", "message": {"model": "m1"}}
        found = ctx.search_transcript(lambda line: isinstance(line.content, dict) and line.content.get("type") == "user")
        assert [line.line_number for line in found] == [1]

    def test_missing_transcript(self, tmp_path):
        ctx = HandlerContext(str(tmp_path / "missing.jsonl"))
        assert ctx.get_full_transcript() == []
        assert ctx.last_transcript_line() is None
        assert ctx.conversation is None


def test_resolve_handles_sync_and_async():
    async def value():
        return 5

    async def main():
        return await resolve(value()), await resolve(6)

    assert asyncio.run(main()) == (5, 6)


def test_invoke_runs_sync_callables_off_the_loop():
    def where(tag):
        return tag, threading.current_thread().name

    async def where_async(tag):
        return tag, threading.current_thread().name

    async def main():
        return await invoke(where, "sync"), await invoke(where_async, "async")

    (sync_tag, sync_thread), (async_tag, async_thread) = asyncio.run(main())
    assert (sync_tag, async_tag) == ("sync", "async")
    assert sync_thread.startswith("hookkit")
    assert async_thread == threading.current_thread().name


def test_invoke_propagates_worker_exceptions():
    def broken():
        raise ValueError("from worker")

    with pytest.raises(ValueError, match="from worker"):
        asyncio.run(invoke(broken))
