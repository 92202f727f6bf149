"""Tests for the structured-export parser and dropped-file ingest."""
from __future__ import annotations

import json

import pytest

from agentreplay.errors import UnrecognizedFormatError, UnsupportedFileError
from agentreplay.ingest import load_dropped_file
from agentreplay.model import Role
from agentreplay.parsers.export import parse_export, parse_export_text, stringify_arg, stringify_args


class TestStringifyArg:
    def test_scalars(self):
        assert stringify_arg("x") == "x"
        assert stringify_arg(3) == "3"
        assert stringify_arg(2.5) == "2.5"
        assert stringify_arg(True) == "true"
        assert stringify_arg(False) == "false"
        assert stringify_arg(None) == "null"

    def test_structures_are_compact_json(self):
        assert stringify_arg({"a": [1, 2]}) == '{"a":[1,2]}'
        assert stringify_arg(["x", "y"]) == '["x","y"]'

    def test_args_mapping(self):
        assert stringify_args({"n": 1, "s": "v"}) == {"n": "1", "s": "v"}
        assert stringify_args(None) == {}
        assert stringify_args(["not", "a", "dict"]) == {}


class TestPartsShape:
    def test_text_roles(self):
        data = [
            {"role": "user", "parts": [{"text": "hi"}]},
            {"role": "model", "parts": [{"text": "hello"}]},
        ]
        msgs = parse_export(data)
        assert [(m.role, m.content) for m in msgs] == [
            (Role.USER, "hi"), (Role.ASSISTANT, "hello"),
        ]

    def test_function_call_and_response(self):
        data = [
            {"role": "model", "parts": [
                {"functionCall": {"name": "read_file", "args": {"path": "a.py", "lines": 10}}},
            ]},
            {"role": "user", "parts": [
                {"functionResponse": {"name": "read_file", "response": {"output": "contents"}}},
            ]},
        ]
        call, result = parse_export(data)
        assert call.role is Role.TOOL_CALL
        assert call.content == "read_file"
        assert call.tool_call.args == {"path": "a.py", "lines": "10"}
        assert result.role is Role.TOOL_RESULT
        assert result.content == "contents"
        assert result.tool_result.name == "read_file"
        assert result.tool_result.output == "contents"

    def test_missing_output_is_empty(self):
        data = [{"role": "user", "parts": [{"functionResponse": {"name": "x", "response": {}}}]}]
        (result,) = parse_export(data)
        assert result.content == ""

    def test_several_parts_in_one_turn(self):
        data = [{"role": "model", "parts": [
            {"text": "Let me check."},
            {"functionCall": {"name": "ls", "args": {}}},
        ]}]
        assert [m.role for m in parse_export(data)] == [Role.ASSISTANT, Role.TOOL_CALL]

    def test_empty_parts_ignored(self):
        data = [{"role": "model", "parts": [{}, {"text": ""}]}]
        assert parse_export(data) == []


class TestContentShape:
    def test_roundtrip_of_unified_dicts(self):
        data = [
            {"role": "user", "content": "hi"},
            {"role": "tool_call", "content": "Read", "toolCall": {"name": "Read", "args": {"p": "a"}}},
            {"role": "tool_result", "content": "ok", "toolResult": {"name": "Read", "output": "ok"}},
            {"role": "assistant", "content": "done"},
        ]
        msgs = parse_export(data)
        assert [m.to_dict() for m in msgs] == data

    def test_nested_subagent(self):
        data = [{
            "role": "subagent", "content": "Subagent: abc",
            "subagent": {"id": "abc", "messages": [{"role": "user", "content": "inner"}]},
        }]
        (msg,) = parse_export(data)
        assert msg.subagent.id == "abc"
        assert msg.subagent.messages[0].content == "inner"

    def test_unknown_role_rejected(self):
        with pytest.raises(UnrecognizedFormatError):
            parse_export([{"role": "narrator", "content": "x"}])

    def test_playback_roles_rejected(self):
        with pytest.raises(UnrecognizedFormatError):
            parse_export([{"role": "approval", "content": ""}])


class TestParseExport:
    def test_empty_array(self):
        assert parse_export([]) == []

    def test_not_an_array(self):
        with pytest.raises(UnrecognizedFormatError):
            parse_export({"role": "user", "content": "hi"})

    def test_unknown_element_shape(self):
        with pytest.raises(UnrecognizedFormatError, match="Unrecognized conversation format"):
            parse_export([{"speaker": "me", "text": "hi"}])

    def test_mixed_shapes_rejected(self):
        with pytest.raises(UnrecognizedFormatError):
            parse_export([
                {"role": "user", "parts": [{"text": "a"}]},
                {"role": "user", "content": "b"},
            ])

    def test_invalid_json_text(self):
        with pytest.raises(UnrecognizedFormatError):
            parse_export_text("{not json")

    def test_text(self):
        msgs = parse_export_text('[{"role": "user", "content": "hi"}]')
        assert msgs[0].content == "hi"


class TestLoadDroppedFile:
    def test_json_file(self, write_file):
        path = write_file("chat.json", json.dumps([{"role": "user", "content": "hi"}]))
        assert [m.content for m in load_dropped_file(path)] == ["hi"]

    def test_uppercase_extension(self, write_file):
        path = write_file("chat.JSON", "[]")
        assert load_dropped_file(path) == []

    def test_other_extension_rejected_without_reading(self, tmp_path):
        with pytest.raises(UnsupportedFileError):
            load_dropped_file(tmp_path / "does-not-exist.txt")

    def test_unrecognized_content_propagates(self, write_file):
        path = write_file("chat.json", '{"hello": "world"}')
        with pytest.raises(UnrecognizedFormatError):
            load_dropped_file(path)
