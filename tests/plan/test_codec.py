"""
Tests for day2ops.plan.codec.
"""

import base64
import gzip
import json

import pytest

from day2ops.core.errors import MalformedOutputError
from day2ops.plan.codec import decode_output, decode_plan, encode_output, encode_plan
from day2ops.plan.instructions import Instruction, set_server_url, start_agent, stop_agent


class TestEncodePlan:
    def test_compact_document(self):
        data = encode_plan([Instruction(name="n", command="c")])
        assert data == b'{"instructions":[{"name":"n","command":"c"}]}'

    def test_empty_plan(self):
        assert encode_plan([]) == b'{"instructions":[]}'

    def test_stable_bytes(self):
        """Same instructions always encode to the same bytes."""
        assert encode_plan([stop_agent(), start_agent()]) == encode_plan([stop_agent(), start_agent()])

    def test_order_matters(self):
        assert encode_plan([stop_agent(), start_agent()]) != encode_plan([start_agent(), stop_agent()])

    def test_html_characters_escaped(self):
        data = encode_plan([set_server_url("10.0.0.5")])
        assert b">>" not in data
        assert b"\\u003e\\u003e" in data

    def test_ampersand_escaped(self):
        data = encode_plan([Instruction(name="n", args=("a && b",))])
        assert b"\\u0026\\u0026" in data


class TestDecodePlan:
    def test_decodes_written_plan(self):
        instructions = [stop_agent(), set_server_url("10.0.0.5")]
        assert decode_plan(encode_plan(instructions)) == instructions

    def test_invalid_json(self):
        with pytest.raises(MalformedOutputError):
            decode_plan(b"not json")

    def test_not_a_document(self):
        with pytest.raises(MalformedOutputError):
            decode_plan(b"[1, 2]")


class TestOutput:
    def test_wire_format(self):
        """gzip(JSON{name: base64(raw)})."""
        data = encode_output({"snapshot": b"saved"})
        document = json.loads(gzip.decompress(data))
        assert document == {"snapshot": base64.b64encode(b"saved").decode()}

    def test_decode_output(self):
        raw = gzip.compress(json.dumps({"start-rke2": base64.b64encode(b"ok").decode()}).encode())
        assert decode_output(raw) == {"start-rke2": b"ok"}

    def test_empty_is_empty_map(self):
        assert decode_output(None) == {}
        assert decode_output(b"") == {}

    def test_not_gzip(self):
        with pytest.raises(MalformedOutputError, match="decompress"):
            decode_output(b"plain text")

    def test_not_json(self):
        with pytest.raises(MalformedOutputError, match="parse"):
            decode_output(gzip.compress(b"{broken"))

    def test_not_an_object(self):
        with pytest.raises(MalformedOutputError):
            decode_output(gzip.compress(b"[]"))

    def test_value_not_base64(self):
        with pytest.raises(MalformedOutputError, match="base64"):
            decode_output(gzip.compress(b'{"snapshot": "***"}'))

    def test_value_not_string(self):
        with pytest.raises(MalformedOutputError):
            decode_output(gzip.compress(b'{"snapshot": 1}'))
