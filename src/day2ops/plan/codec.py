"""
Wire codecs for plan records.

Plan bytes are compact JSON with a fixed key order, so the controller and the
remote executor hash exactly the same bytes. ``<``, ``>`` and ``&`` are
written as ``\\u003c``-style escapes, matching the bytes other plan writers
produce for the same instructions.

Output bytes are a gzip-compressed JSON object mapping instruction name to
the base64 encoding of the raw result.

Examples:
    >>> from day2ops.plan.instructions import start_agent
    >>> encode_plan([start_agent()])[:30]
    b'{"instructions":[{"name":"star'
    >>> decode_output(encode_output({"start-rke2": b"ok"}))
    {'start-rke2': b'ok'}

Tags:
    plan, codec, json, gzip, day2ops
"""

from __future__ import annotations

import base64
import binascii
import gzip
import json
import zlib
from collections.abc import Iterable, Mapping

from day2ops.core.errors import MalformedOutputError
from day2ops.plan.instructions import Instruction

_HTML_ESCAPES = {"<": "\\u003c", ">": "\\u003e", "&": "\\u0026"}


def _escape(text: str) -> str:
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def encode_plan(instructions: Iterable[Instruction]) -> bytes:
    """Serialize *instructions* into canonical plan bytes."""
    document = {"instructions": [instruction.to_dict() for instruction in instructions]}
    return _escape(json.dumps(document, separators=(",", ":"))).encode("utf-8")


def decode_plan(data: bytes) -> list[Instruction]:
    """Parse plan bytes back into instructions.

    Raises:
        MalformedOutputError: If *data* is not a plan document
    """
    try:
        document = json.loads(data)
        return [Instruction.from_dict(item) for item in document.get("instructions") or []]
    except (ValueError, AttributeError, TypeError) as e:
        raise MalformedOutputError("plan is not valid JSON", cause=e) from e


def encode_output(outputs: Mapping[str, bytes]) -> bytes:
    """Encode an output map the way the remote executor reports it."""
    document = {name: base64.b64encode(value).decode("ascii") for name, value in outputs.items()}
    return gzip.compress(json.dumps(document).encode("utf-8"))


def decode_output(data: bytes | None) -> dict[str, bytes]:
    """Decode a reported output map.

    Empty or missing output decodes to an empty map.

    Raises:
        MalformedOutputError: If decompression, JSON parsing or base64
            decoding fails
    """
    if not data:
        return {}

    try:
        raw = gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise MalformedOutputError("failed to decompress applied output", cause=e) from e

    try:
        document = json.loads(raw)
    except ValueError as e:
        raise MalformedOutputError("failed to parse applied output", cause=e) from e

    if not isinstance(document, dict):
        raise MalformedOutputError("applied output is not a JSON object")

    result: dict[str, bytes] = {}
    for name, value in document.items():
        if not isinstance(value, str):
            raise MalformedOutputError(f"output for {name} is not a string")
        try:
            result[name] = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedOutputError(f"output for {name} is not base64", cause=e) from e
    return result


__all__ = ["encode_plan", "decode_plan", "encode_output", "decode_output"]
